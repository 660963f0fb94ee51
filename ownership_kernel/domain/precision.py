"""
Precision -- Fixed-point quantization rules for ownership arithmetic.

Responsibility:
    Single place that decides how many decimal places money, quantities,
    weights and ownership fractions carry, and how they are rounded.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Values are supplied
    by ownership_config through a bridge; the kernel never reads config.

Invariants enforced:
    - Money, quantity and weight round ROUND_HALF_UP unless a caller
      asks for another mode.
    - Ownership fractions are clamped into [0, 1] after quantization.
    - ownership() rounds down, so only a fully paid lot reaches 1.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal

ZERO = Decimal("0")
ONE = Decimal("1")


def _step(places: int) -> Decimal:
    return Decimal(1).scaleb(-places)


@dataclass(frozen=True, slots=True)
class Precision:
    """
    Decimal places used when persisting and comparing ownership figures.

    Guarantees:
        - Every helper returns a Decimal quantized to its configured places.
        - fraction() never returns a value outside [0, 1].
    """

    money_places: int = 2
    quantity_places: int = 3
    weight_places: int = 3
    fraction_places: int = 6

    def __post_init__(self) -> None:
        for name in ("money_places", "quantity_places", "weight_places", "fraction_places"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative")

    def money(self, value: Decimal) -> Decimal:
        return value.quantize(_step(self.money_places), rounding=ROUND_HALF_UP)

    def quantity(self, value: Decimal, rounding: str = ROUND_HALF_UP) -> Decimal:
        return value.quantize(_step(self.quantity_places), rounding=rounding)

    def weight(self, value: Decimal, rounding: str = ROUND_HALF_UP) -> Decimal:
        return value.quantize(_step(self.weight_places), rounding=rounding)

    def fraction(self, value: Decimal) -> Decimal:
        """Quantize and clamp an ownership fraction into [0, 1]."""
        value = value.quantize(_step(self.fraction_places), rounding=ROUND_HALF_UP)
        if value < ZERO:
            return ZERO
        if value > ONE:
            return ONE
        return value

    def ownership(self, amount_paid: Decimal, total_cost: Decimal) -> Decimal:
        """
        Ownership fraction earned by ``amount_paid`` of ``total_cost``.

        Exactly 1 once nothing is outstanding (including zero-cost lots),
        otherwise truncated so a balance of 0.01 on a large lot stays
        below 1.
        """
        if amount_paid >= total_cost:
            return ONE
        if amount_paid <= ZERO:
            return ZERO
        return (amount_paid / total_cost).quantize(_step(self.fraction_places), rounding=ROUND_DOWN)

    @property
    def money_unit(self) -> Decimal:
        """Smallest representable money amount (e.g. 0.01)."""
        return _step(self.money_places)


DEFAULT_PRECISION = Precision()
