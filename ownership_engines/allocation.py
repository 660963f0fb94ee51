"""
Module: ownership_engines.allocation
Responsibility:
    Split a payment across a bucket's open lots in proportion to their
    outstanding balances, with deterministic rounding and per-lot caps.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import ownership_kernel/domain and ownership_kernel/logging_config.

Invariants enforced:
    - Split conservation: the returned shares sum to the payment exactly.
    - Cap: no share exceeds its target's cap (the lot's outstanding amount).
    - Rounding: the residual from quantizing shares to money precision is
      assigned to the largest share (first such target in input order on
      ties), so replays produce identical cent assignments.

Failure modes:
    - ValueError on an empty target list or non-positive amount.
    - ValueError when the caps cannot absorb the amount (the caller has
      already rejected overpayment, so this indicates corrupt inputs).

Usage:
    from ownership_engines.allocation import ProRataAllocator, ShareTarget

    result = ProRataAllocator().allocate(
        amount=Decimal("100.00"),
        targets=[
            ShareTarget(target_id=l1, weight=Decimal("300.00")),
            ShareTarget(target_id=l2, weight=Decimal("700.00")),
        ],
        money_unit=Decimal("0.01"),
    )
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from ownership_engines.tracer import traced_engine
from ownership_kernel.logging_config import get_logger

logger = get_logger("engines.allocation")

_ZERO = Decimal("0")


@dataclass(frozen=True)
class ShareTarget:
    """
    One lot eligible to receive part of a payment.

    Contract:
        ``weight`` drives the proportional split; ``cap`` bounds the share.
        When cap is omitted the weight is used as the cap (outstanding-based
        splitting).
    Guarantees:
        - weight is strictly positive.
    """

    target_id: UUID | str
    weight: Decimal
    cap: Decimal | None = None

    def __post_init__(self) -> None:
        if self.weight <= _ZERO:
            raise ValueError("Share weight must be positive")

    @property
    def effective_cap(self) -> Decimal:
        return self.weight if self.cap is None else self.cap


@dataclass(frozen=True)
class ShareLine:
    """Share assigned to one target."""

    target_id: UUID | str
    share: Decimal
    is_rounding_target: bool = False
    capped: bool = False


@dataclass(frozen=True)
class ShareResult:
    """
    Result of a pro-rata split.

    Guarantees:
        - sum(line.share for line in lines) == amount.
        - lines are in the same order as the input targets.
    """

    amount: Decimal
    lines: tuple[ShareLine, ...]
    rounding_adjustment: Decimal
    carried_excess: Decimal

    @property
    def total_allocated(self) -> Decimal:
        return sum((line.share for line in self.lines), _ZERO)

    def share_for(self, target_id: UUID | str) -> Decimal:
        for line in self.lines:
            if line.target_id == target_id:
                return line.share
        return _ZERO


class ProRataAllocator:
    """
    Proportional splitter used by the payment allocator.

    Contract:
        Pure, stateless.  Targets are supplied in created_at order; that
        order decides rounding ties and the order in which capped excess
        is carried.
    Non-goals:
        - Does not know about lots, only ids, weights and caps.
    """

    @traced_engine("prorata_allocation", "1.0", fingerprint_fields=("amount", "targets"))
    def allocate(
        self,
        *,
        amount: Decimal,
        targets: Sequence[ShareTarget],
        money_unit: Decimal = Decimal("0.01"),
    ) -> ShareResult:
        """Split ``amount`` across ``targets`` by weight.

        Preconditions:
            - ``amount`` > 0 and ``targets`` non-empty.
            - ``amount`` is already quantized to ``money_unit``.
        Postconditions:
            - Sum of shares == amount.
            - Every share is in [0, target cap].
        Raises:
            ValueError: empty targets, non-positive amount, or caps too small.
        """
        if not targets:
            raise ValueError("Cannot allocate across zero targets")
        if amount <= _ZERO:
            raise ValueError(f"Allocation amount must be positive, got {amount}")

        total_weight = sum((t.weight for t in targets), _ZERO)

        shares = [
            (amount * t.weight / total_weight).quantize(money_unit, rounding=ROUND_HALF_UP)
            for t in targets
        ]
        naive_total = sum(shares, _ZERO)
        remainder = amount - naive_total

        # Largest share absorbs the residual; sorted() is stable so the
        # earliest target wins ties.
        by_size = sorted(range(len(shares)), key=lambda i: shares[i], reverse=True)
        rounding_index = by_size[0]
        if remainder > _ZERO:
            shares[rounding_index] += remainder
        elif remainder < _ZERO:
            deficit = -remainder
            for i in by_size:
                taken = min(deficit, shares[i])
                shares[i] -= taken
                deficit -= taken
                if deficit == _ZERO:
                    break

        # Cap each share at its target's cap, then carry the excess forward
        # to targets that still have headroom.
        capped: set[int] = set()
        excess = _ZERO
        for i, target in enumerate(targets):
            cap = target.effective_cap
            if shares[i] > cap:
                excess += shares[i] - cap
                shares[i] = cap
                capped.add(i)
        carried = excess
        if excess > _ZERO:
            for i, target in enumerate(targets):
                headroom = target.effective_cap - shares[i]
                if headroom <= _ZERO:
                    continue
                given = min(headroom, excess)
                shares[i] += given
                excess -= given
                if excess == _ZERO:
                    break
        if excess > _ZERO:
            logger.error("prorata_allocation_no_headroom", extra={
                "amount": str(amount),
                "unallocated": str(excess),
                "targets": len(targets),
            })
            raise ValueError(
                f"Targets cannot absorb {amount}: {excess} left unallocated"
            )

        lines = tuple(
            ShareLine(
                target_id=t.target_id,
                share=shares[i],
                is_rounding_target=(i == rounding_index and remainder != _ZERO),
                capped=(i in capped),
            )
            for i, t in enumerate(targets)
        )
        result = ShareResult(
            amount=amount,
            lines=lines,
            rounding_adjustment=remainder,
            carried_excess=carried,
        )

        if result.total_allocated != amount:
            raise ValueError(
                f"Allocation conservation violated: {result.total_allocated} != {amount}"
            )

        logger.info("prorata_allocation_completed", extra={
            "amount": str(amount),
            "targets": len(targets),
            "rounding_adjustment": str(remainder),
            "carried_excess": str(carried),
        })
        return result
