"""
Module: ownership_engines.depletion
Responsibility:
    Plan an oldest-first depletion of owned stock across a bucket's lots,
    by quantity (sales, product consumption) or by weight (raw-material
    consumption in manufacturing).

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Works on frozen OwnershipLot records and returns updated copies; the
    consumption allocator persists them.

Invariants enforced:
    - Oldest first: lots are visited by (created_at, receipt_sequence),
      regardless of the costing method used for valuation.
    - All-or-nothing: an insufficient plan carries no updated lots.
    - Payment state (amount_paid, outstanding_amount, ownership_percentage)
      is copied through untouched.
    - A lot whose primary measure reaches zero is deactivated, and when a
      lot is taken in full both owned measures go to zero.

Failure modes:
    - ValueError on a non-positive requested amount.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, replace
from decimal import Decimal
from enum import Enum
from uuid import UUID

from ownership_engines.tracer import traced_engine
from ownership_kernel.domain.lots import OwnershipLot
from ownership_kernel.domain.precision import DEFAULT_PRECISION, ZERO, Precision
from ownership_kernel.logging_config import get_logger

logger = get_logger("engines.depletion")


class DepletionMeasure(str, Enum):
    """Which owned measure drives the depletion."""

    QUANTITY = "quantity"
    WEIGHT = "weight"


@dataclass(frozen=True, slots=True)
class DepletionTake:
    """What one lot gives up."""

    lot_id: UUID
    quantity: Decimal
    weight: Decimal
    deactivated: bool


@dataclass(frozen=True)
class DepletionPlan:
    """
    Outcome of planning a depletion.

    Guarantees:
        - When ``sufficient`` is False, ``takes`` and ``updated_lots`` are
          empty and ``available`` reports what the bucket could supply.
        - updated_lots[i] is the post-depletion state of takes[i].lot_id.
    """

    measure: DepletionMeasure
    requested: Decimal
    available: Decimal
    takes: tuple[DepletionTake, ...]
    updated_lots: tuple[OwnershipLot, ...]

    @property
    def sufficient(self) -> bool:
        return self.available >= self.requested

    @property
    def shortfall(self) -> Decimal:
        return max(self.requested - self.available, ZERO)


def eligible_lots(
    lots: Sequence[OwnershipLot],
    measure: DepletionMeasure = DepletionMeasure.QUANTITY,
) -> list[OwnershipLot]:
    """Active lots holding some of ``measure``, oldest first."""
    if measure is DepletionMeasure.WEIGHT:
        selected = [l for l in lots if l.is_active and l.owned_weight > ZERO]
    else:
        selected = [l for l in lots if l.is_active and l.owned_quantity > ZERO]
    return sorted(selected, key=lambda l: l.sequence_key)


@traced_engine("depletion", "1.0", fingerprint_fields=("requested", "measure"))
def plan_depletion(
    *,
    lots: Sequence[OwnershipLot],
    requested: Decimal,
    measure: DepletionMeasure = DepletionMeasure.QUANTITY,
    precision: Precision = DEFAULT_PRECISION,
) -> DepletionPlan:
    """Plan taking ``requested`` of ``measure`` from ``lots``, oldest first.

    Preconditions:
        requested > 0.
    Postconditions:
        When sufficient, the takes sum to ``requested`` in the primary
        measure; the secondary measure is reduced proportionally
        (take x owned_secondary / owned_primary), quantized with the
        configured precision.
    Raises:
        ValueError: requested <= 0.
    """
    if requested <= ZERO:
        raise ValueError(f"Depletion amount must be positive, got {requested}")

    candidates = eligible_lots(lots, measure)
    if measure is DepletionMeasure.WEIGHT:
        available = sum((l.owned_weight for l in candidates), ZERO)
    else:
        available = sum((l.owned_quantity for l in candidates), ZERO)

    if available < requested:
        logger.info("depletion_plan_insufficient", extra={
            "measure": measure.value,
            "requested": str(requested),
            "available": str(available),
            "candidate_lots": len(candidates),
        })
        return DepletionPlan(
            measure=measure,
            requested=requested,
            available=available,
            takes=(),
            updated_lots=(),
        )

    takes: list[DepletionTake] = []
    updated: list[OwnershipLot] = []
    remaining = requested

    for lot in candidates:
        if remaining <= ZERO:
            break

        if measure is DepletionMeasure.WEIGHT:
            primary_owned, secondary_owned = lot.owned_weight, lot.owned_quantity
        else:
            primary_owned, secondary_owned = lot.owned_quantity, lot.owned_weight

        take = min(remaining, primary_owned)
        if take == primary_owned:
            secondary_take = secondary_owned
        else:
            ratio_take = take * secondary_owned / primary_owned
            secondary_take = (
                precision.quantity(ratio_take)
                if measure is DepletionMeasure.WEIGHT
                else precision.weight(ratio_take)
            )
        remaining -= take

        if measure is DepletionMeasure.WEIGHT:
            qty_take, weight_take = secondary_take, take
        else:
            qty_take, weight_take = take, secondary_take

        new_lot = replace(
            lot,
            owned_quantity=lot.owned_quantity - qty_take,
            owned_weight=lot.owned_weight - weight_take,
        )
        depleted = (
            new_lot.owned_weight == ZERO
            if measure is DepletionMeasure.WEIGHT
            else new_lot.owned_quantity == ZERO
        )
        if depleted:
            new_lot = replace(new_lot, is_active=False)

        takes.append(DepletionTake(
            lot_id=lot.lot_id,
            quantity=qty_take,
            weight=weight_take,
            deactivated=depleted,
        ))
        updated.append(new_lot)

    logger.info("depletion_plan_completed", extra={
        "measure": measure.value,
        "requested": str(requested),
        "lots_touched": len(takes),
        "lots_deactivated": sum(1 for t in takes if t.deactivated),
    })

    return DepletionPlan(
        measure=measure,
        requested=requested,
        available=available,
        takes=tuple(takes),
        updated_lots=tuple(updated),
    )
