"""
Reconciliation -- Post-mutation invariant checks for ownership lots.

Responsibility:
    Pure functions that compare lot records against the ownership
    invariants and against their pre-mutation state, plus one helper that
    turns violations into a logged fault.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    Every OwnershipInvariant except SPLIT_CONSERVATION, which is checked by
    the payment allocator against its own share list.

Failure modes:
    - raise_on_violations raises CalculationInconsistencyError; violations
      are never auto-corrected.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from uuid import UUID

from ownership_kernel.domain.lots import OwnershipLot
from ownership_kernel.domain.precision import ZERO
from ownership_kernel.exceptions import CalculationInconsistencyError
from ownership_kernel.invariants import OwnershipInvariant
from ownership_kernel.logging_config import get_logger

logger = get_logger("domain.reconciliation")


@dataclass(frozen=True, slots=True)
class Violation:
    invariant: OwnershipInvariant
    detail: str
    lot_id: UUID | None = None


def lot_violations(lot: OwnershipLot) -> list[Violation]:
    """Check the per-lot bounds of a single record."""
    found: list[Violation] = []

    if not (ZERO <= lot.ownership_percentage <= 1):
        found.append(Violation(
            OwnershipInvariant.PERCENTAGE_BOUNDS,
            f"ownership_percentage={lot.ownership_percentage}",
            lot.lot_id,
        ))

    if lot.amount_paid > lot.total_cost or lot.amount_paid < ZERO:
        found.append(Violation(
            OwnershipInvariant.NO_LOT_OVERPAYMENT,
            f"amount_paid={lot.amount_paid} total_cost={lot.total_cost}",
            lot.lot_id,
        ))
    elif lot.outstanding_amount != lot.total_cost - lot.amount_paid:
        found.append(Violation(
            OwnershipInvariant.NO_LOT_OVERPAYMENT,
            f"outstanding_amount={lot.outstanding_amount} does not equal "
            f"total_cost - amount_paid={lot.total_cost - lot.amount_paid}",
            lot.lot_id,
        ))

    if not (ZERO <= lot.owned_quantity <= lot.total_quantity):
        found.append(Violation(
            OwnershipInvariant.OWNED_STOCK_BOUNDS,
            f"owned_quantity={lot.owned_quantity} total_quantity={lot.total_quantity}",
            lot.lot_id,
        ))
    if not (ZERO <= lot.owned_weight <= lot.total_weight):
        found.append(Violation(
            OwnershipInvariant.OWNED_STOCK_BOUNDS,
            f"owned_weight={lot.owned_weight} total_weight={lot.total_weight}",
            lot.lot_id,
        ))

    return found


def bucket_violations(lots: Iterable[OwnershipLot]) -> list[Violation]:
    """Check per-lot bounds plus bucket-level conservation."""
    lots = list(lots)
    found: list[Violation] = []
    for lot in lots:
        found.extend(lot_violations(lot))

    active = [lot for lot in lots if lot.is_active]
    owned = sum((lot.owned_quantity for lot in active), ZERO)
    total = sum((lot.total_quantity for lot in active), ZERO)
    if owned > total:
        found.append(Violation(
            OwnershipInvariant.BUCKET_CONSERVATION,
            f"owned_quantity sum {owned} exceeds total_quantity sum {total}",
        ))
    return found


def payment_violations(before: OwnershipLot, after: OwnershipLot) -> list[Violation]:
    """A payment may only move payment and owned-stock fields."""
    if (
        before.total_quantity != after.total_quantity
        or before.total_weight != after.total_weight
        or before.total_cost != after.total_cost
    ):
        return [Violation(
            OwnershipInvariant.PAYMENT_PRESERVES_TOTALS,
            "lot totals changed during payment allocation",
            after.lot_id,
        )]
    return []


def depletion_violations(before: OwnershipLot, after: OwnershipLot) -> list[Violation]:
    """A depletion may only move owned stock."""
    if (
        before.amount_paid != after.amount_paid
        or before.outstanding_amount != after.outstanding_amount
        or before.ownership_percentage != after.ownership_percentage
    ):
        return [Violation(
            OwnershipInvariant.DEPLETION_PRESERVES_PAYMENT,
            "payment state changed during depletion",
            after.lot_id,
        )]
    return []


def raise_on_violations(
    violations: list[Violation],
    *,
    operation: str,
    bucket: str,
) -> None:
    """
    Log every violation at ERROR and raise the first as a fault.

    Raises:
        CalculationInconsistencyError: when ``violations`` is non-empty.
    """
    if not violations:
        return
    for v in violations:
        logger.error("ownership_invariant_violated", extra={
            "operation": operation,
            "bucket": bucket,
            "invariant": v.invariant.value,
            "detail": v.detail,
            "lot_id": str(v.lot_id) if v.lot_id else None,
        })
    first = violations[0]
    raise CalculationInconsistencyError(first.invariant.value, first.detail, first.lot_id)
