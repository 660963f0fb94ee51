"""
PaymentAllocator -- Distribute a supplier payment across a bucket's open lots.

Responsibility:
    Validate a payment, split it across the bucket's lots in proportion to
    their outstanding balances, and move each lot's payment state and owned
    stock forward.  All lots change together or not at all.

Architecture position:
    Kernel > Services -- imperative shell over the pure ProRataAllocator.
    Loads the bucket once through UnitOfWork.lots (arena), mutates frozen
    records in memory, reconciles, then writes back and flushes.

Invariants enforced:
    - Validation before mutation: non-positive or over-precise amounts,
      empty buckets and overpayment are rejected with nothing applied.
    - Split conservation: shares sum to the payment exactly.
    - Payment allocation never changes lot totals.
    - 0 <= ownership_percentage <= 1 and amount_paid <= total_cost.

Failure modes:
    - InvalidQuantityError: payment <= 0 or more decimals than money precision.
    - LotNotFoundError: no active lot with outstanding balance.
    - OverpaymentRejectedError: payment exceeds total outstanding.
    - CalculationInconsistencyError: reconciliation failed (fault).
    - ConcurrencyConflictError: another transaction changed a lot.

Audit relevance:
    Every lot receiving a share gets a ``payment`` movement row with the
    share amount and the resulting ownership state.
"""

from __future__ import annotations

from dataclasses import replace
from decimal import ROUND_DOWN, Decimal

from ownership_engines.allocation import ProRataAllocator, ShareTarget
from ownership_kernel.domain.lots import (
    BucketKey,
    LotAllocation,
    OwnershipLot,
    PaymentMode,
)
from ownership_kernel.domain.precision import ZERO, Precision
from ownership_kernel.domain.reconciliation import (
    Violation,
    bucket_violations,
    payment_violations,
    raise_on_violations,
)
from ownership_kernel.exceptions import (
    CalculationInconsistencyError,
    InvalidQuantityError,
    LotNotFoundError,
    OverpaymentRejectedError,
)
from ownership_kernel.invariants import OwnershipInvariant
from ownership_kernel.logging_config import LogContext, get_logger
from ownership_kernel.services.unit_of_work import UnitOfWork

logger = get_logger("services.payment_allocator")


def apply_share(
    lot: OwnershipLot,
    share: Decimal,
    mode: PaymentMode,
    precision: Precision,
) -> OwnershipLot:
    """
    Post ``share`` to ``lot`` and recompute ownership.

    PRODUCT mode recomputes owned_quantity and owned_weight from the new
    percentage.  RAW_MATERIAL mode recomputes owned_weight only.  Either way
    the recomputation replaces whatever depletion had left.
    Owned figures are truncated, so a lot with any balance left never
    reports its whole stock as owned.
    """
    amount_paid = lot.amount_paid + share
    outstanding = lot.outstanding_amount - share

    pct = precision.ownership(amount_paid, lot.total_cost)

    owned_weight = precision.weight(lot.total_weight * pct, ROUND_DOWN)
    if mode is PaymentMode.RAW_MATERIAL:
        owned_quantity = lot.owned_quantity
    else:
        owned_quantity = precision.quantity(lot.total_quantity * pct, ROUND_DOWN)

    return replace(
        lot,
        amount_paid=amount_paid,
        outstanding_amount=outstanding,
        ownership_percentage=pct,
        owned_quantity=owned_quantity,
        owned_weight=owned_weight,
    )


class PaymentAllocator:
    """
    Treasury-facing entry point for supplier payments.

    Contract:
        Stateless; every call receives the caller's UnitOfWork.  Flushes,
        never commits.
    Guarantees:
        - Returned allocations are in created_at order and their amounts
          sum to the payment.
        - Lots receiving a zero share (tiny payments across many lots) are
          left untouched and omitted from the result.
    Non-goals:
        - Does not book the payment in any treasury ledger.
    """

    def __init__(self, allocator: ProRataAllocator | None = None):
        self._allocator = allocator or ProRataAllocator()

    def allocate_payment(
        self,
        uow: UnitOfWork,
        bucket: BucketKey,
        payment_amount: Decimal,
        *,
        mode: PaymentMode = PaymentMode.PRODUCT,
        reference: str | None = None,
    ) -> list[LotAllocation]:
        """
        Apply ``payment_amount`` across the open lots of ``bucket``.

        Raises:
            InvalidQuantityError, LotNotFoundError, OverpaymentRejectedError,
            CalculationInconsistencyError, ConcurrencyConflictError.
        """
        with LogContext.bind(bucket=str(bucket), reference=reference, operation="allocate_payment"):
            return self._allocate(uow, bucket, payment_amount, mode, reference)

    def _allocate(
        self,
        uow: UnitOfWork,
        bucket: BucketKey,
        payment_amount: Decimal,
        mode: PaymentMode,
        reference: str | None,
    ) -> list[LotAllocation]:
        precision = uow.precision
        logger.info("payment_allocation_started", extra={
            "payment_amount": str(payment_amount),
            "mode": mode.value,
        })

        if payment_amount <= ZERO:
            logger.warning("payment_allocation_rejected", extra={
                "reason": "non_positive_amount",
                "payment_amount": str(payment_amount),
            })
            raise InvalidQuantityError("payment_amount", payment_amount)
        if precision.money(payment_amount) != payment_amount:
            logger.warning("payment_allocation_rejected", extra={
                "reason": "excess_precision",
                "payment_amount": str(payment_amount),
            })
            raise InvalidQuantityError(
                "payment_amount", payment_amount,
                reason=f"must have at most {precision.money_places} decimal places",
            )

        arena = uow.lots.load_bucket(bucket)
        candidates = [lot for lot in arena.lots if lot.outstanding_amount > ZERO]
        if not candidates:
            logger.warning("payment_allocation_rejected", extra={
                "reason": "no_open_lots",
                "active_lots": len(arena.lots),
            })
            raise LotNotFoundError(
                bucket=str(bucket), reason="no active lots with outstanding balance"
            )

        total_outstanding = sum((lot.outstanding_amount for lot in candidates), ZERO)
        if payment_amount > total_outstanding:
            logger.warning("payment_allocation_rejected", extra={
                "reason": "overpayment",
                "payment_amount": str(payment_amount),
                "total_outstanding": str(total_outstanding),
            })
            raise OverpaymentRejectedError(str(bucket), payment_amount, total_outstanding)

        try:
            split = self._allocator.allocate(
                amount=payment_amount,
                targets=[
                    ShareTarget(target_id=lot.lot_id, weight=lot.outstanding_amount)
                    for lot in candidates
                ],
                money_unit=precision.money_unit,
            )
        except ValueError as exc:
            logger.error("payment_split_failed", extra={"detail": str(exc)})
            raise CalculationInconsistencyError(
                OwnershipInvariant.SPLIT_CONSERVATION.value, str(exc)
            ) from exc

        before_by_id = {lot.lot_id: lot for lot in candidates}
        updated: list[OwnershipLot] = []
        allocations: list[LotAllocation] = []
        violations: list[Violation] = []
        for line in split.lines:
            if line.share == ZERO:
                continue
            before = before_by_id[line.target_id]
            after = apply_share(before, line.share, mode, precision)
            violations.extend(payment_violations(before, after))
            updated.append(after)
            allocations.append(LotAllocation(
                lot_id=after.lot_id,
                source_reference=after.source_reference,
                amount=line.share,
                quantity=after.owned_quantity - before.owned_quantity,
                weight=after.owned_weight - before.owned_weight,
                lot=after,
            ))

        violations.extend(bucket_violations(arena.merged(updated)))
        allocated = sum((a.amount for a in allocations), ZERO)
        if allocated != payment_amount:
            violations.append(Violation(
                OwnershipInvariant.SPLIT_CONSERVATION,
                f"shares sum to {allocated}, payment was {payment_amount}",
            ))
        raise_on_violations(violations, operation="allocate_payment", bucket=str(bucket))

        arena.apply(updated)
        for allocation in allocations:
            uow.lots.record_movement(
                before_by_id[allocation.lot_id],
                allocation.lot,
                "payment",
                reference=reference,
                amount_delta=allocation.amount,
            )
        uow.flush(bucket)

        logger.info("payment_allocation_completed", extra={
            "payment_amount": str(payment_amount),
            "total_outstanding_before": str(total_outstanding),
            "lots_paid": len(allocations),
            "rounding_adjustment": str(split.rounding_adjustment),
            "mode": mode.value,
        })
        return allocations

