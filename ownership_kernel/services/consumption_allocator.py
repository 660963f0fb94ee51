"""
ConsumptionAllocator -- Deplete owned stock oldest-first for sales and manufacturing.

Responsibility:
    Remove sold or consumed stock from a bucket's owned quantity (or, for
    raw material, owned weight), oldest lot first, deactivating lots that
    reach zero.  All-or-nothing.

Architecture position:
    Kernel > Services -- imperative shell over the pure depletion planner
    (ownership_engines.depletion).  Same arena flow as PaymentAllocator.

Invariants enforced:
    - Oldest first, independent of the costing method used for valuation.
    - Depletion never changes amount_paid, outstanding_amount or
      ownership_percentage.
    - Insufficient owned stock mutates nothing.

Failure modes:
    - InvalidQuantityError: requested amount <= 0.
    - InsufficientOwnershipError: bucket cannot cover the request.
    - CalculationInconsistencyError: reconciliation failed (fault).
    - ConcurrencyConflictError: another transaction changed a lot.

Audit relevance:
    Every touched lot gets a ``depletion`` movement row.
"""

from __future__ import annotations

from decimal import Decimal

from ownership_engines.depletion import DepletionMeasure, DepletionPlan, plan_depletion
from ownership_kernel.domain.lots import BucketKey, LotAllocation
from ownership_kernel.domain.precision import ZERO
from ownership_kernel.domain.reconciliation import (
    bucket_violations,
    depletion_violations,
    raise_on_violations,
)
from ownership_kernel.exceptions import InsufficientOwnershipError, InvalidQuantityError
from ownership_kernel.logging_config import LogContext, get_logger
from ownership_kernel.services.unit_of_work import UnitOfWork

logger = get_logger("services.consumption_allocator")


class ConsumptionAllocator:
    """
    Sales- and manufacturing-facing entry point for stock depletion.

    Contract:
        Stateless; every call receives the caller's UnitOfWork.  Flushes,
        never commits.  Callers normally run ValidationGuard.validate_sale
        first in the same unit of work.
    Guarantees:
        - Returned allocations list the lots touched, oldest first, with
          the quantity and weight taken from each.
    """

    def deplete(
        self,
        uow: UnitOfWork,
        bucket: BucketKey,
        quantity: Decimal,
        *,
        reference: str | None = None,
    ) -> list[LotAllocation]:
        """
        Take ``quantity`` units of owned stock from ``bucket``.

        Owned weight is reduced proportionally on each lot.

        Raises:
            InvalidQuantityError, InsufficientOwnershipError,
            CalculationInconsistencyError, ConcurrencyConflictError.
        """
        with LogContext.bind(bucket=str(bucket), reference=reference, operation="deplete"):
            return self._deplete(uow, bucket, quantity, DepletionMeasure.QUANTITY, reference)

    def deplete_weight(
        self,
        uow: UnitOfWork,
        bucket: BucketKey,
        weight: Decimal,
        *,
        reference: str | None = None,
    ) -> list[LotAllocation]:
        """
        Take ``weight`` of owned raw material from ``bucket`` (manufacturing).

        Owned quantity is reduced proportionally on each lot.
        """
        with LogContext.bind(bucket=str(bucket), reference=reference, operation="deplete_weight"):
            return self._deplete(uow, bucket, weight, DepletionMeasure.WEIGHT, reference)

    def _deplete(
        self,
        uow: UnitOfWork,
        bucket: BucketKey,
        requested: Decimal,
        measure: DepletionMeasure,
        reference: str | None,
    ) -> list[LotAllocation]:
        logger.info("depletion_started", extra={
            "measure": measure.value,
            "requested": str(requested),
        })

        if requested <= ZERO:
            logger.warning("depletion_rejected", extra={
                "reason": "non_positive_amount",
                "requested": str(requested),
            })
            raise InvalidQuantityError(measure.value, requested)

        arena = uow.lots.load_bucket(bucket)
        plan: DepletionPlan = plan_depletion(
            lots=arena.lots,
            requested=requested,
            measure=measure,
            precision=uow.precision,
        )
        if not plan.sufficient:
            logger.warning("depletion_rejected", extra={
                "reason": "insufficient_ownership",
                "measure": measure.value,
                "requested": str(requested),
                "available": str(plan.available),
            })
            raise InsufficientOwnershipError(
                str(bucket), requested, plan.available, measure=measure.value
            )

        violations = []
        for after in plan.updated_lots:
            violations.extend(depletion_violations(arena.get(after.lot_id), after))
        violations.extend(bucket_violations(arena.merged(plan.updated_lots)))
        raise_on_violations(violations, operation=f"deplete_{measure.value}", bucket=str(bucket))

        arena.apply(plan.updated_lots)
        allocations: list[LotAllocation] = []
        for take, after in zip(plan.takes, plan.updated_lots):
            before = arena.get(take.lot_id)
            uow.lots.record_movement(before, after, "depletion", reference=reference)
            allocations.append(LotAllocation(
                lot_id=after.lot_id,
                source_reference=after.source_reference,
                amount=ZERO,
                quantity=take.quantity,
                weight=take.weight,
                lot=after,
            ))
        uow.flush(bucket)

        logger.info("depletion_completed", extra={
            "measure": measure.value,
            "requested": str(requested),
            "lots_touched": len(allocations),
            "lots_deactivated": sum(1 for t in plan.takes if t.deactivated),
        })
        return allocations
