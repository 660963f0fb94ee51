"""
ownership_services.consolidation_service -- Merge a supplier bucket's lots into one.

Responsibility:
    Housekeeping for buckets that accumulated many small receipts from the
    same supplier: sum their totals, payment state and owned stock into a
    single new lot and deactivate the originals.  Also lists the buckets
    where that would apply.

Architecture position:
    Services -- stateful orchestration over the kernel.  Uses the same
    arena flow as the allocators (UnitOfWork.lots.load_bucket, reconcile,
    apply, flush) and reports the merged cost per weight unit.

Invariants enforced:
    - Conservation: the merged lot's totals, amount_paid, outstanding and
      owned stock equal the sums over the originals.
    - ownership_percentage is recomputed from the merged payment state
      (amount_paid / total_cost, 1 when nothing is outstanding).
    - Only supplier buckets are consolidated; self-owned stock is left alone.

Failure modes:
    - ConsolidationNotNeededError: fewer than two active lots, or a
      self-owned bucket.
    - CalculationInconsistencyError: reconciliation failed (fault).
    - ConcurrencyConflictError: another transaction changed a lot.

Audit relevance:
    Every original gets a ``consolidation`` movement naming the new lot;
    the new lot opens with its own ``consolidation`` movement.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID, uuid4

from ownership_kernel.domain.lots import BucketKey, OwnershipLot
from ownership_kernel.domain.precision import ZERO
from ownership_kernel.domain.reconciliation import bucket_violations, raise_on_violations
from ownership_kernel.exceptions import ConsolidationNotNeededError
from ownership_kernel.logging_config import LogContext, get_logger
from ownership_kernel.selectors.lot_selector import LotSelector
from ownership_kernel.services.unit_of_work import UnitOfWork

logger = get_logger("services.consolidation")


def _rate(value: Decimal, places: int) -> Decimal:
    return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class ConsolidationResult:
    """Outcome of merging one bucket."""

    bucket: BucketKey
    consolidated_lot: OwnershipLot
    merged_lot_ids: tuple[UUID, ...]
    cost_per_weight_unit: Decimal

    @property
    def consolidated_records(self) -> int:
        return len(self.merged_lot_ids)


@dataclass(frozen=True)
class ConsolidationOpportunity:
    """A supplier bucket holding more than one active lot."""

    bucket: BucketKey
    record_count: int
    total_quantity: Decimal
    total_weight: Decimal
    total_cost: Decimal
    outstanding_amount: Decimal


class ConsolidationService:
    """
    Lot consolidation for supplier buckets.

    Contract:
        Stateless; every call receives the caller's UnitOfWork.  Flushes,
        never commits.
    Guarantees:
        - The merged lot keeps the oldest original's created_at so it sorts
          where the merged stock was first received.
    Non-goals:
        - Does not merge across suppliers, items or branches.
    """

    def consolidate(
        self,
        uow: UnitOfWork,
        bucket: BucketKey,
        *,
        reference: str | None = None,
    ) -> ConsolidationResult:
        """
        Merge every active lot of ``bucket`` into one new lot.

        Raises:
            ConsolidationNotNeededError, CalculationInconsistencyError,
            ConcurrencyConflictError.
        """
        with LogContext.bind(bucket=str(bucket), reference=reference, operation="consolidate"):
            return self._consolidate(uow, bucket, reference)

    def _consolidate(
        self,
        uow: UnitOfWork,
        bucket: BucketKey,
        reference: str | None,
    ) -> ConsolidationResult:
        precision = uow.precision
        arena = uow.lots.load_bucket(bucket)
        originals = arena.lots

        if bucket.is_self_owned or len(originals) < 2:
            logger.info("consolidation_not_needed", extra={
                "active_lots": len(originals),
                "self_owned": bucket.is_self_owned,
            })
            raise ConsolidationNotNeededError(str(bucket), len(originals))

        total_cost = sum((l.total_cost for l in originals), ZERO)
        amount_paid = sum((l.amount_paid for l in originals), ZERO)
        outstanding = sum((l.outstanding_amount for l in originals), ZERO)
        pct = precision.ownership(amount_paid, total_cost)

        first = originals[0]
        merged = OwnershipLot(
            lot_id=uuid4(),
            bucket=bucket,
            item_kind=first.item_kind,
            source_reference=reference or f"CONSOLIDATED:{first.source_reference}",
            total_quantity=sum((l.total_quantity for l in originals), ZERO),
            total_weight=sum((l.total_weight for l in originals), ZERO),
            total_cost=total_cost,
            amount_paid=amount_paid,
            outstanding_amount=outstanding,
            ownership_percentage=pct,
            owned_quantity=sum((l.owned_quantity for l in originals), ZERO),
            owned_weight=sum((l.owned_weight for l in originals), ZERO),
            created_at=first.created_at,
            receipt_sequence=0,
            notes=f"Consolidated from {len(originals)} ownership records",
        )
        note = f"[Consolidated into {merged.lot_id}]"
        retired = [
            replace(l, is_active=False, notes=f"{l.notes} {note}" if l.notes else note)
            for l in originals
        ]
        raise_on_violations(
            bucket_violations([merged, *retired]),
            operation="consolidate",
            bucket=str(bucket),
        )

        arena.apply(retired)
        for before, after in zip(originals, retired):
            uow.lots.record_movement(
                before, after, "consolidation", reference=reference, notes=note,
            )
        uow.flush(bucket)

        persisted = uow.lots.insert_lot(
            merged,
            movement_type="consolidation",
            reference=reference,
            amount_delta=amount_paid,
            notes=merged.notes,
        )

        result = ConsolidationResult(
            bucket=bucket,
            consolidated_lot=persisted,
            merged_lot_ids=tuple(l.lot_id for l in originals),
            cost_per_weight_unit=_rate(persisted.weight_unit_cost, precision.fraction_places),
        )
        logger.info("consolidation_completed", extra={
            "merged_lots": result.consolidated_records,
            "new_lot_id": str(persisted.lot_id),
            "total_cost": str(total_cost),
            "outstanding_amount": str(outstanding),
        })
        return result

    def consolidate_supplier(
        self,
        uow: UnitOfWork,
        supplier_id: str,
        branch_id: str,
        *,
        reference: str | None = None,
    ) -> list[ConsolidationResult]:
        """Consolidate every bucket of ``supplier_id`` at ``branch_id`` that needs it."""
        results = []
        for opportunity in self.consolidation_opportunities(uow, branch_id):
            if opportunity.bucket.supplier_id == supplier_id:
                results.append(self.consolidate(uow, opportunity.bucket, reference=reference))
        return results

    def consolidation_opportunities(
        self,
        uow: UnitOfWork,
        branch_id: str,
    ) -> list[ConsolidationOpportunity]:
        """Supplier buckets at ``branch_id`` with more than one active lot, largest first."""
        selector = LotSelector(uow.session, precision=uow.precision)
        grouped: dict[BucketKey, list[OwnershipLot]] = {}
        for bucket, count in selector.list_buckets(branch_id):
            if count > 1 and not bucket.is_self_owned:
                grouped[bucket] = selector.get_lots(bucket)

        opportunities = [
            ConsolidationOpportunity(
                bucket=bucket,
                record_count=len(lots),
                total_quantity=sum((l.total_quantity for l in lots), ZERO),
                total_weight=sum((l.total_weight for l in lots), ZERO),
                total_cost=sum((l.total_cost for l in lots), ZERO),
                outstanding_amount=sum((l.outstanding_amount for l in lots), ZERO),
            )
            for bucket, lots in grouped.items()
        ]
        opportunities.sort(key=lambda o: o.record_count, reverse=True)
        return opportunities
