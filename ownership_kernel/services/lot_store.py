"""
LotStore -- Durable collection of ownership lots keyed by bucket.

Responsibility:
    Create lots from receipts, load a bucket's active lots as one arena for
    the allocators, write updated lot records back, append ownership
    movements, and cancel lots on the reversal path.  Pure data access: no
    payment or depletion rules live here.

Architecture position:
    Kernel > Services -- imperative shell.  Used through UnitOfWork.lots by
    the allocators and by ownership_services.

Invariants enforced:
    - Lots are never deleted; cancellation only flips is_active.
    - Bucket loads for mutation use SELECT ... FOR UPDATE, and every row
      carries a version column, so a lost update cannot be flushed.
    - Totals are written once, at creation.
    - receipt_sequence comes from the locked lot_receipt counter and is
      unique across all lots.

Failure modes:
    - InvalidQuantityError on a receipt with negative totals or no quantity
      and no weight.
    - LotNotFoundError / LotAlreadyInactiveError from cancel_lot.

Audit relevance:
    Every creation and cancellation appends an OwnershipMovementModel row;
    allocators append one per lot they change.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from ownership_kernel.domain.clock import Clock, SystemClock
from ownership_kernel.domain.lots import (
    BucketKey,
    LotReceipt,
    OwnershipLot,
    apply_lot_to_model,
    lot_from_model,
)
from ownership_kernel.domain.precision import DEFAULT_PRECISION, ONE, ZERO, Precision
from ownership_kernel.exceptions import (
    InvalidQuantityError,
    LotAlreadyInactiveError,
    LotNotFoundError,
)
from ownership_kernel.logging_config import get_logger
from ownership_kernel.models.ownership_lot import OwnershipLotModel
from ownership_kernel.models.ownership_movement import OwnershipMovementModel
from ownership_kernel.services.base import BaseService
from ownership_kernel.services.sequence_service import SequenceService

logger = get_logger("services.lot_store")


@dataclass
class LotArena:
    """
    All active lots of one bucket, loaded once for an in-memory mutation.

    ``lots`` holds frozen records oldest first; ``rows`` indexes the
    persisted rows by lot id so updated records can be written back.
    """

    bucket: BucketKey
    lots: list[OwnershipLot]
    rows: dict[UUID, OwnershipLotModel] = field(repr=False)

    def get(self, lot_id: UUID) -> OwnershipLot:
        for lot in self.lots:
            if lot.lot_id == lot_id:
                return lot
        raise LotNotFoundError(bucket=str(self.bucket), lot_id=lot_id)

    def merged(self, updated: Iterable[OwnershipLot]) -> list[OwnershipLot]:
        """The arena's lots with ``updated`` substituted by id."""
        by_id = {lot.lot_id: lot for lot in updated}
        return [by_id.get(lot.lot_id, lot) for lot in self.lots]

    def apply(self, updated: Iterable[OwnershipLot]) -> None:
        """Write updated records onto their rows (no flush)."""
        for lot in updated:
            apply_lot_to_model(lot, self.rows[lot.lot_id])


def _bucket_filter(bucket: BucketKey) -> list:
    return OwnershipLotModel.bucket_criteria(
        bucket.item_id, bucket.branch_id, bucket.supplier_id
    )


class LotStore(BaseService[OwnershipLotModel]):
    """
    Data access for ownership lots.

    Contract:
        Receives Session, Clock and Precision via constructor injection.
        Flushes; never commits.
    Guarantees:
        - create_lot returns the persisted lot as a frozen record.
        - load_bucket returns active lots ordered by (created_at,
          receipt_sequence).
    Non-goals:
        - Does not enforce ownership invariants on updates; allocators
          reconcile before calling apply/flush.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        precision: Precision = DEFAULT_PRECISION,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._precision = precision
        self._sequences = SequenceService(session)

    # =========================================================================
    # Creation
    # =========================================================================

    def create_lot(self, receipt: LotReceipt) -> OwnershipLot:
        """
        Persist a new lot from a purchasing/receiving event.

        Self-supplied or system stock (``initially_fully_owned``) and
        zero-cost lots start fully owned; everything else starts at 0%.

        Raises:
            InvalidQuantityError: negative totals, or neither quantity nor
                weight is positive.
        """
        for name in ("total_quantity", "total_weight", "total_cost"):
            value = getattr(receipt, name)
            if value < ZERO:
                raise InvalidQuantityError(name, value, reason="must not be negative")
        if receipt.total_quantity == ZERO and receipt.total_weight == ZERO:
            raise InvalidQuantityError(
                "total_quantity", receipt.total_quantity,
                reason="and total_weight cannot both be zero",
            )

        total_cost = self._precision.money(receipt.total_cost)
        total_quantity = self._precision.quantity(receipt.total_quantity)
        total_weight = self._precision.weight(receipt.total_weight)

        fully_owned = receipt.initially_fully_owned or total_cost == ZERO
        pct = ONE if fully_owned else ZERO
        amount_paid = total_cost if fully_owned else ZERO

        lot = self.insert_lot(
            OwnershipLot(
                lot_id=uuid4(),
                bucket=receipt.bucket,
                item_kind=receipt.item_kind,
                source_reference=receipt.source_reference,
                total_quantity=total_quantity,
                total_weight=total_weight,
                total_cost=total_cost,
                amount_paid=amount_paid,
                outstanding_amount=total_cost - amount_paid,
                ownership_percentage=pct,
                owned_quantity=total_quantity * pct,
                owned_weight=total_weight * pct,
                created_at=receipt.received_at or self._clock.now(),
                receipt_sequence=0,
                notes=receipt.notes,
            ),
            movement_type="created",
            reference=receipt.source_reference,
            amount_delta=amount_paid,
        )

        logger.info("lot_created", extra={
            "lot_id": str(lot.lot_id),
            "bucket": str(lot.bucket),
            "item_kind": lot.item_kind.value,
            "source_reference": lot.source_reference,
            "total_quantity": str(lot.total_quantity),
            "total_weight": str(lot.total_weight),
            "total_cost": str(lot.total_cost),
            "fully_owned": fully_owned,
        })
        return lot

    def insert_lot(
        self,
        lot: OwnershipLot,
        *,
        movement_type: str,
        reference: str | None = None,
        amount_delta: Decimal = ZERO,
        notes: str | None = None,
    ) -> OwnershipLot:
        """
        Persist a fully built lot record and its opening movement.

        The store assigns the next lot_receipt sequence value; the
        receipt_sequence on ``lot`` is ignored.
        Callers are responsible for the record's ownership state.
        """
        row = OwnershipLotModel(
            id=lot.lot_id,
            item_id=lot.bucket.item_id,
            branch_id=lot.bucket.branch_id,
            supplier_id=lot.bucket.supplier_id,
            item_kind=lot.item_kind.value,
            source_reference=lot.source_reference,
            total_quantity=lot.total_quantity,
            total_weight=lot.total_weight,
            total_cost=lot.total_cost,
            amount_paid=lot.amount_paid,
            outstanding_amount=lot.outstanding_amount,
            ownership_percentage=lot.ownership_percentage,
            owned_quantity=lot.owned_quantity,
            owned_weight=lot.owned_weight,
            created_at=lot.created_at,
            receipt_sequence=self._sequences.next_value(SequenceService.LOT_RECEIPT),
            is_active=lot.is_active,
            notes=lot.notes,
        )
        self.session.add(row)
        self.session.flush()

        persisted = lot_from_model(row)
        self.record_movement(
            None, persisted, movement_type,
            reference=reference,
            amount_delta=amount_delta,
            notes=notes,
        )
        self.session.flush()
        return persisted

    # =========================================================================
    # Loading
    # =========================================================================

    def load_bucket(self, bucket: BucketKey, *, for_update: bool = True) -> LotArena:
        """
        Load every active lot of ``bucket`` once.

        With ``for_update`` the rows are locked (SELECT ... FOR UPDATE on
        PostgreSQL) until the caller's transaction ends.
        """
        stmt = select(OwnershipLotModel).where(
            *_bucket_filter(bucket),
            OwnershipLotModel.is_active.is_(True),
        )
        if for_update:
            stmt = stmt.with_for_update()
        rows = list(self.session.scalars(stmt))

        lots = sorted((lot_from_model(r) for r in rows), key=lambda l: l.sequence_key)
        logger.debug("bucket_loaded", extra={
            "bucket": str(bucket),
            "lots": len(lots),
            "for_update": for_update,
        })
        return LotArena(bucket=bucket, lots=lots, rows={r.id: r for r in rows})

    def get_lots(self, bucket: BucketKey, *, include_inactive: bool = False) -> list[OwnershipLot]:
        """Read-only listing of a bucket's lots, oldest first."""
        stmt = select(OwnershipLotModel).where(*_bucket_filter(bucket))
        if not include_inactive:
            stmt = stmt.where(OwnershipLotModel.is_active.is_(True))
        lots = [lot_from_model(r) for r in self.session.scalars(stmt)]
        return sorted(lots, key=lambda l: l.sequence_key)

    def get_row(self, lot_id: UUID, *, for_update: bool = False) -> OwnershipLotModel | None:
        stmt = select(OwnershipLotModel).where(OwnershipLotModel.id == lot_id)
        if for_update:
            stmt = stmt.with_for_update()
        return self.session.scalars(stmt).one_or_none()

    # =========================================================================
    # Movements
    # =========================================================================

    def record_movement(
        self,
        before: OwnershipLot | None,
        after: OwnershipLot,
        movement_type: str,
        *,
        reference: str | None = None,
        amount_delta: Decimal = ZERO,
        notes: str | None = None,
    ) -> OwnershipMovementModel:
        """
        Append one movement row describing ``before`` -> ``after``.

        ``lot_version`` is the version the lot row will carry once the
        pending change is flushed.
        """
        if before is None:
            quantity_delta = after.owned_quantity
            weight_delta = after.owned_weight
            lot_version = after.version
        else:
            quantity_delta = after.owned_quantity - before.owned_quantity
            weight_delta = after.owned_weight - before.owned_weight
            lot_version = before.version + 1

        movement = OwnershipMovementModel(
            id=uuid4(),
            lot_id=after.lot_id,
            movement_type=movement_type,
            reference=reference,
            amount_delta=amount_delta,
            quantity_delta=quantity_delta,
            weight_delta=weight_delta,
            ownership_percentage_after=after.ownership_percentage,
            owned_quantity_after=after.owned_quantity,
            owned_weight_after=after.owned_weight,
            occurred_at=self._clock.now(),
            lot_version=lot_version,
            notes=notes,
        )
        self.session.add(movement)
        return movement

    # =========================================================================
    # Cancellation
    # =========================================================================

    def cancel_lot(self, lot_id: UUID, reason: str, *, reference: str | None = None) -> OwnershipLot:
        """
        Deactivate a lot because its source receipt was cancelled.

        Payment state and owned stock are left as recorded; the lot simply
        stops participating in payments, depletion and costing.

        Raises:
            LotNotFoundError: unknown lot id.
            LotAlreadyInactiveError: lot already depleted, cancelled or
                consolidated.
        """
        row = self.get_row(lot_id, for_update=True)
        if row is None:
            logger.warning("lot_cancel_not_found", extra={"lot_id": str(lot_id)})
            raise LotNotFoundError(lot_id=lot_id)
        if not row.is_active:
            logger.warning("lot_cancel_already_inactive", extra={"lot_id": str(lot_id)})
            raise LotAlreadyInactiveError(lot_id)

        before = lot_from_model(row)
        note = f"Cancelled: {reason}"
        after = replace(
            before,
            is_active=False,
            notes=f"{before.notes}\n{note}" if before.notes else note,
        )
        apply_lot_to_model(after, row)
        self.record_movement(before, after, "cancellation", reference=reference, notes=reason)
        self.session.flush()

        logger.info("lot_cancelled", extra={
            "lot_id": str(lot_id),
            "bucket": str(before.bucket),
            "reason": reason,
        })
        return lot_from_model(row)
