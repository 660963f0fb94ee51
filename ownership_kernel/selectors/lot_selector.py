"""
Lot query selector.

Provides read-only access to ownership lots, their movement history and the
reporting views built on top of them: bucket summaries, ownership alerts and
unpaid supplier exposure.

Key design decisions:
- Returns DTOs (frozen dataclasses) and OwnershipLot records, not ORM models
- Uses the caller's Session; never creates its own
- Amount comparisons (outstanding > 0, pct < threshold) are done in Python
  because SQLite stores decimals as text
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ownership_kernel.domain.lots import (
    BucketKey,
    OwnershipLot,
    as_percent,
    lot_from_model,
)
from ownership_kernel.domain.precision import DEFAULT_PRECISION, ZERO, Precision
from ownership_kernel.models.ownership_lot import OwnershipLotModel
from ownership_kernel.models.ownership_movement import OwnershipMovementModel
from ownership_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class AlertThresholds:
    """
    Bounds used by get_ownership_alerts.

    Ownership bounds are [0, 1] fractions; the amount bound is in money.
    """

    low_ownership: Decimal = Decimal("0.5")
    high_severity_ownership: Decimal = Decimal("0.25")
    high_outstanding_amount: Decimal = Decimal("10000")


DEFAULT_ALERT_THRESHOLDS = AlertThresholds()


@dataclass(frozen=True)
class BucketSummary:
    """Totals over the active lots of one bucket."""

    bucket: BucketKey
    active_lots: int
    total_quantity: Decimal
    total_weight: Decimal
    total_cost: Decimal
    amount_paid: Decimal
    outstanding_amount: Decimal
    owned_quantity: Decimal
    owned_weight: Decimal
    ownership_percentage: Decimal  # amount_paid / total_cost, [0, 1]

    @property
    def is_fully_owned(self) -> bool:
        return self.active_lots > 0 and self.outstanding_amount == ZERO


@dataclass(frozen=True)
class MovementDTO:
    """One row of a lot's ownership history."""

    id: UUID
    lot_id: UUID
    movement_type: str
    reference: str | None
    amount_delta: Decimal
    quantity_delta: Decimal
    weight_delta: Decimal
    ownership_percentage_after: Decimal
    owned_quantity_after: Decimal
    owned_weight_after: Decimal
    occurred_at: datetime
    lot_version: int
    notes: str | None


@dataclass(frozen=True)
class OwnershipAlert:
    """A lot that needs treasury attention."""

    alert_type: str  # "LowOwnership" or "OutstandingPayment"
    severity: str  # "High" or "Medium"
    message: str
    lot_id: UUID
    bucket: BucketKey
    source_reference: str
    ownership_percentage: Decimal
    outstanding_amount: Decimal
    created_at: datetime


@dataclass(frozen=True)
class UnpaidSupplier:
    """One open lot inside a sale-risk group."""

    supplier_id: str | None
    lot_id: UUID
    source_reference: str
    outstanding_amount: Decimal
    amount_paid: Decimal
    total_cost: Decimal
    payment_status: str  # "unpaid" or "partial"


@dataclass(frozen=True)
class SaleRisk:
    """Stock of one item at one branch that is still owed to suppliers."""

    item_id: str
    branch_id: str
    available_quantity: Decimal
    total_outstanding_amount: Decimal
    unpaid_suppliers: tuple[UnpaidSupplier, ...] = field(default_factory=tuple)


class LotSelector(BaseSelector[OwnershipLotModel]):
    """
    Selector for ownership lot queries.

    Returns frozen records and DTOs rather than ORM models.
    """

    def __init__(
        self,
        session: Session,
        precision: Precision = DEFAULT_PRECISION,
        thresholds: AlertThresholds = DEFAULT_ALERT_THRESHOLDS,
    ):
        super().__init__(session)
        self._precision = precision
        self._thresholds = thresholds

    def _active_lots(self, branch_id: str | None = None) -> list[OwnershipLot]:
        stmt = select(OwnershipLotModel).where(OwnershipLotModel.is_active.is_(True))
        if branch_id is not None:
            stmt = stmt.where(OwnershipLotModel.branch_id == branch_id)
        lots = [lot_from_model(r) for r in self.session.scalars(stmt)]
        return sorted(lots, key=lambda l: l.sequence_key)

    # =========================================================================
    # Lots
    # =========================================================================

    def get_lots(self, bucket: BucketKey, *, include_inactive: bool = False) -> list[OwnershipLot]:
        """All lots of a bucket, oldest first."""
        stmt = select(OwnershipLotModel).where(
            *OwnershipLotModel.bucket_criteria(
                bucket.item_id, bucket.branch_id, bucket.supplier_id
            )
        )
        if not include_inactive:
            stmt = stmt.where(OwnershipLotModel.is_active.is_(True))
        lots = [lot_from_model(r) for r in self.session.scalars(stmt)]
        return sorted(lots, key=lambda l: l.sequence_key)

    def get_lot(self, lot_id: UUID) -> OwnershipLot | None:
        row = self.session.get(OwnershipLotModel, lot_id)
        return lot_from_model(row) if row is not None else None

    def list_buckets(self, branch_id: str | None = None) -> list[tuple[BucketKey, int]]:
        """
        Buckets holding at least one active lot, with their active lot count.

        Sorted by (item_id, branch_id, supplier_id) with self-owned first.
        """
        counts: dict[BucketKey, int] = defaultdict(int)
        for lot in self._active_lots(branch_id):
            counts[lot.bucket] += 1
        return sorted(
            counts.items(),
            key=lambda kv: (kv[0].item_id, kv[0].branch_id, kv[0].supplier_id or ""),
        )

    def bucket_summary(self, bucket: BucketKey) -> BucketSummary:
        lots = self.get_lots(bucket)
        total_cost = sum((l.total_cost for l in lots), ZERO)
        amount_paid = sum((l.amount_paid for l in lots), ZERO)
        outstanding = sum((l.outstanding_amount for l in lots), ZERO)
        if not lots:
            pct = ZERO
        else:
            pct = self._precision.ownership(amount_paid, total_cost)
        return BucketSummary(
            bucket=bucket,
            active_lots=len(lots),
            total_quantity=sum((l.total_quantity for l in lots), ZERO),
            total_weight=sum((l.total_weight for l in lots), ZERO),
            total_cost=total_cost,
            amount_paid=amount_paid,
            outstanding_amount=outstanding,
            owned_quantity=sum((l.owned_quantity for l in lots), ZERO),
            owned_weight=sum((l.owned_weight for l in lots), ZERO),
            ownership_percentage=pct,
        )

    # =========================================================================
    # Movements
    # =========================================================================

    def get_movements(self, lot_id: UUID) -> list[MovementDTO]:
        """Ownership history of one lot, newest first."""
        stmt = (
            select(OwnershipMovementModel)
            .where(OwnershipMovementModel.lot_id == lot_id)
            .order_by(
                OwnershipMovementModel.lot_version.desc(),
                OwnershipMovementModel.occurred_at.desc(),
            )
        )
        return [
            MovementDTO(
                id=m.id,
                lot_id=m.lot_id,
                movement_type=m.movement_type,
                reference=m.reference,
                amount_delta=m.amount_delta,
                quantity_delta=m.quantity_delta,
                weight_delta=m.weight_delta,
                ownership_percentage_after=m.ownership_percentage_after,
                owned_quantity_after=m.owned_quantity_after,
                owned_weight_after=m.owned_weight_after,
                occurred_at=m.occurred_at,
                lot_version=m.lot_version,
                notes=m.notes,
            )
            for m in self.session.scalars(stmt)
        ]

    # =========================================================================
    # Reporting
    # =========================================================================

    def get_ownership_alerts(self, branch_id: str | None = None) -> list[OwnershipAlert]:
        """
        Low-ownership and outstanding-payment alerts for active lots, newest first.

        A lot can raise both alerts.
        """
        t = self._thresholds
        alerts: list[OwnershipAlert] = []
        for lot in self._active_lots(branch_id):
            common = dict(
                lot_id=lot.lot_id,
                bucket=lot.bucket,
                source_reference=lot.source_reference,
                ownership_percentage=lot.ownership_percentage,
                outstanding_amount=lot.outstanding_amount,
                created_at=lot.created_at,
            )
            if lot.ownership_percentage < t.low_ownership:
                alerts.append(OwnershipAlert(
                    alert_type="LowOwnership",
                    severity="High" if lot.ownership_percentage < t.high_severity_ownership else "Medium",
                    message=f"Low ownership percentage: {as_percent(lot.ownership_percentage)}%",
                    **common,
                ))
            if lot.outstanding_amount > ZERO:
                alerts.append(OwnershipAlert(
                    alert_type="OutstandingPayment",
                    severity="High" if lot.outstanding_amount > t.high_outstanding_amount else "Medium",
                    message=f"Outstanding payment: {self._precision.money(lot.outstanding_amount)}",
                    **common,
                ))
        # stable sort keeps LowOwnership ahead of OutstandingPayment per lot
        alerts.sort(key=lambda a: a.created_at, reverse=True)
        return alerts

    def get_unpaid_supplier_exposure(self, branch_id: str | None = None) -> list[SaleRisk]:
        """
        Active stock still owed to suppliers, grouped by (item, branch).

        available_quantity is the group's owned quantity over its open lots.
        """
        groups: dict[tuple[str, str], list[OwnershipLot]] = defaultdict(list)
        for lot in self._active_lots(branch_id):
            if lot.outstanding_amount > ZERO:
                groups[(lot.bucket.item_id, lot.bucket.branch_id)].append(lot)

        risks = []
        for (item_id, branch), lots in sorted(groups.items()):
            risks.append(SaleRisk(
                item_id=item_id,
                branch_id=branch,
                available_quantity=sum((l.owned_quantity for l in lots), ZERO),
                total_outstanding_amount=sum((l.outstanding_amount for l in lots), ZERO),
                unpaid_suppliers=tuple(
                    UnpaidSupplier(
                        supplier_id=l.bucket.supplier_id,
                        lot_id=l.lot_id,
                        source_reference=l.source_reference,
                        outstanding_amount=l.outstanding_amount,
                        amount_paid=l.amount_paid,
                        total_cost=l.total_cost,
                        payment_status="unpaid" if l.amount_paid == ZERO else "partial",
                    )
                    for l in lots
                ),
            ))
        return risks
