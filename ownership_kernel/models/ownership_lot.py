"""
Module: ownership_kernel.models.ownership_lot
Responsibility: ORM persistence for ownership lots.  Each row is one received
    batch of an item (product or raw-material karat grade) from one source,
    together with its payment progress and remaining claimable stock.
Architecture position: Kernel > Models.  May import from db/ only.
    MUST NOT import from services/, selectors/, domain/, or outer layers.

Invariants enforced:
    - Totals (quantity, weight, cost) are written once at creation; the
      allocators never write them back (see domain.lots.apply_lot_to_model).
    - Optimistic concurrency: ``version`` is SQLAlchemy's version_id_col, so
      an UPDATE against a stale version raises StaleDataError, which the unit
      of work translates into ConcurrencyConflictError.
    - FIFO/LIFO ordering: (item_id, branch_id, supplier_id, created_at,
      receipt_sequence) index supports deterministic oldest-first loads.
    - receipt_sequence is unique, so two lots can never tie on
      (created_at, receipt_sequence).

Failure modes:
    - IntegrityError on missing bucket or source_reference (NOT NULL), or
      on a duplicate receipt_sequence.
    - StaleDataError on lost update.

Audit relevance:
    Lots are never deleted.  Depletion, cancellation and consolidation only
    flip ``is_active``; every change is mirrored by an OwnershipMovementModel
    row.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ownership_kernel.db.base import Base


class OwnershipLotModel(Base):
    """
    Persistent storage for ownership lots.

    Contract:
        One row per received batch.  Mutable columns are the payment state
        (amount_paid, outstanding_amount, ownership_percentage), the owned
        stock (owned_quantity, owned_weight), is_active and notes.

    Guarantees:
        - ownership_percentage is stored as a [0, 1] fraction.
        - version increments on every flush that changes the row.

    Non-goals:
        - Does NOT enforce ownership invariants at the ORM level; the
          allocators reconcile them before flushing.
    """

    __tablename__ = "ownership_lots"

    __table_args__ = (
        # Query: lots for a bucket in FIFO order
        Index(
            "idx_ownership_lot_bucket",
            "item_id",
            "branch_id",
            "supplier_id",
            "created_at",
            "receipt_sequence",
        ),
        # Query: alerts and exposure listings by branch
        Index("idx_ownership_lot_branch_active", "branch_id", "is_active"),
        # Query: lot provenance
        Index("idx_ownership_lot_source", "source_reference"),
        # FIFO tie-breaker is global
        UniqueConstraint("receipt_sequence", name="uq_ownership_lot_receipt_sequence"),
    )

    # Bucket
    item_id: Mapped[str] = mapped_column(String(100), nullable=False)
    branch_id: Mapped[str] = mapped_column(String(100), nullable=False)
    supplier_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    item_kind: Mapped[str] = mapped_column(String(20), nullable=False, default="product")

    source_reference: Mapped[str] = mapped_column(String(200), nullable=False)

    # Totals, frozen at creation
    total_quantity: Mapped[Decimal] = mapped_column(nullable=False)
    total_weight: Mapped[Decimal] = mapped_column(nullable=False)
    total_cost: Mapped[Decimal] = mapped_column(nullable=False)

    # Payment state
    amount_paid: Mapped[Decimal] = mapped_column(nullable=False)
    outstanding_amount: Mapped[Decimal] = mapped_column(nullable=False)
    ownership_percentage: Mapped[Decimal] = mapped_column(nullable=False)

    # Claimable stock
    owned_quantity: Mapped[Decimal] = mapped_column(nullable=False)
    owned_weight: Mapped[Decimal] = mapped_column(nullable=False)

    # Sequencing
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    receipt_sequence: Mapped[int] = mapped_column(nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    version: Mapped[int] = mapped_column(nullable=False)

    __mapper_args__ = {"version_id_col": version}

    @classmethod
    def bucket_criteria(
        cls,
        item_id: str,
        branch_id: str,
        supplier_id: str | None,
    ) -> list:
        """WHERE criteria selecting one bucket; a None supplier means self-owned."""
        criteria = [cls.item_id == item_id, cls.branch_id == branch_id]
        if supplier_id is None:
            criteria.append(cls.supplier_id.is_(None))
        else:
            criteria.append(cls.supplier_id == supplier_id)
        return criteria

    def __repr__(self) -> str:
        return (
            f"<OwnershipLot {self.id}: {self.item_id}@{self.branch_id}/"
            f"{self.supplier_id or 'self'} paid={self.amount_paid}/{self.total_cost} "
            f"owned={self.owned_quantity}/{self.total_quantity}>"
        )
