"""
Module: ownership_kernel.models.ownership_movement
Responsibility: Append-only history of ownership changes per lot.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Append-only: rows are inserted by LotStore.record_movement and never
      updated or deleted by kernel code.

Audit relevance:
    Each row records the deltas of one operation plus the lot's state after
    it, so a lot's ownership history can be read without replaying payments.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ownership_kernel.db.base import Base
from ownership_kernel.db.types import UUIDString


class OwnershipMovementModel(Base):
    """
    One ownership change on one lot.

    movement_type is one of: created, payment, depletion, cancellation,
    consolidation.
    """

    __tablename__ = "ownership_movements"

    __table_args__ = (
        Index("idx_ownership_movement_lot", "lot_id", "lot_version"),
        Index("idx_ownership_movement_reference", "reference"),
    )

    lot_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("ownership_lots.id"),
        nullable=False,
    )

    movement_type: Mapped[str] = mapped_column(String(30), nullable=False)
    reference: Mapped[str | None] = mapped_column(String(200), nullable=True)

    # Deltas
    amount_delta: Mapped[Decimal] = mapped_column(nullable=False)
    quantity_delta: Mapped[Decimal] = mapped_column(nullable=False)
    weight_delta: Mapped[Decimal] = mapped_column(nullable=False)

    # State after the movement
    ownership_percentage_after: Mapped[Decimal] = mapped_column(nullable=False)
    owned_quantity_after: Mapped[Decimal] = mapped_column(nullable=False)
    owned_weight_after: Mapped[Decimal] = mapped_column(nullable=False)

    occurred_at: Mapped[datetime] = mapped_column(nullable=False)
    lot_version: Mapped[int] = mapped_column(nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<OwnershipMovement {self.movement_type} lot={self.lot_id} "
            f"amount={self.amount_delta} qty={self.quantity_delta}>"
        )
