"""
Lots -- Immutable ownership lot records and their ORM mapping.

Responsibility:
    Defines the typed records that flow between the lot store, the
    allocators and the pure engines: BucketKey, LotReceipt, OwnershipLot,
    LotAllocation.  Also hosts the two explicit mapping functions between
    OwnershipLot and the persisted OwnershipLotModel.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    lot_from_model()/apply_lot_to_model() are boundary converters invoked
    only from the service layer; domain and engine logic never touch ORM
    entities.

Invariants enforced:
    - ownership_percentage is always a fraction in [0, 1]; percentages in
      0-100 only exist at presentation boundaries via as_percent().
    - Records are frozen; every mutation produces a new record via
      dataclasses.replace().

Failure modes:
    - ValueError on a BucketKey with an empty item or branch id.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from ownership_kernel.domain.precision import ZERO

if TYPE_CHECKING:
    from ownership_kernel.models.ownership_lot import OwnershipLotModel


class ItemKind(str, Enum):
    """What a lot holds: a finished product or a raw-material karat grade."""

    PRODUCT = "product"
    RAW_MATERIAL = "raw_material"


class PaymentMode(str, Enum):
    """
    How a payment recomputes owned stock.

    PRODUCT recomputes owned quantity and owned weight.  RAW_MATERIAL
    recomputes owned weight only and leaves owned quantity untouched, which
    is how bullion payments have always been booked.
    """

    PRODUCT = "product"
    RAW_MATERIAL = "raw_material"


class OwnershipStatus(str, Enum):
    """Payment-driven ownership state, orthogonal to is_active."""

    CREATED = "created"
    PARTIALLY_OWNED = "partially_owned"
    FULLY_OWNED = "fully_owned"


@dataclass(frozen=True, slots=True)
class BucketKey:
    """
    Grouping key for lots of the same item, branch and source.

    supplier_id is None for self-owned or system stock.
    """

    item_id: str
    branch_id: str
    supplier_id: str | None = None

    def __post_init__(self) -> None:
        if not self.item_id:
            raise ValueError("item_id is required")
        if not self.branch_id:
            raise ValueError("branch_id is required")

    @property
    def is_self_owned(self) -> bool:
        return self.supplier_id is None

    def __str__(self) -> str:
        return f"{self.item_id}@{self.branch_id}/{self.supplier_id or 'self'}"


@dataclass(frozen=True, slots=True)
class LotReceipt:
    """Lot-creation request emitted by purchasing/receiving."""

    bucket: BucketKey
    source_reference: str
    total_quantity: Decimal
    total_weight: Decimal
    total_cost: Decimal
    item_kind: ItemKind = ItemKind.PRODUCT
    initially_fully_owned: bool = False
    received_at: datetime | None = None
    notes: str | None = None


@dataclass(frozen=True, slots=True)
class OwnershipLot:
    """
    One received batch of an item from one source.

    Contract:
        ownership_percentage tracks payment progress; owned_quantity and
        owned_weight track remaining claimable stock.  The two evolve
        independently: payments move both, depletion moves only stock.

    Guarantees:
        - Immutable.  Services produce updated copies with replace().
        - sequence_key orders lots oldest first with a stable tie-breaker.
    """

    lot_id: UUID
    bucket: BucketKey
    item_kind: ItemKind
    source_reference: str
    total_quantity: Decimal
    total_weight: Decimal
    total_cost: Decimal
    amount_paid: Decimal
    outstanding_amount: Decimal
    ownership_percentage: Decimal
    owned_quantity: Decimal
    owned_weight: Decimal
    created_at: datetime
    receipt_sequence: int
    is_active: bool = True
    version: int = 1
    notes: str | None = None

    @property
    def sequence_key(self) -> tuple[datetime, int]:
        return (self.created_at, self.receipt_sequence)

    @property
    def status(self) -> OwnershipStatus:
        """Driven by payment state: FULLY_OWNED only when nothing is owed."""
        if self.outstanding_amount <= ZERO:
            return OwnershipStatus.FULLY_OWNED
        if self.amount_paid > ZERO:
            return OwnershipStatus.PARTIALLY_OWNED
        return OwnershipStatus.CREATED

    @property
    def owned_cost_share(self) -> Decimal:
        """Portion of total_cost attributable to the owned quantity."""
        if self.total_quantity > ZERO:
            return self.total_cost * self.owned_quantity / self.total_quantity
        return ZERO

    @property
    def unit_cost(self) -> Decimal:
        """Cost per unit of quantity; weight-only lots are priced with weight_unit_cost."""
        if self.total_quantity > ZERO:
            return self.total_cost / self.total_quantity
        return ZERO

    @property
    def weight_unit_cost(self) -> Decimal:
        if self.total_weight > ZERO:
            return self.total_cost / self.total_weight
        return ZERO


@dataclass(frozen=True, slots=True)
class LotAllocation:
    """
    Per-lot outcome of a payment allocation or a depletion.

    For payments, amount is the share of the payment applied to the lot.
    For depletions, quantity and weight are what was taken.  lot carries the
    post-operation state so callers can book it without re-reading.
    """

    lot_id: UUID
    source_reference: str
    amount: Decimal
    quantity: Decimal
    weight: Decimal
    lot: OwnershipLot


def as_percent(fraction: Decimal, places: int = 2) -> Decimal:
    """Convert a [0, 1] ownership fraction into a 0-100 display value."""
    return (fraction * Decimal(100)).quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


# ---------------------------------------------------------------------------
# ORM mapping
# ---------------------------------------------------------------------------


def lot_from_model(model: OwnershipLotModel) -> OwnershipLot:
    """Build a frozen OwnershipLot from its persisted row."""
    return OwnershipLot(
        lot_id=model.id,
        bucket=BucketKey(
            item_id=model.item_id,
            branch_id=model.branch_id,
            supplier_id=model.supplier_id,
        ),
        item_kind=ItemKind(model.item_kind),
        source_reference=model.source_reference,
        total_quantity=model.total_quantity,
        total_weight=model.total_weight,
        total_cost=model.total_cost,
        amount_paid=model.amount_paid,
        outstanding_amount=model.outstanding_amount,
        ownership_percentage=model.ownership_percentage,
        owned_quantity=model.owned_quantity,
        owned_weight=model.owned_weight,
        created_at=model.created_at,
        receipt_sequence=model.receipt_sequence,
        is_active=model.is_active,
        version=model.version,
        notes=model.notes,
    )


def apply_lot_to_model(lot: OwnershipLot, model: OwnershipLotModel) -> None:
    """
    Copy the mutable ownership fields of lot onto its persisted row.

    Identity, bucket, totals and created_at are never written back: the
    allocators are not allowed to change them.  The version column is
    managed by SQLAlchemy.
    """
    if model.id != lot.lot_id:
        raise ValueError(f"Lot {lot.lot_id} cannot be applied to row {model.id}")
    model.amount_paid = lot.amount_paid
    model.outstanding_amount = lot.outstanding_amount
    model.ownership_percentage = lot.ownership_percentage
    model.owned_quantity = lot.owned_quantity
    model.owned_weight = lot.owned_weight
    model.is_active = lot.is_active
    model.notes = lot.notes
