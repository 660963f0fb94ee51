"""
Pure domain layer.

This module contains immutable records and pure functions with NO
dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O

(lot_from_model/apply_lot_to_model only reference the ORM type for typing.)
"""

from ownership_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from ownership_kernel.domain.lots import (
    BucketKey,
    ItemKind,
    LotAllocation,
    LotReceipt,
    OwnershipLot,
    OwnershipStatus,
    PaymentMode,
    apply_lot_to_model,
    as_percent,
    lot_from_model,
)
from ownership_kernel.domain.precision import DEFAULT_PRECISION, Precision

__all__ = [
    "BucketKey",
    "Clock",
    "DEFAULT_PRECISION",
    "DeterministicClock",
    "ItemKind",
    "LotAllocation",
    "LotReceipt",
    "OwnershipLot",
    "OwnershipStatus",
    "PaymentMode",
    "Precision",
    "SystemClock",
    "apply_lot_to_model",
    "as_percent",
    "lot_from_model",
]
