"""Read-only query selectors for the ownership kernel."""

from ownership_kernel.selectors.base import BaseSelector
from ownership_kernel.selectors.lot_selector import (
    DEFAULT_ALERT_THRESHOLDS,
    AlertThresholds,
    BucketSummary,
    LotSelector,
    MovementDTO,
    OwnershipAlert,
    SaleRisk,
    UnpaidSupplier,
)

__all__ = [
    "DEFAULT_ALERT_THRESHOLDS",
    "AlertThresholds",
    "BaseSelector",
    "BucketSummary",
    "LotSelector",
    "MovementDTO",
    "OwnershipAlert",
    "SaleRisk",
    "UnpaidSupplier",
]
