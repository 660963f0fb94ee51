"""
Ownership configuration schema.

Frozen dataclasses that the loader parses ``ownership.yaml`` into.  The
kernel never sees these types; ``ownership_config.bridges`` converts them
into kernel inputs (Precision, AlertThresholds, retry arguments).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class PrecisionConfig:
    """Decimal places used when quantizing stored values."""

    money_places: int = 2
    quantity_places: int = 3
    weight_places: int = 3
    fraction_places: int = 6


@dataclass(frozen=True)
class AlertConfig:
    """Bounds for ownership alerts.  Ownership bounds are [0, 1] fractions."""

    low_ownership_threshold: Decimal = Decimal("0.5")
    high_severity_ownership: Decimal = Decimal("0.25")
    high_outstanding_amount: Decimal = Decimal("10000")


@dataclass(frozen=True)
class RetryConfig:
    """Retry policy for units of work that hit a concurrency conflict."""

    max_attempts: int = 3
    backoff_seconds: float = 0.05


@dataclass(frozen=True)
class DatabaseConfig:
    url: str = "sqlite:///:memory:"
    echo: bool = False
    pool_size: int = 5
    max_overflow: int = 10


@dataclass(frozen=True)
class CostingConfig:
    default_method: str = "weighted_average"  # weighted_average, fifo or lifo


@dataclass(frozen=True)
class OwnershipConfig:
    """
    The runtime configuration artifact returned by get_active_config().

    checksum is the SHA-256 of the merged (defaults + overrides) data.
    """

    precision: PrecisionConfig = field(default_factory=PrecisionConfig)
    alerts: AlertConfig = field(default_factory=AlertConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    costing: CostingConfig = field(default_factory=CostingConfig)
    source: str = ""
    checksum: str = ""
