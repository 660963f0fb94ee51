"""
Config -> Kernel Bridges.

Functions that convert OwnershipConfig sections into kernel-compatible
inputs.  They live in ownership_config (the producer) because the kernel
must NEVER import ownership_config.

Usage:
    from ownership_config import get_active_config
    from ownership_config.bridges import build_precision, build_alert_thresholds

    config = get_active_config()
    selector = LotSelector(session, precision=build_precision(config),
                           thresholds=build_alert_thresholds(config))
"""

from __future__ import annotations

from ownership_config.schema import OwnershipConfig
from ownership_engines.costing import CostingMethod
from ownership_kernel.domain.precision import Precision
from ownership_kernel.selectors.lot_selector import AlertThresholds


def build_precision(config: OwnershipConfig) -> Precision:
    p = config.precision
    return Precision(
        money_places=p.money_places,
        quantity_places=p.quantity_places,
        weight_places=p.weight_places,
        fraction_places=p.fraction_places,
    )


def build_alert_thresholds(config: OwnershipConfig) -> AlertThresholds:
    a = config.alerts
    return AlertThresholds(
        low_ownership=a.low_ownership_threshold,
        high_severity_ownership=a.high_severity_ownership,
        high_outstanding_amount=a.high_outstanding_amount,
    )


def build_retry_kwargs(config: OwnershipConfig) -> dict:
    """Keyword arguments for ownership_kernel.services.retry.run_with_retry."""
    return {
        "max_attempts": config.retry.max_attempts,
        "backoff_seconds": config.retry.backoff_seconds,
        "precision": build_precision(config),
    }


def build_engine_kwargs(config: OwnershipConfig) -> dict:
    """Keyword arguments for ownership_kernel.db.engine.init_engine_from_url."""
    db = config.database
    return {
        "database_url": db.url,
        "echo": db.echo,
        "pool_size": db.pool_size,
        "max_overflow": db.max_overflow,
    }


def default_costing_method(config: OwnershipConfig) -> CostingMethod:
    return CostingMethod(config.costing.default_method)
