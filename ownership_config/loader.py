"""
Configuration Loader (``ownership_config.loader``).

Responsibility
--------------
Loads ``ownership.yaml`` files, merges them over the packaged defaults and
parses the result into the frozen ``ownership_config.schema`` dataclasses.
Runtime callers go through ``ownership_config.get_active_config()``.

Invariants enforced
-------------------
* Unknown top-level sections and unknown keys raise ``ValueError``; a typo
  never silently falls back to a default.
* Every parsed object is a frozen dataclass from ``schema.py``.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the merged
  data for configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Non-mapping section or out-of-range value  -> ``ValueError``.
"""

from __future__ import annotations

import copy
import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from ownership_config.schema import (
    AlertConfig,
    CostingConfig,
    DatabaseConfig,
    OwnershipConfig,
    PrecisionConfig,
    RetryConfig,
)

DEFAULTS_PATH = Path(__file__).parent / "defaults" / "ownership.yaml"

SECTIONS = ("precision", "alerts", "retry", "database", "costing")
COSTING_METHODS = ("weighted_average", "fifo", "lifo")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def merge_sections(defaults: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    """Overlay ``overrides`` onto ``defaults`` one section at a time."""
    unknown = sorted(set(overrides) - set(SECTIONS))
    if unknown:
        raise ValueError(f"Unknown configuration section(s): {', '.join(unknown)}")

    merged = copy.deepcopy(defaults)
    for name, section in overrides.items():
        if section is None:
            continue
        if not isinstance(section, dict):
            raise ValueError(f"Section '{name}' must be a mapping")
        extra = sorted(set(section) - set(merged.get(name, {})))
        if extra:
            raise ValueError(f"Unknown key(s) in section '{name}': {', '.join(extra)}")
        merged.setdefault(name, {}).update(section)
    return merged


def parse_decimal(value: Any, name: str) -> Decimal:
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"{name} must be a decimal, got {value!r}") from exc


def _places(data: dict[str, Any], key: str) -> int:
    value = int(data[key])
    if not 0 <= value <= 9:
        raise ValueError(f"precision.{key} must be between 0 and 9, got {value}")
    return value


def parse_precision(data: dict[str, Any]) -> PrecisionConfig:
    return PrecisionConfig(
        money_places=_places(data, "money_places"),
        quantity_places=_places(data, "quantity_places"),
        weight_places=_places(data, "weight_places"),
        fraction_places=_places(data, "fraction_places"),
    )


def parse_alerts(data: dict[str, Any]) -> AlertConfig:
    """Parse alert bounds; ownership bounds must be fractions in [0, 1]."""
    low = parse_decimal(data["low_ownership_threshold"], "alerts.low_ownership_threshold")
    high = parse_decimal(data["high_severity_ownership"], "alerts.high_severity_ownership")
    amount = parse_decimal(data["high_outstanding_amount"], "alerts.high_outstanding_amount")
    for name, value in (("low_ownership_threshold", low), ("high_severity_ownership", high)):
        if not Decimal(0) <= value <= Decimal(1):
            raise ValueError(f"alerts.{name} must be a fraction in [0, 1], got {value}")
    if high > low:
        raise ValueError("alerts.high_severity_ownership cannot exceed low_ownership_threshold")
    return AlertConfig(
        low_ownership_threshold=low,
        high_severity_ownership=high,
        high_outstanding_amount=amount,
    )


def parse_retry(data: dict[str, Any]) -> RetryConfig:
    max_attempts = int(data["max_attempts"])
    if max_attempts < 1:
        raise ValueError(f"retry.max_attempts must be at least 1, got {max_attempts}")
    backoff = float(data["backoff_seconds"])
    if backoff < 0:
        raise ValueError(f"retry.backoff_seconds cannot be negative, got {backoff}")
    return RetryConfig(max_attempts=max_attempts, backoff_seconds=backoff)


def parse_database(data: dict[str, Any]) -> DatabaseConfig:
    return DatabaseConfig(
        url=str(data["url"]),
        echo=bool(data["echo"]),
        pool_size=int(data["pool_size"]),
        max_overflow=int(data["max_overflow"]),
    )


def parse_costing(data: dict[str, Any]) -> CostingConfig:
    method = str(data["default_method"]).lower()
    if method not in COSTING_METHODS:
        raise ValueError(
            f"costing.default_method must be one of {', '.join(COSTING_METHODS)}, got {method!r}"
        )
    return CostingConfig(default_method=method)


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def load_config(path: Path | None = None) -> OwnershipConfig:
    """
    Parse the defaults, overlaid with ``path`` when given.

    Raises:
        FileNotFoundError, yaml.YAMLError, ValueError.
    """
    data = load_yaml_file(DEFAULTS_PATH)
    if path is not None:
        data = merge_sections(data, load_yaml_file(path))

    return OwnershipConfig(
        precision=parse_precision(data["precision"]),
        alerts=parse_alerts(data["alerts"]),
        retry=parse_retry(data["retry"]),
        database=parse_database(data["database"]),
        costing=parse_costing(data["costing"]),
        source=str(path) if path is not None else str(DEFAULTS_PATH),
        checksum=compute_checksum(data),
    )
