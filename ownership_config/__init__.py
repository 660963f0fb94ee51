"""
ownership_config -- single public entrypoint for ownership configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration files
    or environment variables directly.

Architecture position:
    Configuration -- YAML-driven, parsed into frozen dataclasses.  This
    package sits above ``ownership_kernel``; the kernel MUST NEVER import
    from ``ownership_config``.  ``bridges`` translates sections into
    kernel inputs.

Failure modes:
    - ``FileNotFoundError`` -- OWNERSHIP_CONFIG (or ``path``) names a
      missing file.
    - ``ValueError`` -- unknown section or key, or an out-of-range value.

Audit relevance:
    Every successful ``get_active_config()`` call emits an
    ``OWNERSHIP_CONFIG_TRACE`` log entry with the source file and the
    checksum of the merged configuration.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from ownership_config.loader import load_config
from ownership_config.schema import (
    AlertConfig,
    CostingConfig,
    DatabaseConfig,
    OwnershipConfig,
    PrecisionConfig,
    RetryConfig,
)

_logger = logging.getLogger("ownership_kernel.config")

CONFIG_ENV_VAR = "OWNERSHIP_CONFIG"


def get_active_config(path: Path | str | None = None) -> OwnershipConfig:
    """The ONLY public configuration entrypoint.

    Resolution order: ``path`` argument, then the OWNERSHIP_CONFIG
    environment variable, then the packaged defaults alone.

    Raises:
        FileNotFoundError: If the selected file does not exist.
        ValueError: If the file fails validation.
    """
    selected = path or os.environ.get(CONFIG_ENV_VAR) or None
    config = load_config(Path(selected) if selected else None)

    _logger.info(
        "OWNERSHIP_CONFIG_TRACE",
        extra={
            "trace_type": "OWNERSHIP_CONFIG_TRACE",
            "source": config.source,
            "checksum": config.checksum,
            "costing_method": config.costing.default_method,
            "money_places": config.precision.money_places,
        },
    )
    return config


__all__ = [
    "AlertConfig",
    "CONFIG_ENV_VAR",
    "CostingConfig",
    "DatabaseConfig",
    "OwnershipConfig",
    "PrecisionConfig",
    "RetryConfig",
    "get_active_config",
]
