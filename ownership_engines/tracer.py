"""
ownership_engines.tracer -- OWNERSHIP_ENGINE_TRACE records for engine calls.

Each decorated engine call logs one INFO record carrying the engine name and
version, how long the call took, and a short fingerprint of the inputs named
at decoration time.  Two calls with the same lots and amounts produce the
same fingerprint, which lets an auditor match a stored cost or split to the
exact engine run that produced it.

The decorator never touches its inputs and adds no I/O beyond the log line.
Only keyword arguments are fingerprinted; a named field that was not passed
hashes as "null".
"""

from __future__ import annotations

import hashlib
import logging
import time
from collections.abc import Callable, Mapping
from dataclasses import fields, is_dataclass
from decimal import Decimal
from functools import singledispatch, wraps
from typing import Any

_logger = logging.getLogger("ownership_kernel.engines.tracer")

TRACE_TYPE = "OWNERSHIP_ENGINE_TRACE"


@singledispatch
def canonical(value: Any) -> str:
    if is_dataclass(value) and not isinstance(value, type):
        inner = ",".join(f"{f.name}:{canonical(getattr(value, f.name))}" for f in fields(value))
        return "{" + inner + "}"
    return str(value)


@canonical.register(type(None))
def _(value) -> str:
    return "null"


@canonical.register
def _(value: Decimal) -> str:
    # 10, 10.0 and 10.000 are the same amount
    return format(value.normalize(), "f")


@canonical.register(list)
@canonical.register(tuple)
def _(value) -> str:
    return "[" + ",".join(map(canonical, value)) + "]"


@canonical.register(Mapping)
def _(value) -> str:
    pairs = sorted((str(k), canonical(v)) for k, v in value.items())
    return "{" + ",".join(f"{k}:{v}" for k, v in pairs) + "}"


def compute_input_fingerprint(fingerprint_fields: tuple[str, ...], kwargs: dict[str, Any]) -> str:
    """First 16 hex chars of SHA-256 over ``name=value`` for each listed field."""
    text = "|".join(f"{name}={canonical(kwargs.get(name))}" for name in fingerprint_fields)
    return hashlib.sha256(text.encode("utf-8")).hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """
    Wrap a pure engine method so each call emits OWNERSHIP_ENGINE_TRACE.

    Usage::

        @traced_engine("costing.fifo", "1.0", fingerprint_fields=("requested_quantity",))
        def fifo_cost(self, *, lots, requested_quantity): ...
    """

    def decorate(func: Callable) -> Callable:
        @wraps(func)
        def traced(*args: Any, **kwargs: Any) -> Any:
            fingerprint = (
                compute_input_fingerprint(fingerprint_fields, kwargs) if fingerprint_fields else ""
            )
            started = time.monotonic()
            result = func(*args, **kwargs)
            _logger.info(TRACE_TYPE, extra={
                "trace_type": TRACE_TYPE,
                "engine_name": engine_name,
                "engine_version": engine_version,
                "input_fingerprint": fingerprint,
                "duration_ms": round((time.monotonic() - started) * 1000, 2),
                "function": func.__qualname__,
            })
            return result

        return traced

    return decorate
