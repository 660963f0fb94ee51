"""Database layer: engine, declarative base and column types."""

from ownership_kernel.db.base import Base
from ownership_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session_factory,
    init_engine_from_url,
)
from ownership_kernel.db.types import ExactDecimal, UTCDateTime, UUIDString

__all__ = [
    "Base",
    "ExactDecimal",
    "UTCDateTime",
    "UUIDString",
    "create_tables",
    "get_engine",
    "get_session_factory",
    "init_engine_from_url",
]
