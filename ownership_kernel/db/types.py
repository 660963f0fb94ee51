"""
Module: ownership_kernel.db.types
Responsibility: Fixed-precision decimal, UTC timestamp and UUID column
    types shared by every model.
Architecture position: Kernel > DB.  MUST NOT import from models/, services/,
    selectors/ or domain/.

Invariants enforced:
    CRITICAL: No floats anywhere in the ownership kernel.  Quantities, weights,
    currency amounts and ownership fractions are Decimal end to end.

Failure modes:
    - decimal.InvalidOperation if a non-numeric value reaches the column.
"""

from datetime import timezone
from decimal import Decimal
from uuid import UUID

from sqlalchemy import DateTime, Numeric, String
from sqlalchemy.types import TypeDecorator

# 38 digits total, 9 decimal places: wide enough for every quantity, weight,
# amount and fraction the kernel stores before service-level quantization.
DECIMAL_PRECISION = 38
DECIMAL_SCALE = 9


class ExactDecimal(TypeDecorator):
    """
    Decimal column that never round-trips through binary floating point.

    PostgreSQL (and any dialect with a native NUMERIC) gets Numeric(38, 9).
    SQLite has no exact decimal storage, so the value is persisted as its
    canonical string form and parsed back into a Decimal on load.  Ordering
    and arithmetic on these columns therefore happen in Python, never in SQL.
    """

    impl = Numeric(DECIMAL_PRECISION, DECIMAL_SCALE)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "sqlite":
            return dialect.type_descriptor(String(64))
        return dialect.type_descriptor(
            Numeric(DECIMAL_PRECISION, DECIMAL_SCALE, asdecimal=True)
        )

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        value = Decimal(value)
        if dialect.name == "sqlite":
            return str(value)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Decimal(str(value)) if not isinstance(value, Decimal) else value


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware timestamp that always loads as UTC.

    SQLite drops tzinfo on the way out; rows read back are re-tagged as UTC
    so lots created in this session and lots loaded from disk compare cleanly
    when ordered by created_at.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError(f"Naive datetime not allowed: {value!r}")
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class UUIDString(TypeDecorator):
    """Lot and movement ids, stored as their 36-character text form."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)
