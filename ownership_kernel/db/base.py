"""
Module: ownership_kernel.db.base
Responsibility: Declarative base for the lot and movement tables.
Architecture position: Kernel > DB.  Imported by every model; imports only
    db.types.

Invariants enforced:
    - Every table is keyed by a uuid4 id.
    - Annotated Decimal columns become ExactDecimal and datetime columns
      become UTCDateTime, so a model cannot declare a float amount or a
      naive timestamp by accident.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import BigInteger
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from ownership_kernel.db.types import ExactDecimal, UTCDateTime, UUIDString


class Base(DeclarativeBase):
    """Base for OwnershipLotModel and OwnershipMovementModel."""

    type_annotation_map: ClassVar[dict] = {
        Decimal: ExactDecimal(),
        datetime: UTCDateTime(),
        UUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)
