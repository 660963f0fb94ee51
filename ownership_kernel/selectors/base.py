"""
Module: ownership_kernel.selectors.base
Responsibility: Common base for the read side.  Selectors answer questions
    about lots (bucket summaries, alerts, unpaid exposure) and hand back
    frozen DTOs, so callers cannot write through what they read.
Architecture position: Kernel > Selectors.  May import from db/, models/ and
    domain/.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - A selector never calls add(), delete(), flush() or commit() on the
      Session it was given.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from ownership_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """Read-only view over one model, bound to the caller's Session."""

    def __init__(self, session: Session):
        self.session = session
