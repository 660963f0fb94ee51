"""
BaseService -- shared constructor for the services that write lots.

Write services (today only LotStore) add and update rows on the caller's
Session and stop at flush().  Commit and rollback belong to whoever opened
the transaction: UnitOfWork.begin, run_with_retry, or a test fixture.  That
is what lets a payment spread over five lots succeed or fail as one unit.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from ownership_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """Holds the caller's Session.  Subclasses flush, never commit."""

    def __init__(self, session: Session):
        self.session = session
