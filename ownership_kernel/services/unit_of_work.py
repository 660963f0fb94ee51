"""
UnitOfWork -- Explicit transactional context passed into every allocator call.

Responsibility:
    Bundle the caller's Session with the lot store, clock and precision the
    allocators need, and translate optimistic-version failures into
    ConcurrencyConflictError.  ``UnitOfWork.begin`` owns commit/rollback for
    callers that do not already manage a transaction.

Architecture position:
    Kernel > Services -- imperative shell.  No ambient or global session:
    every PaymentAllocator / ConsumptionAllocator / ValidationGuard call
    receives a UnitOfWork argument.

Invariants enforced:
    - All lots mutated through one UnitOfWork commit together or not at all.
    - A stale lot version is never silently overwritten.

Failure modes:
    - ConcurrencyConflictError when a flush or commit hits StaleDataError.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ownership_kernel.domain.clock import Clock, SystemClock
from ownership_kernel.domain.lots import BucketKey
from ownership_kernel.domain.precision import DEFAULT_PRECISION, Precision
from ownership_kernel.exceptions import ConcurrencyConflictError
from ownership_kernel.logging_config import get_logger
from ownership_kernel.services.lot_store import LotStore

logger = get_logger("services.unit_of_work")


class UnitOfWork:
    """
    Transactional context for one ownership operation (or several).

    Contract:
        Wraps a caller-owned Session.  ``flush`` pushes pending lot
        changes; it never commits.
    Guarantees:
        - ``lots`` shares the session, clock and precision of this unit.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        precision: Precision = DEFAULT_PRECISION,
    ):
        self.session = session
        self.clock = clock or SystemClock()
        self.precision = precision
        self.lots = LotStore(session, clock=self.clock, precision=precision)

    def flush(self, bucket: BucketKey | None = None) -> None:
        """Flush pending changes, mapping lost updates to ConcurrencyConflictError."""
        try:
            self.session.flush()
        except StaleDataError as exc:
            logger.warning("concurrency_conflict", extra={
                "bucket": str(bucket) if bucket else None,
                "detail": str(exc),
            })
            raise ConcurrencyConflictError(
                str(bucket) if bucket else "unknown", detail=str(exc)
            ) from exc

    @classmethod
    @contextmanager
    def begin(
        cls,
        session_factory: Callable[[], Session],
        clock: Clock | None = None,
        precision: Precision = DEFAULT_PRECISION,
    ) -> Iterator[UnitOfWork]:
        """
        Open a session, yield a UnitOfWork, then commit or roll back.

        Usage:
            with UnitOfWork.begin(get_session_factory()) as uow:
                PaymentAllocator().allocate_payment(uow, bucket, amount)
        """
        session = session_factory()
        uow = cls(session, clock=clock, precision=precision)
        try:
            yield uow
            session.commit()
            logger.debug("unit_of_work_committed")
        except StaleDataError as exc:
            session.rollback()
            logger.warning("unit_of_work_rolled_back", extra={"reason": "stale_data"})
            raise ConcurrencyConflictError("unknown", detail=str(exc)) from exc
        except Exception:
            session.rollback()
            logger.warning("unit_of_work_rolled_back", exc_info=True)
            raise
        finally:
            session.close()
