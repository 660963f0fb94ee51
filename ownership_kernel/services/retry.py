"""
Retry -- Re-run a whole unit of work after a concurrency conflict.

Responsibility:
    Callers that race on the same bucket get ConcurrencyConflictError from
    the loser's flush or commit.  run_with_retry opens a fresh UnitOfWork
    per attempt and re-runs the caller's operation from scratch, so each
    attempt reloads the bucket at its current version.

Architecture position:
    Kernel > Services -- imperative shell helper.

Invariants enforced:
    MAX attempts -- bounded by ``max_attempts``; never retries validation
    errors or integrity faults, only ConcurrencyConflictError.

Failure modes:
    - The last ConcurrencyConflictError is re-raised when attempts run out.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import TypeVar

from sqlalchemy.orm import Session

from ownership_kernel.domain.clock import Clock
from ownership_kernel.domain.precision import DEFAULT_PRECISION, Precision
from ownership_kernel.exceptions import ConcurrencyConflictError
from ownership_kernel.logging_config import get_logger
from ownership_kernel.services.unit_of_work import UnitOfWork

logger = get_logger("services.retry")

T = TypeVar("T")


def run_with_retry(
    operation: Callable[[UnitOfWork], T],
    session_factory: Callable[[], Session],
    *,
    max_attempts: int = 3,
    backoff_seconds: float = 0.05,
    clock: Clock | None = None,
    precision: Precision = DEFAULT_PRECISION,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Run ``operation`` in its own committed UnitOfWork, retrying on conflict.

    Backoff grows linearly: attempt n waits ``backoff_seconds * n``.

    Raises:
        ValueError: max_attempts < 1.
        ConcurrencyConflictError: every attempt conflicted.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    for attempt in range(1, max_attempts + 1):
        try:
            with UnitOfWork.begin(session_factory, clock=clock, precision=precision) as uow:
                result = operation(uow)
            if attempt > 1:
                logger.info("retry_succeeded", extra={"attempt": attempt})
            return result
        except ConcurrencyConflictError as exc:
            if attempt == max_attempts:
                logger.error("retry_exhausted", extra={
                    "attempts": attempt,
                    "bucket": exc.bucket,
                })
                raise
            logger.warning("retry_after_conflict", extra={
                "attempt": attempt,
                "max_attempts": max_attempts,
                "bucket": exc.bucket,
            })
            sleep(backoff_seconds * attempt)

    raise AssertionError("unreachable")
