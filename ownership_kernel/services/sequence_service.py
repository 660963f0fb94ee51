"""
SequenceService -- monotonic sequence numbers from locked counter rows.

Responsibility:
    Hand out strictly increasing integers per named sequence.  LotStore
    uses the ``lot_receipt`` sequence for receipt_sequence, the tie-breaker
    that keeps FIFO order deterministic when two lots share created_at.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - Values come from the counter row, read with SELECT ... FOR UPDATE,
      never from max(receipt_sequence) + 1.  Concurrent receipts are
      serialized on the counter row.
    - Transactional: a rolled-back transaction gives its value back.

Failure modes:
    - IntegrityError when two transactions create the same counter on first
      use; handled by rolling back a savepoint and locking the winner's row.
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ownership_kernel.logging_config import get_logger
from ownership_kernel.models.sequence_counter import SequenceCounter

logger = get_logger("services.sequence")


class SequenceService:
    """
    Next-value allocation for named sequences.

    Contract:
        Runs inside the caller's transaction.  Flushes; never commits.
    """

    LOT_RECEIPT = "lot_receipt"

    def __init__(self, session: Session):
        self._session = session

    def _locked(self, name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, name: str) -> int:
        """Lock the counter for ``name`` (creating it on first use) and advance it."""
        counter = self._locked(name)

        if counter is None:
            savepoint = self._session.begin_nested()
            try:
                self._session.add(SequenceCounter(name=name, current_value=1))
                self._session.flush()
                savepoint.commit()
                logger.debug("sequence_allocated", extra={"sequence_name": name, "value": 1})
                return 1
            except IntegrityError:
                # another transaction created the counter first
                logger.debug("sequence_counter_race_retry", extra={"sequence_name": name})
                savepoint.rollback()
                counter = self._locked(name)
                if counter is None:
                    raise

        counter.current_value += 1
        self._session.flush()
        logger.debug("sequence_allocated", extra={
            "sequence_name": name,
            "value": counter.current_value,
        })
        return counter.current_value

    def current_value(self, name: str) -> int | None:
        counter = self._session.execute(
            select(SequenceCounter).where(SequenceCounter.name == name)
        ).scalar_one_or_none()
        return counter.current_value if counter else None
