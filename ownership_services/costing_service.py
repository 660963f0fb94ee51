"""
ownership_services.costing_service -- Bucket-level costing queries.

Responsibility:
    Load a bucket's lots through LotSelector and price them with the pure
    CostingEngine: weighted-average valuation of owned stock, FIFO/LIFO
    pricing of a requested quantity, a combined cost analysis with a
    recommended method, and the cost of material already consumed by a
    manufacturing run.

Architecture position:
    Services -- stateful orchestration over engines + kernel.
    Composes LotSelector (read path) and ownership_engines.costing.

Invariants enforced:
    - Read-only: never flushes, never changes a lot.  FIFO/LIFO here price
      stock; physical depletion is always oldest first (ConsumptionAllocator).

Failure modes:
    - LotNotFoundError when the bucket has no active lot with owned stock
      (weighted average and cost analysis).
    - InvalidQuantityError when a FIFO/LIFO request is not positive.

Usage:
    costing = CostingService(session)
    analysis = costing.cost_analysis(BucketKey("RING-22K", "BR-1", "SUP-7"))
    analysis.recommended_method  # CostingMethod.WEIGHTED_AVERAGE
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy.orm import Session

from ownership_engines.costing import (
    CostingEngine,
    CostingMethod,
    CostLayerResult,
    ManufacturingCostResult,
    WeightedAverageResult,
)
from ownership_kernel.domain.clock import Clock, SystemClock
from ownership_kernel.domain.lots import BucketKey, LotAllocation
from ownership_kernel.domain.precision import DEFAULT_PRECISION, ONE, ZERO, Precision
from ownership_kernel.exceptions import InvalidQuantityError, LotNotFoundError
from ownership_kernel.logging_config import LogContext, get_logger
from ownership_kernel.selectors.lot_selector import LotSelector

logger = get_logger("services.costing")


@dataclass(frozen=True)
class CostAnalysis:
    """All three valuations of one unit of a bucket plus the recommendation."""

    bucket: BucketKey
    weighted_average: WeightedAverageResult
    fifo: CostLayerResult
    lifo: CostLayerResult
    recommended_method: CostingMethod
    analysed_at: datetime


class CostingService:
    """
    Costing queries for reporting and pricing.

    Contract:
        Receives the caller's Session; read-only.
    Guarantees:
        - Results are identical to calling CostingEngine directly on the
          bucket's active lots.
    Non-goals:
        - Does not post cost of goods sold anywhere.
    """

    def __init__(
        self,
        session: Session,
        *,
        precision: Precision = DEFAULT_PRECISION,
        preferred_method: CostingMethod = CostingMethod.WEIGHTED_AVERAGE,
        clock: Clock | None = None,
        engine: CostingEngine | None = None,
    ):
        self._selector = LotSelector(session, precision=precision)
        self._engine = engine or CostingEngine(precision)
        self._preferred = preferred_method
        self._clock = clock or SystemClock()

    def weighted_average_cost(self, bucket: BucketKey) -> WeightedAverageResult:
        """
        Weighted-average cost of the bucket's owned stock.

        Raises:
            LotNotFoundError: no active lot with owned quantity.
        """
        with LogContext.bind(bucket=str(bucket), operation="weighted_average_cost"):
            result = self._engine.weighted_average_cost(lots=self._selector.get_lots(bucket))
            if result is None:
                logger.warning("costing_no_owned_stock", extra={"bucket": str(bucket)})
                raise LotNotFoundError(
                    bucket=str(bucket), reason="no active lots with owned stock"
                )
            return result

    def fifo_cost(self, bucket: BucketKey, requested_quantity: Decimal = ONE) -> CostLayerResult:
        """Price ``requested_quantity`` oldest lot first."""
        return self._layer(bucket, requested_quantity, CostingMethod.FIFO)

    def lifo_cost(self, bucket: BucketKey, requested_quantity: Decimal = ONE) -> CostLayerResult:
        """Price ``requested_quantity`` newest lot first."""
        return self._layer(bucket, requested_quantity, CostingMethod.LIFO)

    def _layer(
        self,
        bucket: BucketKey,
        requested_quantity: Decimal,
        method: CostingMethod,
    ) -> CostLayerResult:
        if requested_quantity <= ZERO:
            raise InvalidQuantityError("requested_quantity", requested_quantity)
        with LogContext.bind(bucket=str(bucket), operation=f"{method.value}_cost"):
            lots = self._selector.get_lots(bucket)
            if method is CostingMethod.FIFO:
                return self._engine.fifo_cost(lots=lots, requested_quantity=requested_quantity)
            return self._engine.lifo_cost(lots=lots, requested_quantity=requested_quantity)

    def cost_analysis(self, bucket: BucketKey) -> CostAnalysis:
        """
        Weighted average, FIFO and LIFO for one unit, plus a recommendation.

        Raises:
            LotNotFoundError: no active lot with owned quantity.
        """
        weighted = self.weighted_average_cost(bucket)
        fifo = self.fifo_cost(bucket, ONE)
        lifo = self.lifo_cost(bucket, ONE)
        method = self._engine.recommend_method(
            weighted=weighted, fifo=fifo, lifo=lifo, preferred=self._preferred,
        )
        logger.info("cost_analysis_completed", extra={
            "bucket": str(bucket),
            "recommended_method": method.value,
            "weighted_cost_per_unit": str(weighted.cost_per_unit),
            "fifo_cost_per_unit": str(fifo.cost_per_unit),
            "lifo_cost_per_unit": str(lifo.cost_per_unit),
        })
        return CostAnalysis(
            bucket=bucket,
            weighted_average=weighted,
            fifo=fifo,
            lifo=lifo,
            recommended_method=method,
            analysed_at=self._clock.now(),
        )

    def manufacturing_cost(self, allocations: Sequence[LotAllocation]) -> ManufacturingCostResult:
        """
        Cost of the raw material behind ``allocations``.

        Typical use prices a run right after depleting its gold::

            consumed = ConsumptionAllocator().deplete_weight(uow, bucket, Decimal("12.5"))
            run = CostingService(uow.session).manufacturing_cost(consumed)
        """
        buckets = sorted({str(a.lot.bucket) for a in allocations})
        with LogContext.bind(
            bucket=buckets[0] if len(buckets) == 1 else None,
            operation="manufacturing_cost",
        ):
            return self._engine.manufacturing_cost(allocations=list(allocations))
