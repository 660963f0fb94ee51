"""
Module: ownership_engines.costing
Responsibility:
    Value owned stock and price consumption requests under the
    weighted-average, FIFO and LIFO policies, recommend a policy, and cost
    the raw material a manufacturing run consumed.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Stateless CostingEngine over frozen OwnershipLot records.  Bucket
    loading and not-found handling live in
    ownership_services.costing_service.

Invariants enforced:
    - Read-only: no method returns or mutates a lot; FIFO/LIFO pricing is
      a valuation query, never a depletion.
    - Decimal-only arithmetic; per-unit figures are quantized to the
      fraction precision and totals to money precision.
    - Eligible lots for valuation and FIFO/LIFO are active lots with
      owned_quantity > 0.  Weight-only raw lots are priced by weight in
      manufacturing_cost.

Failure modes:
    - weighted_average_cost returns None when no eligible lot exists.
    - fifo_cost/lifo_cost never fail on insufficient stock: they return
      success=False with the partial source list.
    - ValueError on a non-positive requested quantity.
    - manufacturing_cost returns success=False when given no allocations.

Usage:
    engine = CostingEngine()
    weighted = engine.weighted_average_cost(lots=lots)
    fifo = engine.fifo_cost(lots=lots, requested_quantity=Decimal("3"))
    method = engine.recommend_method(weighted=weighted, fifo=fifo, lifo=lifo)
    run = engine.manufacturing_cost(allocations=consumed)
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from uuid import UUID

from ownership_engines.tracer import traced_engine
from ownership_kernel.domain.lots import LotAllocation, OwnershipLot
from ownership_kernel.domain.precision import DEFAULT_PRECISION, ZERO, Precision
from ownership_kernel.logging_config import get_logger

logger = get_logger("engines.costing")


class CostingMethod(str, Enum):
    """Inventory costing policies."""

    WEIGHTED_AVERAGE = "weighted_average"
    FIFO = "fifo"
    LIFO = "lifo"


@dataclass(frozen=True, slots=True)
class LotContribution:
    """One lot's share of a weighted-average valuation."""

    lot_id: UUID
    source_reference: str
    owned_quantity: Decimal
    owned_weight: Decimal
    owned_cost_share: Decimal
    contribution: Decimal  # owned_quantity / sum(owned_quantity), [0, 1]


@dataclass(frozen=True)
class WeightedAverageResult:
    """Blended valuation of all owned stock in a bucket."""

    cost_per_unit: Decimal
    cost_per_weight_unit: Decimal
    total_quantity: Decimal
    total_weight: Decimal
    total_cost: Decimal
    breakdown: tuple[LotContribution, ...]


@dataclass(frozen=True, slots=True)
class CostSource:
    """One lot used to assemble a FIFO/LIFO cost layer."""

    lot_id: UUID
    source_reference: str
    created_at: datetime
    quantity_used: Decimal
    weight_used: Decimal
    unit_cost: Decimal
    cost_used: Decimal


@dataclass(frozen=True, slots=True)
class ConsumedSource:
    """One lot's raw material going into a manufacturing run."""

    lot_id: UUID
    source_reference: str
    weight_used: Decimal
    cost_per_weight_unit: Decimal
    cost_used: Decimal
    contribution: Decimal  # weight_used / total weight consumed, [0, 1]


@dataclass(frozen=True)
class ManufacturingCostResult:
    """Blended cost per weight unit of the material a run consumed."""

    total_weight: Decimal
    total_cost: Decimal
    cost_per_weight_unit: Decimal
    sources: tuple[ConsumedSource, ...]
    success: bool
    message: str


@dataclass(frozen=True)
class CostLayerResult:
    """
    Outcome of pricing a requested quantity under FIFO or LIFO.

    Guarantees:
        - success is True only when the sources cover requested_quantity.
        - sources are listed in consumption order.
    """

    method: CostingMethod
    requested_quantity: Decimal
    quantity_assembled: Decimal
    total_cost: Decimal
    cost_per_unit: Decimal
    cost_per_weight_unit: Decimal
    sources_used: tuple[CostSource, ...]
    success: bool
    message: str


class CostingEngine:
    """
    Pure costing calculations over a bucket's lots.

    Contract:
        Accepts any sequence of OwnershipLot; filters to eligible lots
        itself.  All arguments are keyword-only so invocations are traced
        with a stable fingerprint.
    Guarantees:
        - Identical inputs always produce identical outputs.
    Non-goals:
        - Does not load lots or raise LotNotFoundError; see CostingService.
    """

    def __init__(self, precision: Precision = DEFAULT_PRECISION):
        self._precision = precision

    @staticmethod
    def eligible(lots: Sequence[OwnershipLot]) -> list[OwnershipLot]:
        """Active lots with owned stock, oldest first."""
        return sorted(
            (l for l in lots if l.is_active and l.owned_quantity > ZERO),
            key=lambda l: l.sequence_key,
        )

    def _rate(self, value: Decimal) -> Decimal:
        return value.quantize(
            Decimal(1).scaleb(-self._precision.fraction_places), rounding=ROUND_HALF_UP
        )

    def _per_unit(self, numerator: Decimal, denominator: Decimal) -> Decimal:
        if denominator <= ZERO:
            return ZERO
        return self._rate(numerator / denominator)

    @traced_engine("costing.weighted_average", "1.0", fingerprint_fields=("lots",))
    def weighted_average_cost(
        self,
        *,
        lots: Sequence[OwnershipLot],
    ) -> WeightedAverageResult | None:
        """Blend owned cost across all eligible lots.

        Postconditions:
            cost_per_unit = sum(owned_cost_share) / sum(owned_quantity);
            cost_per_weight_unit = sum(owned_cost_share) / sum(owned_weight),
            zero when no owned weight exists.
        Returns:
            None if no eligible lot exists.
        """
        eligible = self.eligible(lots)
        if not eligible:
            logger.info("weighted_average_no_eligible_lots", extra={
                "lots_supplied": len(lots),
            })
            return None

        shares = [lot.owned_cost_share for lot in eligible]
        total_cost = sum(shares, ZERO)
        total_quantity = sum((lot.owned_quantity for lot in eligible), ZERO)
        total_weight = sum((lot.owned_weight for lot in eligible), ZERO)

        breakdown = tuple(
            LotContribution(
                lot_id=lot.lot_id,
                source_reference=lot.source_reference,
                owned_quantity=lot.owned_quantity,
                owned_weight=lot.owned_weight,
                owned_cost_share=self._precision.money(share),
                contribution=self._precision.fraction(lot.owned_quantity / total_quantity),
            )
            for lot, share in zip(eligible, shares)
        )

        result = WeightedAverageResult(
            cost_per_unit=self._per_unit(total_cost, total_quantity),
            cost_per_weight_unit=self._per_unit(total_cost, total_weight),
            total_quantity=total_quantity,
            total_weight=total_weight,
            total_cost=self._precision.money(total_cost),
            breakdown=breakdown,
        )
        logger.info("weighted_average_computed", extra={
            "lots": len(eligible),
            "cost_per_unit": str(result.cost_per_unit),
            "total_quantity": str(total_quantity),
        })
        return result

    @traced_engine("costing.fifo", "1.0", fingerprint_fields=("lots", "requested_quantity"))
    def fifo_cost(
        self,
        *,
        lots: Sequence[OwnershipLot],
        requested_quantity: Decimal,
    ) -> CostLayerResult:
        """Price ``requested_quantity`` from the oldest owned lots first."""
        return self._layer_cost(lots, requested_quantity, CostingMethod.FIFO)

    @traced_engine("costing.lifo", "1.0", fingerprint_fields=("lots", "requested_quantity"))
    def lifo_cost(
        self,
        *,
        lots: Sequence[OwnershipLot],
        requested_quantity: Decimal,
    ) -> CostLayerResult:
        """Price ``requested_quantity`` from the newest owned lots first."""
        return self._layer_cost(lots, requested_quantity, CostingMethod.LIFO)

    def _layer_cost(
        self,
        lots: Sequence[OwnershipLot],
        requested_quantity: Decimal,
        method: CostingMethod,
    ) -> CostLayerResult:
        if requested_quantity <= ZERO:
            raise ValueError(
                f"Requested quantity must be positive, got {requested_quantity}"
            )

        ordered = self.eligible(lots)
        if method is CostingMethod.LIFO:
            ordered.reverse()

        sources: list[CostSource] = []
        remaining = requested_quantity
        for lot in ordered:
            if remaining <= ZERO:
                break
            take = min(remaining, lot.owned_quantity)
            if take == lot.owned_quantity:
                weight_used = lot.owned_weight
            else:
                weight_used = self._precision.weight(
                    take * lot.owned_weight / lot.owned_quantity
                )
            unit_cost = lot.unit_cost
            sources.append(CostSource(
                lot_id=lot.lot_id,
                source_reference=lot.source_reference,
                created_at=lot.created_at,
                quantity_used=take,
                weight_used=weight_used,
                unit_cost=self._rate(unit_cost),
                cost_used=self._precision.money(unit_cost * take),
            ))
            remaining -= take

        assembled = requested_quantity - remaining
        total_cost = sum((s.cost_used for s in sources), ZERO)
        total_weight = sum((s.weight_used for s in sources), ZERO)
        success = remaining <= ZERO

        if not sources:
            message = "No owned stock available"
        elif success:
            message = f"{method.value.upper()} cost assembled from {len(sources)} lot(s)"
        else:
            message = (
                f"Insufficient owned stock: requested {requested_quantity}, "
                f"available {assembled}"
            )

        logger.info("layer_cost_computed", extra={
            "method": method.value,
            "requested_quantity": str(requested_quantity),
            "quantity_assembled": str(assembled),
            "lots_used": len(sources),
            "success": success,
        })

        return CostLayerResult(
            method=method,
            requested_quantity=requested_quantity,
            quantity_assembled=assembled,
            total_cost=total_cost,
            cost_per_unit=self._per_unit(total_cost, assembled),
            cost_per_weight_unit=self._per_unit(total_cost, total_weight),
            sources_used=tuple(sources),
            success=success,
            message=message,
        )

    def recommend_method(
        self,
        *,
        weighted: WeightedAverageResult | None,
        fifo: CostLayerResult | None = None,
        lifo: CostLayerResult | None = None,
        preferred: CostingMethod = CostingMethod.WEIGHTED_AVERAGE,
    ) -> CostingMethod:
        """Business default for valuing volatile commodities such as gold.

        Weighted average smooths price swings, so it is recommended whenever
        a weighted valuation exists.  A configured FIFO/LIFO preference is
        honoured when its layer was fully assembled.  FIFO is the fallback.
        """
        if preferred is CostingMethod.FIFO and fifo is not None and fifo.success:
            return CostingMethod.FIFO
        if preferred is CostingMethod.LIFO and lifo is not None and lifo.success:
            return CostingMethod.LIFO
        if weighted is not None:
            return CostingMethod.WEIGHTED_AVERAGE
        return CostingMethod.FIFO

    @traced_engine("costing.manufacturing", "1.0", fingerprint_fields=("allocations",))
    def manufacturing_cost(
        self,
        *,
        allocations: Sequence[LotAllocation],
    ) -> ManufacturingCostResult:
        """Price the raw material a manufacturing run consumed.

        ``allocations`` are what ConsumptionAllocator.deplete_weight (or
        deplete) returned.  Each is priced at its lot's cost per weight unit,
        total_cost / total_weight, which depletion never changes.  This is
        how weight-only bullion lots get a cost.  A lot with no weight falls
        back to its per-unit cost times the quantity taken.

        Postconditions:
            cost_per_weight_unit = sum(cost_used) / sum(weight_used), zero
            when no weight was consumed.
        """
        if not allocations:
            logger.info("manufacturing_cost_no_sources")
            return ManufacturingCostResult(
                total_weight=ZERO,
                total_cost=ZERO,
                cost_per_weight_unit=ZERO,
                sources=(),
                success=False,
                message="No raw materials provided",
            )

        total_weight = sum((a.weight for a in allocations), ZERO)
        sources = []
        for allocation in allocations:
            lot = allocation.lot
            if lot.total_weight > ZERO:
                cost = lot.weight_unit_cost * allocation.weight
            else:
                cost = lot.unit_cost * allocation.quantity
            sources.append(ConsumedSource(
                lot_id=allocation.lot_id,
                source_reference=allocation.source_reference,
                weight_used=allocation.weight,
                cost_per_weight_unit=self._rate(lot.weight_unit_cost),
                cost_used=self._precision.money(cost),
                contribution=(
                    self._precision.fraction(allocation.weight / total_weight)
                    if total_weight > ZERO else ZERO
                ),
            ))

        total_cost = sum((s.cost_used for s in sources), ZERO)
        result = ManufacturingCostResult(
            total_weight=total_weight,
            total_cost=total_cost,
            cost_per_weight_unit=self._per_unit(total_cost, total_weight),
            sources=tuple(sources),
            success=True,
            message=f"Manufacturing cost from {len(sources)} raw material source(s)",
        )
        logger.info("manufacturing_cost_computed", extra={
            "sources": len(sources),
            "total_weight": str(total_weight),
            "cost_per_weight_unit": str(result.cost_per_weight_unit),
        })
        return result
