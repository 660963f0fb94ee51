"""
Module: ownership_engines
Responsibility:
    Package entrypoint re-exporting the pure calculation engines used by
    the ownership kernel services and ownership_services.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May import ownership_kernel.domain and ownership_kernel.logging_config.
    MUST NOT import ownership_kernel.db/models/services/selectors,
    ownership_services or ownership_config.

Invariants enforced:
    - Purity: engines never read the clock or touch a session.
    - Decimal-only arithmetic.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Every engine invocation is traced via ``@traced_engine``, emitting
    OWNERSHIP_ENGINE_TRACE log records.
"""

from ownership_engines.allocation import (
    ProRataAllocator,
    ShareLine,
    ShareResult,
    ShareTarget,
)
from ownership_engines.costing import (
    CostingEngine,
    CostingMethod,
    CostLayerResult,
    ConsumedSource,
    CostSource,
    LotContribution,
    ManufacturingCostResult,
    WeightedAverageResult,
)
from ownership_engines.depletion import (
    DepletionMeasure,
    DepletionPlan,
    DepletionTake,
    eligible_lots,
    plan_depletion,
)
from ownership_engines.tracer import traced_engine

__all__ = [
    "ConsumedSource",
    "CostLayerResult",
    "CostSource",
    "CostingEngine",
    "CostingMethod",
    "DepletionMeasure",
    "DepletionPlan",
    "DepletionTake",
    "LotContribution",
    "ManufacturingCostResult",
    "ProRataAllocator",
    "ShareLine",
    "ShareResult",
    "ShareTarget",
    "WeightedAverageResult",
    "eligible_lots",
    "plan_depletion",
    "traced_engine",
]
