"""
ownership_services -- Package init and public API.

Responsibility:
    Orchestration services composed over the kernel and the pure engines:
    bucket costing and lot consolidation.

Architecture position:
    Services -- stateful orchestration over engines + kernel.

    Dependency direction (enforced by tests/architecture/test_kernel_boundary.py):
        ownership_services/ -> ownership_engines/  (allowed)
        ownership_services/ -> ownership_kernel/   (allowed)
        ownership_engines/  -> ownership_services/ (FORBIDDEN)
        ownership_kernel/   -> ownership_services/ (FORBIDDEN)
"""

from ownership_services.consolidation_service import (
    ConsolidationOpportunity,
    ConsolidationResult,
    ConsolidationService,
)
from ownership_services.costing_service import CostAnalysis, CostingService

__all__ = [
    "ConsolidationOpportunity",
    "ConsolidationResult",
    "ConsolidationService",
    "CostAnalysis",
    "CostingService",
]
