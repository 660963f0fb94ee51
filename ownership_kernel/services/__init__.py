"""Services for the ownership kernel (write side and pre-sale checks)."""

from ownership_kernel.services.consumption_allocator import ConsumptionAllocator
from ownership_kernel.services.lot_store import LotArena, LotStore
from ownership_kernel.services.payment_allocator import PaymentAllocator, apply_share
from ownership_kernel.services.retry import run_with_retry
from ownership_kernel.services.sequence_service import SequenceService
from ownership_kernel.services.unit_of_work import UnitOfWork
from ownership_kernel.services.validation_guard import (
    SaleValidation,
    ValidationGuard,
    payment_warning,
)

__all__ = [
    "ConsumptionAllocator",
    "LotArena",
    "LotStore",
    "PaymentAllocator",
    "SaleValidation",
    "SequenceService",
    "UnitOfWork",
    "ValidationGuard",
    "apply_share",
    "payment_warning",
    "run_with_retry",
]
