"""
Typed Exception Hierarchy for the Ownership Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the ownership core (treasury, sales, manufacturing, reporting)
must react to failures precisely: a rejected overpayment is shown to the
cashier, a concurrency conflict is retried, an inconsistency is paged.
Parsing message strings for that is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        allocator.allocate_payment(uow, bucket, Decimal("500.00"))
    except OverpaymentRejectedError as e:
        respond(code=e.code, outstanding=e.total_outstanding)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    OwnershipKernelError (base)
    |
    +-- ValidationError                  (rejected before any mutation)
    |   +-- InvalidQuantityError
    |   +-- OverpaymentRejectedError
    |   +-- InsufficientOwnershipError
    |
    +-- LotError
    |   +-- LotNotFoundError
    |   +-- LotAlreadyInactiveError
    |   +-- ConsolidationNotNeededError
    |
    +-- ConcurrencyError
    |   +-- ConcurrencyConflictError
    |
    +-- IntegrityFaultError              (true faults, never auto-corrected)
        +-- CalculationInconsistencyError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Code                        | When Raised
----------------------------|---------------------------------------------------
INVALID_QUANTITY            | Non-positive payment, quantity or weight
OVERPAYMENT_REJECTED        | Payment exceeds the bucket's total outstanding
INSUFFICIENT_OWNERSHIP      | Depletion exceeds available owned quantity/weight
LOT_NOT_FOUND               | No eligible lots for a bucket, or unknown lot id
LOT_ALREADY_INACTIVE        | Cancelling a lot that is already inactive
CONSOLIDATION_NOT_NEEDED    | Fewer than two active lots to merge
CONCURRENCY_CONFLICT        | Lost update detected; caller retries
CALCULATION_INCONSISTENCY   | An invariant failed reconciliation after mutation

Retry guidance:
   - ValidationError / LotError -> do not retry, surface to the user
   - ConcurrencyError -> retry the whole unit of work
   - IntegrityFaultError -> do not retry, alert operators
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID


class OwnershipKernelError(Exception):
    """
    Base exception for all ownership kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "OWNERSHIP_KERNEL_ERROR"


# Validation-class exceptions


class ValidationError(OwnershipKernelError):
    """Base exception for inputs rejected before any lot is mutated."""

    code: str = "VALIDATION_ERROR"


class InvalidQuantityError(ValidationError):
    """A payment amount, quantity or weight was not strictly positive or
    carried more precision than the kernel stores."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, field: str, value: Decimal, reason: str = "must be greater than zero"):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"{field} {reason}, got {value}")


class OverpaymentRejectedError(ValidationError):
    """Payment exceeds the total outstanding amount of the bucket."""

    code: str = "OVERPAYMENT_REJECTED"

    def __init__(self, bucket: str, payment_amount: Decimal, total_outstanding: Decimal):
        self.bucket = bucket
        self.payment_amount = payment_amount
        self.total_outstanding = total_outstanding
        super().__init__(
            f"Payment {payment_amount} exceeds total outstanding "
            f"{total_outstanding} for bucket {bucket}"
        )


class InsufficientOwnershipError(ValidationError):
    """Requested depletion exceeds the owned quantity available in the bucket."""

    code: str = "INSUFFICIENT_OWNERSHIP"

    def __init__(
        self,
        bucket: str,
        requested: Decimal,
        available: Decimal,
        measure: str = "quantity",
    ):
        self.bucket = bucket
        self.requested = requested
        self.available = available
        self.measure = measure
        self.shortfall = requested - available
        super().__init__(
            f"Insufficient owned {measure} for bucket {bucket}. "
            f"Available: {available}, Requested: {requested}"
        )


# Lot-related exceptions


class LotError(OwnershipKernelError):
    """Base exception for lot lookup and lifecycle errors."""

    code: str = "LOT_ERROR"


class LotNotFoundError(LotError):
    """No eligible lot exists for the bucket, or the lot id is unknown."""

    code: str = "LOT_NOT_FOUND"

    def __init__(self, bucket: str | None = None, lot_id: UUID | None = None, reason: str = ""):
        self.bucket = bucket
        self.lot_id = lot_id
        self.reason = reason
        target = f"lot {lot_id}" if lot_id is not None else f"bucket {bucket}"
        detail = f": {reason}" if reason else ""
        super().__init__(f"No lots found for {target}{detail}")


class LotAlreadyInactiveError(LotError):
    """Lot was already deactivated (depleted, cancelled or consolidated)."""

    code: str = "LOT_ALREADY_INACTIVE"

    def __init__(self, lot_id: UUID):
        self.lot_id = lot_id
        super().__init__(f"Lot {lot_id} is already inactive")


class ConsolidationNotNeededError(LotError):
    """Bucket holds fewer than two active lots."""

    code: str = "CONSOLIDATION_NOT_NEEDED"

    def __init__(self, bucket: str, active_lots: int):
        self.bucket = bucket
        self.active_lots = active_lots
        super().__init__(
            f"No consolidation needed for bucket {bucket}: "
            f"{active_lots} active lot(s)"
        )


# Concurrency-related exceptions


class ConcurrencyError(OwnershipKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class ConcurrencyConflictError(ConcurrencyError):
    """A lot was modified by another transaction since it was read."""

    code: str = "CONCURRENCY_CONFLICT"

    def __init__(self, bucket: str, detail: str = ""):
        self.bucket = bucket
        self.detail = detail
        super().__init__(
            f"Concurrent modification detected for bucket {bucket}"
            + (f": {detail}" if detail else "")
        )


# Faults


class IntegrityFaultError(OwnershipKernelError):
    """Base exception for internal faults. Never auto-corrected."""

    code: str = "INTEGRITY_FAULT"


class CalculationInconsistencyError(IntegrityFaultError):
    """An ownership invariant failed reconciliation after an operation."""

    code: str = "CALCULATION_INCONSISTENCY"

    def __init__(self, invariant: str, detail: str, lot_id: UUID | None = None):
        self.invariant = invariant
        self.detail = detail
        self.lot_id = lot_id
        super().__init__(
            f"Invariant {invariant} violated"
            + (f" on lot {lot_id}" if lot_id is not None else "")
            + f": {detail}"
        )
