"""
ValidationGuard -- Pre-sale check of owned stock plus supplier payment warnings.

Responsibility:
    Tell the sales flow whether a requested quantity can be sold from the
    bucket's owned stock, and surface non-blocking warnings for every lot
    still owed to its supplier.

Architecture position:
    Kernel > Services -- read path.  Reads the bucket through
    UnitOfWork.lots without locking; the following deplete() call in the
    same unit of work takes the locks.

Invariants enforced:
    - Only insufficient owned quantity blocks a sale.  Payment status is a
      visibility signal and never blocks by itself.

Failure modes:
    - InvalidQuantityError: requested quantity <= 0.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from ownership_kernel.domain.lots import BucketKey, OwnershipLot
from ownership_kernel.domain.precision import ZERO
from ownership_kernel.exceptions import InvalidQuantityError
from ownership_kernel.logging_config import LogContext, get_logger
from ownership_kernel.services.unit_of_work import UnitOfWork

logger = get_logger("services.validation_guard")


@dataclass(frozen=True)
class SaleValidation:
    """Result of a pre-sale ownership check."""

    can_sell: bool
    message: str
    warnings: tuple[str, ...] = field(default_factory=tuple)
    owned_quantity: Decimal = ZERO
    total_quantity: Decimal = ZERO
    owned_weight: Decimal = ZERO
    total_weight: Decimal = ZERO
    ownership_percentage: Decimal = ZERO  # owned / total quantity, [0, 1]


def payment_warning(lot: OwnershipLot) -> str | None:
    """Warning text for a lot still owed to its supplier, else None."""
    if lot.outstanding_amount <= ZERO:
        return None
    source = lot.bucket.supplier_id or "system stock"
    if lot.amount_paid == ZERO:
        return (
            f"WARNING: Lot {lot.source_reference} from {source} is fully unpaid "
            f"(Outstanding: {lot.outstanding_amount})"
        )
    return (
        f"WARNING: Lot {lot.source_reference} from {source} is partially paid "
        f"(Outstanding: {lot.outstanding_amount}, Paid: {lot.amount_paid})"
    )


class ValidationGuard:
    """
    Pre-sale validation.

    Contract:
        Stateless, read-only; receives the caller's UnitOfWork.
    Guarantees:
        - can_sell is False iff sum(owned_quantity) < requested_quantity
          over the bucket's active lots.
        - One warning per active lot with outstanding balance, oldest first.
    """

    def validate_sale(
        self,
        uow: UnitOfWork,
        bucket: BucketKey,
        requested_quantity: Decimal,
    ) -> SaleValidation:
        with LogContext.bind(bucket=str(bucket), operation="validate_sale"):
            if requested_quantity <= ZERO:
                logger.warning("sale_validation_rejected", extra={
                    "requested_quantity": str(requested_quantity),
                })
                raise InvalidQuantityError("requested_quantity", requested_quantity)

            lots = uow.lots.get_lots(bucket)
            owned_quantity = sum((l.owned_quantity for l in lots), ZERO)
            total_quantity = sum((l.total_quantity for l in lots), ZERO)
            owned_weight = sum((l.owned_weight for l in lots), ZERO)
            total_weight = sum((l.total_weight for l in lots), ZERO)
            pct = (
                uow.precision.fraction(owned_quantity / total_quantity)
                if total_quantity > ZERO
                else ZERO
            )
            totals = dict(
                owned_quantity=owned_quantity,
                total_quantity=total_quantity,
                owned_weight=owned_weight,
                total_weight=total_weight,
                ownership_percentage=pct,
            )

            if not lots:
                logger.info("sale_validation_completed", extra={
                    "can_sell": False,
                    "reason": "no_active_lots",
                })
                return SaleValidation(
                    can_sell=False,
                    message="No active ownership records found for this bucket",
                    **totals,
                )

            if owned_quantity < requested_quantity:
                logger.info("sale_validation_completed", extra={
                    "can_sell": False,
                    "reason": "insufficient_ownership",
                    "owned_quantity": str(owned_quantity),
                    "requested_quantity": str(requested_quantity),
                })
                return SaleValidation(
                    can_sell=False,
                    message=(
                        f"Insufficient owned quantity. Available: {owned_quantity}, "
                        f"Requested: {requested_quantity}, "
                        f"Shortfall: {requested_quantity - owned_quantity}"
                    ),
                    **totals,
                )

            warnings = tuple(w for w in (payment_warning(l) for l in lots) if w)
            logger.info("sale_validation_completed", extra={
                "can_sell": True,
                "warnings": len(warnings),
                "owned_quantity": str(owned_quantity),
                "requested_quantity": str(requested_quantity),
            })
            return SaleValidation(
                can_sell=True,
                message=(
                    "Sale allowed with payment warnings"
                    if warnings
                    else "Sale validated successfully"
                ),
                warnings=warnings,
                **totals,
            )
