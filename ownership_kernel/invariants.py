"""
Ownership Invariants Contract.

These invariants are structural law for every lot.  No configuration
section may relax them.

This module exists solely to declare the invariants explicitly.  The checks
live in ownership_kernel.domain.reconciliation and are run by every
allocator after it mutates a bucket in memory and before it flushes.
"""

from enum import Enum, unique


@unique
class OwnershipInvariant(str, Enum):
    """Non-configurable invariants enforced by the kernel."""

    PERCENTAGE_BOUNDS = "percentage_bounds"
    """0 <= ownership_percentage <= 1 for every lot."""

    NO_LOT_OVERPAYMENT = "no_lot_overpayment"
    """amount_paid <= total_cost and outstanding_amount = total_cost -
    amount_paid for every lot."""

    OWNED_STOCK_BOUNDS = "owned_stock_bounds"
    """0 <= owned_quantity <= total_quantity and 0 <= owned_weight <=
    total_weight for every lot."""

    BUCKET_CONSERVATION = "bucket_conservation"
    """Per bucket, the owned quantity of active lots never exceeds their
    total quantity."""

    PAYMENT_PRESERVES_TOTALS = "payment_preserves_totals"
    """A payment allocation never changes total_quantity, total_weight or
    total_cost."""

    DEPLETION_PRESERVES_PAYMENT = "depletion_preserves_payment"
    """A depletion never changes amount_paid, outstanding_amount or
    ownership_percentage."""

    SPLIT_CONSERVATION = "split_conservation"
    """The per-lot shares of a payment sum to the payment exactly."""


# All invariants as a frozenset for programmatic checks.
ALL_OWNERSHIP_INVARIANTS: frozenset[OwnershipInvariant] = frozenset(OwnershipInvariant)

# The kernel package may not import from these packages.
# This is enforced by tests/architecture/test_kernel_boundary.py.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = (
    "ownership_services",
    "ownership_config",
)
