"""ORM models for the ownership kernel."""

from ownership_kernel.models.ownership_lot import OwnershipLotModel
from ownership_kernel.models.ownership_movement import OwnershipMovementModel
from ownership_kernel.models.sequence_counter import SequenceCounter

__all__ = [
    "OwnershipLotModel",
    "OwnershipMovementModel",
    "SequenceCounter",
]
