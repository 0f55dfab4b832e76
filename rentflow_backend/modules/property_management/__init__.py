"""Property management module for RentFlow.

Properties, their unit inventory and unit allocation.
"""

from .models import Property, Unit
from .schemas import (
    AllocationResult,
    OccupancySnapshot,
    PropertyCreate,
    PropertyUpdate,
    UnitTypeDeclaration,
)

__all__ = [
    # Models
    "Property",
    "Unit",
    # Schemas
    "AllocationResult",
    "OccupancySnapshot",
    "PropertyCreate",
    "PropertyUpdate",
    "UnitTypeDeclaration",
]
