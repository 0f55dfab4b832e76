"""Core infrastructure for the RentFlow backend."""

from .exceptions import (
    BusinessLogicError,
    ConcurrencyConflictError,
    ConflictError,
    DuplicateBillingReferenceError,
    DuplicatePaymentError,
    ImmutableRecordError,
    NoAvailableUnitsError,
    OccupiedUnitRemovalError,
    OverlappingUnitRangesError,
    PaymentRejectedError,
    PropertyHasOccupiedUnitsError,
    PropertyNotFoundError,
    RentFlowException,
    ResourceNotFoundError,
    TenantMovedOutError,
    TenantNotFoundError,
    UnitNotAvailableError,
    UnitNotFoundError,
    ValidationError,
)
from .locks import EntityLocks, entity_locks

__all__ = [
    "RentFlowException",
    "ValidationError",
    "ResourceNotFoundError",
    "PropertyNotFoundError",
    "UnitNotFoundError",
    "TenantNotFoundError",
    "ConflictError",
    "UnitNotAvailableError",
    "NoAvailableUnitsError",
    "OverlappingUnitRangesError",
    "DuplicateBillingReferenceError",
    "PropertyHasOccupiedUnitsError",
    "OccupiedUnitRemovalError",
    "DuplicatePaymentError",
    "ConcurrencyConflictError",
    "BusinessLogicError",
    "TenantMovedOutError",
    "PaymentRejectedError",
    "ImmutableRecordError",
    "EntityLocks",
    "entity_locks",
]
