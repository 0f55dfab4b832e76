"""
Custom exception classes for consistent error handling across all modules.

Three kinds reach callers: validation failures (nothing was touched),
missing resources, and conflicts with the current state of the data.
"""

from typing import Any


class RentFlowException(Exception):
    """Base exception for all RentFlow related errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


# ----- Validation -----


class ValidationError(RentFlowException):
    """Raised when data validation fails."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        value: Any = None,
        details: dict[str, Any] | None = None,
    ):
        if field:
            full_message = f"Validation error for field '{field}': {message}"
        else:
            full_message = message
        super().__init__(full_message, details)
        self.field = field
        self.value = value


# ----- Not found -----


class ResourceNotFoundError(RentFlowException):
    """Raised when a requested resource is not found."""

    def __init__(
        self,
        resource_type: str,
        identifier: Any,
        details: dict[str, Any] | None = None,
    ):
        message = f"{resource_type} with identifier '{identifier}' not found"
        super().__init__(message, details)
        self.resource_type = resource_type
        self.identifier = identifier


class PropertyNotFoundError(ResourceNotFoundError):
    def __init__(self, property_id: Any, details: dict[str, Any] | None = None):
        super().__init__("Property", property_id, details)


class UnitNotFoundError(ResourceNotFoundError):
    def __init__(self, unit_number: Any, details: dict[str, Any] | None = None):
        super().__init__("Unit", unit_number, details)


class TenantNotFoundError(ResourceNotFoundError):
    def __init__(self, tenant_id: Any, details: dict[str, Any] | None = None):
        super().__init__("Tenant", tenant_id, details)


# ----- Conflicts -----


class ConflictError(RentFlowException):
    """Raised when an operation conflicts with the current state of the data."""

    pass


class UnitNotAvailableError(ConflictError):
    """Raised when a specific unit is occupied or does not exist."""

    def __init__(self, unit_number: str, details: dict[str, Any] | None = None):
        super().__init__(f"Unit {unit_number} is not available", details)
        self.unit_number = unit_number


class NoAvailableUnitsError(ConflictError):
    """Raised when no unit of the requested type is free."""

    def __init__(self, unit_type: str, details: dict[str, Any] | None = None):
        super().__init__(f"No available {unit_type} units in this property", details)
        self.unit_type = unit_type


class OverlappingUnitRangesError(ConflictError):
    """Raised when two unit-type declarations generate the same unit numbers."""

    pass


class DuplicateBillingReferenceError(ConflictError):
    """Raised when generated billing references already exist elsewhere."""

    def __init__(self, references: list[str], details: dict[str, Any] | None = None):
        shown = ", ".join(references[:5])
        super().__init__(f"Billing references already in use: {shown}", details)
        self.references = references


class PropertyHasOccupiedUnitsError(ConflictError):
    """Raised when deleting a property that still has tenants."""

    pass


class OccupiedUnitRemovalError(ConflictError):
    """Raised when a unit-type change would drop an occupied unit."""

    pass


class DuplicatePaymentError(ConflictError):
    """Raised when a payment receipt has already been reconciled."""

    def __init__(self, receipt_number: str, details: dict[str, Any] | None = None):
        super().__init__(
            f"Payment with receipt '{receipt_number}' was already processed", details
        )
        self.receipt_number = receipt_number


class ConcurrencyConflictError(ConflictError):
    """Raised when a concurrent writer changed the entity first."""

    pass


# ----- Business rules -----


class BusinessLogicError(RentFlowException):
    """Raised when business logic constraints are violated."""

    pass


class TenantMovedOutError(BusinessLogicError):
    """Raised when a ledger operation targets a moved-out tenant."""

    def __init__(self, tenant_id: Any, details: dict[str, Any] | None = None):
        super().__init__(f"Tenant {tenant_id} has moved out", details)
        self.tenant_id = tenant_id


class PaymentRejectedError(BusinessLogicError):
    """Raised when the payment gateway reports an unsuccessful transaction."""

    def __init__(
        self,
        reason: str,
        result_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(f"Payment rejected by gateway: {reason}", details)
        self.reason = reason
        self.result_code = result_code


class ImmutableRecordError(BusinessLogicError):
    """Raised when code attempts to change an append-only record."""

    pass
