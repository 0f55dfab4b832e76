"""Tenant management module for RentFlow.

Tenant onboarding, transfer and move-out against the unit inventory.
"""

from .models import PaymentStatus, Tenant
from .schemas import (
    TenantCreate,
    TenantPaymentSummary,
    TenantResponse,
    TenantStatistics,
    TenantUpdate,
    TransferResult,
)

__all__ = [
    # Models
    "PaymentStatus",
    "Tenant",
    # Schemas
    "TenantCreate",
    "TenantPaymentSummary",
    "TenantResponse",
    "TenantStatistics",
    "TenantUpdate",
    "TransferResult",
]
