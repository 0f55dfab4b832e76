"""Tenant management schemas for RentFlow."""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from ..property_management.schemas import AllocationResult
from .models import PaymentStatus

# ----- Tenant Schemas -----


class TenantBase(BaseModel):
    """Identity and contact details of a tenant."""

    name: str = Field(..., min_length=1, max_length=255)
    email: str | None = Field(None, max_length=255)
    phone: str | None = Field(None, max_length=30)
    id_number: str | None = Field(None, max_length=50)
    occupation: str | None = Field(None, max_length=120)
    emergency_contact: str | None = Field(None, max_length=255)
    emergency_phone: str | None = Field(None, max_length=30)

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


class TenantCreate(TenantBase):
    """Schema for onboarding a tenant onto a unit of a property."""

    property_id: int
    unit_type: str = Field(..., min_length=1, max_length=50)
    preferred_unit_number: str | None = Field(None, max_length=50)
    move_in_date: date | None = None


class TenantUpdate(BaseModel):
    """Schema for updating a tenant.

    Only contact details can be edited here; the unit binding changes through
    transfer and move-out, the ledger through payments and billing.
    Unknown fields (rent_amount, billing_reference...) are ignored.
    """

    name: str | None = Field(None, min_length=1, max_length=255)
    email: str | None = Field(None, max_length=255)
    phone: str | None = Field(None, max_length=30)
    id_number: str | None = Field(None, max_length=50)
    occupation: str | None = Field(None, max_length=120)
    emergency_contact: str | None = Field(None, max_length=255)
    emergency_phone: str | None = Field(None, max_length=30)
    move_in_date: date | None = None


class PaymentHistoryEntry(BaseModel):
    """One entry of the bounded payment history kept on the tenant."""

    date: datetime
    amount: Decimal
    type: str
    balance: Decimal
    month: str


class TenantResponse(TenantBase):
    """Schema for tenant response."""

    id: int
    owner_id: int
    property_id: int
    unit_number: str
    unit_type: str
    rent_amount: Decimal
    billing_reference: str
    move_in_date: date | None = None
    move_out_date: date | None = None
    transfer_date: datetime | None = None
    is_active: bool
    payment_status: PaymentStatus
    account_balance: Decimal
    last_payment_date: datetime | None = None
    last_payment_amount: Decimal | None = None
    payment_history: list[PaymentHistoryEntry] = []
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class TransferResult(BaseModel):
    """Where a tenant came from and the unit they hold now."""

    tenant_id: int
    from_property_id: int
    from_unit_number: str
    allocation: AllocationResult
    transferred_at: datetime


# ----- Reporting Schemas -----


class TenantPaymentSummary(BaseModel):
    """Ledger view of one tenant."""

    tenant_id: int
    tenant_name: str
    unit_number: str
    unit_type: str
    monthly_rent: Decimal
    current_balance: Decimal
    payment_status: PaymentStatus
    billing_reference: str
    last_payment_date: datetime | None = None
    is_active: bool
    amount_due: Decimal
    credit_balance: Decimal
    debt_balance: Decimal


class PaymentStatusCounts(BaseModel):
    """Active tenants per payment status."""

    paid: int = 0
    pending: int = 0
    partial: int = 0
    overdue: int = 0


class TenantStatistics(BaseModel):
    """Portfolio-wide tenant counts of a landlord."""

    total: int
    active: int
    moved_out: int
    payment_status: PaymentStatusCounts
    unit_types: dict[str, int]
    total_monthly_rent: Decimal
