"""Payment management schemas for RentFlow."""

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from ..tenant_management.models import PaymentStatus
from .models import (
    NotificationSeverity,
    NotificationType,
    PaymentChannel,
    PaymentType,
)

# ----- Payment Sources -----


class SimulatedPayment(BaseModel):
    """Payment entered by hand or generated by the payment simulator.

    A receipt number is generated when none is given.
    """

    channel: Literal["simulated"] = "simulated"
    receipt_number: str | None = Field(None, min_length=1, max_length=50)
    phone_number: str | None = Field(None, max_length=30)
    paid_at: datetime | None = None


class GatewayCallbackPayment(BaseModel):
    """Payment confirmed by an M-Pesa STK push callback."""

    channel: Literal["gateway_callback"] = "gateway_callback"
    receipt_number: str = Field(..., min_length=1, max_length=50)
    phone_number: str | None = Field(None, max_length=30)
    checkout_request_id: str = Field(..., min_length=1, max_length=100)
    merchant_request_id: str | None = Field(None, max_length=100)
    paid_at: datetime | None = None


PaymentSource = Annotated[
    Union[SimulatedPayment, GatewayCallbackPayment], Field(discriminator="channel")
]


class CallbackPayment(BaseModel):
    """Amount and source extracted from a successful gateway callback."""

    amount: Decimal
    source: GatewayCallbackPayment


# ----- Reconciliation -----


class PaymentAnalysis(BaseModel):
    """Classification of one payment against a tenant's running balance."""

    model_config = ConfigDict(frozen=True)

    paid_amount: Decimal
    expected_rent: Decimal
    current_balance: Decimal
    payment_type: PaymentType
    overpayment: Decimal
    shortfall: Decimal
    carry_forward: Decimal
    new_balance: Decimal
    status: PaymentStatus


class PaymentResponse(BaseModel):
    """Schema for payment response."""

    id: int
    tenant_id: int
    property_id: int
    owner_id: int
    billing_reference: str
    amount: Decimal
    expected_amount: Decimal
    previous_balance: Decimal
    resulting_balance: Decimal
    payment_type: PaymentType
    overpayment_amount: Decimal
    shortfall_amount: Decimal
    carry_forward: Decimal
    billing_month: str
    channel: PaymentChannel
    receipt_number: str
    phone_number: str | None = None
    checkout_request_id: str | None = None
    paid_at: datetime
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class PaymentOutcome(BaseModel):
    """Result of processing one payment."""

    payment_id: int
    tenant_id: int
    tenant_name: str
    receipt_number: str
    analysis: PaymentAnalysis
    message: str
    notification_sent: bool


# ----- Billing -----


class SweepFailure(BaseModel):
    tenant_id: int
    error: str


class SweepResult(BaseModel):
    """Outcome of one monthly billing sweep."""

    billing_month: str
    billed: list[int] = []
    skipped: list[int] = []
    failed: list[SweepFailure] = []


class TenantBalance(BaseModel):
    """Balance of a tenant expressed against their rent."""

    tenant_id: int
    tenant_name: str
    current_balance: Decimal
    monthly_rent: Decimal
    status: Literal["credit", "debt"]
    balance_in_months: Decimal
    next_payment_due: Decimal


class PaymentReminder(BaseModel):
    """Reminder to collect rent from one tenant."""

    tenant_id: int
    tenant_name: str
    amount_due: Decimal
    reminder_type: Literal["overdue", "upcoming"]
    priority: NotificationSeverity


class BalanceAudit(BaseModel):
    """Cached balance compared with the balance folded from ledger events."""

    tenant_id: int
    cached_balance: Decimal
    ledger_balance: Decimal
    total_paid: Decimal
    total_billed: Decimal
    payment_count: int
    charge_count: int
    is_consistent: bool


# ----- Notifications -----


class NotificationResponse(BaseModel):
    """Schema for notification response."""

    id: int
    owner_id: int
    tenant_id: int | None = None
    notification_type: NotificationType
    title: str
    severity: NotificationSeverity
    message: str
    is_read: bool
    created_at: datetime | None = None

    class Config:
        from_attributes = True


# ----- M-Pesa STK Callback -----


class StkCallbackItem(BaseModel):
    name: str = Field(..., alias="Name")
    value: str | int | float | None = Field(None, alias="Value")


class StkCallbackMetadata(BaseModel):
    items: list[StkCallbackItem] = Field(default_factory=list, alias="Item")


class StkCallback(BaseModel):
    merchant_request_id: str | None = Field(None, alias="MerchantRequestID")
    checkout_request_id: str = Field(..., alias="CheckoutRequestID")
    result_code: int = Field(..., alias="ResultCode")
    result_desc: str = Field("", alias="ResultDesc")
    callback_metadata: StkCallbackMetadata | None = Field(
        None, alias="CallbackMetadata"
    )


class StkCallbackBody(BaseModel):
    stk_callback: StkCallback = Field(..., alias="stkCallback")


class StkCallbackPayload(BaseModel):
    """Body M-Pesa posts to the STK push callback URL."""

    body: StkCallbackBody = Field(..., alias="Body")
