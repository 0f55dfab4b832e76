"""Payment management models for RentFlow.

Payments and billing charges are append-only ledger events; together they are
the source of truth the tenant's cached balance is derived from. Neither is
ever updated or deleted once flushed.
"""

import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from ...core.exceptions import ImmutableRecordError
from ...database import Base, OwnerScoped


def _values(enum_cls):
    return [member.value for member in enum_cls]


class PaymentType(str, enum.Enum):
    """Classification of a payment against the running balance."""

    OVERPAYMENT = "overpayment"
    UNDERPAYMENT = "underpayment"
    EXACT = "exact"


class PaymentChannel(str, enum.Enum):
    """Where a payment came from."""

    SIMULATED = "simulated"
    GATEWAY_CALLBACK = "gateway_callback"


class NotificationType(str, enum.Enum):
    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"
    REMINDER = "reminder"


class NotificationSeverity(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Payment(OwnerScoped, Base):
    """One reconciled payment."""

    __tablename__ = "payments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # No foreign keys: payment records outlive deleted tenants and properties
    tenant_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    property_id: Mapped[int] = mapped_column(Integer, nullable=False)
    billing_reference: Mapped[str] = mapped_column(String(120), nullable=False)

    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    expected_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    previous_balance: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    resulting_balance: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    payment_type: Mapped[PaymentType] = mapped_column(
        Enum(PaymentType, values_callable=_values), nullable=False
    )
    overpayment_amount: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0.00")
    )
    shortfall_amount: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0.00")
    )
    carry_forward: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0.00")
    )
    billing_month: Mapped[str] = mapped_column(String(7), nullable=False)

    # Source
    channel: Mapped[PaymentChannel] = mapped_column(
        Enum(PaymentChannel, values_callable=_values), nullable=False
    )
    receipt_number: Mapped[str] = mapped_column(String(50), nullable=False)
    phone_number: Mapped[str | None] = mapped_column(String(30), nullable=True)
    checkout_request_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    paid_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("receipt_number", name="uq_payments_receipt_number"),
        Index("ix_payments_owner_month", "owner_id", "billing_month"),
    )

    def __repr__(self) -> str:
        return (
            f"<Payment(id={self.id}, tenant_id={self.tenant_id}, "
            f"amount={self.amount}, type={self.payment_type})>"
        )


class BillingCharge(OwnerScoped, Base):
    """Monthly rent debit posted by the billing sweep."""

    __tablename__ = "billing_charges"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[int] = mapped_column(Integer, nullable=False)
    property_id: Mapped[int] = mapped_column(Integer, nullable=False)
    billing_month: Mapped[str] = mapped_column(String(7), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    resulting_balance: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    billed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "billing_month", name="uq_billing_charges_tenant_month"
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<BillingCharge(tenant_id={self.tenant_id}, "
            f"month={self.billing_month}, amount={self.amount})>"
        )


class Notification(OwnerScoped, Base):
    """Landlord-facing notification."""

    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    notification_type: Mapped[NotificationType] = mapped_column(
        Enum(NotificationType, values_callable=_values), nullable=False
    )
    title: Mapped[str] = mapped_column(String(120), nullable=False)
    severity: Mapped[NotificationSeverity] = mapped_column(
        Enum(NotificationSeverity, values_callable=_values), nullable=False
    )
    message: Mapped[str] = mapped_column(Text, nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (Index("ix_notifications_owner_read", "owner_id", "is_read"),)

    def __repr__(self) -> str:
        return (
            f"<Notification(id={self.id}, type={self.notification_type}, "
            f"title={self.title})>"
        )


# ----- Append-only guards -----


def _reject_change(mapper, connection, target):
    raise ImmutableRecordError(
        f"{type(target).__name__} records are append-only",
        details={"id": target.id},
    )


for _ledger_model in (Payment, BillingCharge):
    event.listen(_ledger_model, "before_update", _reject_change)
    event.listen(_ledger_model, "before_delete", _reject_change)
