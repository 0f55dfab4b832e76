"""Tenant management models for RentFlow.

A tenant is bound to exactly one unit while active and carries a running
ledger balance: positive is credit, negative is rent owed.
"""

import enum
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Enum,
    Index,
    Integer,
    Numeric,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from ...database import Base, OwnerScoped, TimestampMixin


class PaymentStatus(str, enum.Enum):
    """Tenant payment status values."""

    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"
    OVERDUE = "overdue"
    MOVED_OUT = "moved_out"


class Tenant(OwnerScoped, TimestampMixin, Base):
    """Tenant of a landlord, bound to a unit while active."""

    __tablename__ = "tenants"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(30), nullable=True)
    id_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    occupation: Mapped[str | None] = mapped_column(String(120), nullable=True)
    emergency_contact: Mapped[str | None] = mapped_column(String(255), nullable=True)
    emergency_phone: Mapped[str | None] = mapped_column(String(30), nullable=True)

    # Binding, copied from the allocated unit. No FK: moved-out tenants keep
    # pointing at properties that may since have been deleted
    property_id: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_number: Mapped[str] = mapped_column(String(50), nullable=False)
    unit_type: Mapped[str] = mapped_column(String(50), nullable=False)
    rent_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    billing_reference: Mapped[str] = mapped_column(String(120), nullable=False)

    move_in_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    move_out_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    transfer_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Ledger
    payment_status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=PaymentStatus.PENDING,
    )
    account_balance: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0.00")
    )
    last_payment_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_payment_amount: Mapped[Decimal | None] = mapped_column(
        Numeric(12, 2), nullable=True
    )
    payment_history: Mapped[list[dict]] = mapped_column(
        JSON, nullable=False, default=list
    )

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("ix_tenants_owner_property", "owner_id", "property_id"),
        Index("ix_tenants_billing_reference", "billing_reference", "is_active"),
        Index("ix_tenants_owner_active", "owner_id", "is_active"),
    )

    def __repr__(self) -> str:
        return (
            f"<Tenant(id={self.id}, name={self.name}, unit={self.unit_number}, "
            f"balance={self.account_balance})>"
        )
