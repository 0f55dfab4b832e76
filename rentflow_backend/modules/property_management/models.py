"""Property management models for RentFlow.

- Properties carry their unit-type declarations and cached occupancy aggregates
- Units are rows of their own, addressed by (property_id, unit_number)
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from ...database import Base, OwnerScoped, TimestampMixin


class Property(OwnerScoped, TimestampMixin, Base):
    """Rental property owned by a landlord.

    The aggregate columns are a cache over the property's units; they are
    only ever changed together with the unit rows they summarise.
    """

    __tablename__ = "properties"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    property_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    image: Mapped[str | None] = mapped_column(String(500), nullable=True)
    paybill: Mapped[str] = mapped_column(String(20), nullable=False)
    account_prefix: Mapped[str] = mapped_column(String(50), nullable=False)
    unit_types: Mapped[list[dict]] = mapped_column(JSON, nullable=False, default=list)

    total_units: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    occupied_units: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    available_units: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    monthly_revenue: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), default=Decimal("0.00"), nullable=False
    )

    __table_args__ = (
        CheckConstraint(
            "occupied_units + available_units = total_units",
            name="ck_properties_occupancy_totals",
        ),
        Index("ix_properties_owner_name", "owner_id", "name"),
    )

    def __repr__(self) -> str:
        return (
            f"<Property(id={self.id}, name={self.name}, "
            f"prefix={self.account_prefix})>"
        )


class Unit(TimestampMixin, Base):
    """Single rentable unit of a property."""

    __tablename__ = "units"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    property_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("properties.id", ondelete="CASCADE"), nullable=False
    )
    unit_number: Mapped[str] = mapped_column(String(50), nullable=False)
    unit_type: Mapped[str] = mapped_column(String(50), nullable=False)
    rent_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    billing_reference: Mapped[str] = mapped_column(String(120), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_occupied: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    # No FK: tenants reference units by (property_id, unit_number) as well
    tenant_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    occupied_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    vacated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        CheckConstraint(
            "(is_occupied AND tenant_id IS NOT NULL) "
            "OR (NOT is_occupied AND tenant_id IS NULL)",
            name="ck_units_occupancy_binding",
        ),
        CheckConstraint("rent_amount >= 0", name="ck_units_rent_non_negative"),
        Index("ix_units_number", "property_id", "unit_number", unique=True),
        Index("ix_units_billing_reference", "billing_reference", unique=True),
        Index("ix_units_vacancy", "property_id", "unit_type", "is_occupied"),
        Index("ix_units_tenant", "tenant_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<Unit(property_id={self.property_id}, number={self.unit_number}, "
            f"occupied={self.is_occupied})>"
        )
