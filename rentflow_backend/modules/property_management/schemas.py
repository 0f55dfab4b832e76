"""Property management schemas for RentFlow."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator, model_validator

from .unit_ranges import (
    BILLING_REFERENCE_SEPARATOR,
    extract_unit_number,
    extract_unit_prefix,
)

# ----- Unit Type Declarations -----


class UnitTypeDeclaration(BaseModel):
    """A range of identical units, e.g. bedsitters A1 to A10 at KES 8,000."""

    type: str = Field(..., min_length=1, max_length=50)
    start_unit: str = Field(..., min_length=1, max_length=20)
    end_unit: str = Field(..., min_length=1, max_length=20)
    rent_amount: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    description: str | None = None

    @field_validator("type", "start_unit", "end_unit")
    @classmethod
    def strip_labels(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @model_validator(mode="after")
    def check_range(self) -> "UnitTypeDeclaration":
        start_prefix = extract_unit_prefix(self.start_unit)
        end_prefix = extract_unit_prefix(self.end_unit)
        if end_prefix and end_prefix != start_prefix:
            raise ValueError(
                f"start_unit '{self.start_unit}' and end_unit '{self.end_unit}' "
                "use different prefixes"
            )
        if extract_unit_number(self.end_unit) < extract_unit_number(self.start_unit):
            raise ValueError(
                f"end_unit '{self.end_unit}' comes before start_unit '{self.start_unit}'"
            )
        return self


# ----- Property Schemas -----


class PropertyBase(BaseModel):
    """Base property schema."""

    name: str = Field(..., min_length=1, max_length=255)
    location: str | None = Field(None, max_length=255)
    property_type: str | None = Field(None, max_length=50)
    description: str | None = None
    image: str | None = Field(None, max_length=500)


class PropertyCreate(PropertyBase):
    """Schema for creating a property with its unit layout."""

    paybill: str = Field(..., min_length=1, max_length=20)
    account_prefix: str = Field(..., min_length=1, max_length=50)
    unit_types: list[UnitTypeDeclaration] = Field(..., min_length=1)

    @field_validator("account_prefix")
    @classmethod
    def check_prefix(cls, value: str) -> str:
        value = value.strip()
        if BILLING_REFERENCE_SEPARATOR in value:
            raise ValueError(
                f"account_prefix must not contain '{BILLING_REFERENCE_SEPARATOR}'"
            )
        return value


class PropertyUpdate(BaseModel):
    """Schema for updating a property.

    Sending unit_types regenerates the inventory; occupied units survive as
    long as their unit number is still declared.
    """

    name: str | None = Field(None, min_length=1, max_length=255)
    location: str | None = Field(None, max_length=255)
    property_type: str | None = Field(None, max_length=50)
    description: str | None = None
    image: str | None = Field(None, max_length=500)
    paybill: str | None = Field(None, min_length=1, max_length=20)
    account_prefix: str | None = Field(None, min_length=1, max_length=50)
    unit_types: list[UnitTypeDeclaration] | None = Field(None, min_length=1)

    @field_validator("account_prefix")
    @classmethod
    def check_prefix(cls, value: str | None) -> str | None:
        if value is None:
            return value
        value = value.strip()
        if BILLING_REFERENCE_SEPARATOR in value:
            raise ValueError(
                f"account_prefix must not contain '{BILLING_REFERENCE_SEPARATOR}'"
            )
        return value


class PropertyResponse(PropertyBase):
    """Schema for property response."""

    id: int
    owner_id: int
    paybill: str
    account_prefix: str
    unit_types: list[UnitTypeDeclaration]
    total_units: int
    occupied_units: int
    available_units: int
    monthly_revenue: Decimal
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


# ----- Unit Schemas -----


class UnitResponse(BaseModel):
    """Schema for unit response."""

    id: int
    property_id: int
    unit_number: str
    unit_type: str
    rent_amount: Decimal
    billing_reference: str
    description: str | None = None
    is_occupied: bool
    tenant_id: int | None = None
    occupied_at: datetime | None = None
    vacated_at: datetime | None = None

    class Config:
        from_attributes = True


class UnitLookupResponse(UnitResponse):
    """Unit found by billing reference, with its property's name."""

    property_name: str


class UnitTypeSummary(BaseModel):
    """Availability of one declared unit type."""

    type: str
    rent_amount: Decimal
    available_count: int
    total_count: int


# ----- Allocation Schemas -----


class OccupancySnapshot(BaseModel):
    """Occupancy aggregates derived from a unit inventory."""

    total_units: int
    occupied_units: int
    available_units: int
    monthly_revenue: Decimal


class AllocationResult(BaseModel):
    """What a tenant record copies from the unit it was given."""

    property_id: int
    unit_number: str
    unit_type: str
    rent_amount: Decimal
    billing_reference: str
