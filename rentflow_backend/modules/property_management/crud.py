"""CRUD operations for property management module."""

from collections.abc import Iterable
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import and_, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ...core.exceptions import OccupiedUnitRemovalError
from .models import Property, Unit
from .schemas import OccupancySnapshot

# ----- Property CRUD -----


async def get_property_by_id(db: AsyncSession, property_id: int) -> Property | None:
    """Get a property by ID."""
    result = await db.execute(
        select(Property)
        .where(Property.id == property_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_properties_by_owner(db: AsyncSession, owner_id: int) -> list[Property]:
    """Get all properties of a landlord, newest first."""
    result = await db.execute(
        select(Property)
        .where(Property.owner_id == owner_id)
        .order_by(Property.created_at.desc(), Property.id.desc())
    )
    return list(result.scalars().all())


async def create_property(db: AsyncSession, **kwargs: Any) -> Property:
    """Create a new property."""
    property_obj = Property(**kwargs)
    db.add(property_obj)
    await db.flush()
    return property_obj


async def update_property(
    db: AsyncSession, property_obj: Property, **kwargs: Any
) -> Property:
    """Update a property's columns."""
    for key, value in kwargs.items():
        if hasattr(property_obj, key):
            setattr(property_obj, key, value)
    await db.flush()
    return property_obj


async def delete_property(db: AsyncSession, property_obj: Property) -> None:
    """Hard-delete a property and its units."""
    for unit in await get_units_for_property(db, property_obj.id):
        await db.delete(unit)
    await db.delete(property_obj)
    await db.flush()


async def set_occupancy(
    db: AsyncSession, property_id: int, snapshot: OccupancySnapshot
) -> None:
    """Overwrite a property's aggregates with a freshly computed snapshot."""
    await db.execute(
        update(Property)
        .where(Property.id == property_id)
        .values(
            total_units=snapshot.total_units,
            occupied_units=snapshot.occupied_units,
            available_units=snapshot.available_units,
            monthly_revenue=snapshot.monthly_revenue,
        )
        .execution_options(synchronize_session=False)
    )


async def adjust_occupancy(
    db: AsyncSession, property_id: int, occupied_delta: int, revenue_delta: Decimal
) -> None:
    """Shift a property's aggregates in place with one atomic UPDATE."""
    await db.execute(
        update(Property)
        .where(Property.id == property_id)
        .values(
            occupied_units=Property.occupied_units + occupied_delta,
            available_units=Property.available_units - occupied_delta,
            monthly_revenue=Property.monthly_revenue + revenue_delta,
        )
        .execution_options(synchronize_session=False)
    )


# ----- Unit CRUD -----


async def get_units_for_property(
    db: AsyncSession,
    property_id: int,
    unit_type: str | None = None,
    is_occupied: bool | None = None,
) -> list[Unit]:
    """Get a property's units in generation order."""
    filters = [Unit.property_id == property_id]
    if unit_type is not None:
        filters.append(Unit.unit_type == unit_type)
    if is_occupied is not None:
        filters.append(Unit.is_occupied == is_occupied)
    result = await db.execute(
        select(Unit)
        .where(and_(*filters))
        .order_by(Unit.sort_order, Unit.id)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def get_unit(
    db: AsyncSession, property_id: int, unit_number: str
) -> Unit | None:
    """Get a unit by its number within a property."""
    result = await db.execute(
        select(Unit).where(
            and_(Unit.property_id == property_id, Unit.unit_number == unit_number)
        ).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_unit_by_billing_reference(
    db: AsyncSession, billing_reference: str
) -> Unit | None:
    """Get a unit by its system-wide billing reference."""
    result = await db.execute(
        select(Unit).where(Unit.billing_reference == billing_reference)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_taken_billing_references(
    db: AsyncSession,
    references: Iterable[str],
    exclude_property_id: int | None = None,
) -> list[str]:
    """Which of the given billing references already belong to some unit."""
    references = list(references)
    if not references:
        return []
    query = select(Unit.billing_reference).where(
        Unit.billing_reference.in_(references)
    )
    if exclude_property_id is not None:
        query = query.where(Unit.property_id != exclude_property_id)
    result = await db.execute(query)
    return sorted(result.scalars().all())


async def create_units(
    db: AsyncSession, property_id: int, units: Iterable[dict[str, Any]]
) -> list[Unit]:
    """Insert generated unit rows for a property."""
    objs = [Unit(property_id=property_id, **data) for data in units]
    db.add_all(objs)
    await db.flush()
    return objs


async def delete_units(db: AsyncSession, units: Iterable[Unit]) -> None:
    """Delete free units; occupied units are never passed here."""
    for unit in units:
        if unit.is_occupied:
            raise OccupiedUnitRemovalError(
                f"Refusing to delete occupied unit {unit.unit_number}"
            )
        await db.delete(unit)
    await db.flush()


async def claim_unit(
    db: AsyncSession, unit_id: int, tenant_id: int, occupied_at: datetime
) -> bool:
    """Mark a unit occupied if, and only if, it is still free.

    Returns:
        True when this call took the unit, False when someone else holds it
    """
    result = await db.execute(
        update(Unit)
        .where(and_(Unit.id == unit_id, Unit.is_occupied == False))  # noqa: E712
        .values(is_occupied=True, tenant_id=tenant_id, occupied_at=occupied_at)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def vacate_unit(db: AsyncSession, unit_id: int, vacated_at: datetime) -> bool:
    """Mark a unit free if it is occupied.

    Returns:
        True when the unit was occupied and is now free
    """
    result = await db.execute(
        update(Unit)
        .where(and_(Unit.id == unit_id, Unit.is_occupied == True))  # noqa: E712
        .values(is_occupied=False, tenant_id=None, vacated_at=vacated_at)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def count_occupied_units(db: AsyncSession, property_id: int) -> int:
    """Count occupied units of a property."""
    result = await db.execute(
        select(func.count(Unit.id)).where(
            and_(Unit.property_id == property_id, Unit.is_occupied == True)  # noqa: E712
        )
    )
    return result.scalar() or 0
