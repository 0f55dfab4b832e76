"""Property management business logic services.

Inventory writes for one property are serialised through the property lock;
unit claims are additionally compare-and-set in the database, so a second
process racing for the same unit loses cleanly instead of double-booking it.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from ...core.exceptions import (
    ConcurrencyConflictError,
    DuplicateBillingReferenceError,
    OccupiedUnitRemovalError,
    PropertyHasOccupiedUnitsError,
    PropertyNotFoundError,
    UnitNotAvailableError,
    UnitNotFoundError,
)
from ...core.locks import PROPERTY, entity_locks
from ...core.logging import get_logger, operation_scope
from ...core.utils import to_money, utc_now
from ...database import unit_of_work
from . import crud
from .allocation import (
    available_units,
    compute_occupancy,
    occupancy_is_consistent,
    select_unit,
    summarize_unit_types,
)
from .models import Property, Unit
from .schemas import (
    AllocationResult,
    PropertyCreate,
    PropertyUpdate,
    UnitLookupResponse,
    UnitResponse,
    UnitTypeDeclaration,
    UnitTypeSummary,
)
from .unit_ranges import generate_units_from_types, validate_unit_types

logger = get_logger(__name__)

# Attempts at claiming a unit before giving up on a contended property
MAX_CLAIM_ATTEMPTS = 3


async def get_property(db: AsyncSession, property_id: int) -> Property:
    """Get a property or raise PropertyNotFoundError."""
    property_obj = await crud.get_property_by_id(db, property_id)
    if property_obj is None:
        raise PropertyNotFoundError(property_id)
    return property_obj


async def list_properties(db: AsyncSession, owner_id: int) -> list[Property]:
    return await crud.get_properties_by_owner(db, owner_id)


async def _ensure_references_free(
    db: AsyncSession, units: list[dict], exclude_property_id: int | None = None
) -> None:
    taken = await crud.get_taken_billing_references(
        db,
        [u["billing_reference"] for u in units],
        exclude_property_id=exclude_property_id,
    )
    if taken:
        raise DuplicateBillingReferenceError(taken)


async def create_property(
    db: AsyncSession, owner_id: int, data: PropertyCreate
) -> Property:
    """Create a property and its generated unit inventory.

    Args:
        db: Database session
        owner_id: Landlord the property belongs to
        data: Property creation data

    Returns:
        Created property with aggregates filled in

    Raises:
        ValidationError: If a unit range is malformed
        OverlappingUnitRangesError: If two unit types share unit numbers
        DuplicateBillingReferenceError: If a generated reference is in use
    """
    validate_unit_types(data.unit_types)
    units = generate_units_from_types(data.unit_types, data.account_prefix)

    async with unit_of_work(db):
        await _ensure_references_free(db, units)

        property_obj = await crud.create_property(
            db,
            owner_id=owner_id,
            name=data.name,
            location=data.location,
            property_type=data.property_type,
            description=data.description,
            image=data.image,
            paybill=data.paybill,
            account_prefix=data.account_prefix,
            unit_types=[d.model_dump(mode="json") for d in data.unit_types],
            total_units=len(units),
            occupied_units=0,
            available_units=len(units),
            monthly_revenue=to_money(0),
        )
        await crud.create_units(db, property_obj.id, units)

    logger.info(
        f"Created property {property_obj.id} with {len(units)} units",
        extra={"property_id": property_obj.id, "owner_id": owner_id},
    )
    return property_obj


async def _regenerate_units(
    db: AsyncSession,
    property_obj: Property,
    declarations: list[UnitTypeDeclaration],
    account_prefix: str,
) -> None:
    """Rebuild the free part of the inventory from new declarations.

    Occupied units keep their row (rent and billing reference included, the
    tenant record mirrors them) and only move to their new position.
    """
    validate_unit_types(declarations)
    generated = generate_units_from_types(declarations, account_prefix)
    generated_numbers = {u["unit_number"]: u for u in generated}

    existing = await crud.get_units_for_property(db, property_obj.id)
    occupied = {u.unit_number: u for u in existing if u.is_occupied}

    dropped = sorted(n for n in occupied if n not in generated_numbers)
    if dropped:
        raise OccupiedUnitRemovalError(
            f"Unit type change would remove occupied unit(s): {', '.join(dropped)}",
            details={"units": dropped},
        )

    fresh = [u for u in generated if u["unit_number"] not in occupied]
    await _ensure_references_free(db, fresh, exclude_property_id=property_obj.id)

    await crud.delete_units(db, [u for u in existing if not u.is_occupied])
    for unit in occupied.values():
        unit.sort_order = generated_numbers[unit.unit_number]["sort_order"]
    await crud.create_units(db, property_obj.id, fresh)

    units = await crud.get_units_for_property(db, property_obj.id)
    await crud.set_occupancy(db, property_obj.id, compute_occupancy(units))


async def update_property(
    db: AsyncSession, property_id: int, data: PropertyUpdate
) -> Property:
    """Update a property, regenerating units when the layout changes.

    Raises:
        PropertyNotFoundError: If property not found
        OccupiedUnitRemovalError: If an occupied unit would disappear
        DuplicateBillingReferenceError: If a new reference is in use elsewhere
    """
    async with entity_locks.hold((PROPERTY, property_id)):
        with operation_scope("update_property", logger, property_id=property_id):
            async with unit_of_work(db):
                property_obj = await get_property(db, property_id)
                changes = data.model_dump(exclude_unset=True, exclude={"unit_types"})

                layout_changed = data.unit_types is not None or (
                    data.account_prefix is not None
                    and data.account_prefix != property_obj.account_prefix
                )
                if layout_changed:
                    declarations = data.unit_types or [
                        UnitTypeDeclaration.model_validate(d)
                        for d in property_obj.unit_types
                    ]
                    await _regenerate_units(
                        db,
                        property_obj,
                        declarations,
                        data.account_prefix or property_obj.account_prefix,
                    )
                    changes["unit_types"] = [
                        d.model_dump(mode="json") for d in declarations
                    ]

                await crud.update_property(db, property_obj, **changes)
                await db.refresh(property_obj)

    return property_obj


async def delete_property(db: AsyncSession, property_id: int) -> None:
    """Delete a property that has no tenants.

    Raises:
        PropertyNotFoundError: If property not found
        PropertyHasOccupiedUnitsError: If any unit is occupied
    """
    async with entity_locks.hold((PROPERTY, property_id)):
        async with unit_of_work(db):
            property_obj = await get_property(db, property_id)
            occupied = await crud.count_occupied_units(db, property_id)
            if occupied > 0:
                raise PropertyHasOccupiedUnitsError(
                    f"Cannot delete property with {occupied} occupied unit(s). "
                    "Please move out all tenants first.",
                    details={"occupied_units": occupied},
                )
            await crud.delete_property(db, property_obj)

    logger.info(f"Deleted property {property_id}", extra={"property_id": property_id})


# ----- Unit queries -----


async def list_units(db: AsyncSession, property_id: int) -> list[Unit]:
    await get_property(db, property_id)
    return await crud.get_units_for_property(db, property_id)


async def list_available_units(
    db: AsyncSession, property_id: int, unit_type: str | None = None
) -> list[Unit]:
    """Free units of a property, optionally of one type."""
    units = await list_units(db, property_id)
    return available_units(units, unit_type)


async def get_unit_types(db: AsyncSession, property_id: int) -> list[UnitTypeSummary]:
    """Declared unit types with their availability."""
    property_obj = await get_property(db, property_id)
    units = await crud.get_units_for_property(db, property_id)
    return summarize_unit_types(property_obj.unit_types, units)


async def get_unit_by_billing_reference(
    db: AsyncSession, billing_reference: str
) -> UnitLookupResponse:
    """Find the unit a billing reference belongs to."""
    unit = await crud.get_unit_by_billing_reference(db, billing_reference)
    if unit is None:
        raise UnitNotFoundError(billing_reference)
    property_obj = await get_property(db, unit.property_id)
    return UnitLookupResponse(
        **UnitResponse.model_validate(unit).model_dump(),
        property_name=property_obj.name,
    )


async def verify_occupancy(db: AsyncSession, property_id: int) -> bool:
    """Whether the cached aggregates of a property match its units."""
    property_obj = await get_property(db, property_id)
    await db.refresh(property_obj)
    units = await crud.get_units_for_property(db, property_id)
    return occupancy_is_consistent(property_obj, units)


# ----- Allocation -----


async def allocate_unit(
    db: AsyncSession,
    property_id: int,
    unit_type: str,
    tenant_id: int,
    preferred_unit_number: str | None = None,
) -> AllocationResult:
    """Claim a unit for a tenant inside the caller's unit of work.

    The caller holds the property lock and commits.

    Raises:
        PropertyNotFoundError: If property not found
        NoAvailableUnitsError: If no unit of the type is free
        UnitNotAvailableError: If the preferred unit cannot be given
        ConcurrencyConflictError: If every claim attempt lost a race
    """
    await get_property(db, property_id)

    for attempt in range(1, MAX_CLAIM_ATTEMPTS + 1):
        units = await crud.get_units_for_property(db, property_id, unit_type=unit_type)
        unit = select_unit(units, unit_type, preferred_unit_number)

        if await crud.claim_unit(db, unit.id, tenant_id, utc_now()):
            await crud.adjust_occupancy(db, property_id, 1, to_money(unit.rent_amount))
            logger.info(
                f"Assigned unit {unit.unit_number} to tenant {tenant_id}",
                extra={
                    "property_id": property_id,
                    "unit_number": unit.unit_number,
                    "tenant_id": tenant_id,
                },
            )
            return AllocationResult(
                property_id=property_id,
                unit_number=unit.unit_number,
                unit_type=unit.unit_type,
                rent_amount=to_money(unit.rent_amount),
                billing_reference=unit.billing_reference,
            )

        if preferred_unit_number:
            raise UnitNotAvailableError(preferred_unit_number)
        logger.warning(
            f"Lost race for unit {unit.unit_number}, retrying",
            extra={"property_id": property_id, "attempt": attempt},
        )

    raise ConcurrencyConflictError(
        f"Could not claim a {unit_type} unit in property {property_id}",
        details={"attempts": MAX_CLAIM_ATTEMPTS},
    )


async def free_unit(db: AsyncSession, property_id: int, unit_number: str) -> bool:
    """Vacate a unit inside the caller's unit of work.

    Releasing an already-free unit changes nothing.

    Returns:
        True when the unit was occupied before the call

    Raises:
        PropertyNotFoundError: If property not found
        UnitNotFoundError: If the unit does not exist
    """
    await get_property(db, property_id)
    unit = await crud.get_unit(db, property_id, unit_number)
    if unit is None:
        raise UnitNotFoundError(unit_number)

    if not await crud.vacate_unit(db, unit.id, utc_now()):
        logger.debug(
            f"Unit {unit_number} already free",
            extra={"property_id": property_id, "unit_number": unit_number},
        )
        return False

    await crud.adjust_occupancy(db, property_id, -1, -to_money(unit.rent_amount))
    logger.info(
        f"Released unit {unit_number}",
        extra={"property_id": property_id, "unit_number": unit_number},
    )
    return True


async def assign_unit(
    db: AsyncSession,
    property_id: int,
    unit_type: str,
    tenant_id: int,
    preferred_unit_number: str | None = None,
) -> AllocationResult:
    """Assign a unit to a tenant as a standalone operation."""
    async with entity_locks.hold((PROPERTY, property_id)):
        with operation_scope("assign_unit", logger, property_id=property_id):
            async with unit_of_work(db):
                return await allocate_unit(
                    db, property_id, unit_type, tenant_id, preferred_unit_number
                )


async def release_unit(db: AsyncSession, property_id: int, unit_number: str) -> bool:
    """Release a unit as a standalone operation."""
    async with entity_locks.hold((PROPERTY, property_id)):
        with operation_scope("release_unit", logger, property_id=property_id):
            async with unit_of_work(db):
                return await free_unit(db, property_id, unit_number)
