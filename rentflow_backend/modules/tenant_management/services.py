"""Tenant management business logic services.

Every lifecycle change that touches a unit holds the tenant lock and the lock
of each property involved, and runs as one unit of work: the tenant row and
the unit inventory are committed together or not at all.
"""

from collections import Counter
from datetime import date
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from ...core.exceptions import (
    ConcurrencyConflictError,
    PropertyNotFoundError,
    TenantMovedOutError,
    TenantNotFoundError,
)
from ...core.locks import PROPERTY, TENANT, entity_locks
from ...core.logging import get_logger, operation_scope
from ...core.utils import to_money, utc_now
from ...database import unit_of_work
from ..property_management.schemas import AllocationResult
from ..property_management.services import allocate_unit, free_unit, get_property
from . import crud
from .models import PaymentStatus, Tenant
from .schemas import (
    PaymentStatusCounts,
    TenantCreate,
    TenantPaymentSummary,
    TenantStatistics,
    TenantUpdate,
    TransferResult,
)

logger = get_logger(__name__)


def _bind(tenant: Tenant, allocation: AllocationResult) -> None:
    """Copy the allocated unit onto the tenant record."""
    tenant.property_id = allocation.property_id
    tenant.unit_number = allocation.unit_number
    tenant.unit_type = allocation.unit_type
    tenant.rent_amount = allocation.rent_amount
    tenant.billing_reference = allocation.billing_reference


def _ensure_same_property(tenant: Tenant, locked_property_id: int) -> None:
    # The tenant was read before its property lock was taken
    if tenant.property_id != locked_property_id:
        raise ConcurrencyConflictError(
            f"Tenant {tenant.id} moved while the operation was waiting",
            details={"tenant_id": tenant.id},
        )


async def _get_owned_property(db: AsyncSession, property_id: int, owner_id: int):
    property_obj = await get_property(db, property_id)
    if property_obj.owner_id != owner_id:
        raise PropertyNotFoundError(property_id)
    return property_obj


# ----- Queries -----


async def get_tenant(db: AsyncSession, tenant_id: int) -> Tenant:
    """Get a tenant or raise TenantNotFoundError."""
    tenant = await crud.get_tenant_by_id(db, tenant_id)
    if tenant is None:
        raise TenantNotFoundError(tenant_id)
    return tenant


async def get_tenant_by_billing_reference(
    db: AsyncSession, billing_reference: str
) -> Tenant:
    """Get the active tenant a billing reference points to."""
    tenant = await crud.get_active_tenant_by_billing_reference(db, billing_reference)
    if tenant is None:
        raise TenantNotFoundError(billing_reference)
    return tenant


async def list_tenants(
    db: AsyncSession,
    owner_id: int,
    property_id: int | None = None,
    is_active: bool | None = None,
) -> list[Tenant]:
    return await crud.get_tenants_by_owner(
        db, owner_id, property_id=property_id, is_active=is_active
    )


# ----- Lifecycle -----


async def onboard_tenant(db: AsyncSession, owner_id: int, data: TenantCreate) -> Tenant:
    """Create a tenant and give them a unit.

    Args:
        db: Database session
        owner_id: Landlord onboarding the tenant
        data: Contact details, target property and unit type

    Returns:
        Active tenant bound to the allocated unit, status pending, balance 0

    Raises:
        PropertyNotFoundError: If the property does not exist or is not the owner's
        NoAvailableUnitsError: If no unit of the type is free
        UnitNotAvailableError: If the preferred unit cannot be given
    """
    async with entity_locks.hold((PROPERTY, data.property_id)):
        with operation_scope(
            "onboard_tenant", logger, owner_id=owner_id, property_id=data.property_id
        ):
            async with unit_of_work(db):
                await _get_owned_property(db, data.property_id, owner_id)

                # Binding is filled in from the allocation before commit
                tenant = await crud.create_tenant(
                    db,
                    owner_id=owner_id,
                    **data.model_dump(
                        exclude={"property_id", "unit_type", "preferred_unit_number"}
                    ),
                    property_id=data.property_id,
                    unit_type=data.unit_type,
                    unit_number="",
                    rent_amount=to_money(0),
                    billing_reference="",
                    is_active=True,
                    payment_status=PaymentStatus.PENDING,
                    account_balance=to_money(0),
                    payment_history=[],
                )
                if tenant.move_in_date is None:
                    tenant.move_in_date = utc_now().date()

                allocation = await allocate_unit(
                    db,
                    data.property_id,
                    data.unit_type,
                    tenant.id,
                    data.preferred_unit_number,
                )
                _bind(tenant, allocation)
                await db.flush()

    logger.info(
        f"Onboarded tenant {tenant.id} into unit {tenant.unit_number}",
        extra={"tenant_id": tenant.id, "property_id": tenant.property_id},
    )
    return tenant


async def move_out_tenant(
    db: AsyncSession, tenant_id: int, move_out_date: date | None = None
) -> Tenant:
    """Deactivate a tenant and free their unit.

    Raises:
        TenantNotFoundError: If tenant not found
        TenantMovedOutError: If the tenant already moved out
    """
    tenant = await get_tenant(db, tenant_id)
    property_id = tenant.property_id

    async with entity_locks.hold((TENANT, tenant_id), (PROPERTY, property_id)):
        with operation_scope("move_out_tenant", logger, tenant_id=tenant_id):
            async with unit_of_work(db):
                tenant = await get_tenant(db, tenant_id)
                _ensure_same_property(tenant, property_id)
                if not tenant.is_active:
                    raise TenantMovedOutError(tenant_id)

                await free_unit(db, tenant.property_id, tenant.unit_number)
                await crud.update_tenant(
                    db,
                    tenant,
                    is_active=False,
                    payment_status=PaymentStatus.MOVED_OUT,
                    move_out_date=move_out_date or utc_now().date(),
                )

    logger.info(
        f"Tenant {tenant_id} moved out of unit {tenant.unit_number}",
        extra={"tenant_id": tenant_id, "property_id": property_id},
    )
    return tenant


async def transfer_tenant(
    db: AsyncSession,
    tenant_id: int,
    new_property_id: int,
    new_unit_type: str,
    preferred_unit_number: str | None = None,
) -> TransferResult:
    """Move an active tenant to another unit, in the same or another property.

    The new unit is claimed before the old one is released, and both happen in
    one transaction: if anything fails the tenant keeps the original unit.
    The balance carries over unchanged; the rent becomes the new unit's.

    Raises:
        TenantNotFoundError: If tenant not found
        TenantMovedOutError: If the tenant moved out
        PropertyNotFoundError: If the target property does not exist
        NoAvailableUnitsError: If no unit of the type is free in the target
        UnitNotAvailableError: If the preferred unit cannot be given
    """
    tenant = await get_tenant(db, tenant_id)
    from_property_id = tenant.property_id

    async with entity_locks.hold(
        (TENANT, tenant_id),
        (PROPERTY, from_property_id),
        (PROPERTY, new_property_id),
    ):
        with operation_scope(
            "transfer_tenant",
            logger,
            tenant_id=tenant_id,
            from_property_id=from_property_id,
            to_property_id=new_property_id,
        ):
            async with unit_of_work(db):
                tenant = await get_tenant(db, tenant_id)
                _ensure_same_property(tenant, from_property_id)
                if not tenant.is_active:
                    raise TenantMovedOutError(tenant_id)
                await _get_owned_property(db, new_property_id, tenant.owner_id)

                from_unit_number = tenant.unit_number
                allocation = await allocate_unit(
                    db, new_property_id, new_unit_type, tenant_id, preferred_unit_number
                )
                await free_unit(db, from_property_id, from_unit_number)

                transferred_at = utc_now()
                _bind(tenant, allocation)
                tenant.transfer_date = transferred_at
                await db.flush()

    logger.info(
        f"Transferred tenant {tenant_id} from unit {from_unit_number} "
        f"to unit {allocation.unit_number}",
        extra={"tenant_id": tenant_id, "property_id": new_property_id},
    )
    return TransferResult(
        tenant_id=tenant_id,
        from_property_id=from_property_id,
        from_unit_number=from_unit_number,
        allocation=allocation,
        transferred_at=transferred_at,
    )


async def update_tenant(db: AsyncSession, tenant_id: int, data: TenantUpdate) -> Tenant:
    """Update a tenant's contact details."""
    async with entity_locks.hold((TENANT, tenant_id)):
        async with unit_of_work(db):
            tenant = await get_tenant(db, tenant_id)
            await crud.update_tenant(db, tenant, **data.model_dump(exclude_unset=True))
    return tenant


async def delete_tenant(db: AsyncSession, tenant_id: int) -> None:
    """Hard-delete a tenant, freeing their unit first when still active.

    Payment records are kept.
    """
    tenant = await get_tenant(db, tenant_id)
    property_id = tenant.property_id

    async with entity_locks.hold((TENANT, tenant_id), (PROPERTY, property_id)):
        async with unit_of_work(db):
            tenant = await get_tenant(db, tenant_id)
            _ensure_same_property(tenant, property_id)
            unit_number = tenant.unit_number
            if tenant.is_active:
                await free_unit(db, property_id, unit_number)
            await crud.delete_tenant(db, tenant)

    logger.info(
        f"Deleted tenant {tenant_id}, unit {unit_number} freed",
        extra={"tenant_id": tenant_id, "property_id": property_id},
    )


# ----- Reporting -----


def get_payment_summary(tenant: Tenant) -> TenantPaymentSummary:
    """What a tenant owes, or holds in credit, against one month's rent."""
    balance = to_money(tenant.account_balance)
    rent = to_money(tenant.rent_amount)
    credit = max(Decimal("0.00"), balance)
    return TenantPaymentSummary(
        tenant_id=tenant.id,
        tenant_name=tenant.name,
        unit_number=tenant.unit_number,
        unit_type=tenant.unit_type,
        monthly_rent=rent,
        current_balance=balance,
        payment_status=tenant.payment_status,
        billing_reference=tenant.billing_reference,
        last_payment_date=tenant.last_payment_date,
        is_active=tenant.is_active,
        amount_due=max(Decimal("0.00"), rent - credit),
        credit_balance=credit,
        debt_balance=max(Decimal("0.00"), -balance),
    )


async def get_tenant_statistics(db: AsyncSession, owner_id: int) -> TenantStatistics:
    """Counts over all of a landlord's tenants; breakdowns cover active ones."""
    tenants = await crud.get_tenants_by_owner(db, owner_id)
    active = [t for t in tenants if t.is_active]

    statuses = Counter(PaymentStatus(t.payment_status).value for t in active)
    return TenantStatistics(
        total=len(tenants),
        active=len(active),
        moved_out=len(tenants) - len(active),
        payment_status=PaymentStatusCounts(
            paid=statuses[PaymentStatus.PAID.value],
            pending=statuses[PaymentStatus.PENDING.value],
            partial=statuses[PaymentStatus.PARTIAL.value],
            overdue=statuses[PaymentStatus.OVERDUE.value],
        ),
        unit_types=dict(Counter(t.unit_type or "unknown" for t in active)),
        total_monthly_rent=to_money(
            sum((to_money(t.rent_amount) for t in active), Decimal("0.00"))
        ),
    )
