"""CRUD operations for tenant management module."""

from typing import Any

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Tenant

# ----- Tenant CRUD -----


async def get_tenant_by_id(db: AsyncSession, tenant_id: int) -> Tenant | None:
    """Get a tenant by ID, always re-reading the stored row."""
    result = await db.execute(
        select(Tenant)
        .where(Tenant.id == tenant_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_active_tenant_by_billing_reference(
    db: AsyncSession, billing_reference: str
) -> Tenant | None:
    """Get the active tenant a billing reference currently points to."""
    result = await db.execute(
        select(Tenant)
        .where(
            and_(
                Tenant.billing_reference == billing_reference,
                Tenant.is_active == True,  # noqa: E712
            )
        )
        .execution_options(populate_existing=True)
    )
    return result.scalars().first()


async def get_tenants_by_owner(
    db: AsyncSession,
    owner_id: int,
    property_id: int | None = None,
    is_active: bool | None = None,
) -> list[Tenant]:
    """Get tenants of a landlord, newest first."""
    filters = [Tenant.owner_id == owner_id]
    if property_id is not None:
        filters.append(Tenant.property_id == property_id)
    if is_active is not None:
        filters.append(Tenant.is_active == is_active)
    result = await db.execute(
        select(Tenant)
        .where(and_(*filters))
        .order_by(Tenant.created_at.desc(), Tenant.id.desc())
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def get_active_tenant_ids(db: AsyncSession, owner_id: int) -> list[int]:
    """IDs of a landlord's active tenants in creation order."""
    result = await db.execute(
        select(Tenant.id)
        .where(and_(Tenant.owner_id == owner_id, Tenant.is_active == True))  # noqa: E712
        .order_by(Tenant.id)
    )
    return list(result.scalars().all())


async def create_tenant(db: AsyncSession, **kwargs: Any) -> Tenant:
    """Create a new tenant."""
    tenant = Tenant(**kwargs)
    db.add(tenant)
    await db.flush()
    return tenant


async def update_tenant(db: AsyncSession, tenant: Tenant, **kwargs: Any) -> Tenant:
    """Update a tenant's columns."""
    for key, value in kwargs.items():
        if hasattr(tenant, key):
            setattr(tenant, key, value)
    await db.flush()
    return tenant


async def delete_tenant(db: AsyncSession, tenant: Tenant) -> None:
    """Hard-delete a tenant."""
    await db.delete(tenant)
    await db.flush()
