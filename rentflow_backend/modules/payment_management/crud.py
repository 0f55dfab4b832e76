"""CRUD operations for payment management module."""

from collections.abc import Iterable

from sqlalchemy import and_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import BillingCharge, Notification, Payment

# ----- Payment CRUD -----


async def get_payment_by_receipt(
    db: AsyncSession, receipt_number: str
) -> Payment | None:
    """Get a payment by its receipt number."""
    result = await db.execute(
        select(Payment).where(Payment.receipt_number == receipt_number)
    )
    return result.scalar_one_or_none()


async def get_payments_for_tenant(db: AsyncSession, tenant_id: int) -> list[Payment]:
    """Get a tenant's payments, oldest first."""
    result = await db.execute(
        select(Payment)
        .where(Payment.tenant_id == tenant_id)
        .order_by(Payment.paid_at, Payment.id)
    )
    return list(result.scalars().all())


async def get_payments_by_owner(
    db: AsyncSession, owner_id: int, billing_month: str | None = None
) -> list[Payment]:
    """Get a landlord's payments, newest first."""
    filters = [Payment.owner_id == owner_id]
    if billing_month is not None:
        filters.append(Payment.billing_month == billing_month)
    result = await db.execute(
        select(Payment)
        .where(and_(*filters))
        .order_by(Payment.paid_at.desc(), Payment.id.desc())
    )
    return list(result.scalars().all())


async def add_payment(db: AsyncSession, payment: Payment) -> Payment:
    """Insert a payment record."""
    db.add(payment)
    await db.flush()
    return payment


# ----- Billing Charge CRUD -----


async def get_billing_charge(
    db: AsyncSession, tenant_id: int, billing_month: str
) -> BillingCharge | None:
    """Get the charge posted to a tenant for a month, if any."""
    result = await db.execute(
        select(BillingCharge).where(
            and_(
                BillingCharge.tenant_id == tenant_id,
                BillingCharge.billing_month == billing_month,
            )
        )
    )
    return result.scalar_one_or_none()


async def get_billing_charges_for_tenant(
    db: AsyncSession, tenant_id: int
) -> list[BillingCharge]:
    """Get a tenant's billing charges, oldest first."""
    result = await db.execute(
        select(BillingCharge)
        .where(BillingCharge.tenant_id == tenant_id)
        .order_by(BillingCharge.billing_month, BillingCharge.id)
    )
    return list(result.scalars().all())


async def add_billing_charge(db: AsyncSession, charge: BillingCharge) -> BillingCharge:
    """Insert a billing charge."""
    db.add(charge)
    await db.flush()
    return charge


# ----- Notification CRUD -----


async def add_notifications(
    db: AsyncSession, notifications: Iterable[Notification]
) -> None:
    """Insert notifications."""
    db.add_all(list(notifications))
    await db.flush()


async def get_notifications_by_owner(
    db: AsyncSession,
    owner_id: int,
    tenant_id: int | None = None,
    unread_only: bool = False,
) -> list[Notification]:
    """Get a landlord's notifications, newest first."""
    filters = [Notification.owner_id == owner_id]
    if tenant_id is not None:
        filters.append(Notification.tenant_id == tenant_id)
    if unread_only:
        filters.append(Notification.is_read == False)  # noqa: E712
    result = await db.execute(
        select(Notification)
        .where(and_(*filters))
        .order_by(Notification.created_at.desc(), Notification.id.desc())
    )
    return list(result.scalars().all())


async def mark_notification_read(
    db: AsyncSession, notification_id: int, owner_id: int
) -> bool:
    """Mark one of a landlord's notifications as read."""
    result = await db.execute(
        update(Notification)
        .where(
            and_(
                Notification.id == notification_id,
                Notification.owner_id == owner_id,
            )
        )
        .values(is_read=True)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1
