"""Monthly rent billing and balance reporting.

The billing sweep is the only place rent is debited from a tenant's balance.
"""

from collections.abc import Iterable
from datetime import date, datetime

from ...core.exceptions import TenantMovedOutError
from ...core.utils import format_amount, to_money, utc_now
from ..tenant_management.models import PaymentStatus, Tenant
from .models import BillingCharge, Notification, NotificationSeverity, NotificationType
from .reconciliation import DEFAULT_HISTORY_LIMIT, ZERO, append_history, history_entry
from .schemas import PaymentReminder, TenantBalance

MONTHLY_BILLING = "monthly billing"

# Statuses a missed rent payment can still be escalated from
OVERDUE_CANDIDATES = (PaymentStatus.PENDING, PaymentStatus.PARTIAL)


def apply_monthly_billing(
    tenant: Tenant,
    billing_month: str,
    history_limit: int = DEFAULT_HISTORY_LIMIT,
    billed_at: datetime | None = None,
    currency: str = "KES",
) -> tuple[BillingCharge, Notification]:
    """Debit one month's rent from the tenant.

    Sets the status back to pending whatever it was, records a
    'monthly billing' history entry of minus the rent and builds the charge
    record and reminder notification for the caller to persist.

    Raises:
        TenantMovedOutError: If the tenant moved out
    """
    if not tenant.is_active or tenant.payment_status == PaymentStatus.MOVED_OUT:
        raise TenantMovedOutError(tenant.id)

    billed_at = billed_at or utc_now()
    rent = to_money(tenant.rent_amount)
    new_balance = to_money(tenant.account_balance) - rent

    entry = history_entry(billed_at, -rent, MONTHLY_BILLING, new_balance)
    # The sweep may run late; the entry belongs to the month being billed
    entry["month"] = billing_month

    tenant.account_balance = new_balance
    tenant.payment_status = PaymentStatus.PENDING
    tenant.payment_history = append_history(
        tenant.payment_history, entry, history_limit
    )

    charge = BillingCharge(
        owner_id=tenant.owner_id,
        tenant_id=tenant.id,
        property_id=tenant.property_id,
        billing_month=billing_month,
        amount=rent,
        resulting_balance=new_balance,
        billed_at=billed_at,
    )
    notification = Notification(
        owner_id=tenant.owner_id,
        tenant_id=tenant.id,
        notification_type=NotificationType.REMINDER,
        title="Monthly Rent Billed",
        severity=NotificationSeverity.MEDIUM,
        message=(
            f"{tenant.name} was billed {format_amount(rent, currency)} rent for "
            f"{billing_month}. Balance: {format_amount(new_balance, currency)}"
        ),
        is_read=False,
    )
    return charge, notification


def is_overdue(tenant: Tenant, as_of: date, grace_days: int) -> bool:
    """Whether a tenant still owes rent once the grace period of the month is over."""
    return (
        bool(tenant.is_active)
        and tenant.payment_status in OVERDUE_CANDIDATES
        and to_money(tenant.account_balance) < ZERO
        and as_of.day > grace_days
    )


def overdue_notification(tenant: Tenant, currency: str = "KES") -> Notification:
    return Notification(
        owner_id=tenant.owner_id,
        tenant_id=tenant.id,
        notification_type=NotificationType.WARNING,
        title="Rent Overdue",
        severity=NotificationSeverity.HIGH,
        message=(
            f"{tenant.name} (unit {tenant.unit_number}) owes "
            f"{format_amount(-to_money(tenant.account_balance), currency)}"
        ),
        is_read=False,
    )


def get_tenant_balance(tenant: Tenant) -> TenantBalance:
    """Balance in money and in months of rent, and what the next payment should be."""
    balance = to_money(tenant.account_balance)
    rent = to_money(tenant.rent_amount)
    return TenantBalance(
        tenant_id=tenant.id,
        tenant_name=tenant.name,
        current_balance=balance,
        monthly_rent=rent,
        status="credit" if balance >= ZERO else "debt",
        balance_in_months=to_money(balance / rent) if rent > ZERO else ZERO,
        next_payment_due=rent - max(ZERO, balance),
    )


def generate_payment_reminders(tenants: Iterable[Tenant]) -> list[PaymentReminder]:
    """Reminders for active tenants in arrears or without a full month of credit."""
    reminders = []
    for tenant in tenants:
        if not tenant.is_active:
            continue
        balance = get_tenant_balance(tenant)
        if balance.status == "debt":
            reminders.append(
                PaymentReminder(
                    tenant_id=tenant.id,
                    tenant_name=tenant.name,
                    amount_due=abs(balance.current_balance),
                    reminder_type="overdue",
                    priority=NotificationSeverity.HIGH,
                )
            )
        elif balance.current_balance < balance.monthly_rent:
            reminders.append(
                PaymentReminder(
                    tenant_id=tenant.id,
                    tenant_name=tenant.name,
                    amount_due=balance.monthly_rent - balance.current_balance,
                    reminder_type="upcoming",
                    priority=NotificationSeverity.MEDIUM,
                )
            )
    return reminders
