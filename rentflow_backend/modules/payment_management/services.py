"""Payment management business logic services.

Ledger writes for one tenant are serialised through the tenant lock. Each
payment or monthly charge commits the tenant row and its ledger event
together; notifications follow in a separate, non-fatal step.
"""

import uuid
from datetime import date
from decimal import Decimal

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ...config import settings
from ...core.exceptions import (
    DuplicatePaymentError,
    RentFlowException,
    TenantMovedOutError,
    TenantNotFoundError,
)
from ...core.locks import TENANT, entity_locks
from ...core.logging import get_logger, operation_scope
from ...core.utils import billing_month as current_billing_month
from ...core.utils import to_money, utc_now
from ...database import unit_of_work
from ..tenant_management import crud as tenant_crud
from ..tenant_management.models import PaymentStatus
from ..tenant_management.services import get_tenant, get_tenant_by_billing_reference
from . import crud
from .billing import (
    apply_monthly_billing,
    generate_payment_reminders,
    get_tenant_balance,
    is_overdue,
    overdue_notification,
)
from .models import Notification, Payment
from .mpesa import parse_stk_callback
from .notifications import dispatch_notifications
from .reconciliation import analyze_payment, apply_payment, fold_ledger, payment_message
from .schemas import (
    BalanceAudit,
    GatewayCallbackPayment,
    PaymentOutcome,
    PaymentReminder,
    SimulatedPayment,
    SweepFailure,
    SweepResult,
    TenantBalance,
)

logger = get_logger(__name__)

BILLED = "billed"
SKIPPED = "skipped"


def new_receipt_number(prefix: str | None = None) -> str:
    """Receipt number for a payment that did not come with one."""
    prefix = settings.simulated_receipt_prefix if prefix is None else prefix
    return f"{prefix}{uuid.uuid4().hex[:10].upper()}"


# ----- Payments -----


async def process_payment(
    db: AsyncSession,
    billing_reference: str,
    amount: Decimal | int | str,
    source: SimulatedPayment | GatewayCallbackPayment,
) -> PaymentOutcome:
    """Reconcile a payment made against a billing reference.

    Args:
        db: Database session
        billing_reference: Reference the payer quoted, e.g. "SUN#A7"
        amount: Amount paid
        source: Channel specific payment details

    Returns:
        Outcome with the analysis and the message for the payer

    Raises:
        ValidationError: If the amount is not positive
        TenantNotFoundError: If no active tenant holds the reference
        TenantMovedOutError: If the tenant moved out meanwhile
        DuplicatePaymentError: If the receipt was already processed
    """
    if source.receipt_number is None:
        source = source.model_copy(update={"receipt_number": new_receipt_number()})
    receipt_number = source.receipt_number

    tenant = await get_tenant_by_billing_reference(db, billing_reference)
    tenant_id = tenant.id

    async with entity_locks.hold((TENANT, tenant_id)):
        with operation_scope(
            "process_payment",
            logger,
            tenant_id=tenant_id,
            billing_reference=billing_reference,
            channel=source.channel,
        ):
            async with unit_of_work(db):
                tenant = await get_tenant(db, tenant_id)
                if not tenant.is_active:
                    raise TenantMovedOutError(tenant_id)
                if tenant.billing_reference != billing_reference:
                    raise TenantNotFoundError(billing_reference)
                if await crud.get_payment_by_receipt(db, receipt_number):
                    raise DuplicatePaymentError(receipt_number)

                analysis = analyze_payment(amount, tenant)
                payment, notification = apply_payment(
                    tenant,
                    analysis,
                    source,
                    history_limit=settings.payment_history_limit,
                    currency=settings.currency,
                )
                if not await crud.get_billing_charge(
                    db, tenant_id, payment.billing_month
                ):
                    logger.info(
                        f"Payment for tenant {tenant_id} arrived before "
                        f"{payment.billing_month} was billed; credited to balance",
                        extra={"tenant_id": tenant_id},
                    )
                try:
                    await crud.add_payment(db, payment)
                except IntegrityError as e:
                    raise DuplicatePaymentError(receipt_number) from e

            payment_id = payment.id
            tenant_name = tenant.name
            logger.info(
                f"Processed {analysis.payment_type.value} of {analysis.paid_amount} "
                f"for tenant {tenant_id}, balance {analysis.new_balance}",
                extra={"tenant_id": tenant_id, "payment_id": payment_id},
            )

    sent = await dispatch_notifications(db, [notification])
    return PaymentOutcome(
        payment_id=payment_id,
        tenant_id=tenant_id,
        tenant_name=tenant_name,
        receipt_number=receipt_number,
        analysis=analysis,
        message=payment_message(analysis, settings.currency),
        notification_sent=sent,
    )


async def process_gateway_callback(
    db: AsyncSession, payload: dict, billing_reference: str
) -> PaymentOutcome:
    """Reconcile the payment confirmed by an M-Pesa STK callback.

    The callback does not carry the account reference; the caller supplies
    the one the STK push was initiated with.

    Raises:
        ValidationError: If the payload is malformed
        PaymentRejectedError: If the gateway reports a failed transaction
    """
    parsed = parse_stk_callback(payload)
    return await process_payment(db, billing_reference, parsed.amount, parsed.source)


async def list_payments(db: AsyncSession, tenant_id: int) -> list[Payment]:
    await get_tenant(db, tenant_id)
    return await crud.get_payments_for_tenant(db, tenant_id)


# ----- Monthly billing -----


async def _bill_tenant(db: AsyncSession, tenant_id: int, month: str) -> str:
    """Post one month's rent to one tenant in its own transaction."""
    async with entity_locks.hold((TENANT, tenant_id)):
        with operation_scope("bill_tenant", logger, tenant_id=tenant_id, month=month):
            async with unit_of_work(db):
                tenant = await get_tenant(db, tenant_id)
                if not tenant.is_active:
                    return SKIPPED
                if await crud.get_billing_charge(db, tenant_id, month):
                    logger.debug(
                        f"Tenant {tenant_id} already billed for {month}",
                        extra={"tenant_id": tenant_id},
                    )
                    return SKIPPED

                charge, notification = apply_monthly_billing(
                    tenant,
                    month,
                    history_limit=settings.payment_history_limit,
                    currency=settings.currency,
                )
                await crud.add_billing_charge(db, charge)

    await dispatch_notifications(db, [notification])
    return BILLED


async def run_monthly_billing_sweep(
    db: AsyncSession, owner_id: int, billing_month: str | None = None
) -> SweepResult:
    """Bill every active tenant of a landlord for a month.

    Each tenant is billed independently; a failure is recorded and the sweep
    moves on. Running the sweep again for the same month bills nobody twice.
    """
    month = billing_month or current_billing_month()
    result = SweepResult(billing_month=month)

    with operation_scope(
        "monthly_billing_sweep", logger, owner_id=owner_id, month=month
    ):
        for tenant_id in await tenant_crud.get_active_tenant_ids(db, owner_id):
            try:
                outcome = await _bill_tenant(db, tenant_id, month)
            except (RentFlowException, SQLAlchemyError) as e:
                logger.error(
                    f"Billing tenant {tenant_id} for {month} failed: {e}",
                    extra={"tenant_id": tenant_id, "error_type": type(e).__name__},
                )
                result.failed.append(SweepFailure(tenant_id=tenant_id, error=str(e)))
                continue
            if outcome == BILLED:
                result.billed.append(tenant_id)
            else:
                result.skipped.append(tenant_id)

    logger.info(
        f"Billing sweep {month}: {len(result.billed)} billed, "
        f"{len(result.skipped)} skipped, {len(result.failed)} failed",
        extra={"owner_id": owner_id, "month": month},
    )
    return result


async def mark_overdue_tenants(
    db: AsyncSession, owner_id: int, as_of: date | None = None
) -> list[int]:
    """Escalate tenants still in arrears after the grace period to overdue.

    Returns:
        IDs of the tenants marked overdue
    """
    as_of = as_of or utc_now().date()
    marked: list[int] = []
    notifications: list[Notification] = []

    for tenant_id in await tenant_crud.get_active_tenant_ids(db, owner_id):
        async with entity_locks.hold((TENANT, tenant_id)):
            async with unit_of_work(db):
                tenant = await get_tenant(db, tenant_id)
                if not is_overdue(tenant, as_of, settings.billing_grace_days):
                    continue
                await tenant_crud.update_tenant(
                    db, tenant, payment_status=PaymentStatus.OVERDUE
                )
                notifications.append(overdue_notification(tenant, settings.currency))
                marked.append(tenant_id)

    if marked:
        logger.info(
            f"Marked {len(marked)} tenant(s) overdue",
            extra={"owner_id": owner_id, "tenant_ids": marked},
        )
    await dispatch_notifications(db, notifications)
    return marked


async def get_payment_reminders(
    db: AsyncSession, owner_id: int
) -> list[PaymentReminder]:
    """Reminders for a landlord's active tenants."""
    tenants = await tenant_crud.get_tenants_by_owner(db, owner_id, is_active=True)
    return generate_payment_reminders(tenants)


async def get_balance(db: AsyncSession, tenant_id: int) -> TenantBalance:
    return get_tenant_balance(await get_tenant(db, tenant_id))


async def audit_tenant_balance(db: AsyncSession, tenant_id: int) -> BalanceAudit:
    """Compare a tenant's cached balance with the one folded from its ledger."""
    tenant = await get_tenant(db, tenant_id)
    payments = await crud.get_payments_for_tenant(db, tenant_id)
    charges = await crud.get_billing_charges_for_tenant(db, tenant_id)

    cached = to_money(tenant.account_balance)
    folded = fold_ledger(payments, charges)
    audit = BalanceAudit(
        tenant_id=tenant_id,
        cached_balance=cached,
        ledger_balance=folded,
        total_paid=fold_ledger(payments, []),
        total_billed=-fold_ledger([], charges),
        payment_count=len(payments),
        charge_count=len(charges),
        is_consistent=cached == folded,
    )
    if not audit.is_consistent:
        logger.warning(
            f"Balance of tenant {tenant_id} is {cached}, ledger says {folded}",
            extra={"tenant_id": tenant_id},
        )
    return audit


# ----- Notifications -----


async def list_notifications(
    db: AsyncSession, owner_id: int, unread_only: bool = False
) -> list[Notification]:
    return await crud.get_notifications_by_owner(db, owner_id, unread_only=unread_only)


async def mark_notification_read(
    db: AsyncSession, owner_id: int, notification_id: int
) -> bool:
    async with unit_of_work(db):
        return await crud.mark_notification_read(db, notification_id, owner_id)
