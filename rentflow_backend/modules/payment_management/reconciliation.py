"""Payment reconciliation against a tenant's running balance.

The balance is a signed ledger: negative means rent is owed, positive is
credit carried forward. A payment only ever adds to it; rent is debited by
the monthly billing sweep alone.
"""

from collections.abc import Iterable
from datetime import datetime
from decimal import Decimal

from ...core.exceptions import (
    ConcurrencyConflictError,
    TenantMovedOutError,
    ValidationError,
)
from ...core.utils import billing_month, format_amount, to_money, utc_now
from ..tenant_management.models import PaymentStatus, Tenant
from .models import (
    BillingCharge,
    Notification,
    NotificationSeverity,
    NotificationType,
    Payment,
    PaymentChannel,
    PaymentType,
)
from .schemas import GatewayCallbackPayment, PaymentAnalysis, SimulatedPayment

ZERO = Decimal("0.00")

DEFAULT_HISTORY_LIMIT = 12


def analyze_payment(
    paid_amount: Decimal | int | str, tenant: Tenant
) -> PaymentAnalysis:
    """Classify a payment against the tenant's current balance.

    Pure: the tenant is only read.

    Raises:
        ValidationError: If the amount is not a positive sum of money
    """
    try:
        paid = to_money(paid_amount)
    except ValueError as e:
        raise ValidationError(str(e), field="amount", value=paid_amount) from e
    if paid <= ZERO:
        raise ValidationError(
            "Payment amount must be positive", field="amount", value=paid_amount
        )

    current_balance = to_money(tenant.account_balance)
    new_balance = current_balance + paid

    if new_balance > ZERO:
        payment_type = PaymentType.OVERPAYMENT
        overpayment, shortfall = new_balance, ZERO
        status = PaymentStatus.PAID
    elif new_balance < ZERO:
        payment_type = PaymentType.UNDERPAYMENT
        overpayment, shortfall = ZERO, -new_balance
        status = PaymentStatus.PARTIAL
    else:
        payment_type = PaymentType.EXACT
        overpayment, shortfall = ZERO, ZERO
        status = PaymentStatus.PAID

    return PaymentAnalysis(
        paid_amount=paid,
        expected_rent=to_money(tenant.rent_amount),
        current_balance=current_balance,
        payment_type=payment_type,
        overpayment=overpayment,
        shortfall=shortfall,
        carry_forward=overpayment,
        new_balance=new_balance,
        status=status,
    )


def payment_message(analysis: PaymentAnalysis, currency: str = "KES") -> str:
    """Message shown to whoever submitted the payment."""
    if analysis.payment_type == PaymentType.OVERPAYMENT:
        return (
            f"Payment successful! Overpayment of "
            f"{format_amount(analysis.overpayment, currency)} has been carried "
            "forward to next month."
        )
    if analysis.payment_type == PaymentType.UNDERPAYMENT:
        return (
            f"Partial payment received. Outstanding balance: "
            f"{format_amount(analysis.shortfall, currency)}. "
            "Please complete the payment."
        )
    return "Perfect! Full rent payment received."


def history_entry(
    moment: datetime, amount: Decimal, entry_type: str, balance: Decimal
) -> dict:
    """Payment history entry in its stored (JSON) form."""
    return {
        "date": moment.isoformat(),
        "amount": str(to_money(amount)),
        "type": entry_type,
        "balance": str(to_money(balance)),
        "month": billing_month(moment),
    }


def append_history(
    history: list[dict] | None, entry: dict, limit: int = DEFAULT_HISTORY_LIMIT
) -> list[dict]:
    """New history list with the entry appended, oldest entries dropped past limit."""
    # Always a new list, the JSON column does not track in-place mutation
    return [*(history or []), entry][-limit:]


def payment_notification(
    tenant: Tenant, analysis: PaymentAnalysis, currency: str = "KES"
) -> Notification:
    """The single landlord notification a reconciled payment produces."""
    paid = format_amount(analysis.paid_amount, currency)
    if analysis.payment_type == PaymentType.OVERPAYMENT:
        notification_type = NotificationType.INFO
        title = "Overpayment Received"
        message = (
            f"{tenant.name} paid {paid}. Excess "
            f"{format_amount(analysis.overpayment, currency)} carried forward to "
            "next month."
        )
        severity = NotificationSeverity.LOW
    elif analysis.payment_type == PaymentType.UNDERPAYMENT:
        notification_type = NotificationType.WARNING
        title = "Partial Payment Received"
        message = (
            f"{tenant.name} paid {paid}. Outstanding balance: "
            f"{format_amount(analysis.shortfall, currency)}"
        )
        severity = NotificationSeverity.HIGH
    else:
        notification_type = NotificationType.SUCCESS
        title = "Full Payment Received"
        message = f"{tenant.name} paid the full rent amount of {paid}"
        severity = NotificationSeverity.LOW

    return Notification(
        owner_id=tenant.owner_id,
        tenant_id=tenant.id,
        notification_type=notification_type,
        title=title,
        severity=severity,
        message=message,
        is_read=False,
    )


def apply_payment(
    tenant: Tenant,
    analysis: PaymentAnalysis,
    source: SimulatedPayment | GatewayCallbackPayment,
    paid_at: datetime | None = None,
    history_limit: int = DEFAULT_HISTORY_LIMIT,
    currency: str = "KES",
) -> tuple[Payment, Notification]:
    """Write an analysed payment onto the tenant.

    Updates the balance, status, last payment fields and history of the
    tenant in place and builds the payment record and notification for the
    caller to persist.

    Raises:
        TenantMovedOutError: If the tenant moved out
        ConcurrencyConflictError: If the balance changed since the analysis
    """
    if not tenant.is_active or tenant.payment_status == PaymentStatus.MOVED_OUT:
        raise TenantMovedOutError(tenant.id)
    if to_money(tenant.account_balance) != analysis.current_balance:
        raise ConcurrencyConflictError(
            f"Balance of tenant {tenant.id} changed since the payment was analysed",
            details={
                "analysed_balance": str(analysis.current_balance),
                "current_balance": str(to_money(tenant.account_balance)),
            },
        )

    paid_at = paid_at or source.paid_at or utc_now()

    payment = Payment(
        owner_id=tenant.owner_id,
        tenant_id=tenant.id,
        property_id=tenant.property_id,
        billing_reference=tenant.billing_reference,
        amount=analysis.paid_amount,
        expected_amount=analysis.expected_rent,
        previous_balance=analysis.current_balance,
        resulting_balance=analysis.new_balance,
        payment_type=analysis.payment_type,
        overpayment_amount=analysis.overpayment,
        shortfall_amount=analysis.shortfall,
        carry_forward=analysis.carry_forward,
        billing_month=billing_month(paid_at),
        channel=PaymentChannel(source.channel),
        receipt_number=source.receipt_number,
        phone_number=source.phone_number,
        checkout_request_id=getattr(source, "checkout_request_id", None),
        paid_at=paid_at,
    )

    tenant.account_balance = analysis.new_balance
    tenant.payment_status = analysis.status
    tenant.last_payment_date = paid_at
    tenant.last_payment_amount = analysis.paid_amount
    tenant.payment_history = append_history(
        tenant.payment_history,
        history_entry(
            paid_at,
            analysis.paid_amount,
            analysis.payment_type.value,
            analysis.new_balance,
        ),
        history_limit,
    )

    return payment, payment_notification(tenant, analysis, currency)


def fold_ledger(
    payments: Iterable[Payment], charges: Iterable[BillingCharge]
) -> Decimal:
    """Balance implied by the ledger events: everything paid less everything billed."""
    paid = sum((to_money(p.amount) for p in payments), ZERO)
    billed = sum((to_money(c.amount) for c in charges), ZERO)
    return to_money(paid - billed)
