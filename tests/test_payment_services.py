"""Tests for payment reconciliation, billing sweep and ledger services."""

import asyncio
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from rentflow_backend.core.exceptions import (
    DuplicatePaymentError,
    ImmutableRecordError,
    PaymentRejectedError,
    RentFlowException,
    TenantNotFoundError,
    ValidationError,
)
from rentflow_backend.modules.payment_management import crud as payment_crud
from rentflow_backend.modules.payment_management import services as payment_services
from rentflow_backend.modules.payment_management.models import (
    NotificationType,
    PaymentChannel,
    PaymentType,
)
from rentflow_backend.modules.payment_management.schemas import SimulatedPayment
from rentflow_backend.modules.property_management import services as property_services
from rentflow_backend.modules.tenant_management import services as tenant_services
from rentflow_backend.modules.tenant_management.models import PaymentStatus
from rentflow_backend.modules.tenant_management.schemas import TenantCreate

MONTH = "2026-10"


def stk_payload(amount, receipt: str, result_code: int = 0) -> dict:
    callback = {
        "MerchantRequestID": "29115-34620561-1",
        "CheckoutRequestID": "ws_CO_191220191020363925",
        "ResultCode": result_code,
        "ResultDesc": "Request cancelled by user" if result_code else "Success",
    }
    if result_code == 0:
        callback["CallbackMetadata"] = {
            "Item": [
                {"Name": "Amount", "Value": amount},
                {"Name": "MpesaReceiptNumber", "Value": receipt},
                {"Name": "TransactionDate", "Value": 20261003093000},
                {"Name": "PhoneNumber", "Value": 254712345678},
            ]
        }
    return {"Body": {"stkCallback": callback}}


async def pay(db, reference: str, amount, receipt: str | None = None):
    return await payment_services.process_payment(
        db, reference, amount, SimulatedPayment(receipt_number=receipt)
    )


@pytest.fixture
async def billed_tenant_id(db, sunrise, onboard, owner_id) -> int:
    """Id of the tenant in SUN#B1 (rent 20,000) after the month's sweep."""
    tenant_id = (await onboard(sunrise.id, "1bedroom")).id
    result = await payment_services.run_monthly_billing_sweep(db, owner_id, MONTH)
    assert result.billed == [tenant_id]
    return tenant_id


class TestProcessPayment:
    """Reconciling payments against billing references."""

    async def test_exact_payment(self, db, billed_tenant_id, owner_id) -> None:
        outcome = await pay(db, "SUN#B1", 20000)

        assert outcome.analysis.payment_type == PaymentType.EXACT
        assert outcome.analysis.new_balance == Decimal("0.00")
        assert outcome.message == "Perfect! Full rent payment received."
        assert outcome.receipt_number.startswith("SIM")
        assert outcome.notification_sent is True
        assert outcome.tenant_name == "Jane Wanjiku"

        tenant = await tenant_services.get_tenant(db, billed_tenant_id)
        assert Decimal(tenant.account_balance) == Decimal("0.00")
        assert tenant.payment_status == PaymentStatus.PAID
        assert Decimal(tenant.last_payment_amount) == Decimal("20000.00")
        assert tenant.payment_history[-1]["type"] == "exact"

        payments = await payment_services.list_payments(db, billed_tenant_id)
        assert len(payments) == 1
        assert payments[0].channel == PaymentChannel.SIMULATED
        assert Decimal(payments[0].previous_balance) == Decimal("-20000.00")

        notifications = await payment_services.list_notifications(db, owner_id)
        assert {n.title for n in notifications} == {
            "Monthly Rent Billed",
            "Full Payment Received",
        }

    async def test_partial_payments_accumulate(self, db, billed_tenant_id) -> None:
        first = await pay(db, "SUN#B1", 14000)
        second = await pay(db, "SUN#B1", 6000)

        assert first.analysis.payment_type == PaymentType.UNDERPAYMENT
        assert first.analysis.shortfall == Decimal("6000.00")
        assert second.analysis.payment_type == PaymentType.EXACT

        tenant = await tenant_services.get_tenant(db, billed_tenant_id)
        assert tenant.payment_status == PaymentStatus.PAID
        assert Decimal(tenant.account_balance) == Decimal("0.00")

    async def test_overpayment_carries_into_next_month(
        self, db, billed_tenant_id, owner_id
    ) -> None:
        outcome = await pay(db, "SUN#B1", 25000)
        assert outcome.analysis.carry_forward == Decimal("5000.00")

        await payment_services.run_monthly_billing_sweep(db, owner_id, "2026-11")

        tenant = await tenant_services.get_tenant(db, billed_tenant_id)
        assert Decimal(tenant.account_balance) == Decimal("-15000.00")
        assert tenant.payment_status == PaymentStatus.PENDING
        entry = tenant.payment_history[-1]
        assert (entry["type"], entry["amount"]) == ("monthly billing", "-20000.00")

    async def test_duplicate_receipt_rejected(self, db, billed_tenant_id) -> None:
        await pay(db, "SUN#B1", 14000, receipt="SIMDUP0001")

        with pytest.raises(DuplicatePaymentError) as exc_info:
            await pay(db, "SUN#B1", 14000, receipt="SIMDUP0001")

        assert exc_info.value.receipt_number == "SIMDUP0001"
        tenant = await tenant_services.get_tenant(db, billed_tenant_id)
        assert Decimal(tenant.account_balance) == Decimal("-6000.00")
        assert len(await payment_services.list_payments(db, billed_tenant_id)) == 1

    async def test_unknown_reference(self, db, billed_tenant_id) -> None:
        with pytest.raises(TenantNotFoundError):
            await pay(db, "SUN#Z9", 20000)

    async def test_moved_out_tenant_is_never_reconciled(
        self, db, billed_tenant_id
    ) -> None:
        await tenant_services.move_out_tenant(db, billed_tenant_id)

        with pytest.raises(TenantNotFoundError):
            await pay(db, "SUN#B1", 20000)
        assert await payment_services.list_payments(db, billed_tenant_id) == []

    @pytest.mark.parametrize("amount", [0, "-100"])
    async def test_invalid_amount_touches_nothing(
        self, db, billed_tenant_id, amount
    ) -> None:
        with pytest.raises(ValidationError):
            await pay(db, "SUN#B1", amount)

        tenant = await tenant_services.get_tenant(db, billed_tenant_id)
        assert Decimal(tenant.account_balance) == Decimal("-20000.00")
        assert tenant.payment_status == PaymentStatus.PENDING

    async def test_notification_failure_is_not_fatal(
        self, db, billed_tenant_id, owner_id, monkeypatch
    ) -> None:
        async def broken_sink(session, notifications):
            raise OperationalError(
                "INSERT INTO notifications", {}, Exception("disk full")
            )

        monkeypatch.setattr(payment_crud, "add_notifications", broken_sink)

        outcome = await pay(db, "SUN#B1", 20000)

        assert outcome.notification_sent is False
        tenant = await tenant_services.get_tenant(db, billed_tenant_id)
        assert Decimal(tenant.account_balance) == Decimal("0.00")
        assert len(await payment_services.list_payments(db, billed_tenant_id)) == 1

    async def test_concurrent_payments_are_serialised(
        self, file_session_factory, owner_id, sunrise_create
    ) -> None:
        async with file_session_factory() as session:
            property_obj = await property_services.create_property(
                session, owner_id, sunrise_create
            )
            tenant = await tenant_services.onboard_tenant(
                session,
                owner_id,
                TenantCreate(
                    name="Achieng", property_id=property_obj.id, unit_type="1bedroom"
                ),
            )
            tenant_id, reference = tenant.id, tenant.billing_reference
            await payment_services.run_monthly_billing_sweep(session, owner_id, MONTH)

        async def pay_in_own_session(amount: int):
            async with file_session_factory() as session:
                return await pay(session, reference, amount)

        outcomes = await asyncio.gather(*(pay_in_own_session(10000) for _ in range(2)))

        assert sorted(o.analysis.payment_type.value for o in outcomes) == [
            "exact",
            "underpayment",
        ]
        async with file_session_factory() as session:
            audit = await payment_services.audit_tenant_balance(session, tenant_id)
            assert audit.cached_balance == Decimal("0.00")
            assert audit.is_consistent


class TestGatewayCallback:
    """Payments confirmed by M-Pesa."""

    async def test_successful_callback(self, db, billed_tenant_id) -> None:
        outcome = await payment_services.process_gateway_callback(
            db, stk_payload(20000, "NLJ7RT61SV"), "SUN#B1"
        )

        assert outcome.receipt_number == "NLJ7RT61SV"
        assert outcome.analysis.payment_type == PaymentType.EXACT

        payment = (await payment_services.list_payments(db, billed_tenant_id))[0]
        assert payment.channel == PaymentChannel.GATEWAY_CALLBACK
        assert payment.phone_number == "254712345678"
        assert payment.checkout_request_id == "ws_CO_191220191020363925"
        assert payment.billing_month == "2026-10"

    async def test_replayed_callback_rejected(self, db, billed_tenant_id) -> None:
        payload = stk_payload(20000, "NLJ7RT61SV")
        await payment_services.process_gateway_callback(db, payload, "SUN#B1")

        with pytest.raises(DuplicatePaymentError):
            await payment_services.process_gateway_callback(db, payload, "SUN#B1")

    async def test_failed_transaction(self, db, billed_tenant_id) -> None:
        with pytest.raises(PaymentRejectedError):
            await payment_services.process_gateway_callback(
                db, stk_payload(20000, "X", result_code=1032), "SUN#B1"
            )
        assert await payment_services.list_payments(db, billed_tenant_id) == []


class TestMonthlyBillingSweep:
    """Batch debiting of rent."""

    async def test_bills_every_active_tenant(
        self, db, sunrise, onboard, owner_id
    ) -> None:
        a = await onboard(sunrise.id, "bedsitter", name="A")
        b = await onboard(sunrise.id, "1bedroom", name="B")
        leaver = await onboard(sunrise.id, "bedsitter", name="C")
        await tenant_services.move_out_tenant(db, leaver.id)

        result = await payment_services.run_monthly_billing_sweep(db, owner_id, MONTH)

        assert result.billing_month == MONTH
        assert sorted(result.billed) == sorted([a.id, b.id])
        assert result.failed == []

        a = await tenant_services.get_tenant(db, a.id)
        assert Decimal(a.account_balance) == Decimal("-8000.00")
        leaver = await tenant_services.get_tenant(db, leaver.id)
        assert Decimal(leaver.account_balance) == Decimal("0.00")

        reminders = [
            n
            for n in await payment_services.list_notifications(db, owner_id)
            if n.notification_type == NotificationType.REMINDER
        ]
        assert len(reminders) == 2

    async def test_rerun_bills_nobody_twice(
        self, db, sunrise, onboard, owner_id
    ) -> None:
        tenant = await onboard(sunrise.id, "1bedroom")

        first = await payment_services.run_monthly_billing_sweep(db, owner_id, MONTH)
        second = await payment_services.run_monthly_billing_sweep(db, owner_id, MONTH)

        assert first.billed == [tenant.id]
        assert second.billed == []
        assert second.skipped == [tenant.id]
        tenant = await tenant_services.get_tenant(db, tenant.id)
        assert Decimal(tenant.account_balance) == Decimal("-20000.00")

    async def test_one_failure_does_not_abort_sweep(
        self, db, sunrise, onboard, owner_id, monkeypatch
    ) -> None:
        # A rollback expires loaded tenants, so only ids are kept
        a_id, b_id, c_id = [
            (await onboard(sunrise.id, "bedsitter", name=name)).id
            for name in ("A", "B", "C")
        ]

        real_billing = payment_services.apply_monthly_billing

        def flaky_billing(tenant, *args, **kwargs):
            if tenant.id == b_id:
                raise RentFlowException("ledger unavailable")
            return real_billing(tenant, *args, **kwargs)

        monkeypatch.setattr(payment_services, "apply_monthly_billing", flaky_billing)

        result = await payment_services.run_monthly_billing_sweep(db, owner_id, MONTH)

        assert sorted(result.billed) == [a_id, c_id]
        assert [f.tenant_id for f in result.failed] == [b_id]
        assert result.failed[0].error == "ledger unavailable"

        b = await tenant_services.get_tenant(db, b_id)
        assert Decimal(b.account_balance) == Decimal("0.00")
        assert await payment_crud.get_billing_charge(db, b_id, MONTH) is None

    async def test_other_owners_untouched(
        self, db, sunrise, onboard, owner_id
    ) -> None:
        tenant = await onboard(sunrise.id, "1bedroom")

        result = await payment_services.run_monthly_billing_sweep(
            db, owner_id + 1, MONTH
        )

        assert result.billed == []
        tenant = await tenant_services.get_tenant(db, tenant.id)
        assert Decimal(tenant.account_balance) == Decimal("0.00")


class TestOverdue:
    """Escalation after the grace period."""

    async def test_mark_overdue(self, db, sunrise, onboard, owner_id) -> None:
        debtor = await onboard(sunrise.id, "1bedroom", name="Debtor")
        payer = await onboard(sunrise.id, "bedsitter", name="Payer")
        await payment_services.run_monthly_billing_sweep(db, owner_id, MONTH)
        await pay(db, payer.billing_reference, 8000)

        marked = await payment_services.mark_overdue_tenants(
            db, owner_id, date(2026, 10, 10)
        )

        assert marked == [debtor.id]
        debtor = await tenant_services.get_tenant(db, debtor.id)
        assert debtor.payment_status == PaymentStatus.OVERDUE
        notifications = await payment_services.list_notifications(db, owner_id)
        titles = [n.title for n in notifications]
        assert "Rent Overdue" in titles

        again = await payment_services.mark_overdue_tenants(
            db, owner_id, date(2026, 10, 11)
        )
        assert again == []

    async def test_grace_period(self, db, billed_tenant_id, owner_id) -> None:
        assert await payment_services.mark_overdue_tenants(
            db, owner_id, date(2026, 10, 3)
        ) == []


class TestLedgerAudit:
    """Cached balance against the ledger events."""

    async def test_audit_matches_after_activity(
        self, db, billed_tenant_id, owner_id
    ) -> None:
        await pay(db, "SUN#B1", 14000)
        await pay(db, "SUN#B1", 11000)
        await payment_services.run_monthly_billing_sweep(db, owner_id, "2026-11")

        audit = await payment_services.audit_tenant_balance(db, billed_tenant_id)

        assert audit.is_consistent
        assert audit.ledger_balance == Decimal("-15000.00")
        assert audit.total_paid == Decimal("25000.00")
        assert audit.total_billed == Decimal("40000.00")
        assert (audit.payment_count, audit.charge_count) == (2, 2)

    async def test_audit_detects_drift(self, db, billed_tenant_id) -> None:
        tenant = await tenant_services.get_tenant(db, billed_tenant_id)
        tenant.account_balance = Decimal("100.00")
        await db.commit()

        audit = await payment_services.audit_tenant_balance(db, billed_tenant_id)

        assert not audit.is_consistent
        assert audit.ledger_balance == Decimal("-20000.00")

    async def test_payments_are_append_only(self, db, billed_tenant_id) -> None:
        await pay(db, "SUN#B1", 20000)
        payment = (await payment_services.list_payments(db, billed_tenant_id))[0]

        payment.amount = Decimal("1.00")
        with pytest.raises(ImmutableRecordError):
            await db.flush()
        await db.rollback()

        payment = (await payment_services.list_payments(db, billed_tenant_id))[0]
        await db.delete(payment)
        with pytest.raises(ImmutableRecordError):
            await db.flush()
        await db.rollback()

    async def test_billing_charges_are_append_only(self, db, billed_tenant_id) -> None:
        charge = await payment_crud.get_billing_charge(db, billed_tenant_id, MONTH)

        charge.amount = Decimal("1.00")
        with pytest.raises(ImmutableRecordError):
            await db.flush()
        await db.rollback()


class TestBalancesAndNotifications:
    """Read-side helpers."""

    async def test_balance_view(self, db, billed_tenant_id) -> None:
        await pay(db, "SUN#B1", 25000)

        balance = await payment_services.get_balance(db, billed_tenant_id)

        assert balance.status == "credit"
        assert balance.current_balance == Decimal("5000.00")
        assert balance.next_payment_due == Decimal("15000.00")

    async def test_reminders(self, db, billed_tenant_id, owner_id) -> None:
        reminders = await payment_services.get_payment_reminders(db, owner_id)

        assert [(r.tenant_id, r.reminder_type) for r in reminders] == [
            (billed_tenant_id, "overdue")
        ]
        assert reminders[0].amount_due == Decimal("20000.00")

    async def test_mark_notification_read(self, db, billed_tenant_id, owner_id) -> None:
        [notification] = await payment_services.list_notifications(db, owner_id)

        assert not await payment_services.mark_notification_read(
            db, owner_id + 1, notification.id
        )
        assert await payment_services.mark_notification_read(
            db, owner_id, notification.id
        )
        assert await payment_services.list_notifications(
            db, owner_id, unread_only=True
        ) == []
