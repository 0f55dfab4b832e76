"""Tests for config, logging, locks and money helpers."""

import asyncio
import json
import logging
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from rentflow_backend import database
from rentflow_backend.config import Settings, get_settings
from rentflow_backend.core.locks import PROPERTY, TENANT, EntityLocks
from rentflow_backend.core.logging import (
    TransactionIdFilter,
    get_logger,
    get_transaction_id,
    operation_scope,
    set_transaction_id,
    setup_file_logging,
    setup_logging,
    shutdown_logging,
)
from rentflow_backend.core.logging.structured_logger import build_formatter
from rentflow_backend.core.utils import (
    billing_month,
    format_amount,
    to_money,
)


class TestSettings:
    """YAML-backed settings."""

    def test_default_values(self) -> None:
        config = Settings()

        assert config.currency == "KES"
        assert config.payment_history_limit == 12
        assert config.billing_grace_days == 5
        assert config.simulated_receipt_prefix == "SIM"

    def test_from_yaml(self, tmp_path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text(
            "app_env: staging\n"
            "database_url: \"sqlite+aiosqlite:///:memory:\"\n"
            "payment_history_limit: 6\n"
            "currency: UGX\n"
        )
        config = Settings.from_yaml(str(path))

        assert config.app_env == "staging"
        assert config.payment_history_limit == 6
        assert config.currency == "UGX"

    def test_empty_yaml_gives_defaults(self, tmp_path) -> None:
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert Settings.from_yaml(str(path)).log_level == "INFO"

    def test_codes_are_normalised(self) -> None:
        config = Settings(currency="ugx", log_level="debug")
        assert (config.currency, config.log_level) == ("UGX", "DEBUG")

    @pytest.mark.parametrize(
        "overrides",
        [
            {"currency": "shillings"},
            {"log_level": "chatty"},
            {"payment_history_limit": 0},
            {"billing_grace_days": 31},
        ],
    )
    def test_invalid_values_rejected(self, overrides) -> None:
        with pytest.raises(ValueError):
            Settings(**overrides)

    def test_yaml_must_be_a_mapping(self, tmp_path) -> None:
        path = tmp_path / "list.yaml"
        path.write_text("- currency\n- KES\n")
        with pytest.raises(ValueError, match="YAML mapping"):
            Settings.from_yaml(path)

    def test_config_env_required(self, monkeypatch) -> None:
        monkeypatch.delenv("CONFIG", raising=False)
        with pytest.raises(ValueError, match="CONFIG environment variable is not set"):
            get_settings()

    def test_missing_config_file(self, monkeypatch, tmp_path) -> None:
        monkeypatch.setenv("CONFIG", str(tmp_path / "missing.yaml"))
        with pytest.raises(FileNotFoundError):
            get_settings()

    def test_test_config_is_loaded(self) -> None:
        config = get_settings()
        assert config.app_env == "test"
        assert config.database_url.startswith("sqlite+aiosqlite")


class TestStructuredLogging:
    """JSON formatting and transaction ids."""

    def test_json_record(self) -> None:
        record = logging.LogRecord(
            name="rentflow_backend.tests",
            level=logging.INFO,
            pathname=__file__,
            lineno=1,
            msg="Processed payment",
            args=(),
            exc_info=None,
        )
        record.transaction_id = "abc12345"
        payload = json.loads(build_formatter().format(record))

        assert payload["message"] == "Processed payment"
        assert payload["level"] == "INFO"
        assert payload["transaction_id"] == "abc12345"
        assert payload["service"]["name"] == "rentflow-backend"
        assert "pathname" not in payload

    def test_get_logger_namespacing(self) -> None:
        assert database.logger.name == "rentflow_backend.database"
        assert get_logger().name == "rentflow_backend"
        assert get_logger("billing").name == "rentflow_backend.billing"
        name = "rentflow_backend.database"
        assert get_logger(name).name == name

    def test_setup_and_shutdown_console_logging(self) -> None:
        logger = setup_logging(log_to_file=False, log_level="WARNING")
        try:
            assert logger.name == "rentflow_backend"
            assert logger.level == logging.WARNING
            assert len(logger.handlers) == 1
            assert not logger.propagate
            assert logging.getLogger("sqlalchemy").handlers == logger.handlers
        finally:
            shutdown_logging()

        assert logger.handlers == []
        assert logger.propagate
        assert logger.level == logging.NOTSET

    def test_filter_stamps_operation(self) -> None:
        record = logging.LogRecord(
            "rentflow_backend.tests", logging.INFO, __file__, 1, "x", (), None
        )
        with operation_scope("bill_tenant", get_logger("tests"), txn_id="bill0001"):
            TransactionIdFilter().filter(record)

        payload = json.loads(build_formatter().format(record))
        assert payload["transaction_id"] == "bill0001"
        assert payload["operation"] == "bill_tenant"

    def test_file_logging_writes_json_lines(self, tmp_path) -> None:
        log_path = tmp_path / "logs" / "app.log"
        file_logger = setup_file_logging(log_file_path=str(log_path), log_level="INFO")
        handler = file_logger.get_queue_handler()
        logger = logging.getLogger("rentflow_file_test")
        logger.propagate = False
        logger.setLevel(logging.INFO)
        logger.addHandler(handler)
        try:
            logger.info("Billing sweep finished", extra={"month": "2026-11"})
        finally:
            file_logger.stop()
            logger.removeHandler(handler)

        payload = json.loads(log_path.read_text().strip().splitlines()[-1])
        assert payload["message"] == "Billing sweep finished"
        assert payload["month"] == "2026-11"
        assert "transaction_id" in payload


class TestOperationScope:
    """Correlation ids around an operation."""

    def test_scope_sets_and_restores_transaction_id(self) -> None:
        logger = get_logger("tests")
        set_transaction_id("outer001")

        with operation_scope("assign_unit", logger, property_id=1) as txn_id:
            assert get_transaction_id() == txn_id
            assert txn_id != "outer001"

        assert get_transaction_id() == "outer001"

    def test_explicit_transaction_id(self) -> None:
        with operation_scope("sweep", get_logger("tests"), txn_id="sweep001") as txn_id:
            assert txn_id == "sweep001"

    def test_failure_is_logged_and_reraised(self, caplog) -> None:
        caplog.set_level(logging.DEBUG, logger="rentflow_backend")
        logger = get_logger("tests")

        with pytest.raises(RuntimeError):
            with operation_scope("process_payment", logger, tenant_id=3):
                raise RuntimeError("boom")

        failure = [
            r for r in caplog.records if r.getMessage() == "process_payment failed"
        ]
        assert len(failure) == 1
        assert failure[0].error_type == "RuntimeError"
        assert failure[0].tenant_id == 3


class TestEntityLocks:
    """Per-entity lock registry."""

    async def test_hold_locks_every_key(self) -> None:
        locks = EntityLocks()
        async with locks.hold((PROPERTY, 1), (TENANT, 5)):
            assert locks.is_locked(PROPERTY, 1)
            assert locks.is_locked(TENANT, 5)
        assert not locks.is_locked(PROPERTY, 1)
        assert not locks.is_locked(TENANT, 5)

    async def test_duplicate_keys_do_not_self_deadlock(self) -> None:
        locks = EntityLocks()
        async with locks.hold((PROPERTY, 1), (PROPERTY, 1)):
            assert locks.is_locked(PROPERTY, 1)

    async def test_opposite_orders_do_not_deadlock(self) -> None:
        locks = EntityLocks()
        entered: list[str] = []

        async def worker(name: str, *keys) -> None:
            async with locks.hold(*keys):
                entered.append(name)
                await asyncio.sleep(0)

        await asyncio.wait_for(
            asyncio.gather(
                worker("a", (PROPERTY, 1), (PROPERTY, 2)),
                worker("b", (PROPERTY, 2), (PROPERTY, 1)),
            ),
            timeout=1,
        )
        assert sorted(entered) == ["a", "b"]

    async def test_writers_are_serialised(self) -> None:
        locks = EntityLocks()
        balance = {"value": 0}

        async def credit() -> None:
            async with locks.hold((TENANT, 1)):
                current = balance["value"]
                await asyncio.sleep(0)
                balance["value"] = current + 100

        await asyncio.gather(*(credit() for _ in range(10)))
        assert balance["value"] == 1000


class TestMoney:
    """Money and month helpers."""

    def test_to_money_rounds_half_up(self) -> None:
        assert to_money("10.005") == Decimal("10.01")
        assert to_money(0.1) == Decimal("0.10")
        assert to_money(None) == Decimal("0.00")

    def test_to_money_rejects_garbage(self) -> None:
        with pytest.raises(ValueError):
            to_money("ten")

    def test_format_amount(self) -> None:
        assert format_amount(Decimal("20000")) == "KES 20,000"
        assert format_amount(Decimal("1500.5"), "UGX") == "UGX 1,500.50"

    def test_billing_month(self) -> None:
        assert billing_month(datetime(2026, 2, 28, tzinfo=timezone.utc)) == "2026-02"
