"""
Operation tracking for logging correlation.

Every allocation, payment and sweep runs under a transaction id and an
operation name; both are stamped on each log record emitted while it runs, so
one tenant's payment can be followed through the JSON log.
"""

import logging
import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

_transaction_id: ContextVar[str | None] = ContextVar("transaction_id", default=None)
_operation: ContextVar[str | None] = ContextVar("operation", default=None)


def generate_transaction_id() -> str:
    return uuid.uuid4().hex[:8]


def get_transaction_id() -> str:
    """Current transaction id; one is created for code running outside any scope."""
    txn_id = _transaction_id.get()
    if txn_id is None:
        txn_id = generate_transaction_id()
        _transaction_id.set(txn_id)
    return txn_id


def set_transaction_id(txn_id: str) -> None:
    _transaction_id.set(txn_id)


def get_operation() -> str | None:
    return _operation.get()


class TransactionIdFilter(logging.Filter):
    """Stamps the current transaction id and operation on every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "transaction_id"):
            record.transaction_id = get_transaction_id()
        if not hasattr(record, "operation"):
            record.operation = get_operation()
        return True


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)


@contextmanager
def operation_scope(
    operation: str,
    logger: logging.Logger,
    txn_id: str | None = None,
    **fields,
) -> Iterator[str]:
    """Run a block under its own transaction id, logging how it ended.

    The enclosing transaction id and operation are restored on exit, so a
    sweep and each tenant it bills are told apart in the log. Failures are
    logged at WARNING and re-raised.
    """
    txn_id = txn_id or generate_transaction_id()
    txn_token = _transaction_id.set(txn_id)
    op_token = _operation.set(operation)
    start = time.perf_counter()

    logger.debug(f"{operation} started", extra=fields)
    try:
        yield txn_id
    except Exception as e:
        logger.warning(
            f"{operation} failed",
            extra={
                "duration_ms": _elapsed_ms(start),
                "error": str(e),
                "error_type": type(e).__name__,
                **fields,
            },
        )
        raise
    else:
        logger.debug(
            f"{operation} completed",
            extra={"duration_ms": _elapsed_ms(start), **fields},
        )
    finally:
        _operation.reset(op_token)
        _transaction_id.reset(txn_token)
