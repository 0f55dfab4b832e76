"""Logging infrastructure for the RentFlow backend."""

from .context import (
    TransactionIdFilter,
    get_operation,
    get_transaction_id,
    operation_scope,
    set_transaction_id,
)
from .file_logger import FileLogger, setup_file_logging
from .logger_config import get_logger, setup_logging, shutdown_logging

__all__ = [
    "FileLogger",
    "setup_file_logging",
    "get_logger",
    "setup_logging",
    "shutdown_logging",
    "TransactionIdFilter",
    "get_operation",
    "get_transaction_id",
    "set_transaction_id",
    "operation_scope",
]
