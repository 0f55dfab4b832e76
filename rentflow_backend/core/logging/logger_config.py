"""
Central logging configuration for RentFlow.

Everything under the ``rentflow_backend`` namespace, plus the database
libraries, goes through one handler: the queue handler when file logging is
on, a plain stdout handler otherwise.
"""

import logging
import sys

from .context import TransactionIdFilter
from .file_logger import (
    LIBRARY_LOGGERS,
    FileLogger,
    make_formatter,
    route_logger,
    setup_file_logging,
)

ROOT_LOGGER = "rentflow_backend"


class LoggingConfig:
    """Installs and tears down the process-wide logging setup."""

    def __init__(self):
        self.file_logger: FileLogger | None = None
        self.handler: logging.Handler | None = None

    @property
    def is_configured(self) -> bool:
        return self.handler is not None

    def setup(
        self,
        log_to_file: bool = True,
        log_level: str = "INFO",
        log_file_path: str = "logs/app.log",
        use_json_format: bool = True,
        max_bytes: int = 50 * 1024 * 1024,
        backup_count: int = 5,
    ) -> logging.Logger:
        """Route application and library logs to stdout, and to a file if asked.

        Calling it again is a no-op until shutdown().
        """
        if self.is_configured:
            return get_logger()

        level = log_level.upper()
        if log_to_file:
            self.file_logger = setup_file_logging(
                log_file_path=log_file_path,
                log_level=level,
                use_json_format=use_json_format,
                max_bytes=max_bytes,
                backup_count=backup_count,
            )

        if self.file_logger is not None:
            handler: logging.Handler = self.file_logger.get_queue_handler()
        else:
            handler = logging.StreamHandler(sys.stdout)
            handler.setLevel(level)
            handler.setFormatter(make_formatter(use_json_format))
        handler.addFilter(TransactionIdFilter())

        logging.captureWarnings(True)
        for name in LIBRARY_LOGGERS:
            route_logger(name, handler, logging.WARNING)
        self.handler = handler
        return route_logger(ROOT_LOGGER, handler, level)

    def shutdown(self) -> None:
        if self.file_logger is not None:
            self.file_logger.stop()
            self.file_logger = None
        if self.handler is not None:
            for name in (ROOT_LOGGER, *LIBRARY_LOGGERS):
                logger = logging.getLogger(name)
                logger.removeHandler(self.handler)
                logger.setLevel(logging.NOTSET)
                logger.propagate = True
            self.handler = None
        logging.captureWarnings(False)


_logging_config = LoggingConfig()


def setup_logging(
    log_to_file: bool | None = None,
    log_level: str | None = None,
    log_file_path: str | None = None,
    use_json_format: bool | None = None,
) -> logging.Logger:
    """Set up logging; options left as None come from the loaded settings."""
    from ...config import settings

    return _logging_config.setup(
        log_to_file=settings.log_to_file if log_to_file is None else log_to_file,
        log_level=log_level or settings.log_level,
        log_file_path=log_file_path or settings.log_file_path,
        use_json_format=(
            settings.log_format.lower() == "json"
            if use_json_format is None
            else use_json_format
        ),
        max_bytes=settings.log_max_bytes,
        backup_count=settings.log_backup_count,
    )


def get_logger(name: str | None = None) -> logging.Logger:
    """Logger under the application namespace.

    Module paths (``__name__``) are used as they are; bare names are prefixed.
    """
    if not name:
        return logging.getLogger(ROOT_LOGGER)
    if name.startswith(ROOT_LOGGER):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def shutdown_logging() -> None:
    _logging_config.shutdown()
