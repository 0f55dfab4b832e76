"""
Queue-backed log output.

Records are put on an in-memory queue by the calling coroutine and written to
stdout and a rotating file by a listener thread, so a slow disk never holds a
tenant lock longer than the database work it protects.
"""

import logging
import queue
import sys
from logging.handlers import QueueHandler, QueueListener, RotatingFileHandler
from pathlib import Path

from .structured_logger import build_formatter

PLAIN_FORMAT = (
    "%(asctime)s | %(levelname)s | %(transaction_id)s | "
    "%(name)s:%(lineno)d | %(message)s"
)

# Third-party loggers kept at WARNING and routed like our own
LIBRARY_LOGGERS = ("sqlalchemy", "aiosqlite", "asyncmy", "alembic", "py.warnings")


def make_formatter(use_json_format: bool) -> logging.Formatter:
    return build_formatter() if use_json_format else logging.Formatter(PLAIN_FORMAT)


class FileLogger:
    """Owns the log queue, its listener thread and the handlers it feeds."""

    def __init__(
        self,
        log_file_path: str = "logs/app.log",
        max_bytes: int = 50 * 1024 * 1024,
        backup_count: int = 5,
        log_level: str = "INFO",
        use_json_format: bool = True,
    ):
        self.log_file_path = Path(log_file_path)
        self.level = logging.getLevelName(log_level.upper())
        self.formatter = make_formatter(use_json_format)
        self._max_bytes = max_bytes
        self._backup_count = backup_count
        self._queue: queue.Queue = queue.Queue()
        self._queue_handler = QueueHandler(self._queue)
        self._queue_handler.setLevel(self.level)
        self._listener: QueueListener | None = None

    def _outputs(self) -> list[logging.Handler]:
        self.log_file_path.parent.mkdir(parents=True, exist_ok=True)
        outputs = [
            logging.StreamHandler(sys.stdout),
            RotatingFileHandler(
                self.log_file_path,
                maxBytes=self._max_bytes,
                backupCount=self._backup_count,
                encoding="utf-8",
            ),
        ]
        for handler in outputs:
            handler.setLevel(self.level)
            handler.setFormatter(self.formatter)
        return outputs

    def start(self) -> None:
        if self._listener is None:
            self._listener = QueueListener(
                self._queue, *self._outputs(), respect_handler_level=True
            )
            self._listener.start()

    def get_queue_handler(self) -> QueueHandler:
        return self._queue_handler

    def stop(self) -> None:
        """Flush what is queued and stop the listener thread."""
        if self._listener is not None:
            self._listener.stop()
            for handler in self._listener.handlers:
                handler.close()
            self._listener = None


def setup_file_logging(
    log_file_path: str = "logs/app.log",
    log_level: str = "INFO",
    use_json_format: bool = True,
    max_bytes: int = 50 * 1024 * 1024,
    backup_count: int = 5,
) -> FileLogger | None:
    """Start queue-backed logging to stdout and a rotating file.

    Returns:
        The running FileLogger, or None when the log file cannot be opened
    """
    file_logger = FileLogger(
        log_file_path=log_file_path,
        max_bytes=max_bytes,
        backup_count=backup_count,
        log_level=log_level,
        use_json_format=use_json_format,
    )
    try:
        file_logger.start()
    except OSError as e:
        logging.getLogger(__name__).error(
            f"File logging to {log_file_path} unavailable: {e}"
        )
        return None
    return file_logger


def route_logger(
    name: str, handler: logging.Handler, level: int | str
) -> logging.Logger:
    """Make a handler the only output of a logger."""
    logger = logging.getLogger(name)
    logger.handlers.clear()
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False
    return logger
