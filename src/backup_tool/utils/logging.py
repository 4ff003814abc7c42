"""Logging setup for the backup tool.

Everything logs below the ``backup_tool`` logger. The CLI configures it once
with :func:`setup_logging` and passes the result to the coordinator and the
strategies; library code never touches the handlers.
"""

import logging
import logging.handlers
import time
from pathlib import Path
from typing import Any, Dict, Optional, Union

LOGGER_NAME = "backup_tool"
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[Union[str, Path]] = None,
    log_to_console: bool = True,
    max_file_size: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5
) -> logging.Logger:
    """Configure the ``backup_tool`` logger.

    Handlers from an earlier call are closed and replaced, so the CLI can be
    invoked repeatedly in one process.

    Args:
        log_level: Console level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Rotating log file; it always receives DEBUG and up
        log_to_console: Whether to add a stderr handler
        max_file_size: Size in bytes at which the log file rotates
        backup_count: Rotated files to keep

    Returns:
        The configured logger
    """
    level = getattr(logging, log_level.upper())
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if log_file else level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    if log_to_console:
        stream_handler = logging.StreamHandler()
        stream_handler.setLevel(level)
        stream_handler.setFormatter(formatter)
        logger.addHandler(stream_handler)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        rotating_handler = logging.handlers.RotatingFileHandler(
            path, maxBytes=max_file_size, backupCount=backup_count,
            encoding='utf-8', errors='backslashreplace'
        )
        rotating_handler.setLevel(logging.DEBUG)
        rotating_handler.setFormatter(formatter)
        logger.addHandler(rotating_handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Return the ``backup_tool.<name>`` child logger."""
    return logging.getLogger(f"{LOGGER_NAME}.{name}")


class ContextualLogger(logging.LoggerAdapter):
    """Prefixes every message with its context, e.g. ``[destination=/mnt/a] ...``."""

    def __init__(self, logger: logging.Logger, context: Dict[str, Any]):
        super().__init__(logger, dict(context))

    def process(self, msg, kwargs):
        prefix = " | ".join(f"{key}={value}" for key, value in self.extra.items())
        return f"[{prefix}] {msg}", kwargs


class TimedOperation:
    """Logs the start, duration and outcome of the enclosed block.

    Exceptions are logged and then propagated. ``duration`` holds the elapsed
    seconds once the block has exited.
    """

    def __init__(self, logger, operation_name: str, log_level: str = "INFO"):
        self.logger = logger
        self.operation_name = operation_name
        self.level = getattr(logging, log_level.upper())
        self.started: Optional[float] = None
        self.duration: float = 0.0

    def __enter__(self):
        self.started = time.monotonic()
        self.logger.log(self.level, f"Starting {self.operation_name}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.duration = time.monotonic() - self.started
        if exc_type is None:
            self.logger.log(self.level, f"Completed {self.operation_name} in {self.duration:.2f}s")
        else:
            self.logger.error(f"Failed {self.operation_name} after {self.duration:.2f}s: {exc_val}")
        return False
