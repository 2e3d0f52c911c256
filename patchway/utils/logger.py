"""
Structured logging for Patchway.

Provides a consistent logging interface with support for:
- Multiple log levels
- Structured JSON logging
- Console and file output
- Rich formatting for console
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.logging import RichHandler


class LogLevel(str, Enum):
    """Log levels for Patchway."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"

    @property
    def numeric(self) -> int:
        """Get numeric log level."""
        levels = {
            "debug": logging.DEBUG,
            "info": logging.INFO,
            "warning": logging.WARNING,
            "error": logging.ERROR,
            "critical": logging.CRITICAL,
        }
        return levels.get(self.value, logging.INFO)


ROOT_LOGGER = "patchway"


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    """
    Get a logger in the Patchway namespace.

    Loggers do not get their own handlers; records propagate to the
    ``patchway`` root configured by :func:`setup_logging`.

    Args:
        name: Logger name (usually ``__name__``)

    Returns:
        Logger instance
    """
    if name != ROOT_LOGGER and not name.startswith(f"{ROOT_LOGGER}."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)


def setup_logging(
    level: LogLevel | str = LogLevel.INFO,
    log_file: str | Path | None = None,
    json_format: bool = False,
    console: bool = True,
) -> None:
    """
    Set up logging configuration for Patchway.

    Args:
        level: Minimum log level
        log_file: Optional file path for log output
        json_format: Use JSON format for file logs
        console: Enable console output
    """
    if isinstance(level, str):
        level = LogLevel(level.lower())

    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(level.numeric)
    root.handlers.clear()

    if console:
        console_handler = RichHandler(
            console=Console(stderr=True),
            show_time=True,
            show_path=False,
            markup=True,
            rich_tracebacks=True,
        )
        console_handler.setLevel(level.numeric)
        console_handler.setFormatter(logging.Formatter("%(message)s"))
        root.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        if json_format:
            file_handler.setFormatter(JsonFormatter())
        else:
            file_handler.setFormatter(logging.Formatter(
                "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
            ))

        file_handler.setLevel(level.numeric)
        root.addHandler(file_handler)


class JsonFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }

        context = getattr(record, "context", None)
        if isinstance(context, dict):
            log_data.update(context)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def log_queue_transition(
    logger: logging.Logger,
    queue: str,
    action: str,
    item_id: str,
    partition_key: str,
    attempts: int = 0,
) -> None:
    """
    Log a queue item state change with structured context.

    Args:
        logger: Logger to use
        queue: Queue name
        action: Transition (enqueue, lease, ack, nack, expire, dead)
        item_id: Queue item id
        partition_key: Partition of the item
        attempts: Failed attempts so far
    """
    context = {
        "queue": queue,
        "action": action,
        "item_id": item_id,
        "partition_key": partition_key,
        "attempts": attempts,
    }
    level = logging.WARNING if action == "dead" else logging.DEBUG
    logger.log(
        level,
        f"[cyan]{queue}[/] {action} {item_id} "
        f"(partition={partition_key}, attempts={attempts})",
        extra={"context": context},
    )


def log_tool_execution(
    logger: logging.Logger,
    tool: str,
    role: str,
    success: bool,
    duration: float,
    error: str | None = None,
) -> None:
    """
    Log a tool execution with structured data.

    Args:
        logger: Logger to use
        tool: Tool name
        role: Role that invoked the tool
        success: Whether execution succeeded
        duration: Duration in seconds
        error: Error message if failed
    """
    context = {"tool": tool, "role": role, "success": success, "duration": duration}
    if success:
        logger.info(
            f"[magenta]{tool}[/] by [cyan]{role}[/] completed in {duration:.3f}s",
            extra={"context": context},
        )
    else:
        logger.error(
            f"[magenta]{tool}[/] by [cyan]{role}[/] failed: {error or 'Unknown error'}",
            extra={"context": context},
        )
