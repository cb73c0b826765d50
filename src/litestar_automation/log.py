"""Structured logging for litestar-automation.

Log records are emitted through the standard :mod:`logging` module and, once
:func:`setup_logging` has been called, rendered as JSON lines by
``python-json-logger`` so they can be shipped to a log aggregator.

Example:
    >>> from litestar_automation.log import get_logger
    >>> logger = get_logger(__name__)
    >>> logger.info("SLA breach detected", extra={"ticket_id": "42"})
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime, timezone
from typing import Any

from pythonjsonlogger.json import JsonFormatter

__all__ = ["CONTEXT_FIELDS", "AutomationJsonFormatter", "get_logger", "setup_logging"]

CONTEXT_FIELDS = ("workflow_id", "instance_id", "ticket_id", "event_id", "action_name")
"""Record attributes copied onto every JSON line when present."""


class AutomationJsonFormatter(JsonFormatter):
    """JSON formatter adding a UTC timestamp, the environment and domain ids."""

    def __init__(self, *args: Any, environment: str = "development", **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.environment = environment

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
        log_record["environment"] = self.environment
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                log_record[name] = str(value)


def setup_logging(
    level: str = "INFO",
    environment: str = "development",
    *,
    json_format: bool = True,
) -> None:
    """Configure the ``litestar_automation`` logger hierarchy.

    Only the package logger is touched; the root logger and any handlers the
    host application installed are left alone.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR).
        environment: Environment name stamped onto each record.
        json_format: Emit JSON lines. Plain text is used when False.
    """
    logger = logging.getLogger("litestar_automation")
    logger.setLevel(level.upper())
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    if json_format:
        handler.setFormatter(
            AutomationJsonFormatter(
                "%(asctime)s %(name)s %(levelname)s %(message)s",
                datefmt="%Y-%m-%dT%H:%M:%S",
                environment=environment,
            )
        )
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(name)s %(levelname)s %(message)s"))
    logger.addHandler(handler)
    logger.propagate = False


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance with the given name.

    Args:
        name: Logger name, typically ``__name__`` of the calling module.

    Returns:
        The named logger.
    """
    return logging.getLogger(name)
