"""
Structured Logging
==================

One JSON object per line on stdout.

Every record carries `timestamp`, `environment` and, when the request
middleware or a service passed them in `extra`, `correlation_id`,
`user_id` and `ticket_id`. Values under credential-like keys are
redacted before they are written.

Usage:
    from helpdesk.shared.infrastructure.logging import get_logger

    logger = get_logger(__name__)
    logger.info("Ticket created", extra={"ticket_id": ticket_id})
"""

import logging
import sys
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Optional

from pythonjsonlogger import jsonlogger

from helpdesk.config import settings

REDACTED = "***REDACTED***"
SENSITIVE_KEYS = ("password", "secret", "api_key", "token", "authorization")

# Request context copied from `extra` to the top level when present
CONTEXT_FIELDS = ("correlation_id", "user_id", "ticket_id")

QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "apscheduler", "httpx", "watchdog")


class HelpdeskJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter adding UTC timestamps, request context and redaction."""

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_record[field] = value

        for key, value in list(log_record.items()):
            if isinstance(value, str) and any(marker in key.lower() for marker in SENSITIVE_KEYS):
                log_record[key] = REDACTED


def setup_logging(level: Optional[str] = None, environment: Optional[str] = None) -> None:
    """
    Install the JSON handler on the root logger.

    Args:
        level: DEBUG, INFO, WARNING or ERROR (defaults to `settings.log_level`)
        environment: tag written on every record (defaults to `settings.environment`)
    """
    level_value = getattr(logging, (level or settings.log_level).upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(HelpdeskJsonFormatter(
        fmt="%(asctime)s %(name)s %(levelname)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        static_fields={"environment": environment or settings.environment},
    ))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level_value)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


@contextmanager
def log_latency(logger: logging.Logger, operation: str, **extra_context: Any):
    """
    Log how long the wrapped block took, even when it raises.

    Usage:
        with log_latency(logger, "sla_escalation_sweep"):
            await job.evaluate(session)
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        logger.info(
            f"{operation} completed",
            extra={
                "operation": operation,
                "latency_ms": round((time.perf_counter() - start) * 1000, 2),
                **extra_context,
            },
        )
