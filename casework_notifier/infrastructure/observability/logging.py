"""
Structured logging setup for the casework notifier.
Provides JSON-formatted logs with consistent fields for scheduled runs.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.stdlib import LoggerFactory


def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure structured logging with JSON output.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            _add_run_context,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )

    # Suppress noisy third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def _add_run_context(logger, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Merge job-run context (job name, run id) bound via contextvars."""
    return structlog.contextvars.merge_contextvars(logger, method_name, event_dict)


def get_logger(name: str = None) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


def log_reminder_sent(
    reminder_type: str, tier: str, recipients: list[str], row: int, sheet: str | None = None
):
    """Log a delivered reminder with consistent fields."""
    logger = get_logger("reminders")

    log_data = {
        "reminder_type": reminder_type,
        "tier": tier,
        "recipient_count": len(recipients),
        "row": row,
        "event_type": "reminder_sent",
    }

    if sheet:
        log_data["sheet"] = sheet

    logger.info("Reminder sent", **log_data)


def log_row_skipped(reason: str, row: int, sheet: str | None = None, **fields: Any):
    """Log a skipped row. Skips are only visible in logs."""
    logger = get_logger("reminders")

    log_data = {"reason": reason, "row": row, "event_type": "row_skipped", **fields}
    if sheet:
        log_data["sheet"] = sheet

    logger.info("Row skipped", **log_data)
