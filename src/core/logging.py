"""Structured logging configuration for the sheet converter.

Provides structlog configuration with Cloud Logging integration and
consistent event naming.
"""

from __future__ import annotations

import logging
import os
from enum import Enum
from typing import Any

import structlog

# Standard log level values
LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


class EventType(str, Enum):
    """Standardized event types for log correlation."""

    # Invocation lifecycle
    CONVERSION_RECEIVED = "conversion_received"
    CONVERSION_COMPLETED = "conversion_completed"
    CONVERSION_FAILED = "conversion_failed"

    # Pipeline stages
    DOWNLOAD_COMPLETED = "download_completed"
    CONVERT_COMPLETED = "convert_completed"
    UPLOAD_COMPLETED = "upload_completed"
    CLEANUP_COMPLETED = "cleanup_completed"
    CLEANUP_FAILED = "cleanup_failed"

    # System operations
    HEALTH_CHECK = "health_check"


def add_cloud_context(
    logger: structlog.types.WrappedLogger,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Add Cloud Function context to log events.

    Adds execution_id, function_name, and project_id from environment.
    """
    event_dict["execution_id"] = os.environ.get(
        "FUNCTION_EXECUTION_ID", os.environ.get("K_REVISION", "local")
    )
    event_dict["function_name"] = os.environ.get(
        "FUNCTION_NAME", os.environ.get("K_SERVICE", "unknown")
    )
    event_dict["project_id"] = os.environ.get("GCP_PROJECT", "local")
    event_dict["environment"] = os.environ.get("ENVIRONMENT", "development")

    return event_dict


def add_severity_for_cloud_logging(
    logger: structlog.types.WrappedLogger,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Add severity field for Cloud Logging integration.

    Cloud Logging expects a 'severity' field with uppercase level names.
    """
    level = event_dict.get("level", "info").upper()
    event_dict["severity"] = level if level in LOG_LEVELS else "DEFAULT"
    return event_dict


def configure_logging(
    json_logs: bool | None = None,
    log_level: str = "INFO",
) -> None:
    """Configure structured logging for the application.

    Args:
        json_logs: Whether to output JSON logs. Defaults to True in production.
        log_level: Minimum log level to output.
    """
    if json_logs is None:
        json_logs = os.environ.get("ENVIRONMENT") == "production"

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        add_cloud_context,
        add_severity_for_cloud_logging,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if json_logs:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=True,
                exception_formatter=structlog.dev.plain_traceback,
            )
        )

    level_value = LOG_LEVELS.get(log_level.upper(), logging.INFO)

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level_value),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


class LogContext:
    """Context manager for adding temporary logging context.

    Example:
        with LogContext(bucket="uploads", object_name="report.xlsx"):
            logger.info(EventType.CONVERSION_RECEIVED.value)
    """

    def __init__(self, **context: Any) -> None:
        self.context = context
        self.token = None

    def __enter__(self) -> LogContext:
        self.token = structlog.contextvars.bind_contextvars(**self.context)
        return self

    def __exit__(self, *args: Any) -> None:
        if self.token:
            structlog.contextvars.unbind_contextvars(*self.context.keys())


# Initialize logging on module import if running in Cloud Function
if os.environ.get("FUNCTION_NAME") or os.environ.get("K_SERVICE"):
    configure_logging(json_logs=True, log_level=os.environ.get("LOG_LEVEL", "INFO"))
