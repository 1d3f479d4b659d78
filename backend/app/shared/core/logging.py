"""
Logging Configuration with Correlation ID and Tenant Support

This module provides:
1. Context variables to store the current request's correlation ID and tenant
2. A custom log filter that stamps both onto every record
3. Helper functions to get/set them from middleware and dependencies
"""
import logging
import uuid
from contextvars import ContextVar
from typing import Optional

# Context variables for the current request (safe across async tasks)
correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)
tenant_id_var: ContextVar[Optional[str]] = ContextVar("tenant_id", default=None)


def get_correlation_id() -> Optional[str]:
    """Get the current request's correlation ID."""
    return correlation_id_var.get()


def set_correlation_id(correlation_id: Optional[str] = None) -> str:
    """
    Set the correlation ID for the current request.
    If not provided, generates a new short UUID.

    Returns the correlation ID that was set.
    """
    if correlation_id is None:
        correlation_id = f"req-{uuid.uuid4().hex[:8]}"
    correlation_id_var.set(correlation_id)
    return correlation_id


def get_tenant_id() -> Optional[str]:
    return tenant_id_var.get()


def set_tenant_id(tenant_id: Optional[str]) -> None:
    """Bind the resolved tenant to the current request's log records."""
    tenant_id_var.set(tenant_id)


class CorrelationIdFilter(logging.Filter):
    """
    A logging filter that adds correlation_id and tenant_id to log records.
    This allows the formatter to include both in every log message.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id() or "no-request"
        record.tenant_id = get_tenant_id() or "-"
        return True


LOG_FORMAT = "%(asctime)s | [%(correlation_id)s] | [tenant=%(tenant_id)s] | %(name)s | %(levelname)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that get the same handler instead of their own
ROUTED_LOGGERS = ("uvicorn", "uvicorn.access", "uvicorn.error")


def setup_logging(level="INFO") -> None:
    """
    Install one stream handler on the root logger.

    `level` accepts a logging constant or a name such as "DEBUG"; unknown
    names fall back to INFO. Safe to call more than once.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.strip().upper())
        if not isinstance(level, int):
            level = logging.INFO

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    handler.addFilter(CorrelationIdFilter())

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    for name in ROUTED_LOGGERS:
        routed = logging.getLogger(name)
        routed.handlers = [handler]
        routed.propagate = False
