"""Structured logging for the order dispatcher.

Usage:
    # At process startup
    from libs.common.logging import configure_logging
    configure_logging(service_name="sarkhati", log_level="INFO")

    # Inside a dispatch loop
    from libs.common.logging import LogContext, set_batch
    with LogContext("mofid"):
        set_batch(1)
        logger.info("Batch started", extra={"orders": 2})
"""

from libs.common.logging.config import (
    SessionContextFilter,
    configure_logging,
)
from libs.common.logging.context import (
    LogContext,
    clear_context,
    get_batch,
    get_broker,
    set_batch,
)
from libs.common.logging.formatter import JSONFormatter

__all__ = [
    # Configuration
    "configure_logging",
    "SessionContextFilter",
    # Session context
    "LogContext",
    "get_broker",
    "get_batch",
    "set_batch",
    "clear_context",
    # Formatter
    "JSONFormatter",
]
