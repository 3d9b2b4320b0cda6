"""Logging setup for the dispatcher process.

Example:
    >>> from libs.common.logging.config import configure_logging
    >>> logger = configure_logging(service_name="sarkhati", log_level="INFO")
    >>> logger.info("Dispatcher started", extra={"brokers": ["mofid"]})
"""

import logging
import sys

from libs.common.logging.context import get_batch, get_broker
from libs.common.logging.formatter import JSONFormatter


class SessionContextFilter(logging.Filter):
    """Logging filter that stamps broker and batch onto each record.

    Values come from the context variables bound by the running dispatch
    loop; records emitted outside a loop carry ``None``.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        record.broker = get_broker()
        record.batch = get_batch()
        return True


def configure_logging(
    service_name: str,
    log_level: str = "INFO",
    include_context: bool = True,
) -> logging.Logger:
    """Configure structured JSON logging on the root logger.

    Call once at process startup. Existing root handlers are replaced so
    repeated calls (tests, re-entry) do not duplicate output.

    Args:
        service_name: Value of the "service" field in every entry
        log_level: Minimum level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        include_context: Whether structured extras are emitted

    Returns:
        The configured root logger

    Raises:
        ValueError: If log_level is invalid
    """
    numeric_level = getattr(logging, log_level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {log_level}")

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)
    handler.setFormatter(JSONFormatter(service_name=service_name, include_context=include_context))
    handler.addFilter(SessionContextFilter())

    root_logger.addHandler(handler)

    # httpx logs every request at INFO; the dispatcher already reports outcomes
    logging.getLogger("httpx").setLevel(max(numeric_level, logging.WARNING))

    return root_logger
