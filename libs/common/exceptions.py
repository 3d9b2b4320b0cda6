"""
Exception hierarchy for the order dispatcher.

Errors are split by blast radius: configuration errors abort a single
session before it sends anything, serialization errors fail a single
order, and transport errors fail a single request.
"""


class SarkhatiError(Exception):
    """
    Base exception for all dispatcher errors.

    Example:
        >>> try:
        ...     build_session(BrokerName.MOFID, record)
        ... except SarkhatiError as e:
        ...     logger.error(f"Dispatcher error: {e}")
    """

    pass


class ConfigurationError(SarkhatiError):
    """
    Raised when a broker session cannot be constructed from its configuration.

    Covers a missing or unreadable config file, no usable credential,
    a credential kind the broker does not accept, a missing endpoint and
    malformed order payloads. Fatal for the affected session only.

    Example:
        >>> if not cookie and not token:
        ...     raise ConfigurationError("No usable credential configured")
    """

    pass


class SerializationError(SarkhatiError):
    """
    Raised when an adapter cannot build a wire body for an order.

    The dispatch loop records the order as failed without calling the
    broker, e.g. an Alvand order with no bank account id.
    """

    pass


class TransportError(SarkhatiError):
    """
    Raised by the HTTP transport on connect, timeout or DNS failures.

    Carries no status code; the request never produced a response.
    """

    pass
