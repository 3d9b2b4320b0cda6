"""Session context propagation for dispatcher logs.

Each dispatch loop runs in its own asyncio task, so the broker name and the
current batch number are kept in context variables. The logging filter in
``config.py`` stamps them onto every record, which lets interleaved output
from several brokers be told apart.

Example:
    >>> from libs.common.logging.context import LogContext, get_broker
    >>> with LogContext("mofid"):
    ...     get_broker()
    'mofid'
"""

import contextvars
from types import TracebackType

_broker_var: contextvars.ContextVar[str | None] = contextvars.ContextVar("broker", default=None)
_batch_var: contextvars.ContextVar[int | None] = contextvars.ContextVar("batch", default=None)


def get_broker() -> str | None:
    """Get the broker name bound to the current context, if any."""
    return _broker_var.get()


def get_batch() -> int | None:
    """Get the batch number bound to the current context, if any."""
    return _batch_var.get()


def set_batch(batch_number: int) -> None:
    """Bind the batch number for the current context.

    Args:
        batch_number: 1-based batch sequence number

    Raises:
        ValueError: If batch_number is not positive
    """
    if batch_number < 1:
        raise ValueError("Batch number must be positive")
    _batch_var.set(batch_number)


def clear_context() -> None:
    """Clear broker and batch from the current context."""
    _broker_var.set(None)
    _batch_var.set(None)


class LogContext:
    """Context manager binding a broker name for the duration of a block.

    The previous values are restored on exit, so nested scopes and tests do
    not leak context.

    Args:
        broker: Broker name to bind (e.g. "mofid")
    """

    def __init__(self, broker: str) -> None:
        self.broker = broker
        self._broker_token: contextvars.Token[str | None] | None = None
        self._batch_token: contextvars.Token[int | None] | None = None

    def __enter__(self) -> str:
        self._broker_token = _broker_var.set(self.broker)
        self._batch_token = _batch_var.set(None)
        return self.broker

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self._batch_token is not None:
            _batch_var.reset(self._batch_token)
        if self._broker_token is not None:
            _broker_var.reset(self._broker_token)
