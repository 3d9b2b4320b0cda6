"""
Per-order outcomes and batch results.

Every attempted order ends in exactly one outcome. Success and the failure
kinds are final once recorded; the dispatch loop never retries inside a
batch, it only resends the whole order list on the next cycle.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from libs.common.log_sanitizer import decode_unicode_escapes, truncate

DEFAULT_SNIPPET_CHARS = 500


class OutcomeKind(str, Enum):
    """Classification of one order attempt."""

    SUCCESS = "success"
    HTTP_FAILURE = "http_failure"
    TRANSPORT_FAILURE = "transport_failure"
    # Adapter could not build a body; no request was sent
    SERIALIZATION_FAILURE = "serialization_failure"
    # Curl preview mode; nothing was sent
    SKIPPED = "skipped"


@dataclass(frozen=True)
class OrderOutcome:
    """
    Result of one order attempt within a batch.

    Attributes:
        order_index: 0-based position of the order in the session's list
        kind: Outcome classification
        status_code: HTTP status for SUCCESS and HTTP_FAILURE, else None
        detail: Body snippet (HTTP_FAILURE) or error description
    """

    order_index: int
    kind: OutcomeKind
    status_code: int | None = None
    detail: str | None = None

    @property
    def failed(self) -> bool:
        """True for every kind that should trigger the failure backoff."""
        return self.kind in (
            OutcomeKind.HTTP_FAILURE,
            OutcomeKind.TRANSPORT_FAILURE,
            OutcomeKind.SERIALIZATION_FAILURE,
        )

    @classmethod
    def transport_failure(cls, order_index: int, error: str) -> OrderOutcome:
        return cls(order_index, OutcomeKind.TRANSPORT_FAILURE, detail=error)

    @classmethod
    def serialization_failure(cls, order_index: int, error: str) -> OrderOutcome:
        return cls(order_index, OutcomeKind.SERIALIZATION_FAILURE, detail=error)

    @classmethod
    def skipped(cls, order_index: int) -> OrderOutcome:
        return cls(order_index, OutcomeKind.SKIPPED, detail="curl preview only")


def classify_response(
    order_index: int,
    status_code: int,
    body: str,
    snippet_chars: int = DEFAULT_SNIPPET_CHARS,
) -> OrderOutcome:
    """
    Classify a completed HTTP exchange.

    Any 2xx status is a success. Everything else, including 401/403 from
    an expired credential, is an HTTP failure carrying a decoded,
    truncated body snippet.

    Example:
        >>> classify_response(0, 401, '{"message":"expired"}').kind
        <OutcomeKind.HTTP_FAILURE: 'http_failure'>
    """
    if 200 <= status_code < 300:
        return OrderOutcome(order_index, OutcomeKind.SUCCESS, status_code=status_code)
    snippet = truncate(decode_unicode_escapes(body), snippet_chars)
    return OrderOutcome(
        order_index, OutcomeKind.HTTP_FAILURE, status_code=status_code, detail=snippet
    )


@dataclass(frozen=True)
class BatchResult:
    """
    Outcomes of one batch, in order-list order.

    Attributes:
        batch_number: 1-based batch sequence number
        outcomes: One outcome per order sent, in order-list order
        next_delay: Seconds waited after this batch (batch delay, or the
            failure backoff when any order failed)
    """

    batch_number: int
    outcomes: tuple[OrderOutcome, ...]
    next_delay: float

    @property
    def any_failed(self) -> bool:
        return any(outcome.failed for outcome in self.outcomes)

    @property
    def succeeded(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.kind is OutcomeKind.SUCCESS)

    @property
    def failed(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.failed)
