"""
Dispatch loop: the per-session send state machine.

    IDLE ──start──▶ SENDING ──all outcomes terminal──▶ WAITING
                       ▲                                  │
                       └──────────delay elapsed───────────┘
    any state ──stop signal / test mode done──▶ STOPPED

Continuous sessions send every configured order concurrently in each batch
and wait for all of them. Nothing is retried inside a batch; the next batch
resends the whole list.

Scheduled sessions (``target_time`` set) instead make one pass per daily
occurrence of the target: order i is sent at target + i * batch delay, one
after another, and the loop then waits for the next day's target.

The stop signal is checked before each send and during every wait, never in
the middle of a request.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, time, timedelta
from enum import Enum
from zoneinfo import ZoneInfo

from apps.order_dispatcher.curl import render_curl
from apps.order_dispatcher.session import SessionConfig
from apps.order_dispatcher.transport import HttpTransport
from libs.brokers.adapters import OrderSpec
from libs.brokers.outcomes import (
    DEFAULT_SNIPPET_CHARS,
    BatchResult,
    OrderOutcome,
    OutcomeKind,
)
from libs.common.exceptions import SerializationError, TransportError
from libs.common.logging import LogContext, set_batch

logger = logging.getLogger(__name__)

# Broker trading hours are defined in Tehran time
TEHRAN = ZoneInfo("Asia/Tehran")


class LoopState(str, Enum):
    """Dispatch loop lifecycle state."""

    IDLE = "idle"
    SENDING = "sending"
    WAITING = "waiting"
    STOPPED = "stopped"


def next_occurrence(target: time, now: datetime | None = None) -> datetime:
    """
    Next occurrence of the wall-clock time ``target`` in Tehran.

    A target equal to or earlier than the current time of day refers to
    tomorrow.

    Example:
        >>> now = datetime(2025, 1, 1, 8, 59, 59, tzinfo=TEHRAN)
        >>> next_occurrence(time(9, 0, 0), now).isoformat()
        '2025-01-01T09:00:00+03:30'
    """
    current = (now or datetime.now(TEHRAN)).astimezone(TEHRAN)
    candidate = datetime.combine(current.date(), target, tzinfo=TEHRAN)
    if candidate <= current:
        candidate += timedelta(days=1)
    return candidate


def seconds_until(moment: datetime) -> float:
    """Seconds from now until ``moment``, never negative."""
    return max(0.0, (moment - datetime.now(TEHRAN)).total_seconds())


async def wait_or_stop(stop_event: asyncio.Event, seconds: float) -> bool:
    """Sleep up to ``seconds``; return True if the stop signal arrived first."""
    if stop_event.is_set():
        return True
    try:
        await asyncio.wait_for(stop_event.wait(), timeout=seconds)
    except TimeoutError:
        return False
    return True


class DispatchLoop:
    """
    Batch sender for one broker session.

    The loop owns its transport and closes it when it stops.

    Example:
        >>> loop = DispatchLoop(session)
        >>> await loop.run(stop_event)
        >>> loop.state
        <LoopState.STOPPED: 'stopped'>
    """

    def __init__(
        self,
        session: SessionConfig,
        transport: HttpTransport | None = None,
        *,
        timeout: float = 10.0,
        snippet_chars: int = DEFAULT_SNIPPET_CHARS,
        on_batch: Callable[[BatchResult], None] | None = None,
    ):
        """
        Initialize loop.

        Args:
            session: Frozen session configuration
            transport: HTTP transport (created with ``timeout`` when omitted)
            timeout: Per-request timeout in seconds
            snippet_chars: Characters of failed bodies kept in outcomes
            on_batch: Called with every BatchResult before the delay starts
        """
        self.session = session
        self.adapter = session.adapter
        self.transport = transport or HttpTransport(timeout=timeout)
        self.snippet_chars = snippet_chars
        self.on_batch = on_batch
        self.state = LoopState.IDLE
        self.batches_sent = 0
        self.last_result: BatchResult | None = None

    async def run(self, stop_event: asyncio.Event) -> None:
        """
        Run until the stop signal is set, or after one batch in test mode.

        Args:
            stop_event: Shared stop signal
        """
        broker = self.session.broker
        with LogContext(broker.value):
            try:
                if self.session.target_time is None:
                    await self._run_continuous(stop_event)
                else:
                    await self._run_scheduled(stop_event, self.session.target_time)
            finally:
                self.state = LoopState.STOPPED
                await self.transport.close()
                logger.info(
                    f"[{broker.label}] Dispatch loop stopped",
                    extra={"batches_sent": self.batches_sent},
                )

    async def _run_continuous(self, stop_event: asyncio.Event) -> None:
        while not stop_event.is_set():
            self._start_batch()
            result = await self._send_batch(self.batches_sent)
            self._record(result)

            self.state = LoopState.WAITING
            stopped = await wait_or_stop(stop_event, result.next_delay)
            if stopped or self.session.test_mode:
                return

    async def _run_scheduled(self, stop_event: asyncio.Event, target: time) -> None:
        label = self.session.broker.label
        occurrence = next_occurrence(target)
        while True:
            delay = seconds_until(occurrence)
            logger.info(
                f"[{label}] Waiting for target_time {target.isoformat()} (Asia/Tehran)",
                extra={"target": occurrence.isoformat(), "wait_seconds": round(delay, 3)},
            )
            if await wait_or_stop(stop_event, delay):
                logger.info(f"[{label}] Stopped while waiting for target_time")
                return

            self._start_batch()
            outcomes = await self._send_staggered(stop_event)
            occurrence += timedelta(days=1)
            self._record(BatchResult(self.batches_sent, outcomes, seconds_until(occurrence)))

            if self.session.test_mode or stop_event.is_set():
                return
            self.state = LoopState.WAITING

    def _start_batch(self) -> None:
        self.state = LoopState.SENDING
        self.batches_sent += 1
        set_batch(self.batches_sent)

    def _record(self, result: BatchResult) -> None:
        self.last_result = result
        self._log_batch(result)
        if self.on_batch is not None:
            self.on_batch(result)

    async def _send_batch(self, batch_number: int) -> BatchResult:
        """Send every order concurrently and wait for all outcomes."""
        logger.info(
            f"[{self.session.broker.label}] Sending batch {batch_number}",
            extra={"orders": len(self.session.orders)},
        )
        outcomes = await asyncio.gather(
            *(self._send_order(index, order) for index, order in enumerate(self.session.orders))
        )
        result = BatchResult(batch_number, tuple(outcomes), self.session.batch_delay)
        if result.any_failed:
            result = replace(result, next_delay=self.session.failure_backoff)
        return result

    async def _send_staggered(self, stop_event: asyncio.Event) -> tuple[OrderOutcome, ...]:
        """Send orders one at a time; order i is due at pass start + i * batch delay."""
        label = self.session.broker.label
        loop = asyncio.get_running_loop()
        started = loop.time()
        outcomes: list[OrderOutcome] = []
        for index, order in enumerate(self.session.orders):
            remaining = started + index * self.session.batch_delay - loop.time()
            if await wait_or_stop(stop_event, max(0.0, remaining)):
                logger.info(f"[{label}] Stopped during scheduled send after {index} order(s)")
                break
            if index > 0 and remaining < 0 and self.session.batch_delay > 0:
                logger.warning(
                    f"[{label}] Scheduled send time for order {index} passed by "
                    f"{round(-remaining * 1000)}ms",
                    extra={"order_index": index},
                )
            outcomes.append(await self._send_order(index, order))
        return tuple(outcomes)

    async def _send_order(self, index: int, order: OrderSpec) -> OrderOutcome:
        """Serialize, send and classify one order. Never raises for broker faults."""
        label = self.session.broker.label
        try:
            body = self.adapter.serialize(order)
        except SerializationError as e:
            logger.error(
                f"[{label}] Order {index} could not be serialized: {e}",
                extra={"order_index": index},
            )
            return OrderOutcome.serialization_failure(index, str(e))

        url = self.session.identity.order_url
        headers = self.adapter.headers(
            self.session.credential, self.session.identity, self.session.extras
        )

        if self.session.curl_only:
            # Unmasked on purpose: the user asked for a runnable command
            print(render_curl(url, headers, body, mask=False), flush=True)
            logger.info(f"[{label}] Printed curl command for order {index}")
            return OrderOutcome.skipped(index)

        if self.session.test_mode:
            logger.debug(
                f"[{label}] Request preview for order {index}:\n{render_curl(url, headers, body)}"
            )

        try:
            status_code, text = await self.transport.post(url, body, headers)
        except TransportError as e:
            logger.warning(
                f"[{label}] Order {index} transport failure: {e}",
                extra={"order_index": index},
            )
            return OrderOutcome.transport_failure(index, str(e))

        outcome = self.adapter.classify(index, status_code, text, self.snippet_chars)
        if outcome.kind is OutcomeKind.SUCCESS:
            logger.info(
                f"[{label}] Order {index} accepted (HTTP {status_code})",
                extra={"order_index": index, "status_code": status_code},
            )
        else:
            logger.warning(
                f"[{label}] Order {index} rejected (HTTP {status_code})",
                extra={"order_index": index, "status_code": status_code, "body": outcome.detail},
            )
        return outcome

    def _log_batch(self, result: BatchResult) -> None:
        logger.info(
            f"[{self.session.broker.label}] Batch {result.batch_number} complete: "
            f"{result.succeeded}/{len(result.outcomes)} succeeded",
            extra={
                "succeeded": result.succeeded,
                "failed": result.failed,
                "next_delay_ms": round(result.next_delay * 1000),
            },
        )
