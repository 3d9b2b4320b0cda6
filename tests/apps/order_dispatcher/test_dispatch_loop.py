"""Tests for the dispatch loop state machine."""

import asyncio
import time as clock
from collections.abc import Callable
from datetime import datetime, time, timedelta
from unittest.mock import AsyncMock, patch

import httpx
import pytest
import respx
from httpx import Response

from apps.order_dispatcher.dispatch_loop import (
    TEHRAN,
    DispatchLoop,
    LoopState,
    next_occurrence,
    wait_or_stop,
)
from apps.order_dispatcher.session import SessionConfig
from apps.order_dispatcher.transport import HttpTransport
from libs.brokers.identity import BrokerExtras, BrokerName, default_identity
from libs.brokers.orders import CanonicalOrder, OrderSide
from libs.brokers.outcomes import BatchResult, OutcomeKind
from libs.common.exceptions import TransportError

MOFID_URL = default_identity(BrokerName.MOFID).order_url


def _mock_transport(status: int = 200, body: str = "{}") -> AsyncMock:
    transport = AsyncMock(spec=HttpTransport)
    transport.post.return_value = (status, body)
    return transport


# ==============================================================================
# Test mode
# ==============================================================================


@pytest.mark.asyncio()
@respx.mock
async def test_test_mode_sends_one_batch_then_stops(make_session: Callable[..., SessionConfig]) -> None:
    """Two orders, 100 ms delay, test mode: exactly two POSTs, then STOPPED after the delay."""
    route = respx.post(MOFID_URL).mock(return_value=Response(200, json={"ok": True}))
    loop = DispatchLoop(make_session(test_mode=True, batch_delay=0.1))

    started = clock.monotonic()
    await loop.run(asyncio.Event())
    elapsed = clock.monotonic() - started

    assert route.call_count == 2
    assert loop.state is LoopState.STOPPED
    assert loop.batches_sent == 1
    assert elapsed >= 0.095
    assert loop.last_result is not None
    assert [o.kind for o in loop.last_result.outcomes] == [OutcomeKind.SUCCESS] * 2


@pytest.mark.asyncio()
@respx.mock
async def test_requests_carry_body_and_credential(make_session: Callable[..., SessionConfig]) -> None:
    route = respx.post(MOFID_URL).mock(return_value=Response(200))
    loop = DispatchLoop(make_session(test_mode=True, batch_delay=0))

    await loop.run(asyncio.Event())

    request = route.calls[0].request
    assert request.headers["Cookie"] == "sid=abc"
    assert request.headers["Content-Type"] == "application/json"
    assert request.headers["x-appname"] == "titan"
    assert b'"orderSide": "Buy"' in request.content


@pytest.mark.asyncio()
@respx.mock
async def test_401_uses_failure_backoff(make_session: Callable[..., SessionConfig]) -> None:
    """An expired credential is an HTTP failure and selects the failure backoff."""
    respx.post(MOFID_URL).mock(return_value=Response(401, text="unauthorized"))
    session = make_session(test_mode=True, batch_delay=0.05, failure_backoff=0.25)
    loop = DispatchLoop(session)

    started = clock.monotonic()
    await loop.run(asyncio.Event())
    elapsed = clock.monotonic() - started

    result = loop.last_result
    assert result is not None
    assert all(o.kind is OutcomeKind.HTTP_FAILURE for o in result.outcomes)
    assert all(o.status_code == 401 for o in result.outcomes)
    assert result.outcomes[0].detail == "unauthorized"
    assert result.next_delay == 0.25
    assert elapsed >= 0.24


@pytest.mark.asyncio()
@respx.mock
async def test_401_then_resent_unchanged_after_backoff(
    make_session: Callable[..., SessionConfig], canonical_order: CanonicalOrder
) -> None:
    """A rejected order waits out the backoff and goes out again byte-identical."""
    responses = iter([Response(401, text="unauthorized"), Response(200)])
    sent_at: list[float] = []

    def reply(request: httpx.Request) -> Response:
        sent_at.append(clock.monotonic())
        return next(responses)

    route = respx.post(MOFID_URL).mock(side_effect=reply)
    stop_event = asyncio.Event()
    results: list[BatchResult] = []

    def on_batch(result: BatchResult) -> None:
        results.append(result)
        if result.batch_number == 2:
            stop_event.set()

    session = make_session(orders=(canonical_order,), batch_delay=0.05, failure_backoff=0.25)
    loop = DispatchLoop(session, on_batch=on_batch)

    await asyncio.wait_for(loop.run(stop_event), timeout=5)

    assert [r.outcomes[0].kind for r in results] == [OutcomeKind.HTTP_FAILURE, OutcomeKind.SUCCESS]
    assert results[0].next_delay == 0.25
    assert results[1].next_delay == 0.05
    assert sent_at[1] - sent_at[0] >= 0.24
    assert route.calls[0].request.content == route.calls[1].request.content



@pytest.mark.asyncio()
async def test_default_backoff_after_failure(make_session: Callable[..., SessionConfig]) -> None:
    """With the default 5 s backoff, the post-failure delay is 5 s (stop interrupts it)."""
    stop_event = asyncio.Event()
    results: list[BatchResult] = []

    def on_batch(result: BatchResult) -> None:
        results.append(result)
        stop_event.set()

    loop = DispatchLoop(
        make_session(failure_backoff=5.0),
        transport=_mock_transport(status=500),
        on_batch=on_batch,
    )

    await asyncio.wait_for(loop.run(stop_event), timeout=2)

    assert results[0].next_delay == 5.0
    assert loop.state is LoopState.STOPPED


@pytest.mark.asyncio()
async def test_one_failure_does_not_cancel_siblings(
    make_session: Callable[..., SessionConfig],
) -> None:
    transport = AsyncMock(spec=HttpTransport)
    transport.post.side_effect = [TransportError("ConnectError: refused"), (200, "{}")]
    loop = DispatchLoop(make_session(test_mode=True, batch_delay=0), transport=transport)

    await loop.run(asyncio.Event())

    kinds = sorted(o.kind.value for o in loop.last_result.outcomes)  # type: ignore[union-attr]
    assert kinds == ["success", "transport_failure"]
    assert transport.post.await_count == 2


@pytest.mark.asyncio()
@respx.mock
async def test_transport_error_recorded(make_session: Callable[..., SessionConfig]) -> None:
    respx.post(MOFID_URL).mock(
        side_effect=httpx.ConnectError("refused", request=httpx.Request("POST", MOFID_URL))
    )
    loop = DispatchLoop(make_session(test_mode=True, batch_delay=0, failure_backoff=0))

    await loop.run(asyncio.Event())

    outcome = loop.last_result.outcomes[0]  # type: ignore[union-attr]
    assert outcome.kind is OutcomeKind.TRANSPORT_FAILURE
    assert outcome.status_code is None
    assert "ConnectError" in (outcome.detail or "")


@pytest.mark.asyncio()
async def test_serialization_failure_skips_request(
    make_session: Callable[..., SessionConfig],
) -> None:
    """An Alvand order without account_id fails alone; its sibling is still sent."""
    good = CanonicalOrder(
        side=OrderSide.BUY, price=1, quantity=1, instrument_id="IRO1FOLD0001", account_id=7
    )
    bad = CanonicalOrder(side=OrderSide.BUY, price=1, quantity=1, instrument_id="IRO1FOLD0001")
    transport = _mock_transport()
    session = make_session(
        BrokerName.ALVAND,
        orders=(bad, good),
        test_mode=True,
        batch_delay=0,
        failure_backoff=0,
        extras=BrokerExtras(nt="0012345678"),
    )
    loop = DispatchLoop(session, transport=transport)

    await loop.run(asyncio.Event())

    outcomes = loop.last_result.outcomes  # type: ignore[union-attr]
    assert outcomes[0].kind is OutcomeKind.SERIALIZATION_FAILURE
    assert outcomes[1].kind is OutcomeKind.SUCCESS
    assert transport.post.await_count == 1
    headers = transport.post.await_args.args[2]
    assert "X-App-N" in headers


# ==============================================================================
# Continuous mode
# ==============================================================================


@pytest.mark.asyncio()
@respx.mock
async def test_continuous_batches_do_not_overlap(make_session: Callable[..., SessionConfig]) -> None:
    """Batch N+1 starts only after batch N finished and the delay elapsed."""
    sent_at: list[float] = []

    def record(request: httpx.Request) -> Response:
        sent_at.append(clock.monotonic())
        return Response(200)

    respx.post(MOFID_URL).mock(side_effect=record)
    stop_event = asyncio.Event()

    def on_batch(result: BatchResult) -> None:
        if result.batch_number == 3:
            stop_event.set()

    loop = DispatchLoop(make_session(batch_delay=0.1), on_batch=on_batch)

    await asyncio.wait_for(loop.run(stop_event), timeout=5)

    assert loop.batches_sent == 3
    assert len(sent_at) == 6
    for batch in (1, 2):
        previous_last = max(sent_at[(batch - 1) * 2 : batch * 2])
        next_first = min(sent_at[batch * 2 : (batch + 1) * 2])
        assert next_first - previous_last >= 0.09


@pytest.mark.asyncio()
async def test_stop_event_interrupts_delay(make_session: Callable[..., SessionConfig]) -> None:
    stop_event = asyncio.Event()
    loop = DispatchLoop(make_session(batch_delay=30), transport=_mock_transport())

    task = asyncio.create_task(loop.run(stop_event))
    await asyncio.sleep(0.05)
    assert loop.state is LoopState.WAITING
    stop_event.set()
    await asyncio.wait_for(task, timeout=1)

    assert loop.state is LoopState.STOPPED
    assert loop.batches_sent == 1


@pytest.mark.asyncio()
async def test_stop_before_start_sends_nothing(make_session: Callable[..., SessionConfig]) -> None:
    stop_event = asyncio.Event()
    stop_event.set()
    transport = _mock_transport()
    loop = DispatchLoop(make_session(), transport=transport)

    await loop.run(stop_event)

    assert loop.batches_sent == 0
    transport.post.assert_not_awaited()
    transport.close.assert_awaited_once()


@pytest.mark.asyncio()
async def test_transport_closed_after_run(make_session: Callable[..., SessionConfig]) -> None:
    transport = _mock_transport()
    loop = DispatchLoop(make_session(test_mode=True, batch_delay=0), transport=transport)

    await loop.run(asyncio.Event())

    transport.close.assert_awaited_once()


@pytest.mark.asyncio()
async def test_batch_callback_receives_numbered_results(
    make_session: Callable[..., SessionConfig],
) -> None:
    stop_event = asyncio.Event()
    numbers: list[int] = []

    def on_batch(result: BatchResult) -> None:
        numbers.append(result.batch_number)
        if result.batch_number == 2:
            stop_event.set()

    loop = DispatchLoop(
        make_session(batch_delay=0), transport=_mock_transport(), on_batch=on_batch
    )

    await asyncio.wait_for(loop.run(stop_event), timeout=2)

    assert numbers == [1, 2]


# ==============================================================================
# Curl preview and scheduled start
# ==============================================================================


@pytest.mark.asyncio()
async def test_curl_mode_prints_and_sends_nothing(
    make_session: Callable[..., SessionConfig], capsys: pytest.CaptureFixture[str]
) -> None:
    transport = _mock_transport()
    session = make_session(test_mode=True, curl_only=True, batch_delay=0)
    loop = DispatchLoop(session, transport=transport)

    await loop.run(asyncio.Event())

    transport.post.assert_not_awaited()
    outcomes = loop.last_result.outcomes  # type: ignore[union-attr]
    assert all(o.kind is OutcomeKind.SKIPPED for o in outcomes)
    printed = capsys.readouterr().out
    assert printed.count("curl -X POST") == 2
    assert "Cookie: sid=abc" in printed


@pytest.mark.asyncio()
async def test_stop_during_scheduled_wait(make_session: Callable[..., SessionConfig]) -> None:
    stop_event = asyncio.Event()
    transport = _mock_transport()
    session = make_session(target_time=time(3, 0, 0))
    loop = DispatchLoop(session, transport=transport)

    task = asyncio.create_task(loop.run(stop_event))
    await asyncio.sleep(0.05)
    assert loop.state is LoopState.IDLE
    stop_event.set()
    await asyncio.wait_for(task, timeout=1)

    assert loop.state is LoopState.STOPPED
    assert loop.batches_sent == 0
    transport.post.assert_not_awaited()


def _due_shortly(target: time, now: datetime | None = None) -> datetime:
    return datetime.now(TEHRAN) + timedelta(milliseconds=10)


@pytest.mark.asyncio()
async def test_scheduled_start_sends_one_pass_per_occurrence(
    make_session: Callable[..., SessionConfig],
) -> None:
    """After the target time the loop waits for the next day instead of batching on."""
    transport = _mock_transport()
    stop_event = asyncio.Event()
    loop = DispatchLoop(
        make_session(target_time=time(9, 0, 0), batch_delay=0), transport=transport
    )

    with patch("apps.order_dispatcher.dispatch_loop.next_occurrence", _due_shortly):
        task = asyncio.create_task(loop.run(stop_event))
        await asyncio.sleep(0.2)

        assert loop.batches_sent == 1
        assert loop.state is LoopState.WAITING
        assert transport.post.await_count == 2
        stop_event.set()
        await asyncio.wait_for(task, timeout=1)

    assert loop.state is LoopState.STOPPED
    assert loop.last_result is not None
    assert loop.last_result.next_delay > 23 * 3600


@pytest.mark.asyncio()
@respx.mock
async def test_scheduled_pass_staggers_orders(
    make_session: Callable[..., SessionConfig], canonical_order: CanonicalOrder
) -> None:
    """Order i goes out batch_delay * i after the target; test mode ends after the pass."""
    sent_at: list[float] = []

    def record(request: httpx.Request) -> Response:
        sent_at.append(clock.monotonic())
        return Response(200)

    respx.post(MOFID_URL).mock(side_effect=record)
    session = make_session(
        orders=(canonical_order,) * 3,
        target_time=time(9, 0, 0),
        batch_delay=0.05,
        test_mode=True,
    )
    loop = DispatchLoop(session)

    with patch("apps.order_dispatcher.dispatch_loop.next_occurrence", _due_shortly):
        await asyncio.wait_for(loop.run(asyncio.Event()), timeout=2)

    assert loop.batches_sent == 1
    assert loop.state is LoopState.STOPPED
    assert len(sent_at) == 3
    assert sent_at[1] - sent_at[0] >= 0.045
    assert sent_at[2] - sent_at[0] >= 0.095
    assert [o.order_index for o in loop.last_result.outcomes] == [0, 1, 2]  # type: ignore[union-attr]


@pytest.mark.asyncio()
async def test_stop_during_scheduled_pass(
    make_session: Callable[..., SessionConfig], canonical_order: CanonicalOrder
) -> None:
    stop_event = asyncio.Event()
    transport = _mock_transport()
    session = make_session(
        orders=(canonical_order,) * 3, target_time=time(9, 0, 0), batch_delay=30
    )
    loop = DispatchLoop(session, transport=transport)

    with patch("apps.order_dispatcher.dispatch_loop.next_occurrence", _due_shortly):
        task = asyncio.create_task(loop.run(stop_event))
        await asyncio.sleep(0.1)
        stop_event.set()
        await asyncio.wait_for(task, timeout=1)

    assert transport.post.await_count == 1
    assert len(loop.last_result.outcomes) == 1  # type: ignore[union-attr]
    assert loop.state is LoopState.STOPPED


class TestNextOccurrence:
    def test_later_today(self) -> None:
        now = datetime(2025, 1, 1, 8, 59, 59, tzinfo=TEHRAN)

        assert next_occurrence(time(9, 0, 0), now) == datetime(2025, 1, 1, 9, 0, 0, tzinfo=TEHRAN)

    def test_passed_time_means_tomorrow(self) -> None:
        now = datetime(2025, 1, 1, 9, 0, 1, tzinfo=TEHRAN)

        assert next_occurrence(time(9, 0, 0), now) == datetime(2025, 1, 2, 9, 0, 0, tzinfo=TEHRAN)

    def test_exact_time_means_tomorrow(self) -> None:
        now = datetime(2025, 1, 1, 9, 0, 0, tzinfo=TEHRAN)

        assert next_occurrence(time(9, 0, 0), now).day == 2

    def test_milliseconds(self) -> None:
        now = datetime(2025, 1, 1, 8, 44, 59, tzinfo=TEHRAN)

        delta = next_occurrence(time(8, 44, 59, 900000), now) - now
        assert delta.total_seconds() == pytest.approx(0.9)


@pytest.mark.asyncio()
async def test_wait_or_stop() -> None:
    stop_event = asyncio.Event()

    assert await wait_or_stop(stop_event, 0.01) is False
    stop_event.set()
    assert await wait_or_stop(stop_event, 10) is True
