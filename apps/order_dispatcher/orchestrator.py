"""
Orchestrator: builds broker sessions and runs their loops concurrently.

Sessions are independent. A broker whose configuration is broken is
reported and skipped; the others still run. All loops share one stop
signal, and the orchestrator returns once every loop has stopped.
"""

import asyncio
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path

from apps.order_dispatcher.config_loader import load_broker_config
from apps.order_dispatcher.dispatch_loop import DispatchLoop
from apps.order_dispatcher.session import (
    DEFAULT_FAILURE_BACKOFF_MS,
    SessionConfig,
    build_session,
)
from libs.brokers.identity import BrokerName
from libs.brokers.outcomes import DEFAULT_SNIPPET_CHARS, BatchResult
from libs.common.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionFailure:
    """A broker whose session could not be constructed."""

    broker: BrokerName
    error: str


def build_sessions(
    brokers: Iterable[BrokerName],
    config_dir: str | Path,
    *,
    test_mode: bool = False,
    curl_only: bool = False,
    default_failure_backoff_ms: int = DEFAULT_FAILURE_BACKOFF_MS,
) -> tuple[list[SessionConfig], list[SessionFailure]]:
    """
    Build one session per selected broker.

    Construction failures are logged as warnings and collected; they never
    stop the remaining brokers from being built.

    Args:
        brokers: Selected brokers, in start order
        config_dir: Directory holding config_<broker>.json files
        test_mode: Single-batch mode for every session
        curl_only: Curl preview mode for every session
        default_failure_backoff_ms: Backoff for files that set none

    Returns:
        (sessions, failures)
    """
    sessions: list[SessionConfig] = []
    failures: list[SessionFailure] = []

    for broker in brokers:
        try:
            record = load_broker_config(broker, config_dir)
            session = build_session(
                broker,
                record,
                test_mode=test_mode,
                curl_only=curl_only,
                default_failure_backoff_ms=default_failure_backoff_ms,
            )
        except ConfigurationError as e:
            logger.warning(
                f"[{broker.label}] Session not started: {e}",
                extra={"failed_broker": broker.value},
            )
            failures.append(SessionFailure(broker, str(e)))
            continue
        sessions.append(session)

    return sessions, failures


class Orchestrator:
    """
    Runs one DispatchLoop per session under a shared stop signal.

    Example:
        >>> orchestrator = Orchestrator(sessions)
        >>> await orchestrator.run(stop_event)
    """

    def __init__(
        self,
        sessions: list[SessionConfig],
        *,
        timeout: float = 10.0,
        snippet_chars: int = DEFAULT_SNIPPET_CHARS,
        on_batch: Callable[[BatchResult], None] | None = None,
    ):
        """
        Initialize orchestrator.

        Args:
            sessions: Sessions to run (each gets its own loop and transport)
            timeout: Per-request timeout in seconds
            snippet_chars: Characters of failed bodies kept in outcomes
            on_batch: Forwarded to every loop
        """
        self.sessions = sessions
        self.loops = [
            DispatchLoop(
                session, timeout=timeout, snippet_chars=snippet_chars, on_batch=on_batch
            )
            for session in sessions
        ]

    async def run(self, stop_event: asyncio.Event) -> None:
        """
        Start every loop and wait until all have stopped.

        A loop that crashes is logged; the others keep running.
        """
        if not self.loops:
            logger.warning("No sessions to run")
            return

        logger.info(
            f"Starting {len(self.loops)} dispatch loop(s)",
            extra={"brokers": [session.broker.value for session in self.sessions]},
        )
        results = await asyncio.gather(
            *(loop.run(stop_event) for loop in self.loops), return_exceptions=True
        )
        for loop, result in zip(self.loops, results, strict=True):
            if isinstance(result, Exception):
                logger.error(
                    f"[{loop.session.broker.label}] Dispatch loop crashed: {result}",
                    exc_info=result,
                )
        logger.info("All dispatch loops stopped")
