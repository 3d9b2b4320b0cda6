"""
Shared fixtures for dispatcher tests.

Provides:
1. Session factories with small delays so loop tests finish quickly
2. A config directory writer for file-based tests
3. Log context isolation between tests
"""

import json
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import pytest

from apps.order_dispatcher.session import SessionConfig
from libs.brokers.credentials import Credential, CredentialKind
from libs.brokers.identity import BrokerExtras, BrokerName, default_identity
from libs.brokers.orders import CanonicalOrder, OrderSide
from libs.common.logging import clear_context

ISIN = "IRO1FOLD0001"


@pytest.fixture(autouse=True)
def _isolate_log_context() -> Iterator[None]:
    """Keep broker/batch context from leaking across tests."""
    clear_context()
    yield
    clear_context()


@pytest.fixture()
def canonical_order() -> CanonicalOrder:
    return CanonicalOrder(side=OrderSide.BUY, price=5420, quantity=100, instrument_id=ISIN)


@pytest.fixture()
def make_session(canonical_order: CanonicalOrder) -> Callable[..., SessionConfig]:
    """Factory for SessionConfig with test-friendly defaults (Mofid, cookie, 2 orders)."""

    def _make(
        broker: BrokerName = BrokerName.MOFID,
        *,
        orders: tuple[Any, ...] | None = None,
        credential: Credential | None = None,
        batch_delay: float = 0.1,
        failure_backoff: float = 0.2,
        test_mode: bool = False,
        curl_only: bool = False,
        extras: BrokerExtras | None = None,
        **kwargs: Any,
    ) -> SessionConfig:
        return SessionConfig(
            identity=default_identity(broker),
            credential=credential or Credential(CredentialKind.COOKIE, "sid=abc"),
            orders=orders if orders is not None else (canonical_order, canonical_order),
            batch_delay=batch_delay,
            failure_backoff=failure_backoff,
            test_mode=test_mode,
            curl_only=curl_only,
            extras=extras or BrokerExtras(),
            **kwargs,
        )

    return _make


@pytest.fixture()
def write_config(tmp_path: Path) -> Callable[[str, dict[str, Any]], Path]:
    """Write ``config_<broker>.json`` into a temporary config directory."""

    def _write(broker: str, data: dict[str, Any]) -> Path:
        path = tmp_path / f"config_{broker}.json"
        path.write_text(json.dumps(data), encoding="utf-8")
        return path

    return _write
