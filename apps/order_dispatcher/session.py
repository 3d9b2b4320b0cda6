"""
Session construction.

A SessionConfig is everything one dispatch loop needs: where to send,
which credential to present, what to send and how long to wait between
batches. It is built once from a broker config record and never changes
afterwards; every problem with the record surfaces here as a
ConfigurationError, before the session sends anything.
"""

import logging
from dataclasses import dataclass, field
from datetime import time
from typing import Any

from pydantic import ValidationError

from apps.order_dispatcher.config_loader import BrokerConfigFile
from libs.brokers.adapters import BrokerAdapter, OrderSpec, get_adapter
from libs.brokers.credentials import Credential, resolve_credential
from libs.brokers.identity import BrokerExtras, BrokerIdentity, BrokerName, default_identity
from libs.brokers.orders import CanonicalOrder
from libs.common.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_FAILURE_BACKOFF_MS = 5000

_CANONICAL_KEY = "canonical"


@dataclass(frozen=True)
class SessionConfig:
    """
    Immutable configuration of one broker session.

    Attributes:
        identity: Broker endpoint and default headers
        credential: The single active credential
        orders: Orders sent in every batch, in submission order
        batch_delay: Seconds to wait after a batch with no failures
        failure_backoff: Seconds to wait after a batch with any failure
        test_mode: Send exactly one batch, then stop
        curl_only: Render curl commands instead of sending (test mode only)
        target_time: Asia/Tehran wall-clock time of the daily scheduled pass
        extras: Broker-specific header inputs (Alvand nt, Bidar trace)
    """

    identity: BrokerIdentity
    credential: Credential
    orders: tuple[OrderSpec, ...]
    batch_delay: float
    failure_backoff: float
    test_mode: bool = False
    curl_only: bool = False
    target_time: time | None = None
    extras: BrokerExtras = field(default_factory=BrokerExtras)

    def __post_init__(self) -> None:
        if not self.orders:
            raise ConfigurationError(f"{self.broker.label}: no orders configured")
        if self.batch_delay < 0 or self.failure_backoff < 0:
            raise ConfigurationError(f"{self.broker.label}: delays must be non-negative")
        if self.curl_only and not self.test_mode:
            raise ConfigurationError("curl preview is only available in test mode")

    @property
    def broker(self) -> BrokerName:
        return self.identity.name

    @property
    def adapter(self) -> BrokerAdapter:
        return get_adapter(self.identity.name)


def parse_order(entry: Any, index: int, adapter: BrokerAdapter) -> OrderSpec:
    """
    Validate one entry of a config file's ``orders`` list.

    An entry is either ``{"canonical": {...}}`` or a broker-native payload
    matching the adapter's payload model field for field.

    Raises:
        ConfigurationError: If the entry does not validate
    """
    label = adapter.name.label
    if not isinstance(entry, dict) or not entry:
        raise ConfigurationError(f"{label}: orders[{index}] must be a non-empty object")

    try:
        if _CANONICAL_KEY in entry:
            if len(entry) != 1:
                raise ConfigurationError(
                    f"{label}: orders[{index}] mixes 'canonical' with other fields"
                )
            return CanonicalOrder.model_validate(entry[_CANONICAL_KEY])
        return adapter.payload_type.model_validate(entry)
    except ValidationError as e:
        raise ConfigurationError(f"{label}: invalid orders[{index}]: {e}") from e


def build_session(
    broker: BrokerName,
    record: BrokerConfigFile,
    *,
    test_mode: bool = False,
    curl_only: bool = False,
    default_failure_backoff_ms: int = DEFAULT_FAILURE_BACKOFF_MS,
) -> SessionConfig:
    """
    Build a session from a broker's config record.

    Args:
        broker: Broker the record belongs to
        record: Parsed config file
        test_mode: Single-batch mode
        curl_only: Render curl commands instead of sending (requires test_mode)
        default_failure_backoff_ms: Backoff used when the record sets none

    Returns:
        Frozen session configuration

    Raises:
        ConfigurationError: If no usable credential is configured, the
            credential kind is not accepted by the broker, a required
            broker field is missing, or any order is invalid
    """
    adapter = get_adapter(broker)

    credential = resolve_credential(record.cookie, record.authorization)
    if credential.kind not in adapter.accepted_credentials:
        accepted = ", ".join(sorted(kind.value for kind in adapter.accepted_credentials))
        raise ConfigurationError(
            f"{broker.label} does not accept {credential.kind.value} credentials "
            f"(accepted: {accepted})"
        )

    if broker is BrokerName.ALVAND and not (record.nt or "").strip():
        raise ConfigurationError(f"{broker.label}: 'nt' is required to sign requests")

    identity = default_identity(broker).with_overrides(
        order_url=record.order_url,
        user_agent=record.user_agent,
        origin=record.origin,
        referer=record.referer,
    )

    orders = tuple(parse_order(entry, i, adapter) for i, entry in enumerate(record.orders))

    failure_backoff_ms = (
        record.failure_backoff_ms
        if record.failure_backoff_ms is not None
        else default_failure_backoff_ms
    )

    session = SessionConfig(
        identity=identity,
        credential=credential,
        orders=orders,
        batch_delay=record.batch_delay_ms / 1000,
        failure_backoff=failure_backoff_ms / 1000,
        test_mode=test_mode,
        curl_only=curl_only,
        target_time=record.target_time,
        extras=BrokerExtras(
            nt=(record.nt or "").strip() or None,
            user_trace=(record.x_user_trace or "").strip() or None,
        ),
    )

    logger.info(
        f"{broker.label} session ready: {len(orders)} order(s) to {identity.order_url}",
        extra={
            "credential": credential.preview(),
            "credential_kind": credential.kind.value,
            "batch_delay_ms": record.batch_delay_ms,
            "failure_backoff_ms": failure_backoff_ms,
            "test_mode": test_mode,
        },
    )
    return session
