"""
Broker library: identities, credentials, order models and adapters.

Everything in this package is pure; nothing here performs network I/O.
The order dispatcher (apps/order_dispatcher) combines these pieces into
sessions and sends the requests.
"""

from libs.brokers.adapters import BrokerAdapter, OrderSpec, get_adapter
from libs.brokers.credentials import (
    COOKIE_PLACEHOLDER,
    Credential,
    CredentialKind,
    resolve_credential,
)
from libs.brokers.identity import BrokerExtras, BrokerIdentity, BrokerName, default_identity
from libs.brokers.orders import CanonicalOrder, OrderSide, OrderValidity
from libs.brokers.outcomes import BatchResult, OrderOutcome, OutcomeKind, classify_response
from libs.brokers.wire import (
    BidarOrderPayload,
    DanayanOrderPayload,
    ExirOrderPayload,
    MofidOrderPayload,
    StandardOrderPayload,
    WirePayload,
)
from libs.brokers.x_app_n import calculate_x_app_n

__all__ = [
    "BatchResult",
    "BidarOrderPayload",
    "BrokerAdapter",
    "BrokerExtras",
    "BrokerIdentity",
    "BrokerName",
    "COOKIE_PLACEHOLDER",
    "CanonicalOrder",
    "Credential",
    "CredentialKind",
    "DanayanOrderPayload",
    "ExirOrderPayload",
    "MofidOrderPayload",
    "OrderOutcome",
    "OrderSide",
    "OrderSpec",
    "OrderValidity",
    "OutcomeKind",
    "StandardOrderPayload",
    "WirePayload",
    "calculate_x_app_n",
    "classify_response",
    "default_identity",
    "get_adapter",
    "resolve_credential",
]
