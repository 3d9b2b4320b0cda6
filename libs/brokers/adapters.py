"""
Broker adapters: per-broker serialization, headers and classification.

Each supported broker has one adapter. Adapters are independent frozen
dataclasses satisfying the BrokerAdapter protocol; they share helper
functions, not a base class. An adapter is picked once per session with
get_adapter() and is a pure function of its inputs: it never mutates the
identity, the credential or the order.

Canonical encodings per broker:

    Broker       side               validity                 notes
    Mofid        "Buy" / "Sell"     74 day, 68 GTD, 70 FAK   orderFrom "34"
    BMI, Ordib.  65 / 86            74 day, 68 GTD, 70 FAK   agreement flags off
    Danayan      1 / 2              1 day, 2 GTD, 3 FAK      no date field
    Alvand       "SIDE_BUY"/"SIDE_SALE"  "VALIDITY_TYPE_*"   needs account_id
    Bidar        "buy" / "sell"     "DAY", "GOOD_TILL_DATE"  numbers as strings
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Protocol

from libs.brokers.credentials import Credential, CredentialKind
from libs.brokers.identity import BrokerExtras, BrokerIdentity, BrokerName
from libs.brokers.orders import CanonicalOrder, OrderSide, OrderValidity
from libs.brokers.outcomes import DEFAULT_SNIPPET_CHARS, OrderOutcome, classify_response
from libs.brokers.wire import (
    BidarOrderPayload,
    DanayanOrderPayload,
    ExirOrderPayload,
    MofidOrderPayload,
    StandardOrderPayload,
    WirePayload,
)
from libs.brokers.x_app_n import calculate_x_app_n
from libs.common.exceptions import SerializationError

OrderSpec = CanonicalOrder | WirePayload

_COOKIE_ONLY = frozenset({CredentialKind.COOKIE})
_BEARER_ONLY = frozenset({CredentialKind.BEARER})
_ANY_CREDENTIAL = frozenset({CredentialKind.COOKIE, CredentialKind.BEARER})


class BrokerAdapter(Protocol):
    """Capability set every broker adapter provides."""

    name: BrokerName
    accepted_credentials: frozenset[CredentialKind]
    payload_type: type[WirePayload]

    def serialize(self, order: OrderSpec) -> dict[str, Any]:
        """Build the JSON request body for an order.

        Raises:
            SerializationError: If the order cannot be expressed for this broker
        """
        ...

    def headers(
        self, credential: Credential, identity: BrokerIdentity, extras: BrokerExtras
    ) -> dict[str, str]:
        """Build the full header set for one request."""
        ...

    def classify(
        self,
        order_index: int,
        status_code: int,
        body: str,
        snippet_chars: int = DEFAULT_SNIPPET_CHARS,
    ) -> OrderOutcome:
        """Classify a completed HTTP exchange."""
        ...


# ==============================================================================
# Shared helpers
# ==============================================================================


def _request_headers(identity: BrokerIdentity, credential: Credential) -> dict[str, str]:
    headers = identity.default_headers()
    name, value = credential.header()
    headers[name] = value
    headers["Content-Type"] = "application/json"
    return headers


def _validity_date(order: CanonicalOrder, broker: BrokerName) -> str | None:
    if order.validity is OrderValidity.GOOD_TILL_DATE and not order.validity_date:
        raise SerializationError(f"{broker.label}: good-till-date order requires validity_date")
    if order.validity is OrderValidity.GOOD_TILL_DATE:
        return order.validity_date
    return None


def _native(order: OrderSpec, payload_type: type[WirePayload], broker: BrokerName) -> dict[str, Any]:
    if isinstance(order, payload_type):
        return order.to_wire()
    raise SerializationError(
        f"{broker.label} cannot send a {type(order).__name__}; expected {payload_type.__name__}"
    )


# ==============================================================================
# Mofid
# ==============================================================================

MOFID_SIDES = {OrderSide.BUY: "Buy", OrderSide.SELL: "Sell"}
MOFID_VALIDITIES = {
    OrderValidity.DAY: 74,
    OrderValidity.GOOD_TILL_DATE: 68,
    OrderValidity.FILL_AND_KILL: 70,
}
MOFID_ORDER_FROM = "34"


@dataclass(frozen=True)
class MofidAdapter:
    """Mofid Online; accepts a cookie or a bearer token."""

    name: ClassVar[BrokerName] = BrokerName.MOFID
    accepted_credentials: ClassVar[frozenset[CredentialKind]] = _ANY_CREDENTIAL
    payload_type: ClassVar[type[WirePayload]] = MofidOrderPayload

    def serialize(self, order: OrderSpec) -> dict[str, Any]:
        if not isinstance(order, CanonicalOrder):
            return _native(order, self.payload_type, self.name)
        return MofidOrderPayload(
            order_side=MOFID_SIDES[order.side],
            price=order.price,
            quantity=order.quantity,
            symbol_isin=order.instrument_id,
            validity_type=MOFID_VALIDITIES[order.validity],
            validity_date=_validity_date(order, self.name),
            order_from=MOFID_ORDER_FROM,
        ).to_wire()

    def headers(
        self, credential: Credential, identity: BrokerIdentity, extras: BrokerExtras
    ) -> dict[str, str]:
        return _request_headers(identity, credential)

    def classify(
        self,
        order_index: int,
        status_code: int,
        body: str,
        snippet_chars: int = DEFAULT_SNIPPET_CHARS,
    ) -> OrderOutcome:
        return classify_response(order_index, status_code, body, snippet_chars)


# ==============================================================================
# BMI / Ordibehesht (shared "online" platform)
# ==============================================================================

STANDARD_SIDES = {OrderSide.BUY: 65, OrderSide.SELL: 86}
STANDARD_VALIDITIES = {
    OrderValidity.DAY: 74,
    OrderValidity.GOOD_TILL_DATE: 68,
    OrderValidity.FILL_AND_KILL: 70,
}
STANDARD_FINANCIAL_PROVIDER_ID = 1


@dataclass(frozen=True)
class StandardAdapter:
    """BMI and Ordibehesht; cookie only.

    Both brokers run the same web platform, so one adapter type serves
    both with a different broker tag.
    """

    name: BrokerName
    accepted_credentials: ClassVar[frozenset[CredentialKind]] = _COOKIE_ONLY
    payload_type: ClassVar[type[WirePayload]] = StandardOrderPayload

    def serialize(self, order: OrderSpec) -> dict[str, Any]:
        if not isinstance(order, CanonicalOrder):
            return _native(order, self.payload_type, self.name)
        return StandardOrderPayload(
            is_symbol_caution_agreement=False,
            caution_agreement_selected=False,
            is_symbol_sepah_agreement=False,
            sepah_agreement_selected=False,
            order_count=order.quantity,
            order_price=order.price,
            financial_provider_id=STANDARD_FINANCIAL_PROVIDER_ID,
            minimum_quantity=0,
            max_show=0,
            order_id=0,
            isin=order.instrument_id,
            order_side=STANDARD_SIDES[order.side],
            order_validity=STANDARD_VALIDITIES[order.validity],
            order_validity_date=_validity_date(order, self.name),
            short_sell_is_enabled=False,
            short_sell_incentive_percent=0,
        ).to_wire()

    def headers(
        self, credential: Credential, identity: BrokerIdentity, extras: BrokerExtras
    ) -> dict[str, str]:
        return _request_headers(identity, credential)

    def classify(
        self,
        order_index: int,
        status_code: int,
        body: str,
        snippet_chars: int = DEFAULT_SNIPPET_CHARS,
    ) -> OrderOutcome:
        return classify_response(order_index, status_code, body, snippet_chars)


# ==============================================================================
# Danayan
# ==============================================================================

DANAYAN_SIDES = {OrderSide.BUY: 1, OrderSide.SELL: 2}
DANAYAN_VALIDITIES = {
    OrderValidity.DAY: 1,
    OrderValidity.GOOD_TILL_DATE: 2,
    OrderValidity.FILL_AND_KILL: 3,
}
DANAYAN_PAYMENT_GATEWAY = 1


@dataclass(frozen=True)
class DanayanAdapter:
    """Danayan TSE OMS; cookie only.

    The body has no validity-date field; a good-till-date order is still
    checked for a date so the intent is never silently widened.
    """

    name: ClassVar[BrokerName] = BrokerName.DANAYAN
    accepted_credentials: ClassVar[frozenset[CredentialKind]] = _COOKIE_ONLY
    payload_type: ClassVar[type[WirePayload]] = DanayanOrderPayload

    def serialize(self, order: OrderSpec) -> dict[str, Any]:
        if not isinstance(order, CanonicalOrder):
            return _native(order, self.payload_type, self.name)
        _validity_date(order, self.name)
        return DanayanOrderPayload(
            order_validity_type=DANAYAN_VALIDITIES[order.validity],
            order_payment_gateway=DANAYAN_PAYMENT_GATEWAY,
            price=order.price,
            quantity=order.quantity,
            disclosed_quantity=None,
            isin=order.instrument_id,
            order_side=DANAYAN_SIDES[order.side],
        ).to_wire()

    def headers(
        self, credential: Credential, identity: BrokerIdentity, extras: BrokerExtras
    ) -> dict[str, str]:
        return _request_headers(identity, credential)

    def classify(
        self,
        order_index: int,
        status_code: int,
        body: str,
        snippet_chars: int = DEFAULT_SNIPPET_CHARS,
    ) -> OrderOutcome:
        return classify_response(order_index, status_code, body, snippet_chars)


# ==============================================================================
# Alvand (Exir platform)
# ==============================================================================

EXIR_SIDES = {OrderSide.BUY: "SIDE_BUY", OrderSide.SELL: "SIDE_SALE"}
EXIR_VALIDITIES = {
    OrderValidity.DAY: "VALIDITY_TYPE_DAY",
    OrderValidity.GOOD_TILL_DATE: "VALIDITY_TYPE_GOOD_TILL_DATE",
    OrderValidity.FILL_AND_KILL: "VALIDITY_TYPE_FILL_AND_KILL",
}
EXIR_ORDER_TYPE = "ORDER_TYPE_LIMIT"
EXIR_CORE_TYPE = "c"


@dataclass(frozen=True)
class AlvandAdapter:
    """Alvand on the Exir platform; cookie plus a per-request X-App-N."""

    name: ClassVar[BrokerName] = BrokerName.ALVAND
    accepted_credentials: ClassVar[frozenset[CredentialKind]] = _COOKIE_ONLY
    payload_type: ClassVar[type[WirePayload]] = ExirOrderPayload

    def serialize(self, order: OrderSpec) -> dict[str, Any]:
        if not isinstance(order, CanonicalOrder):
            return _native(order, self.payload_type, self.name)
        if order.account_id is None:
            raise SerializationError(f"{self.name.label}: order requires account_id")
        return ExirOrderPayload(
            ins_max_lcode=order.instrument_id,
            bank_account_id=order.account_id,
            side=EXIR_SIDES[order.side],
            order_type=EXIR_ORDER_TYPE,
            quantity=order.quantity,
            price=order.price,
            validity_type=EXIR_VALIDITIES[order.validity],
            validity_date=_validity_date(order, self.name) or "",
            core_type=EXIR_CORE_TYPE,
            has_under_caution_agreement=False,
            divided_order=False,
        ).to_wire()

    def headers(
        self, credential: Credential, identity: BrokerIdentity, extras: BrokerExtras
    ) -> dict[str, str]:
        headers = _request_headers(identity, credential)
        if extras.nt:
            headers["X-App-N"] = calculate_x_app_n(extras.nt, identity.order_url)
        return headers

    def classify(
        self,
        order_index: int,
        status_code: int,
        body: str,
        snippet_chars: int = DEFAULT_SNIPPET_CHARS,
    ) -> OrderOutcome:
        return classify_response(order_index, status_code, body, snippet_chars)


# ==============================================================================
# Bidar
# ==============================================================================

BIDAR_SIDES = {OrderSide.BUY: "buy", OrderSide.SELL: "sell"}
BIDAR_VALIDITIES = {
    OrderValidity.DAY: "DAY",
    OrderValidity.GOOD_TILL_DATE: "GOOD_TILL_DATE",
    OrderValidity.FILL_AND_KILL: "FILL_AND_KILL",
}


@dataclass(frozen=True)
class BidarAdapter:
    """Bidar Trader; bearer token only, optional x-user-trace."""

    name: ClassVar[BrokerName] = BrokerName.BIDAR
    accepted_credentials: ClassVar[frozenset[CredentialKind]] = _BEARER_ONLY
    payload_type: ClassVar[type[WirePayload]] = BidarOrderPayload

    def serialize(self, order: OrderSpec) -> dict[str, Any]:
        if not isinstance(order, CanonicalOrder):
            return _native(order, self.payload_type, self.name)
        _validity_date(order, self.name)
        return BidarOrderPayload(
            order_type=BIDAR_SIDES[order.side],
            quantity=str(order.quantity),
            isin=order.instrument_id,
            validity=BIDAR_VALIDITIES[order.validity],
            price=str(order.price),
        ).to_wire()

    def headers(
        self, credential: Credential, identity: BrokerIdentity, extras: BrokerExtras
    ) -> dict[str, str]:
        headers = _request_headers(identity, credential)
        if extras.user_trace:
            headers["x-user-trace"] = extras.user_trace
        return headers

    def classify(
        self,
        order_index: int,
        status_code: int,
        body: str,
        snippet_chars: int = DEFAULT_SNIPPET_CHARS,
    ) -> OrderOutcome:
        return classify_response(order_index, status_code, body, snippet_chars)


_ADAPTERS: dict[BrokerName, BrokerAdapter] = {
    BrokerName.MOFID: MofidAdapter(),
    BrokerName.BMI: StandardAdapter(BrokerName.BMI),
    BrokerName.DANAYAN: DanayanAdapter(),
    BrokerName.ORDIBEHESHT: StandardAdapter(BrokerName.ORDIBEHESHT),
    BrokerName.ALVAND: AlvandAdapter(),
    BrokerName.BIDAR: BidarAdapter(),
}


def get_adapter(name: BrokerName) -> BrokerAdapter:
    """Get the adapter for a broker."""
    return _ADAPTERS[name]
