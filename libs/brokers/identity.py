"""
Broker identities: the six supported brokers and their fixed endpoints.

A BrokerIdentity bundles the order-submission URL with the browser headers
the broker's web client sends. The defaults below mirror each broker's web
platform; the endpoint, user agent, origin and referer can be overridden
from the broker's config file when a broker moves hosts.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum

DEFAULT_USER_AGENT = "Mozilla/5.0 (X11; Linux x86_64; rv:145.0) Gecko/20100101 Firefox/145.0"

JSON_ACCEPT = "application/json, text/plain, */*"


class BrokerName(str, Enum):
    """Supported brokers. Values match the CLI argument and config file suffix."""

    MOFID = "mofid"
    BMI = "bmi"
    DANAYAN = "danayan"
    ORDIBEHESHT = "ordibehesht"
    ALVAND = "alvand"
    BIDAR = "bidar"

    @classmethod
    def parse(cls, value: str) -> BrokerName:
        """Look up a broker by name, case-insensitively.

        Raises:
            ValueError: If the name is not a supported broker
        """
        try:
            return cls(value.strip().lower())
        except ValueError:
            supported = ", ".join(b.value for b in cls)
            raise ValueError(f"Unknown broker '{value}' (supported: {supported})") from None

    @property
    def label(self) -> str:
        """Display label used in log lines, e.g. "BMI" or "Mofid"."""
        return "BMI" if self is BrokerName.BMI else self.value.capitalize()


@dataclass(frozen=True)
class BrokerIdentity:
    """
    Immutable description of where and how a broker receives orders.

    Attributes:
        name: Broker tag
        order_url: Fixed order-submission endpoint (POST)
        user_agent: User-Agent sent with every request
        origin: Origin header of the broker's web client
        referer: Referer header, or None when the web client sends none
        accept: Accept header value
        fetch_site: Sec-Fetch-Site value ("same-site" or "same-origin")
        extra_headers: Broker-specific static headers, in send order
    """

    name: BrokerName
    order_url: str
    origin: str
    referer: str | None = None
    user_agent: str = DEFAULT_USER_AGENT
    accept: str = JSON_ACCEPT
    fetch_site: str = "same-site"
    extra_headers: tuple[tuple[str, str], ...] = field(default_factory=tuple)

    def default_headers(self) -> dict[str, str]:
        """Build the transport headers shared by every request to this broker.

        Returns a fresh dict on each call; callers may extend it freely.
        """
        headers = {
            "User-Agent": self.user_agent,
            "Accept": self.accept,
            "Accept-Language": "en-US,en;q=0.5",
            "Origin": self.origin,
        }
        if self.referer:
            headers["Referer"] = self.referer
        headers.update(
            {
                "Sec-Fetch-Dest": "empty",
                "Sec-Fetch-Mode": "cors",
                "Sec-Fetch-Site": self.fetch_site,
                "Priority": "u=0",
                "Pragma": "no-cache",
                "Cache-Control": "no-cache",
            }
        )
        headers.update(dict(self.extra_headers))
        return headers

    def with_overrides(
        self,
        order_url: str | None = None,
        user_agent: str | None = None,
        origin: str | None = None,
        referer: str | None = None,
    ) -> BrokerIdentity:
        """Return a copy with non-empty overrides applied."""
        changes: dict[str, str] = {}
        if order_url:
            changes["order_url"] = order_url
        if user_agent:
            changes["user_agent"] = user_agent
        if origin:
            changes["origin"] = origin
        if referer:
            changes["referer"] = referer
        return replace(self, **changes) if changes else self


@dataclass(frozen=True)
class BrokerExtras:
    """
    Per-session values some brokers need to build request headers.

    Attributes:
        nt: Exir session token used to sign X-App-N (Alvand)
        user_trace: Value of the x-user-trace header (Bidar, optional)
    """

    nt: str | None = None
    user_trace: str | None = None


_DEFAULT_IDENTITIES: dict[BrokerName, BrokerIdentity] = {
    BrokerName.MOFID: BrokerIdentity(
        name=BrokerName.MOFID,
        order_url="https://mofidonline.com/apigateway/api/v1/Order/send",
        origin="https://tg.mofidonline.com",
        referer="https://tg.mofidonline.com/",
        extra_headers=(("x-appname", "titan"),),
    ),
    BrokerName.BMI: BrokerIdentity(
        name=BrokerName.BMI,
        order_url="https://api2.bmibourse.ir/Web/V1/Order/Post",
        origin="https://online.bmibourse.ir",
        referer="https://online.bmibourse.ir/",
        accept="*/*",
        extra_headers=(("X-Requested-With", "XMLHttpRequest"),),
    ),
    BrokerName.DANAYAN: BrokerIdentity(
        name=BrokerName.DANAYAN,
        order_url="https://otapi.danayan.broker/api/v1/TseOms/RegisterOrder",
        origin="https://trader.danayan.broker",
    ),
    BrokerName.ORDIBEHESHT: BrokerIdentity(
        name=BrokerName.ORDIBEHESHT,
        order_url="https://api.oibourse.ir/Web/V1/Order/Post",
        origin="https://online.oibourse.ir",
        referer="https://online.oibourse.ir/",
        accept="*/*",
        extra_headers=(("X-Requested-With", "XMLHttpRequest"),),
    ),
    BrokerName.ALVAND: BrokerIdentity(
        name=BrokerName.ALVAND,
        order_url="https://arzeshafarin.exirbroker.com/api/v1/order",
        origin="https://arzeshafarin.exirbroker.com",
        referer="https://arzeshafarin.exirbroker.com/exir/mainNew",
        fetch_site="same-origin",
    ),
    BrokerName.BIDAR: BrokerIdentity(
        name=BrokerName.BIDAR,
        order_url="https://api.bidartrader.ir/trader/v1/order/buy",
        origin="https://bidartrader.ir",
        referer="https://bidartrader.ir/",
        accept="application/json",
        extra_headers=(("TE", "trailers"),),
    ),
}


def default_identity(name: BrokerName) -> BrokerIdentity:
    """Get the built-in identity for a broker."""
    return _DEFAULT_IDENTITIES[name]
