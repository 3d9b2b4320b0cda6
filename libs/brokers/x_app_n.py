"""
X-App-N request signature for Exir-based brokers (Alvand).

The Exir web client stamps every order with an ``X-App-N`` header derived
from the session's ``nt`` token (returned by userInfo after login), the
request path and the current UTC time. The server rejects stale values, so
the header is recomputed for every request.
"""

from __future__ import annotations

import math
import re
from datetime import UTC, datetime, timedelta

# The web client subtracts this much to tolerate clock skew
CLOCK_SKEW = timedelta(seconds=2)

_WINDOW = 5
_INT_PATTERN = re.compile(r"^[+-]?\d+$")
_FLOAT_PATTERN = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")


def _url_path(url: str) -> str:
    # Everything after the host, query string included
    scheme_end = url.find("://")
    if scheme_end < 0:
        return url
    rest = url[scheme_end + 3 :]
    slash = rest.find("/")
    return rest[slash:] if slash >= 0 else "/"


def _parse_int(text: str) -> int:
    return int(text) if _INT_PATTERN.match(text) else 0


def _parse_float(text: str) -> float:
    if not _FLOAT_PATTERN.match(text):
        return 0.0
    value = float(text)
    # Windows like "1e400" overflow to inf
    return value if math.isfinite(value) else 0.0


def calculate_x_app_n(nt: str, url: str, now: datetime | None = None) -> str:
    """
    Compute the X-App-N header for one request.

    Algorithm:
        1. utc_seconds: seconds since UTC midnight, minus the clock skew
        2. url_sum: sum of character codes of the URL path and query
        3. A 5-character window of ``nt[2:]`` starting at
           ``|utc_seconds % (len - 5) - offset|`` (offset = first two
           digits of ``nt``) is parsed as a number
        4. second = utc_seconds * url_sum; first = floor(window) * second

    Args:
        nt: The session's nt token
        url: Full order URL; only the part after the host contributes
        now: Current time (defaults to the system clock, UTC)

    Returns:
        "<first>.<second>"

    Example:
        >>> calculate_x_app_n("0012345678", "https://x/a", datetime(2025, 1, 1, 0, 0, 12, tzinfo=UTC))
        '33776640.1440'
    """
    current = (now or datetime.now(UTC)).astimezone(UTC) - CLOCK_SKEW
    utc_seconds = current.hour * 3600 + current.minute * 60 + current.second

    url_sum = sum(ord(char) for char in _url_path(url))

    tail = nt[2:] if len(nt) > 2 else nt
    offset = _parse_int(nt[:2]) if len(nt) >= 2 else 0

    if len(tail) > _WINDOW:
        position = abs(utc_seconds % (len(tail) - _WINDOW) - offset)
    else:
        position = 0
    window = tail[position : position + _WINDOW] if position < len(tail) else "0"

    second_part = utc_seconds * url_sum
    first_part = math.floor(math.floor(_parse_float(window)) * second_part)
    return f"{first_part}.{second_part}"
