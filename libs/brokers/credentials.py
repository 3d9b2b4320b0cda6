"""
Credential resolution for broker sessions.

A broker config may carry both a cookie and a bearer token; exactly one of
them is used. A non-empty cookie always wins. Nothing here talks to the
network: an expired credential only shows up later as a 401/403 outcome.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from libs.common.exceptions import ConfigurationError
from libs.common.log_sanitizer import COOKIE_PREVIEW_CHARS, TOKEN_PREVIEW_CHARS, mask_secret

# Placeholder shipped in the example config files
COOKIE_PLACEHOLDER = "PASTE_YOUR_COOKIE_HERE"

_BEARER_PREFIX = "Bearer "


class CredentialKind(str, Enum):
    """Which authentication mechanism a session uses."""

    COOKIE = "cookie"
    BEARER = "bearer"


@dataclass(frozen=True)
class Credential:
    """The single active credential of a session.

    Attributes:
        kind: Cookie or bearer token
        value: Raw cookie string, or the token without a "Bearer " prefix
    """

    kind: CredentialKind
    value: str

    def header(self) -> tuple[str, str]:
        """Return the (name, value) header pair carrying this credential."""
        if self.kind is CredentialKind.COOKIE:
            return "Cookie", self.value
        return "Authorization", f"{_BEARER_PREFIX}{self.value}"

    def preview(self) -> str:
        """Masked form safe for logs."""
        if self.kind is CredentialKind.COOKIE:
            return mask_secret(self.value, COOKIE_PREVIEW_CHARS)
        return _BEARER_PREFIX + mask_secret(self.value, TOKEN_PREVIEW_CHARS)

    def __repr__(self) -> str:
        return f"Credential(kind={self.kind.value!r}, value={self.preview()!r})"


def _clean(value: str | None) -> str:
    return (value or "").strip()


def resolve_credential(cookie: str | None, bearer_token: str | None) -> Credential:
    """
    Select the active credential for a session.

    Args:
        cookie: Cookie header value from configuration (may be empty)
        bearer_token: Bearer token from configuration, with or without the
            "Bearer " prefix (may be empty)

    Returns:
        The cookie credential when a usable cookie is present, otherwise the
        bearer credential

    Raises:
        ConfigurationError: If neither value is usable

    Example:
        >>> resolve_credential("sid=1", "abc").kind
        <CredentialKind.COOKIE: 'cookie'>
        >>> resolve_credential("", "Bearer abc").value
        'abc'
    """
    cookie_value = _clean(cookie)
    if cookie_value and cookie_value != COOKIE_PLACEHOLDER:
        return Credential(CredentialKind.COOKIE, cookie_value)

    token_value = _clean(bearer_token)
    if token_value.startswith(_BEARER_PREFIX):
        token_value = token_value[len(_BEARER_PREFIX) :].strip()
    if token_value:
        return Credential(CredentialKind.BEARER, token_value)

    raise ConfigurationError(
        "No usable credential configured: set either 'cookie' or 'authorization'"
    )
