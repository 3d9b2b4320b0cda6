"""Masking helpers for credentials and payloads that reach logs."""

from __future__ import annotations

import re
from typing import Any

# Cookie and bearer previews keep this many leading characters
COOKIE_PREVIEW_CHARS = 50
TOKEN_PREVIEW_CHARS = 30

_SENSITIVE_HEADERS = frozenset({"cookie", "authorization", "x-app-n", "x-user-trace"})

_UNICODE_ESCAPE_PATTERN = re.compile(r"\\u([0-9a-fA-F]{4})")


def mask_secret(value: str, visible: int = TOKEN_PREVIEW_CHARS) -> str:
    """Keep a short prefix of a secret and elide the rest.

    Example:
        >>> mask_secret("abcdef", visible=3)
        'abc...'
    """
    if not value:
        return "***"
    if len(value) <= visible:
        return value[: max(1, visible // 2)] + "..."
    return value[:visible] + "..."


def mask_headers(headers: dict[str, str]) -> dict[str, str]:
    """Return a copy of a header set with credential headers masked."""
    masked: dict[str, Any] = {}
    for name, value in headers.items():
        if name.lower() == "cookie":
            masked[name] = mask_secret(value, COOKIE_PREVIEW_CHARS)
        elif name.lower() in _SENSITIVE_HEADERS:
            masked[name] = mask_secret(value, TOKEN_PREVIEW_CHARS)
        else:
            masked[name] = value
    return masked


def decode_unicode_escapes(text: str) -> str:
    """Decode literal ``\\uXXXX`` sequences left in broker error bodies.

    Several brokers return ASCII-escaped Persian messages; decoding them
    keeps failure snippets readable. Malformed sequences are left as-is.

    Example:
        >>> decode_unicode_escapes("\\\\u0633\\\\u0644\\\\u0627\\\\u0645")
        'سلام'
    """
    if "\\u" not in text:
        return text

    def _replace(match: re.Match[str]) -> str:
        code_point = int(match.group(1), 16)
        # Lone surrogates cannot be encoded later; keep the escape
        if 0xD800 <= code_point <= 0xDFFF:
            return match.group(0)
        return chr(code_point)

    return _UNICODE_ESCAPE_PATTERN.sub(_replace, text)


def truncate(text: str, limit: int) -> str:
    """Truncate text to ``limit`` characters, marking the cut."""
    if limit <= 0 or len(text) <= limit:
        return text
    return text[:limit] + "...[truncated]"
