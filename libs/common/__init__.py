"""Common utilities and exceptions."""

from libs.common.exceptions import (
    ConfigurationError,
    SarkhatiError,
    SerializationError,
    TransportError,
)
from libs.common.log_sanitizer import (
    decode_unicode_escapes,
    mask_headers,
    mask_secret,
    truncate,
)

__all__ = [
    "SarkhatiError",
    "ConfigurationError",
    "SerializationError",
    "TransportError",
    # Log sanitizing
    "decode_unicode_escapes",
    "mask_headers",
    "mask_secret",
    "truncate",
]
