"""
HTTP transport for order submission.

A thin wrapper over httpx.AsyncClient: one POST with a JSON body, returning
the status code and body text. Non-2xx statuses are returned, not raised;
the adapter classifies them. Only faults that prevent a response from
arriving (connect, timeout, DNS) raise TransportError.
"""

import json
import logging
from typing import Any

import httpx

from libs.common.exceptions import TransportError

logger = logging.getLogger(__name__)


class HttpTransport:
    """
    Async HTTP transport owned by a single dispatch loop.

    Example:
        >>> transport = HttpTransport(timeout=10.0)
        >>> status, body = await transport.post(url, {"price": 1}, headers)
        >>> await transport.close()
    """

    def __init__(self, timeout: float = 10.0, client: httpx.AsyncClient | None = None):
        """
        Initialize transport.

        Args:
            timeout: Per-request timeout in seconds
            client: Pre-built client (tests); created when omitted
        """
        self.timeout = timeout
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def close(self) -> None:
        """Close HTTP client."""
        await self.client.aclose()

    async def post(
        self, url: str, body: dict[str, Any], headers: dict[str, str]
    ) -> tuple[int, str]:
        """
        POST a JSON body.

        The body is serialized here rather than by httpx so the bytes on the
        wire keep the payload's field order and non-ASCII characters.

        Args:
            url: Order endpoint
            body: JSON-serializable request body
            headers: Complete header set, including Content-Type

        Returns:
            (status_code, response body text)

        Raises:
            TransportError: If no response was received
        """
        content = json.dumps(body, ensure_ascii=False).encode("utf-8")
        try:
            response = await self.client.post(url, content=content, headers=headers)
        except httpx.TransportError as e:
            logger.debug(f"Transport failure for {url}: {type(e).__name__}: {e}")
            raise TransportError(f"{type(e).__name__}: {e}") from e
        return response.status_code, response.text
