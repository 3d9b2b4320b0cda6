"""Render an order request as an equivalent curl command."""

import json
import shlex
from typing import Any

from libs.common.log_sanitizer import mask_headers


def render_curl(
    url: str, headers: dict[str, str], body: dict[str, Any], *, mask: bool = True
) -> str:
    """
    Build a shell-quoted curl command reproducing one order request.

    Args:
        url: Order endpoint
        headers: Full request headers
        body: JSON request body
        mask: Mask credential headers (set False only for output meant to be
            copied and run by the user)

    Example:
        >>> print(render_curl("https://x/o", {"Accept": "*/*"}, {"price": 1}))
        curl -X POST https://x/o \\
          -H 'Accept: */*' \\
          --data-raw '{"price": 1}'
    """
    shown = mask_headers(headers) if mask else headers
    parts = [f"curl -X POST {shlex.quote(url)}"]
    parts.extend(f"-H {shlex.quote(f'{name}: {value}')}" for name, value in shown.items())
    parts.append(f"--data-raw {shlex.quote(json.dumps(body, ensure_ascii=False))}")
    return " \\\n  ".join(parts)
