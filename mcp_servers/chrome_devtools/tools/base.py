"""
Base utilities for Chrome DevTools tools.

Provides:
- tool: build a ToolDescriptor from a pydantic argument model and a handler
- TabArgs: argument base for tab-scoped tools (optional tabId)
- human_delay: randomized pause after mutating actions
- wait_for: poll an async condition until it holds or times out
- js_literal: embed Python values into page scripts safely
- truncate_output: cap large text payloads with metadata
- is_valid_url: URL sanity check before navigation
"""

from __future__ import annotations

import asyncio
import json
import random
import time
from collections.abc import Awaitable, Callable
from typing import Any
from urllib.parse import urlsplit

from pydantic import Field

from ..config import ChromeConfig
from ..errors import ProtocolError
from ..server.schema import ToolArgs, schema_for
from ..server.types import ToolDescriptor, ToolHandler

HTML_LIMIT = 50_000

_TRUNCATE_HINTS = {
    "html": "Use execute_script with a targeted querySelector to fetch a smaller fragment.",
    "json": "Use execute_script to filter the data before returning it.",
    "text": "Use more specific selectors to extract only the needed portion.",
}


class TabArgs(ToolArgs):
    tab_id: str | None = Field(None, description="Tab ID (optional, uses current tab if not specified)")


def tool(name: str, description: str, model: type[ToolArgs], handler: ToolHandler) -> ToolDescriptor:
    return ToolDescriptor(name=name, description=description, schema=schema_for(model), handler=handler)


async def human_delay(config: ChromeConfig, low: float = 0.1, high: float = 0.5) -> None:
    """Sleep a random interval in [low, high) seconds unless MCP_HUMAN_DELAY is off."""
    if not config.human_delay:
        return
    await asyncio.sleep(random.uniform(low, high))


async def wait_for(
    condition: Callable[[], Awaitable[bool]],
    timeout: float = 30.0,
    interval: float = 0.1,
) -> bool:
    """Poll `condition` until it returns True; False once `timeout` seconds pass.

    Script errors while the page is still loading count as "not yet".
    """
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        try:
            if await condition():
                return True
        except ProtocolError:
            pass
        await asyncio.sleep(interval)
    return False


def js_literal(value: Any) -> str:
    """JSON-encode a value for interpolation into a JavaScript expression."""
    return json.dumps(value, ensure_ascii=False)


def truncate_output(data: str, max_size: int = HTML_LIMIT, context: str = "text") -> dict[str, Any]:
    if len(data) <= max_size:
        return {"truncated": False, "data": data}
    shown = round(max_size / len(data) * 100)
    return {
        "truncated": True,
        "data": data[:max_size],
        "totalSize": len(data),
        "truncatedSize": max_size,
        "message": f"Output truncated: {len(data)} chars -> {max_size} chars ({shown}% shown)",
        "suggestion": _TRUNCATE_HINTS.get(context, _TRUNCATE_HINTS["text"]),
    }


def is_valid_url(url: str) -> bool:
    """True for absolute URLs (scheme plus host, or an opaque scheme like about: or data:)."""
    if not isinstance(url, str) or not url.strip():
        return False
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    if not parts.scheme:
        return False
    if parts.scheme in {"http", "https", "ws", "wss", "ftp"}:
        return bool(parts.netloc)
    return True


__all__ = [
    "HTML_LIMIT",
    "TabArgs",
    "human_delay",
    "is_valid_url",
    "js_literal",
    "tool",
    "truncate_output",
    "wait_for",
]
