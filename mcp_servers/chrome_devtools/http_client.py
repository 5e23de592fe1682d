from __future__ import annotations

import asyncio
import json
import urllib.parse
from typing import Any
from urllib.error import URLError
from urllib.request import ProxyHandler, Request, build_opener


class HttpClientError(Exception):
    pass


# The debugging endpoint is local; environment proxies must not intercept it.
_OPENER = build_opener(ProxyHandler({}))


def _build_request(url: str) -> Request:
    return Request(url, headers={"User-Agent": "chrome-devtools-mcp/1.0"})


def get_json(url: str, timeout: float = 5.0) -> Any:
    """GET a DevTools HTTP endpoint (e.g. /json/version) and decode the JSON body."""
    parsed = urllib.parse.urlparse(url)
    if parsed.scheme not in ("http", "https"):
        raise HttpClientError("Only http/https are supported")
    try:
        with _OPENER.open(_build_request(url), timeout=timeout) as resp:
            body = resp.read()
    except (TimeoutError, URLError, OSError) as exc:
        raise HttpClientError(str(getattr(exc, "reason", None) or exc)) from exc
    try:
        return json.loads(body.decode("utf-8", errors="replace"))
    except json.JSONDecodeError as exc:
        raise HttpClientError(f"Invalid JSON from {url}: {exc}") from exc


async def get_json_async(url: str, timeout: float = 5.0) -> Any:
    """Run get_json off the event loop so a slow endpoint never blocks other work."""
    return await asyncio.to_thread(get_json, url, timeout)
