from __future__ import annotations

import asyncio
import json

import pytest

from mcp_servers.chrome_devtools.config import ChromeConfig
from mcp_servers.chrome_devtools.errors import ProtocolError
from mcp_servers.chrome_devtools.tools.base import (
    human_delay,
    is_valid_url,
    js_literal,
    truncate_output,
    wait_for,
)


@pytest.mark.parametrize(
    ("url", "ok"),
    [
        ("https://example.com/path?q=1", True),
        ("http://localhost:8080", True),
        ("about:blank", True),
        ("data:text/html,<p>hi</p>", True),
        ("chrome-extension://abc/popup.html", True),
        ("https://", False),
        ("example.com", False),
        ("/relative/path", False),
        ("", False),
        ("   ", False),
    ],
)
def test_is_valid_url(url: str, ok: bool) -> None:
    assert is_valid_url(url) is ok


def test_truncate_output_under_limit() -> None:
    assert truncate_output("abc", 10) == {"truncated": False, "data": "abc"}


def test_truncate_output_over_limit() -> None:
    result = truncate_output("x" * 200, 50, "html")
    assert result["truncated"] is True
    assert result["data"] == "x" * 50
    assert result["totalSize"] == 200
    assert result["truncatedSize"] == 50
    assert result["message"] == "Output truncated: 200 chars -> 50 chars (25% shown)"
    assert "querySelector" in result["suggestion"]
    assert truncate_output("x" * 200, 50, "unknown")["suggestion"] == truncate_output("x" * 200, 50)["suggestion"]


def test_js_literal_escapes_quotes() -> None:
    value = "a'b\"c</script>"
    assert json.loads(js_literal(value)) == value
    assert js_literal(None) == "null"


def test_wait_for_treats_protocol_errors_as_not_yet() -> None:
    attempts: list[int] = []

    async def condition() -> bool:
        attempts.append(1)
        if len(attempts) == 1:
            raise ProtocolError("Execution context was destroyed")
        return len(attempts) >= 3

    assert asyncio.run(wait_for(condition, timeout=2.0, interval=0.01)) is True
    assert len(attempts) == 3


def test_wait_for_times_out() -> None:
    async def never() -> bool:
        return False

    assert asyncio.run(wait_for(never, timeout=0.05, interval=0.01)) is False


def test_wait_for_propagates_other_errors() -> None:
    async def broken() -> bool:
        raise KeyError("bug")

    with pytest.raises(KeyError):
        asyncio.run(wait_for(broken, timeout=1.0, interval=0.01))


def test_human_delay_disabled_returns_immediately(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fail(delay: float) -> None:
        raise AssertionError("should not sleep")

    monkeypatch.setattr(asyncio, "sleep", fail)
    asyncio.run(human_delay(ChromeConfig(human_delay=False)))


def test_human_delay_sleeps_within_range(monkeypatch: pytest.MonkeyPatch) -> None:
    delays: list[float] = []

    async def record(delay: float) -> None:
        delays.append(delay)

    monkeypatch.setattr(asyncio, "sleep", record)
    asyncio.run(human_delay(ChromeConfig(human_delay=True), 0.2, 0.3))
    assert len(delays) == 1
    assert 0.2 <= delays[0] <= 0.3
