from __future__ import annotations

import pytest

_ENV_KEYS = (
    "MCP_CHROME_HOST",
    "MCP_CHROME_PORT",
    "MCP_CDP_TIMEOUT",
    "MCP_HTTP_TIMEOUT",
    "MCP_HUMAN_DELAY",
    "MCP_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
