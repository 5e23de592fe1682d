from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 9222


def _env_flag(raw: str | None, default: bool) -> bool:
    value = (raw or "").strip().lower()
    if not value:
        return default
    return value not in {"0", "false", "no", "off"}


@dataclass
class ChromeConfig:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    command_timeout: float = 30.0
    http_timeout: float = 5.0
    human_delay: bool = True
    log_level: str = "INFO"

    @property
    def http_base(self) -> str:
        return f"http://{self.host}:{self.port}"

    @classmethod
    def from_env(cls, *, port: int | None = None) -> ChromeConfig:
        """Build config from MCP_* environment variables; an explicit port wins."""
        host = os.environ.get("MCP_CHROME_HOST", DEFAULT_HOST).strip() or DEFAULT_HOST
        env_port = int(os.environ.get("MCP_CHROME_PORT", str(DEFAULT_PORT)))
        timeout = float(os.environ.get("MCP_CDP_TIMEOUT", "30"))
        http_timeout = float(os.environ.get("MCP_HTTP_TIMEOUT", "5"))
        return cls(
            host=host,
            port=port if port is not None else env_port,
            command_timeout=timeout,
            http_timeout=http_timeout,
            human_delay=_env_flag(os.environ.get("MCP_HUMAN_DELAY"), True),
            log_level=(os.environ.get("MCP_LOG_LEVEL") or "INFO").strip().upper(),
        )
