from __future__ import annotations

from dataclasses import dataclass

from ..config import ChromeConfig
from ..connector import ChromeConnector


@dataclass
class ServerContext:
    """Process-wide dependencies, built once in main and handed to every tool group."""

    config: ChromeConfig
    connector: ChromeConnector

    @classmethod
    def create(cls, config: ChromeConfig | None = None) -> ServerContext:
        config = config or ChromeConfig.from_env()
        return cls(config=config, connector=ChromeConnector(config))
