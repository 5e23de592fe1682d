"""Chrome connection manager.

Owns the single CDP connection of the process and hands out per-target
sessions. Targets belong to the browser: they can appear or vanish between
two calls, so nothing here caches a tab listing beyond the last result.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from .browser_session import TabSession
from .config import ChromeConfig
from .errors import ChromeConnectionError, NoTargetError, ProtocolError
from .http_client import HttpClientError, get_json_async
from .session_cdp import CdpConnection

logger = logging.getLogger("mcp.chrome.connector")

NOT_CONNECTED = "Not connected to Chrome. Call connect() first."


@dataclass(frozen=True, slots=True)
class TargetInfo:
    id: str
    type: str
    title: str
    url: str
    attached: bool = False
    browser_context_id: str | None = None

    @classmethod
    def from_cdp(cls, info: dict[str, Any]) -> TargetInfo:
        return cls(
            id=str(info.get("targetId") or info.get("id") or ""),
            type=str(info.get("type") or ""),
            title=str(info.get("title") or ""),
            url=str(info.get("url") or ""),
            attached=bool(info.get("attached", False)),
            browser_context_id=info.get("browserContextId"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "type": self.type, "title": self.title, "url": self.url}


class ChromeConnector:
    """Connection to an already running Chrome started with --remote-debugging-port."""

    def __init__(self, config: ChromeConfig | None = None) -> None:
        self.config = config or ChromeConfig()
        self._conn: CdpConnection | None = None
        self._sessions: dict[str, TabSession] = {}
        self._current_tab_id: str | None = None
        self._last_tabs: list[TargetInfo] = []

    @property
    def host(self) -> str:
        return self.config.host

    @property
    def port(self) -> int:
        return self.config.port

    @property
    def is_connected(self) -> bool:
        return self._conn is not None and not self._conn.closed

    @property
    def current_tab_id(self) -> str | None:
        return self._current_tab_id

    @property
    def last_tabs(self) -> list[TargetInfo]:
        return list(self._last_tabs)

    # ─────────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────────────

    async def connect(self) -> None:
        """Open the browser-level CDP connection (reuses a live one)."""
        if self.is_connected:
            logger.debug("connect: already connected to %s:%s", self.host, self.port)
            return
        if self._conn is not None:
            # A previous link died on its own; clear it before opening a new one.
            await self.disconnect()

        version_url = f"{self.config.http_base}/json/version"
        try:
            version = await get_json_async(version_url, timeout=self.config.http_timeout)
        except HttpClientError as exc:
            raise ChromeConnectionError(self._guidance(str(exc))) from exc

        ws_url = version.get("webSocketDebuggerUrl") if isinstance(version, dict) else None
        if not isinstance(ws_url, str) or not ws_url:
            raise ChromeConnectionError(self._guidance("/json/version did not return webSocketDebuggerUrl"))

        try:
            conn = await CdpConnection.open(
                ws_url,
                timeout=self.config.command_timeout,
                open_timeout=self.config.http_timeout,
            )
        except ChromeConnectionError as exc:
            raise ChromeConnectionError(self._guidance(exc.message)) from exc

        self._conn = conn
        conn.on("Target.detachedFromTarget", self._on_detached)
        logger.info("Connected to Chrome on %s:%s", self.host, self.port)

    async def disconnect(self) -> None:
        """Release the connection; a no-op when already disconnected."""
        conn = self._conn
        self._conn = None
        self._sessions.clear()
        self._last_tabs = []
        self._current_tab_id = None
        if conn is None:
            return
        await conn.close()
        logger.info("Disconnected from Chrome")

    def _guidance(self, reason: str) -> str:
        return (
            f"Failed to connect to Chrome on port {self.port}. "
            f"Make sure Chrome is running with --remote-debugging-port={self.port}\n"
            f"Error: {reason}"
        )

    def _require_connection(self) -> CdpConnection:
        conn = self._conn
        if conn is None:
            raise ProtocolError(NOT_CONNECTED)
        if conn.closed:
            raise ChromeConnectionError("Connection to Chrome was lost; restart the server or reconnect explicitly.")
        return conn

    # ─────────────────────────────────────────────────────────────────────────
    # Browser-level queries
    # ─────────────────────────────────────────────────────────────────────────

    async def get_version(self) -> dict[str, Any]:
        conn = self._require_connection()
        return await conn.send("Browser.getVersion")

    async def list_targets(self) -> list[TargetInfo]:
        conn = self._require_connection()
        result = await conn.send("Target.getTargets")
        infos = result.get("targetInfos") or []
        return [TargetInfo.from_cdp(info) for info in infos if isinstance(info, dict)]

    async def list_tabs(self) -> list[TargetInfo]:
        """Page targets in browser order; remembered as the latest listing."""
        tabs = [t for t in await self.list_targets() if t.type == "page"]
        self._last_tabs = tabs
        return tabs

    async def execute_command(
        self,
        domain: str,
        method: str,
        params: dict[str, Any] | None = None,
        *,
        tab_id: str | None = None,
    ) -> dict[str, Any]:
        """Send ``<domain>.<method>`` on the browser session, or on a tab when tab_id is given."""
        name = f"{domain}.{method}"
        if tab_id is not None:
            tab = await self.get_tab(tab_id)
            return await tab.send(name, params)
        return await self._require_connection().send(name, params)

    # ─────────────────────────────────────────────────────────────────────────
    # Target selection
    # ─────────────────────────────────────────────────────────────────────────

    def set_current_tab(self, tab_id: str) -> None:
        self._current_tab_id = tab_id

    def clear_current_tab(self) -> None:
        self._current_tab_id = None

    async def resolve_tab_id(self, tab_id: str | None = None) -> str:
        """Explicit id, else the pinned tab, else the first page of a fresh listing."""
        if tab_id:
            return tab_id
        if self._current_tab_id:
            return self._current_tab_id
        tabs = await self.list_tabs()
        if not tabs:
            raise NoTargetError("No tabs available: open a page in Chrome or call create_tab first.")
        return tabs[0].id

    async def get_tab(self, tab_id: str | None = None) -> TabSession:
        """Attached session for the resolved target (cached per target id)."""
        conn = self._require_connection()
        target_id = await self.resolve_tab_id(tab_id)
        session = self._sessions.get(target_id)
        if session is not None:
            return session
        session_id = await conn.attach_to_target(target_id)
        session = TabSession(conn, target_id, session_id)
        self._sessions[target_id] = session
        logger.debug("attached target=%s session=%s", target_id, session_id)
        return session

    async def create_tab(self, url: str | None = None) -> TargetInfo:
        conn = self._require_connection()
        result = await conn.send("Target.createTarget", {"url": url or "about:blank"})
        target_id = str(result.get("targetId") or "")
        if not target_id:
            raise ProtocolError("Target.createTarget returned no targetId", method="Target.createTarget")
        info = await conn.send("Target.getTargetInfo", {"targetId": target_id})
        target = info.get("targetInfo")
        if isinstance(target, dict):
            return TargetInfo.from_cdp(target)
        return TargetInfo(id=target_id, type="page", title="", url=url or "about:blank")

    async def close_tab(self, tab_id: str) -> None:
        conn = self._require_connection()
        result = await conn.send("Target.closeTarget", {"targetId": tab_id})
        if result.get("success") is False:
            raise ProtocolError(f"Failed to close tab: {tab_id}", method="Target.closeTarget")
        self._sessions.pop(tab_id, None)
        if self._current_tab_id == tab_id:
            self._current_tab_id = None

    async def activate_tab(self, tab_id: str) -> None:
        conn = self._require_connection()
        await conn.send("Target.activateTarget", {"targetId": tab_id})
        self._current_tab_id = tab_id

    def _on_detached(self, params: dict[str, Any]) -> None:
        session_id = params.get("sessionId")
        for target_id, session in list(self._sessions.items()):
            if session.session_id == session_id:
                del self._sessions[target_id]
                logger.debug("detached target=%s", target_id)


__all__ = ["ChromeConnector", "NOT_CONNECTED", "TargetInfo"]
