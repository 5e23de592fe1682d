from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

from .errors import ProtocolError
from .session_cdp import CdpConnection, EventListener

_DOMAINS = ("Page", "Runtime", "DOM", "Network", "Log", "ServiceWorker", "Accessibility")


class TabSession:
    """
    Command surface for one attached target (tab or worker).

    Wraps the shared CdpConnection with the target's sessionId so tools can
    call ``send("Page.navigate", ...)`` without knowing about flattening.
    """

    def __init__(self, conn: CdpConnection, target_id: str, session_id: str) -> None:
        self.conn = conn
        self.target_id = target_id
        self.session_id = session_id
        self._enabled: set[str] = set()

    @property
    def tab_id(self) -> str:
        return self.target_id

    async def send(self, method: str, params: dict[str, Any] | None = None, *, timeout: float | None = None) -> dict[str, Any]:
        return await self.conn.send(method, params, session_id=self.session_id, timeout=timeout)

    async def enable(self, *domains: str) -> None:
        """Enable CDP domains once per session (``X.enable`` is cached)."""
        for domain in domains:
            if domain in self._enabled:
                continue
            if domain not in _DOMAINS:
                raise ValueError(f"Unsupported domain for enable(): {domain}")
            await self.send(f"{domain}.enable")
            self._enabled.add(domain)

    def expect_event(self, method: str) -> asyncio.Future[dict[str, Any]]:
        return self.conn.expect_event(method, session_id=self.session_id)

    def cancel_expectation(self, method: str, fut: asyncio.Future[dict[str, Any]]) -> None:
        self.conn.cancel_expectation(method, fut, session_id=self.session_id)

    async def wait_for_event(
        self,
        method: str,
        timeout: float = 10.0,
        *,
        expectation: asyncio.Future[dict[str, Any]] | None = None,
    ) -> dict[str, Any] | None:
        return await self.conn.wait_for_event(
            method, session_id=self.session_id, timeout=timeout, expectation=expectation
        )

    def on(self, method: str, listener: EventListener) -> Callable[[], None]:
        return self.conn.on(method, listener, session_id=self.session_id)

    # ─────────────────────────────────────────────────────────────────────────
    # JavaScript
    # ─────────────────────────────────────────────────────────────────────────

    async def evaluate(self, expression: str, *, await_promise: bool = False) -> dict[str, Any]:
        """Run Runtime.evaluate and return the raw RemoteObject; script exceptions raise."""
        await self.enable("Runtime")
        result = await self.send(
            "Runtime.evaluate",
            {"expression": expression, "returnByValue": True, "awaitPromise": await_promise},
        )
        details = result.get("exceptionDetails")
        if isinstance(details, dict):
            exc = details.get("exception") if isinstance(details.get("exception"), dict) else {}
            text = exc.get("description") or details.get("text") or "Uncaught exception"
            raise ProtocolError(f"Script execution failed: {text}", method="Runtime.evaluate")
        value = result.get("result")
        return value if isinstance(value, dict) else {}

    async def eval_js(self, expression: str, *, await_promise: bool = False) -> Any:
        """Evaluate JavaScript and return the plain value (undefined/null → None)."""
        remote = await self.evaluate(expression, await_promise=await_promise)
        if remote.get("type") == "undefined":
            return None
        if remote.get("type") == "object" and remote.get("subtype") == "null":
            return None
        return remote.get("value")

    # ─────────────────────────────────────────────────────────────────────────
    # Navigation
    # ─────────────────────────────────────────────────────────────────────────

    async def navigate(self, url: str, *, wait_event: str | None = "Page.loadEventFired", timeout: float = 30.0) -> dict[str, Any]:
        await self.enable("Page")
        waiter = self.expect_event(wait_event) if wait_event else None
        try:
            result = await self.send("Page.navigate", {"url": url})
        except Exception:
            if waiter is not None and wait_event:
                self.cancel_expectation(wait_event, waiter)
            raise
        if result.get("errorText"):
            if waiter is not None and wait_event:
                self.cancel_expectation(wait_event, waiter)
            raise ProtocolError(f"Navigation to {url} failed: {result['errorText']}", method="Page.navigate")
        if waiter is not None and wait_event:
            await self.wait_for_event(wait_event, timeout, expectation=waiter)
        return result

    async def get_url(self) -> str:
        return await self.eval_js("window.location.href") or ""

    async def get_origin(self) -> str:
        return await self.eval_js("window.location.origin") or ""


__all__ = ["TabSession"]
