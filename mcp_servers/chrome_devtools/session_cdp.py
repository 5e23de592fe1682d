"""Low-level CDP transport.

One browser-level WebSocket carries every command. Page and worker targets
are reached through flattened sessions (``Target.attachToTarget`` with
``flatten=true``), so commands for different tabs share the conduit and are
told apart by ``sessionId``. Responses are matched to requests by ``id``.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from contextlib import suppress
from typing import Any

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, WebSocketException

from .errors import ChromeConnectionError, ProtocolError

logger = logging.getLogger("mcp.chrome.cdp")

EventKey = tuple[str | None, str]
EventListener = Callable[[dict[str, Any]], None]


class CdpConnection:
    """Browser-level CDP WebSocket connection."""

    def __init__(self, ws: ClientConnection, ws_url: str, timeout: float = 30.0) -> None:
        self.ws = ws
        self.ws_url = ws_url
        self.timeout = timeout
        self._next_id = 1
        self._pending: dict[int, tuple[str, asyncio.Future[dict[str, Any]]]] = {}
        self._expectations: dict[EventKey, list[asyncio.Future[dict[str, Any]]]] = {}
        self._listeners: dict[EventKey, list[EventListener]] = {}
        self._closed = False
        self._close_reason: str | None = None
        self._reader: asyncio.Task[None] | None = None

    @classmethod
    async def open(cls, ws_url: str, *, timeout: float = 30.0, open_timeout: float = 5.0) -> CdpConnection:
        try:
            ws = await connect(ws_url, max_size=None, open_timeout=open_timeout, ping_interval=None, proxy=None)
        except (OSError, asyncio.TimeoutError, WebSocketException) as exc:
            raise ChromeConnectionError(f"WebSocket handshake with {ws_url} failed: {exc}") from exc
        conn = cls(ws, ws_url, timeout=timeout)
        conn._reader = asyncio.create_task(conn._read_loop(), name="cdp-reader")
        return conn

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        *,
        session_id: str | None = None,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """Send a CDP command and wait for its response."""
        if self._closed:
            raise ChromeConnectionError(self._close_reason or "CDP connection is closed")

        msg_id = self._next_id
        self._next_id += 1
        msg: dict[str, Any] = {"id": msg_id, "method": method}
        if params:
            msg["params"] = params
        if session_id:
            msg["sessionId"] = session_id

        fut: asyncio.Future[dict[str, Any]] = asyncio.get_running_loop().create_future()
        self._pending[msg_id] = (method, fut)
        try:
            try:
                await self.ws.send(json.dumps(msg))
            except ConnectionClosed as exc:
                raise ChromeConnectionError(f"CDP connection lost: {exc}") from exc
            try:
                return await asyncio.wait_for(fut, timeout if timeout is not None else self.timeout)
            except asyncio.TimeoutError as exc:
                raise ProtocolError(f"CDP response timed out: {method}", method=method) from exc
        finally:
            self._pending.pop(msg_id, None)

    async def attach_to_target(self, target_id: str) -> str:
        """Open a flattened session on a target and return its sessionId."""
        result = await self.send("Target.attachToTarget", {"targetId": target_id, "flatten": True})
        session_id = result.get("sessionId")
        if not isinstance(session_id, str) or not session_id:
            raise ProtocolError(f"Target.attachToTarget returned no sessionId for {target_id}")
        return session_id

    async def detach_from_target(self, session_id: str) -> None:
        await self.send("Target.detachFromTarget", {"sessionId": session_id})

    def expect_event(self, method: str, *, session_id: str | None = None) -> asyncio.Future[dict[str, Any]]:
        """Register interest in the next `method` event before issuing the command that triggers it."""
        fut: asyncio.Future[dict[str, Any]] = asyncio.get_running_loop().create_future()
        if self._closed:
            fut.set_exception(ChromeConnectionError(self._close_reason or "CDP connection is closed"))
            return fut
        self._expectations.setdefault((session_id, method), []).append(fut)
        return fut

    async def wait_for_event(
        self,
        method: str,
        *,
        session_id: str | None = None,
        timeout: float = 10.0,
        expectation: asyncio.Future[dict[str, Any]] | None = None,
    ) -> dict[str, Any] | None:
        """Wait for an event; returns its params or None on timeout."""
        fut = expectation if expectation is not None else self.expect_event(method, session_id=session_id)
        try:
            return await asyncio.wait_for(fut, timeout)
        except asyncio.TimeoutError:
            return None
        finally:
            self._discard_expectation((session_id, method), fut)

    def cancel_expectation(
        self, method: str, fut: asyncio.Future[dict[str, Any]], *, session_id: str | None = None
    ) -> None:
        """Drop a waiter from expect_event that will no longer be awaited."""
        fut.cancel()
        self._discard_expectation((session_id, method), fut)

    def on(self, method: str, listener: EventListener, *, session_id: str | None = None) -> Callable[[], None]:
        """Subscribe to every `method` event; returns an unsubscribe callable."""
        key = (session_id, method)
        self._listeners.setdefault(key, []).append(listener)

        def _remove() -> None:
            listeners = self._listeners.get(key)
            if listeners and listener in listeners:
                listeners.remove(listener)
                if not listeners:
                    self._listeners.pop(key, None)

        return _remove

    async def close(self) -> None:
        """Close the socket and fail anything still waiting on it."""
        self._mark_closed("CDP connection closed by client")
        with suppress(WebSocketException, OSError):
            await self.ws.close()
        reader = self._reader
        if reader is not None and not reader.done():
            reader.cancel()
            with suppress(asyncio.CancelledError):
                await reader

    async def _read_loop(self) -> None:
        reason = "CDP connection closed by browser"
        try:
            async for raw in self.ws:
                self._handle_message(raw)
        except ConnectionClosed as exc:
            reason = f"CDP connection lost: {exc}"
        finally:
            self._mark_closed(reason)

    def _handle_message(self, raw: str | bytes) -> None:
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.debug("cdp_bad_frame len=%s", len(raw))
            return
        if not isinstance(data, dict):
            return

        if "id" in data:
            entry = self._pending.get(data["id"])
            if entry is None:
                return
            method, fut = entry
            if fut.done():
                return
            if "error" in data:
                fut.set_exception(ProtocolError.from_cdp(method, data["error"]))
            else:
                result = data.get("result")
                fut.set_result(result if isinstance(result, dict) else {})
            return

        method = data.get("method")
        if isinstance(method, str):
            params = data.get("params")
            self._dispatch_event(data.get("sessionId"), method, params if isinstance(params, dict) else {})

    def _dispatch_event(self, session_id: str | None, method: str, params: dict[str, Any]) -> None:
        key = (session_id, method)
        for fut in self._expectations.pop(key, []):
            if not fut.done():
                fut.set_result(params)
        for listener in list(self._listeners.get(key, ())):
            try:
                listener(params)
            except Exception:
                logger.exception("cdp_listener_failed method=%s", method)

        if method == "Target.detachedFromTarget" and session_id is None:
            detached = params.get("sessionId")
            if isinstance(detached, str):
                self._drop_session(detached)

    def _drop_session(self, session_id: str) -> None:
        error = ChromeConnectionError(f"Target session {session_id} was detached")
        for key in [k for k in self._expectations if k[0] == session_id]:
            for fut in self._expectations.pop(key):
                if not fut.done():
                    fut.set_exception(error)
        for key in [k for k in self._listeners if k[0] == session_id]:
            self._listeners.pop(key, None)

    def _discard_expectation(self, key: EventKey, fut: asyncio.Future[dict[str, Any]]) -> None:
        waiters = self._expectations.get(key)
        if waiters and fut in waiters:
            waiters.remove(fut)
            if not waiters:
                self._expectations.pop(key, None)

    def _mark_closed(self, reason: str) -> None:
        if self._closed:
            return
        self._closed = True
        self._close_reason = reason
        logger.info("cdp_closed reason=%s", reason)
        error = ChromeConnectionError(reason)
        for _method, fut in list(self._pending.values()):
            if not fut.done():
                fut.set_exception(error)
        for waiters in self._expectations.values():
            for fut in waiters:
                if not fut.done():
                    fut.set_exception(error)
        self._expectations.clear()
        self._listeners.clear()


__all__ = ["CdpConnection", "EventListener"]
