"""In-process stand-in for Chrome's remote debugging endpoint.

Serves ``GET /json/version`` over HTTP and speaks a small slice of CDP on the
browser websocket: target listing/attach/create/close, Runtime.evaluate and
Page.navigate (followed by Page.loadEventFired). Tests override or extend
behavior per method with ``on_command``.
"""

from __future__ import annotations

import asyncio
import inspect
import json
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from http import HTTPStatus
from typing import Any

from websockets.asyncio.server import ServerConnection, serve
from websockets.exceptions import ConnectionClosed

from mcp_servers.chrome_devtools.config import ChromeConfig
from mcp_servers.chrome_devtools.server.context import ServerContext
from mcp_servers.chrome_devtools.server.dispatch import ToolDispatcher
from mcp_servers.chrome_devtools.server.registry import build_registry

CommandHandler = Callable[[dict[str, Any], "str | None"], Any]


class CdpFault(Exception):
    """Raise from a command handler to answer with a CDP error object."""

    def __init__(self, message: str, code: int = -32000) -> None:
        super().__init__(message)
        self.message = message
        self.code = code


class JsException(Exception):
    """Raise from an evaluator to report a script exception (exceptionDetails)."""


def page_target(target_id: str, url: str = "about:blank", title: str = "") -> dict[str, Any]:
    return {"targetId": target_id, "type": "page", "title": title, "url": url, "attached": False}


class FakeChrome:
    def __init__(self, targets: list[dict[str, Any]] | None = None) -> None:
        self.targets: list[dict[str, Any]] = (
            list(targets) if targets is not None else [page_target("page-1", "https://example.com/", "Example")]
        )
        self.received: list[dict[str, Any]] = []
        self.evaluations: dict[str, Any] = {}
        self.evaluator: Callable[[str], Any] | None = None
        self.port: int = 0
        self._handlers: dict[str, CommandHandler] = {}
        self._connections: list[ServerConnection] = []
        self._queued_events: list[tuple[str, dict[str, Any], str | None]] = []
        self._server: Any = None
        self._created = 0

    async def __aenter__(self) -> FakeChrome:
        self._server = await serve(self._handle, "127.0.0.1", 0, process_request=self._process_request)
        self.port = self._server.sockets[0].getsockname()[1]
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self._server.close()
        await self._server.wait_closed()

    @property
    def ws_url(self) -> str:
        return f"ws://127.0.0.1:{self.port}/devtools/browser/fake"

    def config(self, **overrides: Any) -> ChromeConfig:
        values: dict[str, Any] = {
            "host": "127.0.0.1",
            "port": self.port,
            "command_timeout": 2.0,
            "http_timeout": 2.0,
            "human_delay": False,
        }
        values.update(overrides)
        return ChromeConfig(**values)

    # ─────────────────────────────────────────────────────────────────────────
    # Test hooks
    # ─────────────────────────────────────────────────────────────────────────

    def on_command(self, method: str, handler: CommandHandler) -> None:
        self._handlers[method] = handler

    def queue_event(self, method: str, params: dict[str, Any] | None = None, session_id: str | None = None) -> None:
        """Send an event right after the response of the command being handled."""
        self._queued_events.append((method, params or {}, session_id))

    async def emit(self, method: str, params: dict[str, Any] | None = None, session_id: str | None = None) -> None:
        for ws in list(self._connections):
            await ws.send(_event(method, params or {}, session_id))

    async def drop_connections(self) -> None:
        for ws in list(self._connections):
            await ws.close()

    def commands(self, method: str) -> list[dict[str, Any]]:
        return [msg for msg in self.received if msg.get("method") == method]

    # ─────────────────────────────────────────────────────────────────────────
    # Transport
    # ─────────────────────────────────────────────────────────────────────────

    def _process_request(self, connection: ServerConnection, request: Any) -> Any:
        if request.path == "/json/version":
            body = {
                "Browser": "Chrome/131.0.0.0",
                "Protocol-Version": "1.3",
                "webSocketDebuggerUrl": self.ws_url,
            }
            return connection.respond(HTTPStatus.OK, json.dumps(body))
        return None

    async def _handle(self, ws: ServerConnection) -> None:
        self._connections.append(ws)
        tasks: set[asyncio.Task[None]] = set()
        try:
            async for raw in ws:
                msg = json.loads(raw)
                self.received.append(msg)
                # Each command is answered on its own task so slow handlers don't block later ones.
                task = asyncio.create_task(self._serve_one(ws, msg))
                tasks.add(task)
                task.add_done_callback(tasks.discard)
        except ConnectionClosed:
            pass
        finally:
            self._connections.remove(ws)
            for task in tasks:
                task.cancel()

    async def _serve_one(self, ws: ServerConnection, msg: dict[str, Any]) -> None:
        reply = await self._answer(msg)
        events, self._queued_events = self._queued_events, []
        try:
            await ws.send(reply)
            for method, params, session_id in events:
                await ws.send(_event(method, params, session_id))
        except ConnectionClosed:
            pass

    async def _answer(self, msg: dict[str, Any]) -> str:
        method = msg.get("method", "")
        params = msg.get("params") or {}
        session_id = msg.get("sessionId")
        reply: dict[str, Any] = {"id": msg.get("id")}
        if session_id:
            reply["sessionId"] = session_id
        handler = self._handlers.get(method) or getattr(self, "_cmd_" + method.replace(".", "_"), None)
        try:
            result = handler(params, session_id) if handler is not None else {}
            if inspect.isawaitable(result):
                result = await result
            reply["result"] = result or {}
        except CdpFault as fault:
            reply["error"] = {"code": fault.code, "message": fault.message}
        return json.dumps(reply)

    # ─────────────────────────────────────────────────────────────────────────
    # Default command behavior
    # ─────────────────────────────────────────────────────────────────────────

    def _find(self, target_id: str) -> dict[str, Any]:
        for target in self.targets:
            if target["targetId"] == target_id:
                return target
        raise CdpFault("No target with given id found", code=-32602)

    def _cmd_Browser_getVersion(self, params: dict[str, Any], session_id: str | None) -> dict[str, Any]:
        return {
            "protocolVersion": "1.3",
            "product": "Chrome/131.0.0.0",
            "revision": "@fake",
            "userAgent": "Mozilla/5.0 FakeChrome",
            "jsVersion": "13.1",
        }

    def _cmd_Target_getTargets(self, params: dict[str, Any], session_id: str | None) -> dict[str, Any]:
        return {"targetInfos": [dict(t) for t in self.targets]}

    def _cmd_Target_getTargetInfo(self, params: dict[str, Any], session_id: str | None) -> dict[str, Any]:
        return {"targetInfo": dict(self._find(params["targetId"]))}

    def _cmd_Target_attachToTarget(self, params: dict[str, Any], session_id: str | None) -> dict[str, Any]:
        target = self._find(params["targetId"])
        target["attached"] = True
        return {"sessionId": f"session-{target['targetId']}"}

    def _cmd_Target_createTarget(self, params: dict[str, Any], session_id: str | None) -> dict[str, Any]:
        self._created += 1
        target = page_target(f"page-new-{self._created}", params.get("url", "about:blank"))
        self.targets.append(target)
        return {"targetId": target["targetId"]}

    def _cmd_Target_closeTarget(self, params: dict[str, Any], session_id: str | None) -> dict[str, Any]:
        target = self._find(params["targetId"])
        self.targets.remove(target)
        return {"success": True}

    def _cmd_Runtime_evaluate(self, params: dict[str, Any], session_id: str | None) -> dict[str, Any]:
        expression = params.get("expression", "")
        try:
            value = self.evaluator(expression) if self.evaluator else self.evaluations.get(expression)
        except JsException as exc:
            return {
                "result": {"type": "object", "subtype": "error"},
                "exceptionDetails": {"text": "Uncaught", "exception": {"description": str(exc)}},
            }
        if value is None:
            return {"result": {"type": "undefined"}}
        return {"result": {"type": _js_type(value), "value": value}}

    def _cmd_Page_navigate(self, params: dict[str, Any], session_id: str | None) -> dict[str, Any]:
        self.queue_event("Page.loadEventFired", {"timestamp": 1.0}, session_id)
        return {"frameId": "frame-1", "loaderId": "loader-1"}


def _event(method: str, params: dict[str, Any], session_id: str | None) -> str:
    msg: dict[str, Any] = {"method": method, "params": params}
    if session_id:
        msg["sessionId"] = session_id
    return json.dumps(msg)


def _js_type(value: Any) -> str:
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    return "object"


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Spin the loop until predicate() holds (events are delivered by a reader task)."""
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


@asynccontextmanager
async def connected_dispatcher(chrome: FakeChrome, **overrides: Any) -> AsyncIterator[ToolDispatcher]:
    """Full tool registry wired to a connector that is connected to `chrome`."""
    context = ServerContext.create(chrome.config(**overrides))
    await context.connector.connect()
    try:
        yield ToolDispatcher(build_registry(context))
    finally:
        await context.connector.disconnect()
