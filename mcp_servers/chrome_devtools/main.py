"""
MCP server exposing Chrome DevTools Protocol tools over stdio.

This module provides the entry point and JSON-RPC handling. Tool lookup,
validation and error normalization live in server/dispatch.py.
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import logging
import signal
import sys
from collections.abc import Sequence
from typing import Any

from .config import ChromeConfig
from .errors import ChromeConnectionError, DuplicateToolError, UnknownToolError
from .server.context import ServerContext
from .server.contract import (
    DEFAULT_PROTOCOL_VERSION,
    LATEST_PROTOCOL_VERSION,
    SUPPORTED_PROTOCOL_VERSIONS,
    initialize_result,
    select_protocol,
    tools_list,
)
from .server.dispatch import ToolDispatcher
from .server.registry import ToolRegistry, build_registry

logger = logging.getLogger("mcp.chrome")

METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
PARSE_ERROR = -32700

STDIN_LINE_LIMIT = 64 * 1024 * 1024

__all__ = [
    "SUPPORTED_PROTOCOL_VERSIONS",
    "LATEST_PROTOCOL_VERSION",
    "DEFAULT_PROTOCOL_VERSION",
    "McpServer",
    "main",
]


def _write_message(payload: dict[str, Any]) -> None:
    """Write JSON-RPC message to stdout."""
    data = json.dumps(payload, ensure_ascii=False)
    sys.stdout.buffer.write((data + "\n").encode())
    sys.stdout.buffer.flush()


def _parse_message(line: bytes) -> dict[str, Any] | None:
    """Decode one stdin line; None for blank lines."""
    line = line.strip()
    if not line:
        return None
    msg = json.loads(line.decode())
    if not isinstance(msg, dict):
        raise ValueError("JSON-RPC message must be an object")
    return msg


def _error(request_id: Any, code: int, message: str) -> dict[str, Any]:
    return {"jsonrpc": "2.0", "id": request_id, "error": {"code": code, "message": message}}


class McpServer:
    """MCP server with registry-based tool dispatch."""

    def __init__(self, context: ServerContext, registry: ToolRegistry | None = None) -> None:
        self.context = context
        self.registry = registry if registry is not None else build_registry(context)
        self.dispatcher = ToolDispatcher(self.registry)

    def handle_initialize(self, request_id: Any, params: dict[str, Any] | None = None) -> None:
        requested = params.get("protocolVersion") if isinstance(params, dict) else None
        protocol = select_protocol(requested)
        _write_message({"jsonrpc": "2.0", "id": request_id, "result": initialize_result(protocol)})

    def handle_list_tools(self, request_id: Any) -> None:
        _write_message({"jsonrpc": "2.0", "id": request_id, "result": {"tools": tools_list(self.registry)}})

    async def handle_call_tool(self, request_id: Any, name: str, arguments: Any) -> None:
        """Run one tool; an unknown name is the only outcome reported as a JSON-RPC error."""
        try:
            result = await self.dispatcher.call(name, arguments)
        except UnknownToolError as exc:
            _write_message(_error(request_id, INVALID_PARAMS, exc.message))
            return
        _write_message({"jsonrpc": "2.0", "id": request_id, "result": result.to_mcp()})

    async def dispatch(self, message: dict[str, Any]) -> None:
        """Dispatch incoming JSON-RPC message to appropriate handler."""
        if not message:
            return

        method = message.get("method")
        request_id = message.get("id")
        params = message.get("params") or {}

        if method == "initialize":
            self.handle_initialize(request_id, params)
        elif isinstance(method, str) and method.startswith("notifications/"):
            return
        elif method == "tools/list":
            self.handle_list_tools(request_id)
        elif method == "tools/call":
            name = params.get("name") if isinstance(params, dict) else None
            if not isinstance(name, str):
                name = ""
            arguments = params.get("arguments") if isinstance(params, dict) else None
            await self.handle_call_tool(request_id, name, arguments)
        elif method == "ping":
            _write_message({"jsonrpc": "2.0", "id": request_id, "result": {}})
        elif request_id is not None:
            _write_message(_error(request_id, METHOD_NOT_FOUND, f"Method {method} not found"))

    async def serve(self, lines: asyncio.Queue[bytes | None]) -> None:
        """Consume stdin lines until EOF; each request runs as its own task."""
        tasks: set[asyncio.Task[None]] = set()
        try:
            while True:
                line = await lines.get()
                if line is None:
                    break
                try:
                    message = _parse_message(line)
                except ValueError as exc:
                    logger.info("bad_message reason=%s", exc)
                    _write_message(_error(None, PARSE_ERROR, f"Parse error: {exc}"))
                    continue
                if message is None:
                    continue
                task = asyncio.create_task(self.dispatch(message))
                tasks.add(task)
                task.add_done_callback(tasks.discard)
            if tasks:
                await asyncio.gather(*tasks, return_exceptions=True)
        finally:
            for task in tasks:
                task.cancel()


async def _pump_stdin(queue: asyncio.Queue[bytes | None]) -> None:
    """Feed stdin lines to the queue on the event loop; None marks EOF."""
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader(limit=STDIN_LINE_LIMIT)
    try:
        transport, _ = await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(reader), sys.stdin)
    except ValueError:
        # Regular files are not pipes; they never block, so read them whole.
        data = await asyncio.to_thread(sys.stdin.buffer.read)
        for line in data.splitlines(keepends=True):
            queue.put_nowait(line)
        queue.put_nowait(None)
        return

    try:
        while True:
            try:
                line = await reader.readline()
            except ValueError as exc:
                logger.warning("stdin_line_dropped reason=%s", exc)
                continue
            if not line:
                break
            queue.put_nowait(line)
    finally:
        transport.close()
        queue.put_nowait(None)


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="chrome-devtools-mcp",
        description="MCP server that drives an already running Chrome over the DevTools Protocol.",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Chrome remote debugging port (default: $MCP_CHROME_PORT or 9222)",
    )
    return parser.parse_args(argv)


async def run(config: ChromeConfig) -> int:
    """Connect, serve stdio until EOF or SIGINT/SIGTERM, then disconnect. Returns the exit code."""
    context = ServerContext.create(config)
    try:
        server = McpServer(context)
    except DuplicateToolError as exc:
        logger.error("registry_invalid: %s", exc)
        return 1

    try:
        await context.connector.connect()
    except ChromeConnectionError as exc:
        print(exc.message, file=sys.stderr)
        return 1

    loop = asyncio.get_running_loop()
    lines: asyncio.Queue[bytes | None] = asyncio.Queue()
    pump_task = asyncio.create_task(_pump_stdin(lines))
    serve_task = asyncio.create_task(server.serve(lines))
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(sig, serve_task.cancel)

    logger.info("serving tools=%d port=%s", len(server.registry), config.port)
    try:
        await serve_task
    except asyncio.CancelledError:
        logger.info("shutdown signal received")
    finally:
        pump_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await pump_task
        await context.connector.disconnect()
    return 0


def main(argv: Sequence[str] | None = None) -> None:
    """Main entry point for the MCP server."""
    args = _parse_args(argv)
    config = ChromeConfig.from_env(port=args.port)
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(message)s",
        stream=sys.stderr,
    )
    sys.exit(asyncio.run(run(config)))


if __name__ == "__main__":
    main()
