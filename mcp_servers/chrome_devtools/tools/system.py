"""
System-level tools: browser info and non-page targets.

Extension service workers and other workers are attached through the same
browser connection as tabs (flattened target sessions), so executing code in
them does not open extra websockets.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from typing import TYPE_CHECKING, Any, Literal

from pydantic import Field

from ..connector import TargetInfo
from ..errors import ChromeMcpError
from ..server.schema import NoArgs, ToolArgs
from ..server.types import ToolDescriptor
from .base import tool

if TYPE_CHECKING:
    from ..connector import ChromeConnector
    from ..server.context import ServerContext

logger = logging.getLogger("mcp.chrome.tools.system")

_EXTENSION_ID = re.compile(r"chrome-extension://([^/]+)")
_KNOWN_TYPES = ("page", "service_worker", "background_page", "iframe", "worker")
PAGE_PREVIEW_LIMIT = 10

_EXTENSION_INFO = """JSON.stringify({
  hasChrome: typeof chrome !== 'undefined',
  hasRuntime: typeof chrome !== 'undefined' && typeof chrome.runtime !== 'undefined',
  extensionId: typeof chrome !== 'undefined' && chrome.runtime ? chrome.runtime.id : null,
  manifest: typeof chrome !== 'undefined' && chrome.runtime && chrome.runtime.getManifest ? chrome.runtime.getManifest() : null,
  contextType: typeof ServiceWorkerGlobalScope !== 'undefined' ? 'ServiceWorker' : typeof self !== 'undefined' ? 'Worker' : 'Unknown'
})"""


class TargetFilterArgs(ToolArgs):
    filter_type: Literal["all", "service_worker", "background_page", "page", "iframe", "worker"] | None = Field(
        None, description="Filter by target type"
    )


class TargetArgs(ToolArgs):
    target_id: str = Field(description="Target ID to connect to")


class TargetScriptArgs(ToolArgs):
    target_id: str = Field(description="Target ID")
    script: str = Field(description="JavaScript code to execute")
    await_promise: bool = Field(False, description="Wait for promise")


class ExtensionWorkersArgs(ToolArgs):
    execute_test: bool = Field(False, description="Execute a test script to verify chrome.runtime access")


def extension_id(url: str) -> str | None:
    match = _EXTENSION_ID.match(url or "")
    return match.group(1) if match else None


def _script_file(url: str) -> str:
    return url.rstrip("/").rsplit("/", 1)[-1] or "unknown"


def _is_extension_worker(target: TargetInfo) -> bool:
    return target.type == "service_worker" and target.url.startswith("chrome-extension://")


async def _describe_extension_worker(
    connector: ChromeConnector, worker: TargetInfo, execute_test: bool
) -> dict[str, Any]:
    entry: dict[str, Any] = {
        "id": worker.id,
        "title": worker.title,
        "url": worker.url,
        "extensionId": extension_id(worker.url),
    }
    try:
        session = await connector.get_tab(worker.id)
        info = json.loads(await session.eval_js(_EXTENSION_INFO) or "{}")
        test_result = None
        if execute_test:
            test_result = await session.eval_js(
                'typeof chrome !== "undefined" ? "Chrome API Available" : "No Chrome API"'
            )
    except (ChromeMcpError, ValueError) as exc:
        logger.info("extension_worker_unreachable target=%s reason=%s", worker.id, exc)
        entry["error"] = str(exc)
        return entry

    manifest = info.get("manifest") or {}
    entry.update(
        {
            "scriptFile": _script_file(worker.url),
            "runtimeInfo": {
                "hasChrome": info.get("hasChrome"),
                "hasRuntime": info.get("hasRuntime"),
                "contextType": info.get("contextType"),
                "manifestName": manifest.get("name"),
                "manifestVersion": manifest.get("version"),
                "permissions": (manifest.get("permissions") or [])[:5],
            },
        }
    )
    if execute_test:
        entry["testResult"] = test_result
    return entry


def system_tools(ctx: ServerContext) -> list[ToolDescriptor]:
    connector = ctx.connector

    async def get_browser_info(args: NoArgs) -> dict[str, Any]:
        version = await connector.get_version()
        tabs = await connector.list_tabs()
        return {
            "success": True,
            "host": connector.host,
            "port": connector.port,
            "product": version.get("product"),
            "protocolVersion": version.get("protocolVersion"),
            "revision": version.get("revision"),
            "userAgent": version.get("userAgent"),
            "jsVersion": version.get("jsVersion"),
            "tabCount": len(tabs),
            "currentTabId": connector.current_tab_id,
        }

    async def list_all_targets(args: TargetFilterArgs) -> dict[str, Any]:
        targets = await connector.list_targets()
        if args.filter_type and args.filter_type != "all":
            targets = [t for t in targets if t.type == args.filter_type]

        by_type: dict[str, list[TargetInfo]] = {kind: [] for kind in _KNOWN_TYPES}
        others: list[TargetInfo] = []
        for target in targets:
            by_type.get(target.type, others).append(target)
        extension_sws = [t for t in by_type["service_worker"] if _is_extension_worker(t)]
        web_sws = [t for t in by_type["service_worker"] if not _is_extension_worker(t)]

        return {
            "success": True,
            "total": len(targets),
            "breakdown": {
                "pages": len(by_type["page"]),
                "serviceWorkers": len(by_type["service_worker"]),
                "extensionServiceWorkers": len(extension_sws),
                "webServiceWorkers": len(web_sws),
                "backgroundPages": len(by_type["background_page"]),
                "iframes": len(by_type["iframe"]),
                "workers": len(by_type["worker"]),
                "others": len(others),
            },
            "targets": {
                "extensionServiceWorkers": [
                    {
                        "id": t.id,
                        "title": t.title,
                        "url": t.url,
                        "extensionId": extension_id(t.url) or "unknown",
                        "scriptPath": _script_file(t.url),
                    }
                    for t in extension_sws
                ],
                "webServiceWorkers": [t.to_dict() for t in web_sws],
                "backgroundPages": [
                    {**t.to_dict(), "extensionId": extension_id(t.url)} for t in by_type["background_page"]
                ],
                "pages": [
                    {"id": t.id, "title": t.title[:80] or "No title", "url": t.url[:100] or "No URL"}
                    for t in by_type["page"][:PAGE_PREVIEW_LIMIT]
                ],
                "iframes": len(by_type["iframe"]),
                "workers": len(by_type["worker"]),
                "others": [t.to_dict() for t in others],
            },
            "message": f"Filtered by: {args.filter_type}" if args.filter_type else "Showing all targets",
        }

    async def connect_to_target(args: TargetArgs) -> dict[str, Any]:
        session = await connector.get_tab(args.target_id)
        context = await session.eval_js('typeof self + " - " + (self.location ? self.location.href : "no location")')
        return {
            "success": True,
            "targetId": args.target_id,
            "sessionId": session.session_id,
            "context": context,
            "message": "Successfully connected to target",
        }

    async def execute_in_target(args: TargetScriptArgs) -> dict[str, Any]:
        session = await connector.get_tab(args.target_id)
        remote = await session.evaluate(args.script, await_promise=args.await_promise)
        return {"success": True, "result": remote.get("value"), "type": remote.get("type")}

    async def get_extension_service_workers(args: ExtensionWorkersArgs) -> dict[str, Any]:
        workers = [t for t in await connector.list_targets() if _is_extension_worker(t)]
        if not workers:
            return {
                "success": True,
                "count": 0,
                "message": "No extension service workers found. Make sure Chrome is running with extensions enabled.",
                "serviceWorkers": [],
            }
        details = await asyncio.gather(
            *(_describe_extension_worker(connector, worker, args.execute_test) for worker in workers)
        )
        failed = sum(1 for d in details if "error" in d)
        return {
            "success": True,
            "count": len(details),
            "serviceWorkers": list(details),
            "summary": {"total": len(details), "successful": len(details) - failed, "failed": failed},
        }

    return [
        tool("get_browser_info", "Get Chrome version and connection details", NoArgs, get_browser_info),
        tool(
            "list_all_targets",
            "Discover all Chrome targets (pages, iframes, workers, extension service workers)",
            TargetFilterArgs,
            list_all_targets,
        ),
        tool(
            "connect_to_target",
            "Attach to a specific Chrome target by ID (useful for extension service workers)",
            TargetArgs,
            connect_to_target,
        ),
        tool(
            "execute_in_target",
            "Execute JavaScript code in a specific target (extension service worker, etc.)",
            TargetScriptArgs,
            execute_in_target,
        ),
        tool(
            "get_extension_service_workers",
            "Get all extension service workers with runtime details",
            ExtensionWorkersArgs,
            get_extension_service_workers,
        ),
    ]


__all__ = ["extension_id", "system_tools"]
