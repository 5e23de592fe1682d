"""
Service worker inspection and lifecycle tools.

Registrations are read from the page (navigator.serviceWorker) where the
ServiceWorker domain has no equivalent query; lifecycle commands go through
the ServiceWorker domain of the page session.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections import Counter
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from pydantic import Field

from ..server.schema import ToolArgs
from ..server.types import ToolDescriptor
from .base import TabArgs, js_literal, tool

if TYPE_CHECKING:
    from ..server.context import ServerContext

logger = logging.getLogger("mcp.chrome.tools.service_worker")

VERSION_WAIT = 1.0

_LIST_REGISTRATIONS = """(async () => {
  if (!navigator.serviceWorker) return [];
  const registrations = await navigator.serviceWorker.getRegistrations();
  return registrations.map(reg => ({
    scope: reg.scope,
    scriptURL: reg.active ? reg.active.scriptURL : null,
    state: reg.active ? reg.active.state : 'none',
    installing: reg.installing ? reg.installing.scriptURL : null,
    waiting: reg.waiting ? reg.waiting.scriptURL : null
  }));
})()"""

_WORKER_STATUS = """(function() {
  return {
    userAgent: navigator.userAgent,
    time: new Date().toISOString(),
    location: self.location.href,
    serviceWorker: { state: self.serviceWorker ? self.serviceWorker.state : 'unknown' }
  };
})()"""

_TEST_LOGS = """
console.log('[MCP Test 1] Service Worker Log Capture Test');
console.warn('[MCP Test 2] Warning level test');
console.error('[MCP Test 3] Error level test');
console.log('[MCP Test 4] Capture timestamp:', new Date().toISOString());
"""


class VersionArgs(TabArgs):
    version_id: str = Field(description="Service worker version ID")


class ScopeArgs(TabArgs):
    scope_url: str = Field(alias="scopeURL", description="Scope URL of the service worker")


class WorkerLogArgs(ToolArgs):
    target_id: str = Field(description="The Target ID of the service worker (from list_all_targets)")
    execute_test_logs: bool = Field(True, description="Execute test console.log statements to verify capture")
    capture_time_ms: float = Field(3000, ge=0, description="How long to listen for logs in milliseconds")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _format_console_arg(arg: dict[str, Any]) -> str:
    if "value" in arg:
        return str(arg["value"])
    if arg.get("description"):
        return str(arg["description"])
    preview = arg.get("preview") or {}
    properties = preview.get("properties")
    if properties:
        return json.dumps({p.get("name"): p.get("value") for p in properties})
    return "[Complex Object]"


def _registration_action(scope_url: str, action: str) -> str:
    return f"""(async () => {{
  const registrations = await navigator.serviceWorker.getRegistrations();
  const reg = registrations.find(r => r.scope === {js_literal(scope_url)});
  if (!reg) return {{ success: false, error: 'Not found' }};
  {action}
}})()"""


def service_worker_tools(ctx: ServerContext) -> list[ToolDescriptor]:
    connector = ctx.connector

    async def list_service_workers(args: TabArgs) -> dict[str, Any]:
        tab = await connector.get_tab(args.tab_id)
        workers = await tab.eval_js(_LIST_REGISTRATIONS, await_promise=True) or []
        return {"success": True, "count": len(workers), "workers": workers}

    async def get_service_worker(args: VersionArgs) -> dict[str, Any]:
        tab = await connector.get_tab(args.tab_id)
        versions: dict[str, dict[str, Any]] = {}
        scopes: dict[str, str] = {}

        def _collect_versions(params: dict[str, Any]) -> None:
            for version in params.get("versions") or []:
                versions[str(version.get("versionId"))] = version

        def _collect_registrations(params: dict[str, Any]) -> None:
            for registration in params.get("registrations") or []:
                scopes[str(registration.get("registrationId"))] = registration.get("scopeURL", "")

        # ServiceWorker.enable replays the current versions as events, even when already enabled.
        unsubscribers = [
            tab.on("ServiceWorker.workerVersionUpdated", _collect_versions),
            tab.on("ServiceWorker.workerRegistrationUpdated", _collect_registrations),
        ]
        first = tab.expect_event("ServiceWorker.workerVersionUpdated")
        try:
            await tab.send("ServiceWorker.enable")
            await tab.wait_for_event("ServiceWorker.workerVersionUpdated", VERSION_WAIT, expectation=first)
        finally:
            tab.cancel_expectation("ServiceWorker.workerVersionUpdated", first)
            for unsubscribe in unsubscribers:
                unsubscribe()

        worker = versions.get(args.version_id)
        if worker is None:
            raise LookupError(f"Service worker not found: {args.version_id}")
        registration_id = worker.get("registrationId")
        return {
            "success": True,
            "worker": {
                "registrationId": registration_id,
                "scopeURL": scopes.get(str(registration_id)),
                "scriptURL": worker.get("scriptURL"),
                "status": worker.get("status"),
                "versionId": worker.get("versionId"),
                "runningStatus": worker.get("runningStatus"),
                "targetId": worker.get("targetId"),
            },
        }

    async def unregister_service_worker(args: ScopeArgs) -> dict[str, Any]:
        tab = await connector.get_tab(args.tab_id)
        script = _registration_action(args.scope_url, "return { success: await reg.unregister() };")
        outcome = await tab.eval_js(script, await_promise=True) or {}
        ok = bool(outcome.get("success"))
        return {
            "success": ok,
            "message": f"Service worker unregister {'successful' if ok else 'failed'}: {args.scope_url}",
        }

    async def update_service_worker(args: ScopeArgs) -> dict[str, Any]:
        tab = await connector.get_tab(args.tab_id)
        script = _registration_action(args.scope_url, "await reg.update();\n  return { success: true };")
        outcome = await tab.eval_js(script, await_promise=True) or {}
        return {
            "success": bool(outcome.get("success")),
            "message": f"Service worker update triggered: {args.scope_url}",
        }

    async def start_service_worker(args: ScopeArgs) -> dict[str, Any]:
        tab = await connector.get_tab(args.tab_id)
        await tab.enable("ServiceWorker")
        await tab.send("ServiceWorker.startWorker", {"scopeURL": args.scope_url})
        return {"success": True, "message": f"Service worker started: {args.scope_url}"}

    async def stop_service_worker(args: VersionArgs) -> dict[str, Any]:
        tab = await connector.get_tab(args.tab_id)
        await tab.enable("ServiceWorker")
        await tab.send("ServiceWorker.stopWorker", {"versionId": args.version_id})
        return {"success": True, "message": f"Service worker stopped: {args.version_id}"}

    async def inspect_service_worker(args: VersionArgs) -> dict[str, Any]:
        tab = await connector.get_tab(args.tab_id)
        await tab.enable("ServiceWorker")
        await tab.send("ServiceWorker.inspectWorker", {"versionId": args.version_id})
        return {"success": True, "message": f"DevTools opened for service worker: {args.version_id}"}

    async def skip_waiting(args: ScopeArgs) -> dict[str, Any]:
        tab = await connector.get_tab(args.tab_id)
        await tab.enable("ServiceWorker")
        await tab.send("ServiceWorker.skipWaiting", {"scopeURL": args.scope_url})
        return {"success": True, "message": f"Skip waiting triggered for: {args.scope_url}"}

    async def get_sw_caches(args: TabArgs) -> dict[str, Any]:
        tab = await connector.get_tab(args.tab_id)
        origin = await tab.get_origin()
        result = await tab.send("CacheStorage.requestCacheNames", {"securityOrigin": origin})
        caches = result.get("caches") or []
        return {
            "success": True,
            "count": len(caches),
            "caches": [
                {"securityOrigin": c.get("securityOrigin"), "cacheName": c.get("cacheName"), "cacheId": c.get("cacheId")}
                for c in caches
            ],
        }

    async def inspect_service_worker_logs(args: WorkerLogArgs) -> dict[str, Any]:
        worker = await connector.get_tab(args.target_id)
        await worker.enable("Runtime", "Log")
        logs: list[dict[str, Any]] = []

        def _on_console(params: dict[str, Any]) -> None:
            message = " ".join(_format_console_arg(a) for a in params.get("args") or [] if isinstance(a, dict))
            logs.append(
                {
                    "time": _now_iso(),
                    "source": "Runtime.consoleAPICalled",
                    "type": params.get("type") or "log",
                    "message": message,
                }
            )

        def _on_log_entry(params: dict[str, Any]) -> None:
            entry = params.get("entry") or {}
            stamp = entry.get("timestamp")
            time_text = (
                datetime.fromtimestamp(stamp / 1000, tz=timezone.utc).isoformat()
                if isinstance(stamp, (int, float))
                else _now_iso()
            )
            logs.append(
                {
                    "time": time_text,
                    "source": "Log.entryAdded",
                    "type": entry.get("level") or "info",
                    "message": entry.get("text") or entry.get("url") or "Unknown log",
                }
            )

        unsubscribers = [
            worker.on("Runtime.consoleAPICalled", _on_console),
            worker.on("Log.entryAdded", _on_log_entry),
        ]
        try:
            status = await worker.eval_js(_WORKER_STATUS)
            if args.execute_test_logs:
                await worker.eval_js(_TEST_LOGS)
            await asyncio.sleep(args.capture_time_ms / 1000)
        finally:
            for unsubscribe in unsubscribers:
                unsubscribe()

        logger.debug("captured %d log entries from target=%s", len(logs), args.target_id)
        if logs:
            note = (
                f"Captured {len(logs)} log entries. Target {args.target_id} is the service worker; "
                "use a page tab id from list_tabs for DOM interaction."
            )
        else:
            note = "No logs captured. Service workers may emit few console events over CDP."
        return {
            "success": True,
            "targetId": args.target_id,
            "status": status,
            "capturedLogs": logs,
            "summary": {
                "totalCaptured": len(logs),
                "byType": dict(Counter(log["type"] for log in logs)),
                "bySource": dict(Counter(log["source"] for log in logs)),
            },
            "note": note,
        }

    return [
        tool(
            "list_service_workers",
            "List service worker registrations visible to the page (extensions, PWAs)",
            TabArgs,
            list_service_workers,
        ),
        tool("get_service_worker", "Get details of a service worker version", VersionArgs, get_service_worker),
        tool(
            "unregister_service_worker",
            "Remove a service worker registration by scope URL",
            ScopeArgs,
            unregister_service_worker,
        ),
        tool("update_service_worker", "Force a service worker update check", ScopeArgs, update_service_worker),
        tool("start_service_worker", "Start a service worker for a scope URL", ScopeArgs, start_service_worker),
        tool("stop_service_worker", "Stop a running service worker version", VersionArgs, stop_service_worker),
        tool(
            "inspect_service_worker",
            "Open DevTools for a service worker version",
            VersionArgs,
            inspect_service_worker,
        ),
        tool("skip_waiting", "Activate a waiting service worker immediately", ScopeArgs, skip_waiting),
        tool("get_sw_caches", "List Cache Storage names for the page origin", TabArgs, get_sw_caches),
        tool(
            "inspect_service_worker_logs",
            "Capture console output from a service worker target for a short window",
            WorkerLogArgs,
            inspect_service_worker_logs,
        ),
    ]


__all__ = ["service_worker_tools"]
