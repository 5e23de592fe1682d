from __future__ import annotations

import asyncio
from typing import Any

import pytest
from fake_chrome import FakeChrome, connected_dispatcher

from mcp_servers.chrome_devtools.tools import service_worker

SCOPE = "https://example.com/"


def _replay_workers(chrome: FakeChrome) -> None:
    def enable(params: dict[str, Any], session_id: str | None) -> dict[str, Any]:
        chrome.queue_event(
            "ServiceWorker.workerRegistrationUpdated",
            {"registrations": [{"registrationId": "7", "scopeURL": SCOPE, "isDeleted": False}]},
            session_id,
        )
        chrome.queue_event(
            "ServiceWorker.workerVersionUpdated",
            {
                "versions": [
                    {
                        "versionId": "3",
                        "registrationId": "7",
                        "scriptURL": f"{SCOPE}sw.js",
                        "runningStatus": "running",
                        "status": "activated",
                        "targetId": "sw-target",
                    }
                ]
            },
            session_id,
        )
        return {}

    chrome.on_command("ServiceWorker.enable", enable)


def test_list_service_workers() -> None:
    async def _main() -> None:
        async with FakeChrome() as chrome:
            workers = [{"scope": SCOPE, "scriptURL": f"{SCOPE}sw.js", "state": "activated"}]
            chrome.evaluator = lambda expression: workers
            async with connected_dispatcher(chrome) as dispatcher:
                result = await dispatcher.call("list_service_workers", {})
            assert result.data == {"success": True, "count": 1, "workers": workers}
            assert chrome.commands("Runtime.evaluate")[-1]["params"]["awaitPromise"] is True

    asyncio.run(_main())


def test_get_service_worker_joins_version_and_registration() -> None:
    async def _main() -> None:
        async with FakeChrome() as chrome:
            _replay_workers(chrome)
            async with connected_dispatcher(chrome) as dispatcher:
                result = await dispatcher.call("get_service_worker", {"versionId": "3"})
            assert result.data["worker"] == {
                "registrationId": "7",
                "scopeURL": SCOPE,
                "scriptURL": f"{SCOPE}sw.js",
                "status": "activated",
                "versionId": "3",
                "runningStatus": "running",
                "targetId": "sw-target",
            }

    asyncio.run(_main())


def test_get_service_worker_unknown_version(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(service_worker, "VERSION_WAIT", 0.2)

    async def _main() -> None:
        async with FakeChrome() as chrome:
            _replay_workers(chrome)
            async with connected_dispatcher(chrome) as dispatcher:
                missing = await dispatcher.call("get_service_worker", {"versionId": "99"})
                # Listeners from the first call are gone; a second call still works.
                found = await dispatcher.call("get_service_worker", {"versionId": "3"})
            assert missing.data["error"] == "Service worker not found: 99"
            assert found.data["success"] is True

    asyncio.run(_main())


def test_registration_actions_embed_scope_as_literal() -> None:
    async def _main() -> None:
        async with FakeChrome() as chrome:
            chrome.evaluator = lambda expression: {"success": True}
            async with connected_dispatcher(chrome) as dispatcher:
                unregistered = await dispatcher.call("unregister_service_worker", {"scopeURL": SCOPE})
                updated = await dispatcher.call("update_service_worker", {"scopeURL": SCOPE})
            assert unregistered.data["message"] == f"Service worker unregister successful: {SCOPE}"
            assert updated.data["success"] is True
            expressions = [c["params"]["expression"] for c in chrome.commands("Runtime.evaluate")]
            assert all(f'r.scope === "{SCOPE}"' in e for e in expressions)
            assert "reg.unregister()" in expressions[0]
            assert "reg.update()" in expressions[1]

    asyncio.run(_main())


def test_unregister_missing_scope_reports_failure() -> None:
    async def _main() -> None:
        async with FakeChrome() as chrome:
            chrome.evaluator = lambda expression: {"success": False, "error": "Not found"}
            async with connected_dispatcher(chrome) as dispatcher:
                result = await dispatcher.call("unregister_service_worker", {"scopeURL": SCOPE})
            assert result.is_error is False
            assert result.data["success"] is False
            assert result.data["message"].startswith("Service worker unregister failed")

    asyncio.run(_main())


def test_lifecycle_commands_use_service_worker_domain() -> None:
    async def _main() -> None:
        async with FakeChrome() as chrome, connected_dispatcher(chrome) as dispatcher:
            await dispatcher.call("start_service_worker", {"scopeURL": SCOPE})
            await dispatcher.call("stop_service_worker", {"versionId": "3"})
            await dispatcher.call("inspect_service_worker", {"versionId": "3"})
            await dispatcher.call("skip_waiting", {"scopeURL": SCOPE})

            assert chrome.commands("ServiceWorker.startWorker")[0]["params"] == {"scopeURL": SCOPE}
            assert chrome.commands("ServiceWorker.stopWorker")[0]["params"] == {"versionId": "3"}
            assert chrome.commands("ServiceWorker.inspectWorker")[0]["params"] == {"versionId": "3"}
            assert chrome.commands("ServiceWorker.skipWaiting")[0]["params"] == {"scopeURL": SCOPE}
            assert len(chrome.commands("ServiceWorker.enable")) == 1

    asyncio.run(_main())


def test_get_sw_caches_uses_page_origin() -> None:
    async def _main() -> None:
        async with FakeChrome() as chrome:
            chrome.evaluations["window.location.origin"] = "https://example.com"
            chrome.on_command(
                "CacheStorage.requestCacheNames",
                lambda params, sid: {
                    "caches": [
                        {"securityOrigin": params["securityOrigin"], "cacheName": "v1", "cacheId": "c1"},
                    ]
                },
            )
            async with connected_dispatcher(chrome) as dispatcher:
                result = await dispatcher.call("get_sw_caches", {})
            assert result.data["count"] == 1
            assert result.data["caches"][0] == {
                "securityOrigin": "https://example.com",
                "cacheName": "v1",
                "cacheId": "c1",
            }

    asyncio.run(_main())


def test_inspect_service_worker_logs_captures_console_and_log_entries() -> None:
    async def _main() -> None:
        targets = [
            {"targetId": "sw-target", "type": "service_worker", "title": "", "url": f"{SCOPE}sw.js"},
        ]
        async with FakeChrome(targets) as chrome:

            def evaluate(params: dict[str, Any], session_id: str | None) -> dict[str, Any]:
                if "MCP Test 1" in params["expression"]:
                    chrome.queue_event(
                        "Runtime.consoleAPICalled",
                        {"type": "log", "args": [{"type": "string", "value": "hello"}, {"type": "number", "value": 1}]},
                        session_id,
                    )
                    chrome.queue_event(
                        "Runtime.consoleAPICalled",
                        {
                            "type": "warning",
                            "args": [{"type": "object", "preview": {"properties": [{"name": "a", "value": "1"}]}}],
                        },
                        session_id,
                    )
                    chrome.queue_event(
                        "Log.entryAdded",
                        {"entry": {"level": "error", "text": "boom", "timestamp": 0}},
                        session_id,
                    )
                    return {"result": {"type": "undefined"}}
                return {"result": {"type": "object", "value": {"location": f"{SCOPE}sw.js"}}}

            chrome.on_command("Runtime.evaluate", evaluate)
            async with connected_dispatcher(chrome) as dispatcher:
                result = await dispatcher.call(
                    "inspect_service_worker_logs", {"targetId": "sw-target", "captureTimeMs": 200}
                )
            data = result.data
            assert data["status"] == {"location": f"{SCOPE}sw.js"}
            assert [log["message"] for log in data["capturedLogs"]] == ["hello 1", '{"a": "1"}', "boom"]
            assert data["capturedLogs"][2]["time"].startswith("1970-01-01")
            assert data["summary"] == {
                "totalCaptured": 3,
                "byType": {"log": 1, "warning": 1, "error": 1},
                "bySource": {"Runtime.consoleAPICalled": 2, "Log.entryAdded": 1},
            }
            assert chrome.commands("Log.enable")

    asyncio.run(_main())


def test_inspect_service_worker_logs_without_test_logs() -> None:
    async def _main() -> None:
        targets = [{"targetId": "sw-target", "type": "service_worker", "title": "", "url": f"{SCOPE}sw.js"}]
        async with FakeChrome(targets) as chrome, connected_dispatcher(chrome) as dispatcher:
            result = await dispatcher.call(
                "inspect_service_worker_logs",
                {"targetId": "sw-target", "executeTestLogs": False, "captureTimeMs": 0},
            )
            assert result.data["summary"]["totalCaptured"] == 0
            assert result.data["note"].startswith("No logs captured")
            assert len(chrome.commands("Runtime.evaluate")) == 1

    asyncio.run(_main())
