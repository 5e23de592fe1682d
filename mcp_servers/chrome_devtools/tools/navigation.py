"""
Navigation and tab management tools.

Provides:
- navigate, go_back, go_forward, reload: page-level navigation
- list_tabs, create_tab, close_tab, switch_tab: tab lifecycle
- get_url: current location of a tab
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Literal

from pydantic import Field

from ..server.schema import NoArgs, ToolArgs
from ..server.types import ToolDescriptor
from .base import TabArgs, human_delay, is_valid_url, tool

if TYPE_CHECKING:
    from ..server.context import ServerContext

_LOAD_EVENTS = {
    "load": "Page.loadEventFired",
    "domcontentloaded": "Page.domContentEventFired",
    # No network-idle signal without lifecycle events; the load event is the closest stand-in.
    "networkidle": "Page.loadEventFired",
}


class NavigateArgs(TabArgs):
    url: str = Field(description="URL to navigate to")
    wait_until: Literal["load", "domcontentloaded", "networkidle"] = Field(
        "load", description="Wait until this event fires"
    )


class ReloadArgs(TabArgs):
    ignore_cache: bool = Field(False, description="Ignore cache when reloading")


class CreateTabArgs(ToolArgs):
    url: str | None = Field(None, description="URL to open in new tab (optional)")


class TabIdArgs(ToolArgs):
    tab_id: str = Field(description="Tab ID")


def navigation_tools(ctx: ServerContext) -> list[ToolDescriptor]:
    connector = ctx.connector
    config = ctx.config

    async def navigate(args: NavigateArgs) -> dict[str, Any]:
        if not is_valid_url(args.url):
            raise ValueError(f"Invalid URL: {args.url}")
        tab = await connector.get_tab(args.tab_id)
        await tab.navigate(args.url, wait_event=_LOAD_EVENTS[args.wait_until], timeout=config.command_timeout)
        await human_delay(config)
        return {"success": True, "url": args.url, "message": f"Navigated to {args.url}"}

    async def _step_history(tab_id: str | None, offset: int) -> bool:
        tab = await connector.get_tab(tab_id)
        await tab.enable("Page")
        history = await tab.send("Page.getNavigationHistory")
        entries = history.get("entries") or []
        index = int(history.get("currentIndex", 0)) + offset
        if index < 0 or index >= len(entries):
            return False
        await tab.send("Page.navigateToHistoryEntry", {"entryId": entries[index]["id"]})
        await human_delay(config)
        return True

    async def go_back(args: TabArgs) -> dict[str, Any]:
        if await _step_history(args.tab_id, -1):
            return {"success": True, "message": "Navigated back"}
        return {"success": False, "message": "No history to go back"}

    async def go_forward(args: TabArgs) -> dict[str, Any]:
        if await _step_history(args.tab_id, 1):
            return {"success": True, "message": "Navigated forward"}
        return {"success": False, "message": "No history to go forward"}

    async def reload(args: ReloadArgs) -> dict[str, Any]:
        tab = await connector.get_tab(args.tab_id)
        await tab.enable("Page")
        loaded = tab.expect_event("Page.loadEventFired")
        try:
            await tab.send("Page.reload", {"ignoreCache": args.ignore_cache})
        except Exception:
            tab.cancel_expectation("Page.loadEventFired", loaded)
            raise
        await tab.wait_for_event("Page.loadEventFired", config.command_timeout, expectation=loaded)
        await human_delay(config)
        suffix = " (cache ignored)" if args.ignore_cache else ""
        return {"success": True, "message": f"Page reloaded{suffix}"}

    async def list_tabs(args: NoArgs) -> dict[str, Any]:
        tabs = await connector.list_tabs()
        return {
            "success": True,
            "count": len(tabs),
            "tabs": [{"id": t.id, "title": t.title, "url": t.url} for t in tabs],
        }

    async def create_tab(args: CreateTabArgs) -> dict[str, Any]:
        target = await connector.create_tab(args.url)
        await human_delay(config)
        suffix = f" with URL: {args.url}" if args.url else ""
        return {
            "success": True,
            "tab": {"id": target.id, "url": target.url, "title": target.title},
            "message": f"Created new tab{suffix}",
        }

    async def close_tab(args: TabIdArgs) -> dict[str, Any]:
        await connector.close_tab(args.tab_id)
        await human_delay(config)
        return {"success": True, "message": f"Closed tab {args.tab_id}"}

    async def switch_tab(args: TabIdArgs) -> dict[str, Any]:
        await connector.activate_tab(args.tab_id)
        await human_delay(config)
        return {"success": True, "message": f"Switched to tab {args.tab_id}"}

    async def get_url(args: TabArgs) -> dict[str, Any]:
        tab = await connector.get_tab(args.tab_id)
        await tab.enable("Page")
        tree = await tab.send("Page.getFrameTree")
        frame = (tree.get("frameTree") or {}).get("frame") or {}
        title = await tab.eval_js("document.title")
        return {"success": True, "url": frame.get("url", ""), "title": title or "Untitled"}

    return [
        tool("navigate", "Navigate to a URL in the current or specified tab", NavigateArgs, navigate),
        tool("go_back", "Navigate back in browser history", TabArgs, go_back),
        tool("go_forward", "Navigate forward in browser history", TabArgs, go_forward),
        tool("reload", "Reload the current page", ReloadArgs, reload),
        tool("list_tabs", "List all open tabs", NoArgs, list_tabs),
        tool("create_tab", "Create a new tab", CreateTabArgs, create_tab),
        tool("close_tab", "Close a tab by ID", TabIdArgs, close_tab),
        tool("switch_tab", "Switch to a specific tab", TabIdArgs, switch_tab),
        tool("get_url", "Get the current URL of the page", TabArgs, get_url),
    ]


__all__ = ["navigation_tools"]
