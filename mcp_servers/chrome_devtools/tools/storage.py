"""
Cookie, Web Storage and session export/import tools.

Exported sessions are plain JSON ({cookies, localStorage, sessionStorage,
timestamp}) so import_session accepts exactly what export_session returns.
"""

from __future__ import annotations

import json
import time
from typing import TYPE_CHECKING, Any, Literal

from pydantic import BaseModel, Field

from ..browser_session import TabSession
from ..server.types import ToolDescriptor
from .base import TabArgs, js_literal, tool

if TYPE_CHECKING:
    from ..server.context import ServerContext

_COOKIE_FIELDS = ("name", "value", "domain", "path", "expires", "httpOnly", "secure", "sameSite")


class CookieUrlArgs(TabArgs):
    url: str | None = Field(None, description="URL to get cookies for (optional, uses current page if not specified)")


class SetCookieArgs(TabArgs):
    name: str = Field(description="Cookie name")
    value: str = Field(description="Cookie value")
    domain: str | None = Field(None, description="Cookie domain")
    path: str = Field("/", description="Cookie path")
    secure: bool = Field(False, description="Secure flag")
    http_only: bool = Field(False, description="HttpOnly flag")
    same_site: Literal["Strict", "Lax", "None"] | None = Field(None, description="SameSite attribute")
    expires: float | None = Field(None, description="Expiration timestamp")


class DeleteCookieArgs(TabArgs):
    name: str = Field(description="Cookie name to delete")
    domain: str | None = Field(None, description="Cookie domain (optional, uses current domain if not specified)")
    path: str = Field("/", description="Cookie path")


class ClearCookiesArgs(TabArgs):
    all_domains: bool = Field(False, description="Clear cookies for all domains")


class StorageItemArgs(TabArgs):
    key: str = Field(description="Storage key")
    value: str = Field(description="Storage value")


class ImportSessionArgs(TabArgs):
    session_data: str = Field(description="Session data as JSON string")


class SessionData(BaseModel):
    cookies: list[dict[str, Any]] = []
    local_storage: dict[str, str] = Field(default_factory=dict, alias="localStorage")
    session_storage: dict[str, str] = Field(default_factory=dict, alias="sessionStorage")
    timestamp: float | None = None


def _cookie_view(cookie: dict[str, Any]) -> dict[str, Any]:
    return {key: cookie.get(key) for key in _COOKIE_FIELDS}


async def _storage_items(tab: TabSession, area: str) -> dict[str, Any]:
    raw = await tab.eval_js(f"JSON.stringify(Object.assign({{}}, {area}))")
    return json.loads(raw or "{}")


async def _current_hostname(tab: TabSession) -> str:
    return await tab.eval_js("window.location.hostname") or ""


def storage_tools(ctx: ServerContext) -> list[ToolDescriptor]:
    connector = ctx.connector

    async def get_cookies(args: CookieUrlArgs) -> dict[str, Any]:
        tab = await connector.get_tab(args.tab_id)
        await tab.enable("Network")
        params = {"urls": [args.url]} if args.url else {}
        result = await tab.send("Network.getCookies", params)
        cookies = result.get("cookies") or []
        return {"success": True, "count": len(cookies), "cookies": [_cookie_view(c) for c in cookies]}

    async def set_cookie(args: SetCookieArgs) -> dict[str, Any]:
        tab = await connector.get_tab(args.tab_id)
        await tab.enable("Network")
        domain = args.domain or await _current_hostname(tab)
        cookie: dict[str, Any] = {
            "name": args.name,
            "value": args.value,
            "domain": domain,
            "path": args.path,
            "secure": args.secure,
            "httpOnly": args.http_only,
        }
        if args.same_site:
            cookie["sameSite"] = args.same_site
        if args.expires:
            cookie["expires"] = args.expires
        result = await tab.send("Network.setCookie", cookie)
        if result.get("success") is False:
            raise RuntimeError("Failed to set cookie")
        return {
            "success": True,
            "cookie": {"name": args.name, "value": args.value, "domain": domain},
            "message": f'Cookie "{args.name}" set successfully',
        }

    async def delete_cookie(args: DeleteCookieArgs) -> dict[str, Any]:
        tab = await connector.get_tab(args.tab_id)
        await tab.enable("Network")
        domain = args.domain or await _current_hostname(tab)
        await tab.send("Network.deleteCookies", {"name": args.name, "domain": domain, "path": args.path})
        return {"success": True, "message": f'Cookie "{args.name}" deleted'}

    async def clear_cookies(args: ClearCookiesArgs) -> dict[str, Any]:
        tab = await connector.get_tab(args.tab_id)
        await tab.enable("Network")
        if args.all_domains:
            await tab.send("Network.clearBrowserCookies")
            return {"success": True, "message": "All cookies cleared from all domains"}
        cookies = (await tab.send("Network.getCookies")).get("cookies") or []
        for cookie in cookies:
            await tab.send(
                "Network.deleteCookies",
                {"name": cookie.get("name"), "domain": cookie.get("domain"), "path": cookie.get("path")},
            )
        return {
            "success": True,
            "count": len(cookies),
            "message": f"Cleared {len(cookies)} cookies from current domain",
        }

    async def get_local_storage(args: TabArgs) -> dict[str, Any]:
        tab = await connector.get_tab(args.tab_id)
        storage = await _storage_items(tab, "localStorage")
        return {"success": True, "count": len(storage), "storage": storage}

    async def set_local_storage(args: StorageItemArgs) -> dict[str, Any]:
        tab = await connector.get_tab(args.tab_id)
        await tab.eval_js(f"localStorage.setItem({js_literal(args.key)}, {js_literal(args.value)})")
        return {"success": True, "message": f'localStorage item "{args.key}" set successfully'}

    async def clear_local_storage(args: TabArgs) -> dict[str, Any]:
        tab = await connector.get_tab(args.tab_id)
        await tab.eval_js("localStorage.clear()")
        return {"success": True, "message": "localStorage cleared"}

    async def export_session(args: TabArgs) -> dict[str, Any]:
        tab = await connector.get_tab(args.tab_id)
        await tab.enable("Network")
        cookies = (await tab.send("Network.getCookies")).get("cookies") or []
        session = {
            "cookies": [_cookie_view(c) for c in cookies],
            "localStorage": await _storage_items(tab, "localStorage"),
            "sessionStorage": await _storage_items(tab, "sessionStorage"),
            "timestamp": int(time.time() * 1000),
        }
        return {"success": True, "session": session, "message": "Session exported successfully"}

    async def import_session(args: ImportSessionArgs) -> dict[str, Any]:
        session = SessionData.model_validate_json(args.session_data)
        tab = await connector.get_tab(args.tab_id)
        await tab.enable("Network")
        for cookie in session.cookies:
            await tab.send("Network.setCookie", {k: v for k, v in cookie.items() if v is not None})
        for key, value in session.local_storage.items():
            await tab.eval_js(f"localStorage.setItem({js_literal(key)}, {js_literal(value)})")
        for key, value in session.session_storage.items():
            await tab.eval_js(f"sessionStorage.setItem({js_literal(key)}, {js_literal(value)})")
        return {
            "success": True,
            "imported": {
                "cookies": len(session.cookies),
                "localStorage": len(session.local_storage),
                "sessionStorage": len(session.session_storage),
            },
            "message": "Session imported successfully",
        }

    return [
        tool("get_cookies", "Get all cookies for the current page or domain", CookieUrlArgs, get_cookies),
        tool("set_cookie", "Set a cookie for a specific domain", SetCookieArgs, set_cookie),
        tool("delete_cookie", "Delete a specific cookie", DeleteCookieArgs, delete_cookie),
        tool("clear_cookies", "Clear all cookies for the current domain or all domains", ClearCookiesArgs, clear_cookies),
        tool("get_local_storage", "Get all localStorage items", TabArgs, get_local_storage),
        tool("set_local_storage", "Set a localStorage item", StorageItemArgs, set_local_storage),
        tool("clear_local_storage", "Clear all localStorage items", TabArgs, clear_local_storage),
        tool("export_session", "Export current session (cookies, localStorage, sessionStorage)", TabArgs, export_session),
        tool("import_session", "Import a previously exported session", ImportSessionArgs, import_session),
    ]


__all__ = ["SessionData", "storage_tools"]
