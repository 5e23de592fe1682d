"""Emulation overrides that make an automated tab look like a regular browser."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from pydantic import Field

from ..server.types import ToolDescriptor
from .base import TabArgs, tool

if TYPE_CHECKING:
    from ..server.context import ServerContext

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
)

STEALTH_SCRIPT = """
(function() {
  Object.defineProperty(navigator, 'webdriver', { get: () => undefined });

  Object.defineProperty(navigator, 'plugins', {
    get: () => [
      { 0: { type: 'application/x-google-chrome-pdf', suffixes: 'pdf', description: 'Portable Document Format' },
        description: 'Portable Document Format', filename: 'internal-pdf-viewer', length: 1, name: 'Chrome PDF Plugin' },
      { 0: { type: 'application/pdf', suffixes: 'pdf', description: 'Portable Document Format' },
        description: 'Portable Document Format', filename: 'mhjfbmdgcfjbbpaeojofohoefgiehjai', length: 1, name: 'Chrome PDF Viewer' },
      { 0: { type: 'application/x-nacl', suffixes: '', description: 'Native Client Executable' },
        1: { type: 'application/x-pnacl', suffixes: '', description: 'Portable Native Client Executable' },
        description: '', filename: 'internal-nacl-plugin', length: 2, name: 'Native Client' }
    ]
  });

  if (window.navigator.permissions) {
    const originalQuery = window.navigator.permissions.query;
    window.navigator.permissions.query = (parameters) => (
      parameters.name === 'notifications'
        ? Promise.resolve({ state: Notification.permission })
        : originalQuery(parameters)
    );
    const originalToString = Function.prototype.toString;
    Function.prototype.toString = function() {
      if (this === window.navigator.permissions.query) {
        return 'function query() { [native code] }';
      }
      return originalToString.call(this);
    };
  }

  if (!window.chrome) { window.chrome = {}; }
  if (!window.chrome.runtime) { window.chrome.runtime = {}; }

  Object.defineProperty(navigator, 'languages', { get: () => ['en-US', 'en'] });
  Object.defineProperty(navigator, 'platform', { get: () => 'Win32' });
  Object.defineProperty(screen, 'availWidth', { get: () => window.screen.width });
  Object.defineProperty(screen, 'availHeight', { get: () => window.screen.height - 40 });
})();
"""


class UserAgentArgs(TabArgs):
    user_agent: str | None = Field(
        None, description="Custom user agent (optional, uses realistic default if not provided)"
    )


class ViewportArgs(TabArgs):
    width: int = Field(description="Viewport width", gt=0)
    height: int = Field(description="Viewport height", gt=0)
    device_scale_factor: float = Field(1, description="Device scale factor")
    mobile: bool = Field(False, description="Emulate mobile device")


class GeolocationArgs(TabArgs):
    latitude: float = Field(description="Latitude", ge=-90, le=90)
    longitude: float = Field(description="Longitude", ge=-180, le=180)
    accuracy: float = Field(100, description="Accuracy in meters")


class TimezoneArgs(TabArgs):
    timezone_id: str = Field(description='Timezone ID (e.g., "America/New_York")')


def emulation_tools(ctx: ServerContext) -> list[ToolDescriptor]:
    connector = ctx.connector

    async def enable_stealth_mode(args: TabArgs) -> dict[str, Any]:
        tab = await connector.get_tab(args.tab_id)
        await tab.enable("Page", "Runtime")
        await tab.send("Page.addScriptToEvaluateOnNewDocument", {"source": STEALTH_SCRIPT})
        await tab.evaluate(STEALTH_SCRIPT)
        return {
            "success": True,
            "message": "Stealth mode enabled - navigator.webdriver hidden, plugins spoofed, "
            "and other anti-detection measures applied",
        }

    async def set_user_agent(args: UserAgentArgs) -> dict[str, Any]:
        tab = await connector.get_tab(args.tab_id)
        await tab.enable("Network")
        ua = args.user_agent or DEFAULT_USER_AGENT
        await tab.send(
            "Network.setUserAgentOverride",
            {"userAgent": ua, "acceptLanguage": "en-US,en;q=0.9", "platform": "Win32"},
        )
        return {"success": True, "userAgent": ua, "message": "User agent updated"}

    async def set_viewport(args: ViewportArgs) -> dict[str, Any]:
        tab = await connector.get_tab(args.tab_id)
        viewport = {
            "width": args.width,
            "height": args.height,
            "deviceScaleFactor": args.device_scale_factor,
            "mobile": args.mobile,
        }
        await tab.send("Emulation.setDeviceMetricsOverride", viewport)
        return {"success": True, "viewport": viewport, "message": f"Viewport set to {args.width}x{args.height}"}

    async def set_geolocation(args: GeolocationArgs) -> dict[str, Any]:
        tab = await connector.get_tab(args.tab_id)
        location = {"latitude": args.latitude, "longitude": args.longitude, "accuracy": args.accuracy}
        await tab.send("Emulation.setGeolocationOverride", location)
        return {
            "success": True,
            "location": location,
            "message": f"Geolocation set to {args.latitude}, {args.longitude}",
        }

    async def set_timezone(args: TimezoneArgs) -> dict[str, Any]:
        tab = await connector.get_tab(args.tab_id)
        await tab.send("Emulation.setTimezoneOverride", {"timezoneId": args.timezone_id})
        return {"success": True, "timezone": args.timezone_id, "message": f"Timezone set to {args.timezone_id}"}

    return [
        tool(
            "enable_stealth_mode",
            "Apply anti-detection measures to make automation less detectable",
            TabArgs,
            enable_stealth_mode,
        ),
        tool("set_user_agent", "Set a custom user agent string", UserAgentArgs, set_user_agent),
        tool("set_viewport", "Set browser viewport size", ViewportArgs, set_viewport),
        tool("set_geolocation", "Set geolocation coordinates", GeolocationArgs, set_geolocation),
        tool("set_timezone", "Set timezone for the browser", TimezoneArgs, set_timezone),
    ]


__all__ = ["DEFAULT_USER_AGENT", "emulation_tools"]
