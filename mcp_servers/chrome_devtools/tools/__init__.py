"""
Chrome DevTools tools organized by domain.

Each module exposes one group factory taking the ServerContext:
- navigation: page navigation, history and tab lifecycle
- interaction: clicks, typing, scripts, scrolling, waits
- emulation: stealth script, user agent, viewport, geolocation, timezone
- capture: screenshots, HTML, PDF, metrics, accessibility tree
- storage: cookies, localStorage, session export/import
- service_worker: service worker inspection and lifecycle
- system: browser info and non-page targets
"""

from .capture import capture_tools
from .emulation import emulation_tools
from .interaction import interaction_tools
from .navigation import navigation_tools
from .service_worker import service_worker_tools
from .storage import storage_tools
from .system import system_tools

DEFAULT_TOOL_GROUPS = (
    navigation_tools,
    interaction_tools,
    emulation_tools,
    service_worker_tools,
    capture_tools,
    storage_tools,
    system_tools,
)

__all__ = [
    "DEFAULT_TOOL_GROUPS",
    "capture_tools",
    "emulation_tools",
    "interaction_tools",
    "navigation_tools",
    "service_worker_tools",
    "storage_tools",
    "system_tools",
]
