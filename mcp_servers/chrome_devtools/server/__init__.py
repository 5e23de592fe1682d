"""Server package: tool descriptors, schemas, registry and dispatch.

Kept import-light; the tool catalog is only pulled in by `build_registry`.
"""

from __future__ import annotations

from .context import ServerContext
from .dispatch import ToolDispatcher
from .registry import ToolRegistry, build_registry
from .types import ToolContent, ToolDescriptor, ToolResult

__all__ = [
    "ServerContext",
    "ToolContent",
    "ToolDescriptor",
    "ToolDispatcher",
    "ToolRegistry",
    "ToolResult",
    "build_registry",
]
