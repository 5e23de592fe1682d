"""
Tool registry for the MCP server.

Built once at startup from descriptor groups; lookups are plain dict hits.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from typing import TYPE_CHECKING, Any

from ..errors import DuplicateToolError
from .types import ToolDescriptor

if TYPE_CHECKING:
    from .context import ServerContext

logger = logging.getLogger("mcp.chrome.registry")

ToolGroup = Callable[["ServerContext"], Sequence[ToolDescriptor]]


class ToolRegistry:
    """Name-indexed, immutable set of tool descriptors."""

    def __init__(self, descriptors: Iterable[ToolDescriptor] = ()) -> None:
        self._tools: dict[str, ToolDescriptor] = {}
        for descriptor in descriptors:
            if descriptor.name in self._tools:
                raise DuplicateToolError(descriptor.name)
            self._tools[descriptor.name] = descriptor

    def get(self, name: str) -> ToolDescriptor | None:
        return self._tools.get(name)

    def has(self, name: str) -> bool:
        return name in self._tools

    def describe(self) -> list[dict[str, Any]]:
        """tools/list payload in registration order."""
        return [descriptor.listing() for descriptor in self._tools.values()]

    @property
    def tool_names(self) -> list[str]:
        return list(self._tools.keys())

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools


def build_registry(context: ServerContext, groups: Sequence[ToolGroup] | None = None) -> ToolRegistry:
    """Concatenate every group's descriptors; duplicate names abort startup."""
    if groups is None:
        from ..tools import DEFAULT_TOOL_GROUPS

        groups = DEFAULT_TOOL_GROUPS

    descriptors: list[ToolDescriptor] = []
    for group in groups:
        descriptors.extend(group(context))
    registry = ToolRegistry(descriptors)
    logger.debug("registry built tools=%d", len(registry))
    return registry


__all__ = ["ToolGroup", "ToolRegistry", "build_registry"]
