"""
Type definitions for MCP tool descriptors and responses.
"""

from __future__ import annotations

import json
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ..errors import ErrorKind

if TYPE_CHECKING:
    from .schema import ArgumentSchema


@dataclass(slots=True)
class ToolContent:
    """Single content item in tool response."""

    type: str  # "text" or "image"
    text: str | None = None
    data: str | None = None  # base64 for images
    mime_type: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to MCP content format."""
        if self.type == "image":
            return {"type": "image", "data": self.data, "mimeType": self.mime_type}
        return {"type": "text", "text": self.text}


def _dumps(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False, default=str)


@dataclass(slots=True)
class ToolResult:
    """Outcome of one tool invocation: success payload or failure envelope."""

    content: list[ToolContent] = field(default_factory=list)
    is_error: bool = False
    error_kind: ErrorKind | None = None
    # Structured payload kept for in-process callers and tests; not on the wire.
    data: Any | None = None

    @classmethod
    def json(cls, data: Any) -> ToolResult:
        """Success result serialized as pretty JSON text."""
        return cls(content=[ToolContent(type="text", text=_dumps(data))], data=data)

    @classmethod
    def error(cls, message: str, *, tool: str, kind: ErrorKind = ErrorKind.TOOL) -> ToolResult:
        """Uniform failure envelope: {success: false, error, tool}."""
        payload = {"success": False, "error": message, "tool": tool}
        return cls(
            content=[ToolContent(type="text", text=_dumps(payload))],
            is_error=True,
            error_kind=kind,
            data=payload,
        )

    @classmethod
    def with_image(cls, data: dict[str, Any], data_b64: str, mime_type: str = "image/png") -> ToolResult:
        """JSON summary plus image content. Omits the image if data is empty."""
        content = [ToolContent(type="text", text=_dumps(data))]
        if data_b64:
            content.append(ToolContent(type="image", data=data_b64, mime_type=mime_type))
        return cls(content=content, data=data)

    def to_content_list(self) -> list[dict[str, Any]]:
        """Convert to MCP content list format."""
        return [c.to_dict() for c in self.content]

    def to_mcp(self) -> dict[str, Any]:
        return {"content": self.to_content_list(), "isError": self.is_error}


ToolHandler = Callable[[Any], Awaitable[Any]]


@dataclass(slots=True, frozen=True)
class ToolDescriptor:
    """Declarative tool: name, description, argument schema and async handler."""

    name: str
    description: str
    schema: ArgumentSchema
    handler: ToolHandler

    def listing(self) -> dict[str, Any]:
        """Entry for the tools/list response."""
        return {"name": self.name, "description": self.description, "inputSchema": self.schema.describe()}
