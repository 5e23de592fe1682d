"""Dispatch pipeline: lookup → validate → execute → normalize.

Each call is independent. Only an unknown tool name escapes as an exception;
every validation or handler failure becomes a ``success: false`` envelope.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from ..errors import ErrorKind, UnknownToolError, error_kind
from .redaction import redact_tool_arguments
from .registry import ToolRegistry
from .types import ToolResult

logger = logging.getLogger("mcp.chrome.dispatch")


class ToolDispatcher:
    def __init__(self, registry: ToolRegistry) -> None:
        self.registry = registry

    async def call(self, name: str, arguments: Mapping[str, Any] | None = None) -> ToolResult:
        """Run one tool call.

        Raises:
            UnknownToolError: the registry has no tool called `name`.
        """
        descriptor = self.registry.get(name) if isinstance(name, str) else None
        if descriptor is None:
            logger.info("unknown_tool tool=%s", name)
            raise UnknownToolError(name)

        if isinstance(arguments, Mapping):
            logger.info("tool=%s args=%s", name, redact_tool_arguments(name, dict(arguments)))
        else:
            logger.info("tool=%s args=%r", name, type(arguments).__name__)

        try:
            args = descriptor.schema.validate(arguments)
            payload = await descriptor.handler(args)
        except Exception as exc:
            kind = error_kind(exc)
            message = str(exc) or exc.__class__.__name__
            if kind is ErrorKind.TOOL:
                logger.exception("tool_failed tool=%s", name)
            else:
                logger.info("tool_error tool=%s kind=%s reason=%s", name, kind.value, message)
            return ToolResult.error(message, tool=name, kind=kind)

        if isinstance(payload, ToolResult):
            return payload
        return ToolResult.json(payload)


__all__ = ["ToolDispatcher"]
