"""Error taxonomy shared by the connector, the CDP adapter and the dispatcher.

Every error carries an ``ErrorKind`` so the dispatch boundary can branch on
kinds instead of message text.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    CONNECTION = "connection"
    UNKNOWN_TOOL = "unknown_tool"
    VALIDATION = "validation"
    PROTOCOL = "protocol"
    NO_TARGET = "no_target"
    TOOL = "tool"


class ChromeMcpError(Exception):
    """Base class for all server errors."""

    kind: ErrorKind = ErrorKind.TOOL

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ChromeConnectionError(ChromeMcpError):
    """The CDP endpoint is unreachable, refused the handshake, or the link was lost."""

    kind = ErrorKind.CONNECTION


class ProtocolError(ChromeMcpError):
    """The browser rejected a command, or the connector is not connected."""

    kind = ErrorKind.PROTOCOL

    def __init__(self, message: str, *, method: str | None = None, code: int | None = None) -> None:
        super().__init__(message)
        self.method = method
        self.code = code

    @classmethod
    def from_cdp(cls, method: str, error: Any) -> ProtocolError:
        if isinstance(error, dict):
            text = str(error.get("message") or "unknown error")
            data = error.get("data")
            if data:
                text = f"{text} ({data})"
            code = error.get("code")
            return cls(
                f"CDP command failed: {method} - {text}",
                method=method,
                code=code if isinstance(code, int) else None,
            )
        return cls(f"CDP command failed: {method} - {error}", method=method)


class NoTargetError(ChromeMcpError):
    """No tab is eligible to serve as the implicit target."""

    kind = ErrorKind.NO_TARGET


class ValidationError(ChromeMcpError):
    kind = ErrorKind.VALIDATION

    def __init__(self, message: str, *, fields: list[str] | None = None) -> None:
        super().__init__(message)
        self.fields = list(fields or [])


class UnknownToolError(ChromeMcpError):
    kind = ErrorKind.UNKNOWN_TOOL

    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown tool: {name}")
        self.name = name


class DuplicateToolError(ChromeMcpError):
    """Two descriptors share a name; raised while building the registry."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Duplicate tool name: {name}")
        self.name = name


def error_kind(exc: BaseException) -> ErrorKind:
    if isinstance(exc, ChromeMcpError):
        return exc.kind
    return ErrorKind.TOOL


__all__ = [
    "ChromeConnectionError",
    "ChromeMcpError",
    "DuplicateToolError",
    "ErrorKind",
    "NoTargetError",
    "ProtocolError",
    "UnknownToolError",
    "ValidationError",
    "error_kind",
]
