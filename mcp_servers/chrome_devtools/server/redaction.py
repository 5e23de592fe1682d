"""Redaction helpers for logging tool arguments.

Secrets and bulky payloads (typed text, scripts, exported session blobs) are
summarized instead of written to stderr.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

_SENSITIVE_SUBSTRINGS = (
    "token",
    "secret",
    "password",
    "passwd",
    "pwd",
    "authorization",
    "cookie",
    "jwt",
    "bearer",
    "api-key",
    "api_key",
    "apikey",
)

# "auth" only as an exact key; "author" is fine.
_SENSITIVE_EXACT = {"auth"}

_TOOL_FIELDS: dict[str, set[str]] = {
    "type": {"text"},
    "set_cookie": {"value"},
    "set_local_storage": {"value"},
    "import_session": {"sessionData"},
    "execute_script": {"script"},
    "execute_in_target": {"script"},
}


def is_sensitive_key(key: str) -> bool:
    k = (key or "").strip().lower()
    if not k:
        return False
    if k in _SENSITIVE_EXACT:
        return True
    return any(s in k for s in _SENSITIVE_SUBSTRINGS)


def redact_url(url: str) -> str:
    """Drop userinfo and blank out sensitive query values; other params are kept."""
    if not isinstance(url, str) or not url:
        return url
    try:
        parts = urlsplit(url)
    except ValueError:
        return url

    changed = False
    netloc = parts.netloc
    if "@" in netloc:
        netloc = netloc.split("@", 1)[1]
        changed = True

    query = parts.query
    if query:
        pairs = parse_qsl(query, keep_blank_values=True)
        out = [(k, "<redacted>" if v and is_sensitive_key(k) else v) for k, v in pairs]
        if out != pairs:
            query = urlencode(out, doseq=True)
            changed = True

    if not changed:
        return url
    return urlunsplit((parts.scheme, netloc, parts.path, query, parts.fragment))


def _redacted_summary(value: Any) -> str:
    if value is None:
        return "<redacted>"
    if isinstance(value, str):
        return f"<redacted str len={len(value)}>"
    if isinstance(value, (list, tuple)):
        return f"<redacted list len={len(value)}>"
    if isinstance(value, dict):
        return f"<redacted dict keys={len(value)}>"
    return "<redacted>"


def _redact_any(value: Any, *, tool: str, key: str | None) -> Any:
    if isinstance(value, dict):
        return {k: _redact_any(v, tool=tool, key=str(k)) for k, v in value.items()}
    if isinstance(value, list):
        return [_redact_any(v, tool=tool, key=key) for v in value]

    if key is None:
        return value
    if key.lower() == "url" and isinstance(value, str):
        return redact_url(value)
    if key in _TOOL_FIELDS.get(tool, ()):
        return _redacted_summary(value)
    if is_sensitive_key(key):
        return _redacted_summary(value)
    return value


def redact_tool_arguments(tool: str, args: dict[str, Any]) -> dict[str, Any]:
    """Redact tool arguments for safe logging."""
    return _redact_any(args, tool=tool, key=None)


__all__ = ["is_sensitive_key", "redact_tool_arguments", "redact_url"]
