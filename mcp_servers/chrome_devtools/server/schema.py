"""Argument schemas for tools.

Every schema validates a raw argument mapping and can describe itself as the
JSON-Schema-like object advertised by tools/list. ``ModelSchema`` implements
both over a pydantic model, so handlers receive typed, defaulted arguments.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Generic, Protocol, TypeVar, runtime_checkable

import pydantic
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from ..errors import ValidationError


@runtime_checkable
class ArgumentSchema(Protocol):
    def validate(self, raw: Mapping[str, Any] | None) -> Any: ...

    def describe(self) -> dict[str, Any]: ...


class ToolArgs(BaseModel):
    """Base model for tool arguments: camelCase on the wire, unknown keys dropped."""

    model_config = ConfigDict(extra="ignore", alias_generator=to_camel)


class NoArgs(ToolArgs):
    pass


M = TypeVar("M", bound=BaseModel)


def _format_loc(loc: tuple[Any, ...]) -> str:
    return ".".join(str(part) for part in loc) or "arguments"


def _strip_titles(node: Any) -> Any:
    if isinstance(node, dict):
        return {k: _strip_titles(v) for k, v in node.items() if k != "title"}
    if isinstance(node, list):
        return [_strip_titles(v) for v in node]
    return node


def _collapse_optional(prop: dict[str, Any]) -> dict[str, Any]:
    # `str | None` renders as anyOf [{type: string}, {type: null}]; advertise the concrete type.
    variants = prop.get("anyOf")
    if not isinstance(variants, list):
        return prop
    concrete = [v for v in variants if not (isinstance(v, dict) and v.get("type") == "null")]
    if len(concrete) != 1 or not isinstance(concrete[0], dict):
        return prop
    merged = {k: v for k, v in prop.items() if k != "anyOf"}
    merged.update(concrete[0])
    if merged.get("default", ...) is None:
        merged.pop("default")
    return merged


class ModelSchema(Generic[M]):
    """ArgumentSchema backed by a pydantic model class."""

    def __init__(self, model: type[M]) -> None:
        self.model = model

    def validate(self, raw: Mapping[str, Any] | None) -> M:
        if raw is None:
            raw = {}
        if not isinstance(raw, Mapping):
            raise ValidationError(
                f"Invalid arguments: expected an object, got {type(raw).__name__}", fields=["arguments"]
            )
        try:
            return self.model.model_validate(dict(raw))
        except pydantic.ValidationError as exc:
            problems = [(_format_loc(err.get("loc", ())), str(err.get("msg", "invalid"))) for err in exc.errors()]
            message = "Invalid arguments: " + "; ".join(f"{loc}: {msg}" for loc, msg in problems)
            raise ValidationError(message, fields=[loc for loc, _ in problems]) from exc

    def required(self) -> list[str]:
        return [info.alias or name for name, info in self.model.model_fields.items() if info.is_required()]

    def describe(self) -> dict[str, Any]:
        raw = _strip_titles(self.model.model_json_schema())
        properties = {
            name: _collapse_optional(prop) for name, prop in (raw.get("properties") or {}).items()
        }
        return {"type": "object", "properties": properties, "required": self.required()}


def schema_for(model: type[M]) -> ModelSchema[M]:
    return ModelSchema(model)


__all__ = ["ArgumentSchema", "ModelSchema", "NoArgs", "ToolArgs", "schema_for"]
