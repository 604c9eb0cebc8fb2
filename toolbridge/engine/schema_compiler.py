"""JSON Schema to parameter decoder compiler.

Raw schemas are parsed once into a closed set of node types
(``parse_schema``), then compiled by structural recursion over those
nodes (``compile_schema``). Decoders are immutable and validate at call
time, raising ``ValidationError`` with the path of the offending value.

Object decoders are permissive: undeclared keys are ignored, never
rejected.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Union

from .error_model import InvalidParamsError, ValidationError

# ---------------------------------------------------------------------------
# Schema nodes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StringNode:
    description: str | None = None


@dataclass(frozen=True)
class NumberNode:
    description: str | None = None
    integer: bool = False


@dataclass(frozen=True)
class BooleanNode:
    description: str | None = None


@dataclass(frozen=True)
class ArrayNode:
    items: SchemaNode
    description: str | None = None


@dataclass(frozen=True)
class ObjectNode:
    properties: tuple[tuple[str, SchemaNode], ...] = ()
    required: frozenset[str] = frozenset()
    description: str | None = None


@dataclass(frozen=True)
class AnyNode:
    description: str | None = None


SchemaNode = Union[StringNode, NumberNode, BooleanNode, ArrayNode, ObjectNode, AnyNode]
_NODE_TYPES = (StringNode, NumberNode, BooleanNode, ArrayNode, ObjectNode, AnyNode)


def _description(raw: Mapping[str, Any]) -> str | None:
    text = raw.get("description")
    return text if isinstance(text, str) and text else None


def parse_schema(raw: Any) -> SchemaNode:
    """Turn an untyped JSON-Schema mapping into a ``SchemaNode`` tree."""
    if not isinstance(raw, Mapping):
        return AnyNode()
    desc = _description(raw)
    kind = raw.get("type")
    if kind == "string":
        return StringNode(description=desc)
    if kind in ("number", "integer"):
        return NumberNode(description=desc, integer=kind == "integer")
    if kind == "boolean":
        return BooleanNode(description=desc)
    if kind == "array":
        return ArrayNode(items=parse_schema(raw.get("items")), description=desc)
    if kind == "object":
        props = raw.get("properties")
        properties: tuple[tuple[str, SchemaNode], ...] = ()
        if isinstance(props, Mapping):
            properties = tuple((str(name), parse_schema(sub)) for name, sub in props.items())
        required = raw.get("required")
        required_names = (
            frozenset(str(name) for name in required)
            if isinstance(required, Sequence) and not isinstance(required, str)
            else frozenset()
        )
        return ObjectNode(properties=properties, required=required_names, description=desc)
    return AnyNode(description=desc)


# ---------------------------------------------------------------------------
# Decoders
# ---------------------------------------------------------------------------


def _with_description(schema: dict[str, Any], description: str | None) -> dict[str, Any]:
    if description:
        schema["description"] = description
    return schema


@dataclass(frozen=True)
class StringDecoder:
    description: str | None = None

    def decode(self, value: Any, path: tuple[str | int, ...] = ()) -> str:
        if not isinstance(value, str):
            raise ValidationError(path, f"expected string, got {_type_name(value)}")
        return value

    def to_json_schema(self) -> dict[str, Any]:
        return _with_description({"type": "string"}, self.description)


@dataclass(frozen=True)
class NumberDecoder:
    description: str | None = None
    integer: bool = False

    def decode(self, value: Any, path: tuple[str | int, ...] = ()) -> int | float:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValidationError(path, f"expected number, got {_type_name(value)}")
        if isinstance(value, float) and math.isnan(value):
            raise ValidationError(path, "expected number, got NaN")
        return value

    def to_json_schema(self) -> dict[str, Any]:
        kind = "integer" if self.integer else "number"
        return _with_description({"type": kind}, self.description)


@dataclass(frozen=True)
class BooleanDecoder:
    description: str | None = None

    def decode(self, value: Any, path: tuple[str | int, ...] = ()) -> bool:
        if not isinstance(value, bool):
            raise ValidationError(path, f"expected boolean, got {_type_name(value)}")
        return value

    def to_json_schema(self) -> dict[str, Any]:
        return _with_description({"type": "boolean"}, self.description)


@dataclass(frozen=True)
class ArrayDecoder:
    items: ParameterDecoder
    description: str | None = None

    def decode(self, value: Any, path: tuple[str | int, ...] = ()) -> list[Any]:
        if isinstance(value, (str, bytes)) or not isinstance(value, Sequence):
            raise ValidationError(path, f"expected array, got {_type_name(value)}")
        return [self.items.decode(item, (*path, index)) for index, item in enumerate(value)]

    def to_json_schema(self) -> dict[str, Any]:
        return _with_description(
            {"type": "array", "items": self.items.to_json_schema()},
            self.description,
        )


@dataclass(frozen=True)
class ObjectDecoder:
    properties: tuple[tuple[str, ParameterDecoder], ...] = ()
    required: frozenset[str] = frozenset()
    description: str | None = None

    def decode(self, value: Any, path: tuple[str | int, ...] = ()) -> dict[str, Any]:
        if not isinstance(value, Mapping):
            raise ValidationError(path, f"expected object, got {_type_name(value)}")
        out: dict[str, Any] = {}
        for name, decoder in self.properties:
            if name not in value:
                if name in self.required:
                    raise ValidationError((*path, name), "missing")
                continue
            out[name] = decoder.decode(value[name], (*path, name))
        return out

    def to_json_schema(self) -> dict[str, Any]:
        schema: dict[str, Any] = {
            "type": "object",
            "properties": {name: decoder.to_json_schema() for name, decoder in self.properties},
        }
        required = [name for name, _ in self.properties if name in self.required]
        if required:
            schema["required"] = required
        return _with_description(schema, self.description)


@dataclass(frozen=True)
class AnyDecoder:
    description: str | None = None

    def decode(self, value: Any, path: tuple[str | int, ...] = ()) -> Any:
        return value

    def to_json_schema(self) -> dict[str, Any]:
        return _with_description({}, self.description)


ParameterDecoder = Union[
    StringDecoder, NumberDecoder, BooleanDecoder, ArrayDecoder, ObjectDecoder, AnyDecoder
]


def compile_schema(node: SchemaNode) -> ParameterDecoder:
    """Compile a schema node into its decoder."""
    if isinstance(node, StringNode):
        return StringDecoder(description=node.description)
    if isinstance(node, NumberNode):
        return NumberDecoder(description=node.description, integer=node.integer)
    if isinstance(node, BooleanNode):
        return BooleanDecoder(description=node.description)
    if isinstance(node, ArrayNode):
        return ArrayDecoder(items=compile_schema(node.items), description=node.description)
    if isinstance(node, ObjectNode):
        return ObjectDecoder(
            properties=tuple((name, compile_schema(sub)) for name, sub in node.properties),
            required=node.required,
            description=node.description,
        )
    return AnyDecoder(description=node.description)


# ---------------------------------------------------------------------------
# Top-level parameter shape
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ParameterShape:
    """Per-parameter decoders for a top-level ``object`` schema.

    Each field is validated independently so every failing parameter is
    reported, not just the first one.
    """

    fields: Mapping[str, ParameterDecoder] = field(default_factory=dict)
    required: frozenset[str] = frozenset()

    def decode(self, params: Any) -> dict[str, Any]:
        if params is None:
            params = {}
        if not isinstance(params, Mapping):
            raise InvalidParamsError(
                [ValidationError((), f"expected object, got {_type_name(params)}")]
            )
        out: dict[str, Any] = {}
        errors: list[ValidationError] = []
        for name, decoder in self.fields.items():
            if name not in params:
                if name in self.required:
                    errors.append(ValidationError((name,), "missing"))
                continue
            try:
                out[name] = decoder.decode(params[name], (name,))
            except ValidationError as exc:
                errors.append(exc)
        if errors:
            raise InvalidParamsError(errors)
        return out

    def to_json_schema(self) -> dict[str, Any]:
        schema: dict[str, Any] = {
            "type": "object",
            "properties": {name: decoder.to_json_schema() for name, decoder in self.fields.items()},
        }
        required = [name for name in self.fields if name in self.required]
        if required:
            schema["required"] = required
        return schema


def compile_shape(schema: Any) -> ParameterShape:
    """Expand a top-level object schema into a ``ParameterShape``.

    Accepts either a raw JSON-Schema mapping or an already parsed node.
    Anything other than an object schema yields an empty shape.
    """
    node = schema if isinstance(schema, _NODE_TYPES) else parse_schema(schema)
    if not isinstance(node, ObjectNode):
        return ParameterShape()
    fields = {name: compile_schema(sub) for name, sub in node.properties}
    return ParameterShape(
        fields=MappingProxyType(fields),
        required=node.required & frozenset(fields),
    )


def _type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, Mapping):
        return "object"
    if isinstance(value, Sequence):
        return "array"
    return type(value).__name__


__all__ = [
    "StringNode",
    "NumberNode",
    "BooleanNode",
    "ArrayNode",
    "ObjectNode",
    "AnyNode",
    "SchemaNode",
    "parse_schema",
    "ParameterDecoder",
    "StringDecoder",
    "NumberDecoder",
    "BooleanDecoder",
    "ArrayDecoder",
    "ObjectDecoder",
    "AnyDecoder",
    "compile_schema",
    "ParameterShape",
    "compile_shape",
]
