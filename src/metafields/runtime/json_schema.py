"""
JSON Schema export of a field tree.

Describes the clean value tree produced by the sanitizer, for exposing
field values over a REST API.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from metafields.core.ir import (
    BOOLEAN_KINDS,
    CHOICE_KINDS,
    MEDIA_KINDS,
    NUMERIC_KINDS,
    REFERENCE_KINDS,
    FieldKind,
    SchemaNode,
)

_INTEGER_ARRAY = {"type": "array", "items": {"type": "integer"}}


def _number_schema(node: SchemaNode) -> dict[str, Any]:
    schema: dict[str, Any] = {"type": ["number", "null"]}
    if node.min is not None:
        schema["minimum"] = node.min
    if node.max is not None:
        schema["maximum"] = node.max
    return schema


def _choice_schema(node: SchemaNode) -> dict[str, Any]:
    enum = [str(option.value) for option in node.resolve_options()]
    item: dict[str, Any] = {"type": "string"}
    if enum:
        item["enum"] = enum
    if node.multiple:
        return {"type": "array", "items": item}
    return item


def _object_schema(children: Sequence[SchemaNode]) -> dict[str, Any]:
    return {
        "type": "object",
        "properties": {child.key: field_json_schema(child) for child in children},
    }


def field_json_schema(node: SchemaNode) -> dict[str, Any]:
    """JSON Schema of one field's clean value."""
    kind = node.kind

    if kind in NUMERIC_KINDS:
        return _number_schema(node)
    if kind in BOOLEAN_KINDS:
        return {"type": "integer", "enum": [0, 1]}
    if kind in CHOICE_KINDS:
        return _choice_schema(node)
    if kind == FieldKind.GALLERY:
        return dict(_INTEGER_ARRAY)
    if kind in MEDIA_KINDS or kind in REFERENCE_KINDS:
        if node.multiple and kind not in MEDIA_KINDS:
            return dict(_INTEGER_ARRAY)
        return {"type": ["integer", "null"]}
    if kind == FieldKind.AJAX and node.multiple:
        return {"type": "array", "items": {"type": "string"}}
    if kind == FieldKind.AMOUNT_TYPE:
        return {
            "type": "object",
            "properties": {
                "amount": _number_schema(node),
                "type": _choice_schema(node.model_copy(update={"options": node.type_options, "multiple": False})),
            },
        }
    if kind == FieldKind.LINK:
        return {
            "type": "object",
            "properties": {
                "url": {"type": "string"},
                "title": {"type": "string"},
                "target": {"type": "string", "enum": ["", "_blank"]},
            },
        }
    if kind == FieldKind.DIMENSIONS:
        return {
            "type": "object",
            "properties": {key: _number_schema(node) for key in node.dimension_keys},
        }
    if kind in (FieldKind.DATE_RANGE, FieldKind.TIME_RANGE):
        return {
            "type": "object",
            "properties": {"start": {"type": "string"}, "end": {"type": "string"}},
        }
    if kind == FieldKind.GROUP:
        return _object_schema(node.children)
    if kind == FieldKind.REPEATER:
        schema: dict[str, Any] = {"type": "array", "items": _object_schema(node.children)}
        if node.max_items:
            schema["maxItems"] = node.max_items
        return schema
    return {"type": "string"}


def form_json_schema(schema: Sequence[SchemaNode], *, rest_only: bool = True) -> dict[str, Any]:
    """
    JSON Schema of a whole form's clean value tree.

    Args:
        schema: Normalized top-level nodes
        rest_only: Leave out fields declared with ``show_in_rest=False``
    """
    nodes = [node for node in schema if node.show_in_rest or not rest_only]
    return {
        "$schema": "https://json-schema.org/draft/2020-12/schema",
        **_object_schema(nodes),
    }
