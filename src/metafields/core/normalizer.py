"""
Schema normalizer.

Turns raw, partially specified field declarations into canonical SchemaNodes:
defaults are applied, constraints are validated against the kind,
``show_when`` shorthand is expanded into canonical conditions and container
children are normalized recursively (one nesting level only).

Raw declarations use the integrator vocabulary (``type``, ``show_when``,
``fields``, ``sanitize_callback``). The canonical names (``kind``,
``visibility``, ``children``) are accepted too, so feeding an already
normalized schema back in yields an identical tree.

Normalization is a pure transform: no I/O, no shared state.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import ValidationError

from metafields.core.errors import ConfigError, make_config_error
from metafields.core.ir import (
    CHOICE_KINDS,
    CONTAINER_KINDS,
    DEFAULT_DIMENSION_LABELS,
    LIST_VALUED_KINDS,
    REFERENCE_KINDS,
    REMOTE_SEARCH_KINDS,
    Condition,
    FieldKind,
    Operator,
    SchemaNode,
    is_known_operator,
    make_option_provider,
    parse_operator,
)
from metafields.runtime.value_tree import resolve_sanitizer

logger = logging.getLogger(__name__)

RawFieldMap = Mapping[str, Any]

# Raw spelling -> canonical attribute
_RAW_ALIASES = {
    "type": "kind",
    "show_when": "visibility",
    "fields": "children",
}

# Defaults that depend on the kind, applied before validation
KIND_DEFAULTS: dict[FieldKind, dict[str, Any]] = {
    FieldKind.RANGE: {"min": 0, "max": 100, "step": 1},
    FieldKind.CHECKBOX: {"default": 0},
    FieldKind.TOGGLE: {"default": 0},
    FieldKind.GALLERY: {"default": []},
    FieldKind.GROUP: {"default": {}},
    FieldKind.REPEATER: {"default": [], "button_label": "Add Row"},
    FieldKind.DIMENSIONS: {"dimension_labels": DEFAULT_DIMENSION_LABELS},
    FieldKind.DATE_RANGE: {"start_label": "Start", "end_label": "End"},
    FieldKind.TIME_RANGE: {"start_label": "Start", "end_label": "End"},
}

_NUMERIC_CONSTRAINTS = ("min", "max", "step")
_PROVIDER_ATTRS = ("options", "type_options")
_TUPLE_ATTRS = ("mime_types", "role")


# =============================================================================
# Conditions
# =============================================================================


def _normalize_single_condition(raw: Mapping[str, Any], path: str) -> Condition:
    field = raw.get("field")
    if not isinstance(field, str) or not field.strip():
        raise make_config_error("show_when condition requires a non-empty 'field'", path)
    return Condition(
        field=field,
        operator=parse_operator(raw.get("operator")),
        value=raw.get("value", ""),
    )


def normalize_show_when(raw: Any, path: str = "") -> tuple[Condition, ...]:
    """
    Normalize a ``show_when`` declaration to a tuple of canonical conditions.

    Accepted shapes (AND-combined):
        1. Shorthand: {"field_name": value, ...}
        2. Explicit: {"field": "name", "operator": "==", "value": "x"}
        3. A list of either of the above

    Empty or absent input yields an empty tuple (always visible).
    """
    if raw is None or raw == "" or (isinstance(raw, (Mapping, list, tuple)) and not raw):
        return ()

    if isinstance(raw, Condition):
        return (raw,)

    if isinstance(raw, Mapping):
        if "field" in raw:
            return (_normalize_single_condition(raw, path),)
        conditions = []
        for field, value in raw.items():
            if not isinstance(field, str) or not field.strip():
                raise make_config_error("show_when shorthand keys must be non-empty strings", path)
            conditions.append(Condition(field=field, operator=Operator.EQ.value, value=value))
        return tuple(conditions)

    if isinstance(raw, Sequence) and not isinstance(raw, (str, bytes)):
        conditions = []
        for item in raw:
            if not isinstance(item, (Mapping, Condition)):
                raise make_config_error(
                    f"show_when list entries must be mappings, got {type(item).__name__}", path
                )
            conditions.extend(normalize_show_when(item, path))
        return tuple(conditions)

    raise make_config_error(f"show_when must be a mapping or a list, got {type(raw).__name__}", path)


# =============================================================================
# Fields
# =============================================================================


def _canonicalize(raw: Mapping[str, Any]) -> dict[str, Any]:
    """Rename raw spellings to canonical attribute names."""
    data: dict[str, Any] = {}
    for name, value in raw.items():
        canonical = _RAW_ALIASES.get(name, name)
        if canonical != name and canonical in raw:
            # The canonical spelling wins when both are given
            continue
        data[canonical] = value
    return data


def _parse_kind(value: Any, path: str) -> FieldKind:
    try:
        return FieldKind(value)
    except ValueError:
        raise make_config_error(f'Invalid field type "{value}"', path) from None


def _parse_number(name: str, value: Any, path: str) -> int | float | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise make_config_error(f"'{name}' must be a number, got a boolean", path)
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        try:
            number = float(value)
        except ValueError:
            raise make_config_error(f"'{name}' must be a number, got {value!r}", path) from None
        return int(number) if number.is_integer() and "." not in value else number
    raise make_config_error(f"'{name}' must be a number, got {type(value).__name__}", path)


def _parse_count(name: str, value: Any, path: str) -> int:
    if value is None or value == "":
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise make_config_error(f"'{name}' must be a non-negative integer", path)
    if value < 0:
        raise make_config_error(f"'{name}' must be a non-negative integer", path)
    return value


def _validate_constraints(kind: FieldKind, data: dict[str, Any], path: str) -> None:
    for name in _NUMERIC_CONSTRAINTS:
        data[name] = _parse_number(name, data.get(name), path)

    if data["min"] is not None and data["max"] is not None and data["min"] > data["max"]:
        raise make_config_error(f"'min' ({data['min']}) is greater than 'max' ({data['max']})", path)
    if data["step"] is not None and data["step"] <= 0:
        raise make_config_error("'step' must be positive", path)

    data["min_items"] = _parse_count("min_items", data.get("min_items"), path)
    data["max_items"] = _parse_count("max_items", data.get("max_items"), path)
    if data["max_items"] and data["min_items"] > data["max_items"]:
        raise make_config_error("'min_items' is greater than 'max_items'", path)

    if kind == FieldKind.AMOUNT_TYPE:
        if not data.get("type_options"):
            raise make_config_error('Fields of type "amount_type" require "type_options"', path)
        if not data.get("type_meta_key"):
            raise make_config_error('Fields of type "amount_type" require "type_meta_key"', path)

    if kind == FieldKind.TAXONOMY_AJAX and not data.get("taxonomy"):
        raise make_config_error('Fields of type "taxonomy_ajax" require "taxonomy"', path)

    callback = data.get("sanitize_callback")
    if callback is not None and not callable(callback):
        raise make_config_error("'sanitize_callback' must be callable", path)


def _apply_kind_defaults(kind: FieldKind, data: dict[str, Any]) -> None:
    for name, value in KIND_DEFAULTS.get(kind, {}).items():
        if data.get(name) in (None, ""):
            data[name] = value

    multi_valued = data.get("multiple") and kind in CHOICE_KINDS | REFERENCE_KINDS | REMOTE_SEARCH_KINDS
    if (multi_valued or kind in LIST_VALUED_KINDS) and data.get("default") in (None, ""):
        data["default"] = []


def _normalize_field(
    key: Any,
    raw: Any,
    prefix: str,
    depth: int,
    parent_path: str,
    strict_operators: bool,
) -> SchemaNode:
    if not isinstance(key, str) or not key.strip():
        raise make_config_error(
            "Invalid field key provided. It must be a non-empty string.", parent_path or None
        )

    if isinstance(raw, SchemaNode):
        raw = schema_to_raw([raw])[raw.key]
        prefix = ""

    meta_key = f"{prefix}{key}" if prefix else key
    path = f"{parent_path}.{meta_key}" if parent_path else meta_key

    if not isinstance(raw, Mapping):
        raise make_config_error(f"Field declaration must be a mapping, got {type(raw).__name__}", path)

    data = _canonicalize(raw)
    kind = _parse_kind(data.get("kind") or FieldKind.TEXT.value, path)
    data["kind"] = kind
    data["key"] = meta_key

    _apply_kind_defaults(kind, data)
    _validate_constraints(kind, data, path)

    for name in _PROVIDER_ATTRS:
        value = data.get(name)
        data[name] = make_option_provider(value) if value or callable(value) else None

    for name in _TUPLE_ATTRS:
        value = data.get(name)
        if isinstance(value, str):
            data[name] = (value,) if value else ()
        elif value is None:
            data[name] = ()
        else:
            data[name] = tuple(value)

    data["visibility"] = normalize_show_when(data.get("visibility"), path)
    for condition in data["visibility"]:
        if not is_known_operator(condition.operator):
            if strict_operators:
                raise make_config_error(f"Unknown show_when operator {condition.operator!r}", path)
            logger.warning(
                "Field '%s': unknown show_when operator %r will be evaluated as '=='",
                path,
                condition.operator,
            )

    raw_children = data.get("children")
    if kind in CONTAINER_KINDS:
        if depth > 0:
            raise make_config_error(
                f'Container "{kind}" cannot be nested inside another group or repeater', path
            )
        if not raw_children:
            raise make_config_error(f'Fields of type "{kind}" require child "fields"', path)
        data["children"] = tuple(_normalize_fields(raw_children, "", depth + 1, path, strict_operators))
        child_keys = {child.key for child in data["children"]}
        if data.get("row_title_field") and data["row_title_field"] not in child_keys:
            raise make_config_error(
                f"'row_title_field' names unknown child field {data['row_title_field']!r}", path
            )
    else:
        if raw_children:
            raise make_config_error("Only group and repeater fields may declare child fields", path)
        data["children"] = ()

    data["sanitizer"] = resolve_sanitizer(kind, data.get("sanitize_callback"))

    known = set(SchemaNode.model_fields)
    extra = sorted(set(data) - known)
    if extra:
        logger.debug("Field '%s': ignoring unknown attributes %s", path, extra)

    try:
        return SchemaNode(**{name: value for name, value in data.items() if name in known})
    except ValidationError as e:
        raise make_config_error(f"Invalid field declaration: {e}", path) from e


def _normalize_fields(
    raw: Any,
    prefix: str,
    depth: int,
    parent_path: str,
    strict_operators: bool,
) -> list[SchemaNode]:
    if isinstance(raw, Mapping):
        items = list(raw.items())
    elif isinstance(raw, Sequence) and not isinstance(raw, (str, bytes)):
        items = []
        for node in raw:
            if not isinstance(node, SchemaNode):
                raise make_config_error(
                    "Field lists may only contain normalized SchemaNodes", parent_path or None
                )
            items.append((node.key, node))
    else:
        raise make_config_error(
            f"Fields must be declared as a mapping, got {type(raw).__name__}", parent_path or None
        )

    nodes = [
        _normalize_field(key, value, prefix, depth, parent_path, strict_operators)
        for key, value in items
    ]

    seen: set[str] = set()
    for node in nodes:
        if node.key in seen:
            raise make_config_error("Duplicate field key", f"{parent_path}.{node.key}" if parent_path else node.key)
        seen.add(node.key)
    return nodes


def normalize(raw: RawFieldMap | Sequence[SchemaNode], parent_prefix: str = "") -> list[SchemaNode]:
    """
    Normalize raw field declarations into canonical SchemaNodes.

    Args:
        raw: Mapping of field key -> declaration, or already normalized nodes
        parent_prefix: Prefix prepended to top-level keys of raw declarations

    Returns:
        Canonical nodes in declaration order

    Raises:
        ConfigError: If any declaration is invalid
    """
    return _normalize_fields(raw, parent_prefix, 0, "", False)


def normalize_schema(
    raw_config: RawFieldMap | Sequence[SchemaNode],
    *,
    prefix: str = "",
    strict_operators: bool = False,
) -> list[SchemaNode]:
    """
    Normalize a form's field map.

    Args:
        raw_config: Mapping of field key -> declaration
        prefix: Prefix prepended to top-level keys
        strict_operators: Reject unknown show_when operators instead of
            treating them as loose equality

    Returns:
        Canonical top-level nodes

    Raises:
        ConfigError: If any declaration is invalid
    """
    nodes = _normalize_fields(raw_config, prefix, 0, "", strict_operators)
    logger.debug("Normalized %d top-level fields", len(nodes))
    return nodes


# =============================================================================
# Serialization
# =============================================================================


def schema_to_raw(schema: Sequence[SchemaNode]) -> dict[str, dict[str, Any]]:
    """
    Convert canonical nodes back to raw declarations.

    Feeding the result to ``normalize`` reproduces an identical schema.
    """
    raw: dict[str, dict[str, Any]] = {}
    skipped = {"key", "kind", "children", "visibility", "sanitizer"}
    for node in schema:
        # Providers and callbacks are carried over as the same objects
        data = {name: getattr(node, name) for name in SchemaNode.model_fields if name not in skipped}
        data["kind"] = node.kind.value
        data["visibility"] = [condition.to_raw() for condition in node.visibility]
        if node.children:
            data["children"] = schema_to_raw(node.children)
        raw[node.key] = data
    return raw
