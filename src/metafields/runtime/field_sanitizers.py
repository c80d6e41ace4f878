"""
Per-kind sanitizers for scalar and composite field values.

Every sanitizer takes ``(value, node)`` and returns the clean value. None of
them raise for untrusted input: wrong-shape values fall back to the field's
default, invalid choices fall back to the default, and numbers are clamped.

``has_content`` is the kind-specific "meaningful value" predicate used by the
repeater row-content test.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Mapping
from typing import Any

from metafields.core.ir import (
    BOOLEAN_KINDS,
    COMPOSITE_KINDS,
    FieldKind,
    OptionProvider,
    SchemaNode,
)
from metafields.runtime.sanitizer import (
    clean_email,
    clean_hex_color,
    clean_multiline_text,
    clean_text,
    clean_url,
    strip_dangerous_tags,
    to_absint,
    to_text,
)

KindSanitizer = Callable[[Any, SchemaNode], Any]

_FALSY_STRINGS = frozenset({"", "0"})

# Checkbox-style submissions that mean "open in a new tab"
_LINK_TARGET_VALUES = ("_blank", "1", 1, True, "on")


# =============================================================================
# Helpers
# =============================================================================


def _is_scalar(value: Any) -> bool:
    return value is None or isinstance(value, (str, int, float, bool))


def _scalar_or_default(value: Any, node: SchemaNode) -> Any:
    """Return value if it has scalar shape, else the node default."""
    if _is_scalar(value):
        return value
    return node.default if _is_scalar(node.default) else ""


def _as_list(value: Any) -> list[Any]:
    if value is None or value == "":
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    if isinstance(value, Mapping):
        return list(value.values())
    return [value]


def _is_truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip() not in _FALSY_STRINGS
    return bool(value)


def _parse_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return None
        return number if math.isfinite(number) else None
    if isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
        return number if math.isfinite(number) else None
    return None


def _uses_float(node: SchemaNode) -> bool:
    step = node.step
    return step is not None and float(step) != math.floor(float(step))


def _clamp(number: float, node: SchemaNode) -> float:
    if node.min is not None and number < node.min:
        number = float(node.min)
    if node.max is not None and number > node.max:
        number = float(node.max)
    return number


def coerce_number(value: Any, node: SchemaNode) -> int | float | None:
    """
    Coerce a submitted number using the node's step, min and max.

    Empty input yields None. Float vs int is decided by whether ``step``
    has a fractional part.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    number = _parse_number(value)
    if number is None:
        return None
    if _uses_float(node):
        return _clamp(number, node)
    clamped = _clamp(float(int(number)), node)
    return int(clamped) if clamped.is_integer() else clamped


def _composite_record(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _positive_int_or_none(value: Any) -> int | None:
    number = to_absint(value)
    return number or None


def _match_option(provider: OptionProvider | None, value: Any) -> Any:
    """Canonical option value for a submitted scalar, or None."""
    if provider is None or not _is_scalar(value):
        return None
    found, canonical = provider.match(to_text(value))
    return canonical if found else None


# =============================================================================
# Text Kinds
# =============================================================================


def sanitize_text(value: Any, node: SchemaNode) -> str:
    return clean_text(to_text(_scalar_or_default(value, node)))


def sanitize_textarea(value: Any, node: SchemaNode) -> str:
    return clean_multiline_text(to_text(_scalar_or_default(value, node)))


def sanitize_wysiwyg(value: Any, node: SchemaNode) -> str:
    return strip_dangerous_tags(to_text(_scalar_or_default(value, node))).strip()


def sanitize_raw_text(value: Any, node: SchemaNode) -> str:
    """Code and password values are stored verbatim (minus NUL bytes)."""
    return to_text(_scalar_or_default(value, node)).replace("\x00", "")


def sanitize_url(value: Any, node: SchemaNode) -> str:
    return clean_url(to_text(_scalar_or_default(value, node)))


def sanitize_email(value: Any, node: SchemaNode) -> str:
    return clean_email(to_text(_scalar_or_default(value, node)))


def sanitize_color(value: Any, node: SchemaNode) -> str:
    return clean_hex_color(to_text(_scalar_or_default(value, node)))


# =============================================================================
# Numeric / Boolean / Choice Kinds
# =============================================================================


def sanitize_number(value: Any, node: SchemaNode) -> int | float | None:
    if not _is_scalar(value):
        value = node.default if _is_scalar(node.default) else None
    if _parse_number(value) is None and to_text(value).strip():
        # Non-numeric garbage falls back to the default
        value = node.default if _is_scalar(node.default) else None
    return coerce_number(value, node)


def sanitize_boolean(value: Any, node: SchemaNode) -> int:
    return 1 if _is_truthy(value) else 0


def sanitize_choice(value: Any, node: SchemaNode) -> Any:
    if node.multiple:
        selected: list[Any] = []
        for item in _as_list(value):
            canonical = _match_option(node.options, item)
            if canonical is not None and canonical not in selected:
                selected.append(canonical)
        return selected
    if value is not None:
        canonical = _match_option(node.options, value)
        if canonical is not None:
            return canonical
    return node.default


# =============================================================================
# Media / Reference Kinds
# =============================================================================


def sanitize_media(value: Any, node: SchemaNode) -> int | None:
    if not _is_scalar(value):
        return None
    return _positive_int_or_none(value)


def sanitize_gallery(value: Any, node: SchemaNode) -> list[int]:
    if isinstance(value, str):
        value = [part for part in value.split(",") if part.strip()]
    ids: list[int] = []
    for item in _as_list(value):
        if not _is_scalar(item):
            continue
        number = to_absint(item)
        if number:
            ids.append(number)
    return ids


def sanitize_reference(value: Any, node: SchemaNode) -> int | list[int] | None:
    if node.multiple:
        return [n for n in (to_absint(item) for item in _as_list(value) if _is_scalar(item)) if n]
    if not _is_scalar(value):
        return None
    return _positive_int_or_none(value)


def sanitize_remote_choice(value: Any, node: SchemaNode) -> str | list[str]:
    if node.multiple:
        cleaned = [clean_text(to_text(item)) for item in _as_list(value) if _is_scalar(item)]
        return [item for item in cleaned if item]
    if not _is_scalar(value):
        return ""
    return clean_text(to_text(value))


# =============================================================================
# Composite Kinds
# =============================================================================


def sanitize_amount_type(value: Any, node: SchemaNode) -> dict[str, Any]:
    """
    Sanitize an amount with its unit/type selector.

    The amount must be positive; otherwise it is stored as None. The type is
    validated against ``type_options`` and falls back to ``type_default``,
    then to the first option.
    """
    record = _composite_record(value) if isinstance(value, Mapping) else {"amount": value}

    amount: float | None = None
    raw_amount = record.get("amount")
    if _is_scalar(raw_amount):
        number = _parse_number(raw_amount)
        if number is not None:
            number = _clamp(number, node)
            amount = number if number > 0 else None

    raw_type = record.get("type")
    type_value = _match_option(node.type_options, raw_type) if raw_type is not None else None
    if type_value is None:
        type_keys = node.type_options.keys() if node.type_options is not None else []
        if node.type_default:
            type_value = node.type_default
        elif type_keys:
            type_value = type_keys[0]
        else:
            type_value = ""

    return {"amount": amount, "type": type_value}


def sanitize_link(value: Any, node: SchemaNode) -> dict[str, str]:
    record = _composite_record(value) if not isinstance(value, str) else {"url": value}
    url = record.get("url")
    title = record.get("title")
    target = record.get("target")
    return {
        "url": clean_url(to_text(url)) if _is_scalar(url) else "",
        "title": clean_text(to_text(title)) if _is_scalar(title) else "",
        "target": "_blank" if target in _LINK_TARGET_VALUES else "",
    }


def sanitize_dimensions(value: Any, node: SchemaNode) -> dict[str, int | float | None]:
    record = _composite_record(value)
    return {
        key: coerce_number(record.get(key), node) if _is_scalar(record.get(key)) else None
        for key in node.dimension_keys
    }


def sanitize_range(value: Any, node: SchemaNode) -> dict[str, str]:
    record = _composite_record(value)
    start = record.get("start")
    end = record.get("end")
    return {
        "start": clean_text(to_text(start)) if _is_scalar(start) else "",
        "end": clean_text(to_text(end)) if _is_scalar(end) else "",
    }


SCALAR_SANITIZERS: dict[FieldKind, KindSanitizer] = {
    FieldKind.TEXT: sanitize_text,
    FieldKind.TEL: sanitize_text,
    FieldKind.DATE: sanitize_text,
    FieldKind.DATETIME: sanitize_text,
    FieldKind.TIME: sanitize_text,
    FieldKind.TEXTAREA: sanitize_textarea,
    FieldKind.WYSIWYG: sanitize_wysiwyg,
    FieldKind.CODE: sanitize_raw_text,
    FieldKind.PASSWORD: sanitize_raw_text,
    FieldKind.URL: sanitize_url,
    FieldKind.FILE_URL: sanitize_url,
    FieldKind.OEMBED: sanitize_url,
    FieldKind.EMAIL: sanitize_email,
    FieldKind.COLOR: sanitize_color,
    FieldKind.NUMBER: sanitize_number,
    FieldKind.RANGE: sanitize_number,
    FieldKind.CHECKBOX: sanitize_boolean,
    FieldKind.TOGGLE: sanitize_boolean,
    FieldKind.SELECT: sanitize_choice,
    FieldKind.RADIO: sanitize_choice,
    FieldKind.BUTTON_GROUP: sanitize_choice,
    FieldKind.IMAGE: sanitize_media,
    FieldKind.FILE: sanitize_media,
    FieldKind.GALLERY: sanitize_gallery,
    FieldKind.POST: sanitize_reference,
    FieldKind.USER: sanitize_reference,
    FieldKind.TERM: sanitize_reference,
    FieldKind.POST_AJAX: sanitize_reference,
    FieldKind.USER_AJAX: sanitize_reference,
    FieldKind.TAXONOMY_AJAX: sanitize_reference,
    FieldKind.AJAX: sanitize_remote_choice,
    FieldKind.AMOUNT_TYPE: sanitize_amount_type,
    FieldKind.LINK: sanitize_link,
    FieldKind.DIMENSIONS: sanitize_dimensions,
    FieldKind.DATE_RANGE: sanitize_range,
    FieldKind.TIME_RANGE: sanitize_range,
}


# =============================================================================
# Row-Content Predicate
# =============================================================================


def _scalar_has_content(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return len(value) > 0
    if isinstance(value, (list, tuple, dict)):
        return len(value) > 0
    return True


def has_content(node: SchemaNode, value: Any) -> bool:
    """
    Decide whether a sanitized value is meaningful.

    - strings: non-zero length
    - numbers and references: not None
    - lists/selections: non-empty
    - checkbox/toggle: checked
    - composites: at least one meaningful part (for amount_type, the amount)
    """
    if node.kind in BOOLEAN_KINDS:
        return value == 1 or value is True
    if node.kind == FieldKind.AMOUNT_TYPE:
        return isinstance(value, Mapping) and value.get("amount") is not None
    if node.kind in COMPOSITE_KINDS or isinstance(value, Mapping):
        return isinstance(value, Mapping) and any(_scalar_has_content(part) for part in value.values())
    return _scalar_has_content(value)
