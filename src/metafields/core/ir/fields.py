"""
Field schema types for metafields IR.

This module contains the field kind enumeration, kind families and the
canonical SchemaNode produced by the normalizer.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .conditions import Condition
from .options import Option, OptionProvider


class FieldKind(StrEnum):
    """Enumeration of supported field kinds."""

    # Scalar text variants
    TEXT = "text"
    TEXTAREA = "textarea"
    WYSIWYG = "wysiwyg"
    CODE = "code"
    PASSWORD = "password"
    TEL = "tel"
    URL = "url"
    EMAIL = "email"
    COLOR = "color"
    # Numeric
    NUMBER = "number"
    RANGE = "range"
    # Boolean
    CHECKBOX = "checkbox"
    TOGGLE = "toggle"
    # Choice
    SELECT = "select"
    RADIO = "radio"
    BUTTON_GROUP = "button_group"
    # Date/time
    DATE = "date"
    DATETIME = "datetime"
    TIME = "time"
    DATE_RANGE = "date_range"
    TIME_RANGE = "time_range"
    # Media references
    IMAGE = "image"
    FILE = "file"
    FILE_URL = "file_url"
    GALLERY = "gallery"
    OEMBED = "oembed"
    # Content references
    POST = "post"
    USER = "user"
    TERM = "term"
    # Remote search
    AJAX = "ajax"
    POST_AJAX = "post_ajax"
    USER_AJAX = "user_ajax"
    TAXONOMY_AJAX = "taxonomy_ajax"
    # Composites
    AMOUNT_TYPE = "amount_type"
    LINK = "link"
    DIMENSIONS = "dimensions"
    # Containers
    GROUP = "group"
    REPEATER = "repeater"


CONTAINER_KINDS = frozenset({FieldKind.GROUP, FieldKind.REPEATER})

CHOICE_KINDS = frozenset({FieldKind.SELECT, FieldKind.RADIO, FieldKind.BUTTON_GROUP})

BOOLEAN_KINDS = frozenset({FieldKind.CHECKBOX, FieldKind.TOGGLE})

NUMERIC_KINDS = frozenset({FieldKind.NUMBER, FieldKind.RANGE})

MEDIA_KINDS = frozenset({FieldKind.IMAGE, FieldKind.FILE, FieldKind.GALLERY})

REFERENCE_KINDS = frozenset(
    {
        FieldKind.POST,
        FieldKind.USER,
        FieldKind.TERM,
        FieldKind.POST_AJAX,
        FieldKind.USER_AJAX,
        FieldKind.TAXONOMY_AJAX,
    }
)

REMOTE_SEARCH_KINDS = frozenset(
    {FieldKind.AJAX, FieldKind.POST_AJAX, FieldKind.USER_AJAX, FieldKind.TAXONOMY_AJAX}
)

COMPOSITE_KINDS = frozenset(
    {
        FieldKind.AMOUNT_TYPE,
        FieldKind.LINK,
        FieldKind.DIMENSIONS,
        FieldKind.DATE_RANGE,
        FieldKind.TIME_RANGE,
    }
)

# Kinds whose submitted value is a list of selections
LIST_VALUED_KINDS = frozenset({FieldKind.GALLERY})

DEFAULT_DIMENSION_LABELS: dict[str, str] = {"width": "Width", "height": "Height"}

ROW_INDEX_PLACEHOLDER = "__INDEX__"


@dataclass(frozen=True)
class ResolvedSanitizer:
    """
    A sanitizer resolved once at normalization time.

    Kind defaults receive ``(value, node)``; integrator overrides receive
    only the raw value and their result is final.
    """

    func: Callable[..., Any]
    is_override: bool = False

    def __call__(self, value: Any, node: SchemaNode) -> Any:
        if self.is_override:
            return self.func(value)
        return self.func(value, node)


class SchemaNode(BaseModel):
    """
    Canonical description of one field.

    Attributes:
        key: Name unique within the parent container
        kind: Field kind
        default: Value used when nothing was submitted or stored
        visibility: AND-list of canonical conditions (empty = always visible)
        children: Child nodes, only for group/repeater kinds
        sanitizer: Sanitizer resolved at normalization time

    Kind-specific constraints (min/max/step, options, type_options, ...)
    are flat attributes, ignored by kinds that do not use them.
    """

    key: str
    kind: FieldKind = FieldKind.TEXT
    label: str = ""
    description: str = ""
    tooltip: str = ""
    placeholder: str = ""
    default: Any = ""
    capability: str = "edit_posts"
    show_in_rest: bool = True

    # Numeric
    min: int | float | None = None
    max: int | float | None = None
    step: int | float | None = None

    # Choice
    options: OptionProvider | None = None
    multiple: bool = False
    display: str = "select"

    # Text
    rows: int = 5
    language: str = "html"
    line_numbers: bool = True

    # amount_type
    type_options: OptionProvider | None = None
    type_meta_key: str = ""
    type_default: str = ""

    # Media / references
    mime_types: tuple[str, ...] = ()
    button_text: str = ""
    post_type: str = "post"
    taxonomy: str = "category"
    role: tuple[str, ...] = ()

    # Link / dimensions / ranges
    show_title: bool = True
    show_target: bool = True
    dimension_labels: dict[str, str] = Field(default_factory=dict)
    dimension_units: str = ""
    start_label: str = ""
    end_label: str = ""

    # Group / repeater
    button_label: str = ""
    max_items: int = 0
    min_items: int = 0
    collapsed: bool = False
    layout: str = "vertical"
    row_title: str = ""
    row_title_field: str = ""

    visibility: tuple[Condition, ...] = ()
    children: tuple[SchemaNode, ...] = ()

    sanitize_callback: Callable[[Any], Any] | None = Field(default=None, exclude=True)
    sanitizer: ResolvedSanitizer | None = Field(default=None, exclude=True)

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    @property
    def is_container(self) -> bool:
        """Check if this node owns child nodes."""
        return self.kind in CONTAINER_KINDS

    @property
    def is_repeater(self) -> bool:
        return self.kind == FieldKind.REPEATER

    @property
    def is_group(self) -> bool:
        return self.kind == FieldKind.GROUP

    @property
    def is_conditional(self) -> bool:
        """Check if visibility depends on other fields."""
        return bool(self.visibility)

    @property
    def dimension_keys(self) -> list[str]:
        """Keys of the parts of a dimensions field."""
        return list((self.dimension_labels or DEFAULT_DIMENSION_LABELS).keys())

    def child(self, key: str) -> SchemaNode | None:
        """Get a child node by key."""
        for node in self.children:
            if node.key == key:
                return node
        return None

    def resolve_options(self) -> list[Option]:
        """Resolve the current option list (empty when none configured)."""
        if self.options is None:
            return []
        return self.options.resolve()

    def row_template(self) -> dict[str, Any]:
        """Default values for a freshly inserted repeater row."""
        return {node.key: _copy_default(node.default) for node in self.children}


def _copy_default(value: Any) -> Any:
    if isinstance(value, list):
        return list(value)
    if isinstance(value, dict):
        return dict(value)
    return value


SchemaNode.model_rebuild()
