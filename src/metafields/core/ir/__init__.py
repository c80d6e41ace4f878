"""
Internal Representation (IR) for metafields.

The IR is the canonical, immutable form of a field tree produced by the
schema normalizer and consumed by the rule evaluator, the sanitizer and the
visibility controller.
"""

from .conditions import (
    OPERATOR_ALIASES,
    Condition,
    Operator,
    is_known_operator,
    parse_operator,
)
from .fields import (
    BOOLEAN_KINDS,
    CHOICE_KINDS,
    COMPOSITE_KINDS,
    CONTAINER_KINDS,
    DEFAULT_DIMENSION_LABELS,
    LIST_VALUED_KINDS,
    MEDIA_KINDS,
    NUMERIC_KINDS,
    REFERENCE_KINDS,
    REMOTE_SEARCH_KINDS,
    ROW_INDEX_PLACEHOLDER,
    FieldKind,
    ResolvedSanitizer,
    SchemaNode,
)
from .options import (
    CallableOptions,
    Option,
    OptionProvider,
    StaticOptions,
    coerce_options,
    make_option_provider,
)

__all__ = [
    # Conditions
    "Condition",
    "Operator",
    "OPERATOR_ALIASES",
    "is_known_operator",
    "parse_operator",
    # Fields
    "FieldKind",
    "SchemaNode",
    "ResolvedSanitizer",
    "BOOLEAN_KINDS",
    "CHOICE_KINDS",
    "COMPOSITE_KINDS",
    "CONTAINER_KINDS",
    "DEFAULT_DIMENSION_LABELS",
    "LIST_VALUED_KINDS",
    "MEDIA_KINDS",
    "NUMERIC_KINDS",
    "REFERENCE_KINDS",
    "REMOTE_SEARCH_KINDS",
    "ROW_INDEX_PLACEHOLDER",
    # Options
    "Option",
    "OptionProvider",
    "StaticOptions",
    "CallableOptions",
    "coerce_options",
    "make_option_provider",
]
