"""
Server-side initial visibility.

Computes the hidden/visible flag of every field path from persisted values
using the same rule evaluator and scope rules as the live controller, and
derives the wrapper view data (CSS classes, ``data-show-when`` attribute)
used when rendering the form.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from metafields.core.ir import ROW_INDEX_PLACEHOLDER, SchemaNode
from metafields.core.rules import is_satisfied
from metafields.runtime.context import RequestContext
from metafields.runtime.rows import row_title
from metafields.runtime.scope import (
    MISSING,
    EvaluationScope,
    TopLevelLookup,
    field_path,
    form_scope,
    group_scope,
    row_scope,
)

logger = logging.getLogger(__name__)

CONDITIONAL_CLASS = "mf-conditional-field"
HIDDEN_CLASS = "mf-field--hidden"

ValueSource = Mapping[str, Any] | Callable[[str], Any]


# =============================================================================
# Value Access
# =============================================================================


def top_level_lookup(schema: Sequence[SchemaNode], values: ValueSource) -> TopLevelLookup:
    """
    Build the top-level lookup over persisted values.

    Absent values read as the field default, matching what a freshly
    rendered input would hold. Keys that are not top-level fields resolve
    to MISSING.
    """
    defaults = {node.key: node.default for node in schema}

    def lookup(key: str) -> Any:
        if callable(values):
            value = values(key)
        else:
            value = values.get(key, MISSING)
        if value is None or value is MISSING:
            return defaults.get(key, MISSING)
        return value

    return lookup


def record_with_defaults(children: Iterable[SchemaNode], raw: Any) -> dict[str, Any]:
    """A group record or row with every child key present."""
    record = raw if isinstance(raw, Mapping) else {}
    return {
        child.key: child.default if record.get(child.key) is None else record[child.key] for child in children
    }


def rows_with_defaults(node: SchemaNode, raw: Any) -> list[dict[str, Any]]:
    """Repeater rows as full records; template and non-record rows are skipped."""
    if isinstance(raw, Mapping):
        raw = [row for marker, row in raw.items() if ROW_INDEX_PLACEHOLDER not in str(marker)]
    if not isinstance(raw, Sequence) or isinstance(raw, (str, bytes)):
        return []
    return [record_with_defaults(node.children, row) for row in raw if isinstance(row, Mapping)]


def evaluate(node: SchemaNode, scope: EvaluationScope) -> bool:
    """Visibility of one node in a scope."""
    return is_satisfied(node.visibility, scope.lookup)


# =============================================================================
# Initial Visibility
# =============================================================================


def compute_initial_visibility(schema: Sequence[SchemaNode], values: ValueSource) -> dict[str, bool]:
    """
    Compute the visibility flag of every field path.

    Args:
        schema: Normalized top-level nodes
        values: Persisted values keyed by top-level field key, either a
            mapping or a lookup callable (e.g. ``store.get``)

    Returns:
        Mapping of field path -> visible
    """
    top = top_level_lookup(schema, values)
    top_scope = form_scope(top)
    flags: dict[str, bool] = {}

    for node in schema:
        flags[node.key] = evaluate(node, top_scope)

        if node.is_group:
            record = record_with_defaults(node.children, top(node.key))
            scope = group_scope(top, record)
            for child in node.children:
                flags[field_path(node.key, child.key)] = evaluate(child, scope)

        elif node.is_repeater:
            for index, row in enumerate(rows_with_defaults(node, top(node.key))):
                scope = row_scope(top, row)
                for child in node.children:
                    flags[field_path(node.key, index, child.key)] = evaluate(child, scope)

    hidden = sum(1 for visible in flags.values() if not visible)
    logger.debug("Initial visibility: %d paths, %d hidden", len(flags), hidden)
    return flags


# =============================================================================
# Wrapper Views
# =============================================================================


def show_when_attribute(node: SchemaNode) -> str:
    """JSON for the ``data-show-when`` wrapper attribute."""
    return json.dumps([condition.to_raw() for condition in node.visibility], default=str)


@dataclass
class FieldView:
    """
    Render data for one field wrapper.

    Attributes:
        path: Field path (also the input name)
        node: Schema node
        value: Current value
        visible: Initial visibility
        children: Views of group children
        rows: Views of repeater rows (one list per row)
        row_titles: Display titles of repeater rows
    """

    path: str
    node: SchemaNode
    value: Any
    visible: bool = True
    children: list[FieldView] = field(default_factory=list)
    rows: list[list[FieldView]] = field(default_factory=list)
    row_titles: list[str] = field(default_factory=list)

    @property
    def css_classes(self) -> list[str]:
        classes = [f"mf-field mf-field--{self.node.kind.value}"]
        if self.node.is_conditional:
            classes.append(CONDITIONAL_CLASS)
            if not self.visible:
                classes.append(HIDDEN_CLASS)
        return classes

    @property
    def attributes(self) -> dict[str, str]:
        attrs = {"data-field-key": self.node.key}
        if self.node.is_conditional:
            attrs["data-show-when"] = show_when_attribute(self.node)
        return attrs


@dataclass
class FormView:
    """Views of a whole form plus whether this render must emit runtime assets."""

    fields: list[FieldView]
    emit_assets: bool


def build_field_views(
    schema: Sequence[SchemaNode],
    values: ValueSource,
    context: RequestContext | None = None,
) -> FormView:
    """
    Build wrapper views for a form render.

    Fields the context's permission check rejects are left out. Runtime
    assets are requested only by the first form rendered in a request.
    """
    context = context or RequestContext()
    flags = compute_initial_visibility(schema, values)
    top = top_level_lookup(schema, values)

    views: list[FieldView] = []
    for node in schema:
        if not context.can_access(node.capability):
            continue
        value = top(node.key)
        view = FieldView(
            path=node.key,
            node=node,
            value=None if value is MISSING else value,
            visible=flags[node.key],
        )

        if node.is_group:
            record = record_with_defaults(node.children, value)
            view.children = [
                FieldView(
                    path=field_path(node.key, child.key),
                    node=child,
                    value=record[child.key],
                    visible=flags[field_path(node.key, child.key)],
                )
                for child in node.children
            ]

        elif node.is_repeater:
            for index, row in enumerate(rows_with_defaults(node, value)):
                view.row_titles.append(row_title(node, row, index))
                view.rows.append(
                    [
                        FieldView(
                            path=field_path(node.key, index, child.key),
                            node=child,
                            value=row[child.key],
                            visible=flags[field_path(node.key, index, child.key)],
                        )
                        for child in node.children
                    ]
                )

        views.append(view)

    return FormView(fields=views, emit_assets=context.claim_assets())
