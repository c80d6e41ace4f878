"""
Visibility controller.

The live counterpart of the server-side initial visibility: holds the
current form state (top-level values, group records and repeater rows),
re-evaluates conditional fields when a value changes or rows are mutated,
and toggles only the hidden flag. Values are never touched by visibility.

Re-evaluation is scoped: a change inside a repeater row re-evaluates that
row only, any other change re-evaluates the top-level form and its groups.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from metafields.core.ir import SchemaNode
from metafields.runtime.rows import RepeaterRows, Row
from metafields.runtime.scope import (
    MISSING,
    EvaluationScope,
    field_path,
    form_scope,
    group_scope,
    parse_path,
    row_scope,
)
from metafields.runtime.visibility import evaluate, record_with_defaults, rows_with_defaults

logger = logging.getLogger(__name__)


class VisibilityController:
    """
    Reactive visibility state for one rendered form.

    Example:
        >>> controller = VisibilityController(schema, {"product_type": "physical"})
        >>> controller.handle_change("product_type", "digital")
        {'weight': False}
        >>> controller.is_hidden("weight")
        True
    """

    def __init__(self, schema: Sequence[SchemaNode], values: Mapping[str, Any] | None = None):
        values = values or {}
        self.schema = list(schema)
        self._nodes = {node.key: node for node in self.schema}
        self._top: dict[str, Any] = {}
        self._groups: dict[str, dict[str, Any]] = {}
        self._rows: dict[str, RepeaterRows] = {}
        self._visible: dict[str, bool] = {}

        for node in self.schema:
            raw = values.get(node.key)
            if node.is_group:
                self._groups[node.key] = record_with_defaults(node.children, raw)
            elif node.is_repeater:
                self._rows[node.key] = RepeaterRows(node, rows_with_defaults(node, raw))
            else:
                self._top[node.key] = node.default if raw is None else raw

        self.refresh()

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    def _top_value(self, key: str) -> Any:
        if key in self._top:
            return self._top[key]
        if key in self._groups:
            return dict(self._groups[key])
        if key in self._rows:
            return self._rows[key].values()
        return MISSING

    def _form_scope(self) -> EvaluationScope:
        return form_scope(self._top_value)

    def rows(self, repeater_key: str) -> RepeaterRows:
        """Row coordinator of a repeater."""
        try:
            return self._rows[repeater_key]
        except KeyError:
            raise KeyError(f"'{repeater_key}' is not a repeater field") from None

    def values(self) -> dict[str, Any]:
        """Current value tree, including values of hidden fields."""
        return {node.key: self._top_value(node.key) for node in self.schema}

    def visibility(self) -> dict[str, bool]:
        """Visibility of every field path."""
        return dict(self._visible)

    def is_hidden(self, path: str) -> bool:
        """
        Check whether a field path is currently hidden.

        Raises:
            KeyError: If no field exists at the path
        """
        try:
            return not self._visible[path]
        except KeyError:
            raise KeyError(f"No field at path '{path}'") from None

    # -------------------------------------------------------------------------
    # Evaluation
    # -------------------------------------------------------------------------

    def _apply(self, path: str, visible: bool, changed: dict[str, bool]) -> None:
        if self._visible.get(path) != visible:
            changed[path] = visible
        self._visible[path] = visible

    def _evaluate_form(self) -> dict[str, bool]:
        """Top-level fields and group children; repeater rows are left alone."""
        changed: dict[str, bool] = {}
        top_scope = self._form_scope()
        for node in self.schema:
            self._apply(node.key, evaluate(node, top_scope), changed)
            if node.is_group:
                scope = group_scope(self._top_value, self._groups[node.key])
                for child in node.children:
                    self._apply(field_path(node.key, child.key), evaluate(child, scope), changed)
        return changed

    def _evaluate_row(self, repeater_key: str, row: Row, changed: dict[str, bool]) -> None:
        node = self._nodes[repeater_key]
        scope = row_scope(self._top_value, row.values)
        for child in node.children:
            self._apply(field_path(repeater_key, row.index, child.key), evaluate(child, scope), changed)

    def _rebuild_rows(self, repeater_key: str) -> dict[str, bool]:
        prefix = f"{repeater_key}["
        stale = [path for path in self._visible if path.startswith(prefix)]
        previous = {path: self._visible.pop(path) for path in stale}
        changed: dict[str, bool] = {}
        for row in self._rows[repeater_key]:
            self._evaluate_row(repeater_key, row, changed)
        # Report only real flips against the pre-mutation state
        return {path: visible for path, visible in changed.items() if previous.get(path) != visible}

    def refresh(self, path: str | None = None) -> dict[str, bool]:
        """
        Recompute visibility for one field path, or for the whole form.

        Returns:
            Paths whose visibility changed -> new visibility
        """
        if path is None:
            changed = self._evaluate_form()
            for key, rows in self._rows.items():
                for row in rows:
                    self._evaluate_row(key, row, changed)
            return changed

        segments = parse_path(path)
        changed = {}
        if len(segments) == 1:
            self._apply(path, evaluate(self._node(path), self._form_scope()), changed)
        elif len(segments) == 2:
            group_key, child_key = segments
            group = self._node(str(group_key))
            scope = group_scope(self._top_value, self._groups[group.key])
            self._apply(path, evaluate(self._child(group, str(child_key)), scope), changed)
        elif len(segments) == 3 and isinstance(segments[1], int):
            repeater_key, index, child_key = segments
            row = self._row(str(repeater_key), index)
            child = self._child(self._nodes[str(repeater_key)], str(child_key))
            self._apply(path, evaluate(child, row_scope(self._top_value, row.values)), changed)
        else:
            raise KeyError(f"No field at path '{path}'")
        return changed

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    def handle_change(self, path: str, value: Any) -> dict[str, bool]:
        """
        Record a new value and re-evaluate the affected scope.

        Returns:
            Paths whose visibility changed -> new visibility
        """
        segments = parse_path(path)

        if len(segments) == 3 and isinstance(segments[1], int):
            repeater_key, index, child_key = segments
            rows = self.rows(str(repeater_key))
            row = self._row(str(repeater_key), index)
            child = self._child(rows.node, str(child_key))
            rows.set_value(index, child.key, child.default if value is None else value)
            changed: dict[str, bool] = {}
            self._evaluate_row(str(repeater_key), row, changed)
            return changed

        if len(segments) == 2:
            group_key, child_key = segments
            group = self._node(str(group_key))
            if not group.is_group:
                raise KeyError(f"No field at path '{path}'")
            child = self._child(group, str(child_key))
            self._groups[group.key][child.key] = child.default if value is None else value
        elif len(segments) == 1:
            node = self._node(path)
            if node.is_container:
                raise KeyError(f"Container field '{path}' has no value of its own")
            self._top[path] = value
        else:
            raise KeyError(f"No field at path '{path}'")

        return self._evaluate_form()

    def insert_row(self, repeater_key: str, values: Mapping[str, Any] | None = None) -> list[Row]:
        """
        Append a row and evaluate the conditional fields of that row only.

        Raises:
            RowLimitError: If the repeater is full
        """
        rows = self.rows(repeater_key).insert_row(values)
        self._evaluate_row(repeater_key, rows[-1], {})
        return rows

    def remove_row(self, repeater_key: str, position: int) -> list[Row]:
        """
        Remove a row; remaining rows are renumbered and their flags rebuilt.

        Raises:
            RowLimitError: If the removal is refused
        """
        rows = self.rows(repeater_key).remove_row(position)
        self._rebuild_rows(repeater_key)
        return rows

    def reorder_rows(self, repeater_key: str, order: Sequence[int]) -> list[Row]:
        """
        Reorder rows; flags follow their rows to the new positions.

        Raises:
            RowLimitError: If ``order`` is not a permutation
        """
        rows = self.rows(repeater_key).reorder_rows(order)
        self._rebuild_rows(repeater_key)
        return rows

    # -------------------------------------------------------------------------
    # Lookup helpers
    # -------------------------------------------------------------------------

    def _node(self, key: str) -> SchemaNode:
        try:
            return self._nodes[key]
        except KeyError:
            raise KeyError(f"No field at path '{key}'") from None

    def _child(self, parent: SchemaNode, key: str) -> SchemaNode:
        child = parent.child(key)
        if child is None:
            raise KeyError(f"No field at path '{field_path(parent.key, key)}'")
        return child

    def _row(self, repeater_key: str, index: int) -> Row:
        rows = self.rows(repeater_key)
        if not 0 <= index < len(rows):
            raise KeyError(f"No row {index} in repeater '{repeater_key}'")
        return rows[index]
