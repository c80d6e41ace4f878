"""
Row index coordinator for repeater fields.

Keeps the ordered row list of one repeater instance and its input names in
lockstep. Row identity is position only: after every insert, remove or
reorder, each row's index equals its position and every input name's first
bracketed index segment is rewritten to match, so the submitted value tree
always reflects the visual order.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from metafields.core.errors import ErrorContext, RowLimitError
from metafields.core.ir import ROW_INDEX_PLACEHOLDER, SchemaNode
from metafields.runtime.scope import field_path

logger = logging.getLogger(__name__)

# First bracketed numeric segment of an input name
_INDEX_SEGMENT_RE = re.compile(r"\[\d+\]")

# "{value}" together with any colon/whitespace run in front of it
_VALUE_SEGMENT_RE = re.compile(r"[:\s]*\{value\}")


def row_title(node: SchemaNode, values: Mapping[str, Any], index: int | None) -> str:
    """
    Compute the display title of a repeater row.

    ``{index}`` is replaced with the 1-based position (``#`` for the template
    row). ``{value}`` is replaced with the ``row_title_field`` value; when
    that value is empty the placeholder and its preceding separator are
    removed. Without a pattern the value itself is the title, falling back
    to "Item N".
    """
    display_index = "#" if index is None else str(index + 1)

    value = ""
    if node.row_title_field:
        raw = values.get(node.row_title_field)
        if raw not in (None, "", 0, "0", [], {}):
            value = str(raw)

    if node.row_title:
        title = node.row_title.replace("{index}", display_index)
        if value:
            title = title.replace("{value}", value)
        else:
            title = _VALUE_SEGMENT_RE.sub("", title)
        return title.strip()

    if value:
        return value

    return f"Item {display_index}"


def renumber_name(name: str, index: int) -> str:
    """Rewrite the row index of an input name (placeholder or first numeric segment)."""
    placeholder = f"[{ROW_INDEX_PLACEHOLDER}]"
    if placeholder in name:
        return name.replace(placeholder, f"[{index}]", 1)
    return _INDEX_SEGMENT_RE.sub(f"[{index}]", name, count=1)


@dataclass
class Row:
    """
    One repeater row.

    Attributes:
        index: Position within the repeater (kept equal to position)
        values: Child key -> current value
        names: Child key -> submitted input name
        title: Display title, recomputed on every renumbering
    """

    index: int
    values: dict[str, Any]
    names: dict[str, str] = field(default_factory=dict)
    title: str = ""


class RepeaterRows:
    """
    Ordered rows of one repeater instance.

    Mutations either apply completely and renumber every row, or are
    refused with RowLimitError and leave the rows untouched.
    """

    def __init__(self, node: SchemaNode, rows: Iterable[Mapping[str, Any]] | None = None):
        if not node.is_repeater:
            raise ValueError(f"Field '{node.key}' is not a repeater")
        self.node = node
        self._rows: list[Row] = []
        for values in rows or ():
            row = self._new_row(len(self._rows))
            row.values.update({key: value for key, value in values.items() if key in row.values})
            self._rows.append(row)
        self._renumber()

    def __len__(self) -> int:
        return len(self._rows)

    def __iter__(self) -> Iterator[Row]:
        return iter(self._rows)

    def __getitem__(self, position: int) -> Row:
        return self._rows[position]

    def __repr__(self) -> str:
        return f"RepeaterRows({self.node.key!r}, rows={len(self._rows)})"

    @property
    def rows(self) -> list[Row]:
        return list(self._rows)

    def values(self) -> list[dict[str, Any]]:
        """Current row values in visual order."""
        return [dict(row.values) for row in self._rows]

    def template(self) -> Row:
        """The unnumbered template row new rows are cloned from."""
        names = {
            child.key: field_path(self.node.key, ROW_INDEX_PLACEHOLDER, child.key)
            for child in self.node.children
        }
        values = self.node.row_template()
        return Row(index=-1, values=values, names=names, title=row_title(self.node, values, None))

    # -------------------------------------------------------------------------
    # Limits
    # -------------------------------------------------------------------------

    def can_insert(self) -> bool:
        return self.node.max_items <= 0 or len(self._rows) < self.node.max_items

    def can_remove(self) -> bool:
        return self.node.min_items <= 0 or len(self._rows) > self.node.min_items

    def _refuse(self, message: str) -> RowLimitError:
        logger.info("Repeater '%s': %s", self.node.key, message)
        return RowLimitError(message, ErrorContext(field_path=self.node.key))

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def insert_row(self, values: Mapping[str, Any] | None = None) -> list[Row]:
        """
        Append a row cloned from the template.

        Raises:
            RowLimitError: If the repeater already holds max_items rows
        """
        if not self.can_insert():
            raise self._refuse(f"Maximum of {self.node.max_items} items reached")
        row = self._new_row(len(self._rows))
        if values:
            row.values.update({key: value for key, value in values.items() if key in row.values})
        self._rows.append(row)
        self._renumber()
        return self.rows

    def remove_row(self, position: int) -> list[Row]:
        """
        Remove the row at a position.

        Raises:
            RowLimitError: If removal would go below min_items or the position
                does not exist
        """
        if not 0 <= position < len(self._rows):
            raise self._refuse(f"No row at position {position}")
        if not self.can_remove():
            raise self._refuse(f"Minimum of {self.node.min_items} items required")
        del self._rows[position]
        self._renumber()
        return self.rows

    def reorder_rows(self, order: Sequence[int]) -> list[Row]:
        """
        Reorder rows; ``order[i]`` is the current position of the row that
        should end up at position ``i``.

        Raises:
            RowLimitError: If ``order`` is not a permutation of the positions
        """
        if sorted(order) != list(range(len(self._rows))):
            raise self._refuse(f"Invalid row order {list(order)!r}")
        self._rows = [self._rows[position] for position in order]
        self._renumber()
        return self.rows

    def set_value(self, position: int, key: str, value: Any) -> Row:
        """Update one child value; the title follows when it is the title field."""
        row = self._rows[position]
        if key not in row.values:
            raise KeyError(f"Repeater '{self.node.key}' has no child field '{key}'")
        row.values[key] = value
        row.title = row_title(self.node, row.values, row.index)
        return row

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _new_row(self, index: int) -> Row:
        template = self.template()
        names = {key: renumber_name(name, index) for key, name in template.names.items()}
        return Row(index=index, values=template.values, names=names)

    def _renumber(self) -> None:
        for index, row in enumerate(self._rows):
            row.index = index
            row.names = {key: renumber_name(name, index) for key, name in row.names.items()}
            row.title = row_title(self.node, row.values, index)
