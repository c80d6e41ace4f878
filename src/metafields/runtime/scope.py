"""
Scope resolution for visibility conditions.

A condition names its controller field by local key. Where that key is
looked up depends on where the conditional field lives:

- ROW: the enclosing repeater row only. Never falls back to the top level,
  so one row's rule cannot bind to another row's sibling or to a same-named
  top-level field.
- GROUP: the enclosing group record, then the top level.
- FORM: the top level.

Both the server-side initial render and the live controller build their
lookups here, which is what keeps the two contexts in agreement.

Field paths use the submitted input naming: ``key``, ``group[child]`` and
``repeater[index][child]``.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

_PATH_RE = re.compile(r"^([^\[\]]+)((?:\[[^\[\]]*\])*)$")
_SEGMENT_RE = re.compile(r"\[([^\[\]]*)\]")

TopLevelLookup = Callable[[str], Any]


class Scope(StrEnum):
    """Kind of enclosing context a conditional field is evaluated in."""

    FORM = "form"
    GROUP = "group"
    ROW = "row"


class _Missing:
    """Sentinel for a controller field that could not be found in scope."""

    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()


@dataclass(frozen=True)
class EvaluationScope:
    """
    Where a conditional field looks up its controller values.

    Attributes:
        kind: FORM, GROUP or ROW
        top: Top-level lookup returning MISSING for unknown keys
        local: The enclosing group record or repeater row
    """

    kind: Scope
    top: TopLevelLookup
    local: Mapping[str, Any] | None = None

    def resolve(self, field: str) -> Any:
        """Find a controller value, or MISSING when it is not in scope."""
        if self.kind in (Scope.GROUP, Scope.ROW) and self.local is not None and field in self.local:
            return self.local[field]
        if self.kind == Scope.ROW:
            return MISSING
        return self.top(field)

    def lookup(self, field: str) -> Any:
        """Lookup suitable for the rule evaluator (not found reads as empty)."""
        value = self.resolve(field)
        return None if value is MISSING else value


def form_scope(top: TopLevelLookup) -> EvaluationScope:
    return EvaluationScope(Scope.FORM, top)


def group_scope(top: TopLevelLookup, record: Mapping[str, Any]) -> EvaluationScope:
    return EvaluationScope(Scope.GROUP, top, record)


def row_scope(top: TopLevelLookup, row: Mapping[str, Any]) -> EvaluationScope:
    return EvaluationScope(Scope.ROW, top, row)


def mapping_lookup(values: Mapping[str, Any]) -> TopLevelLookup:
    """Top-level lookup over a plain value mapping."""

    def lookup(field: str) -> Any:
        return values.get(field, MISSING)

    return lookup


# =============================================================================
# Field Paths
# =============================================================================


def field_path(key: str, *segments: str | int) -> str:
    """Build a field path, e.g. ``field_path("items", 0, "name")`` -> ``items[0][name]``."""
    return key + "".join(f"[{segment}]" for segment in segments)


def parse_path(path: str) -> tuple[str | int, ...]:
    """
    Split a field path into its segments.

    Numeric bracket segments become ints: ``items[2][name]`` ->
    ``("items", 2, "name")``.

    Raises:
        ValueError: If the path is not well formed
    """
    match = _PATH_RE.match(path)
    if not match:
        raise ValueError(f"Malformed field path: {path!r}")
    segments: list[str | int] = [match.group(1)]
    for segment in _SEGMENT_RE.findall(match.group(2)):
        segments.append(int(segment) if segment.isdigit() else segment)
    return tuple(segments)
