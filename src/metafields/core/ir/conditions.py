"""
Condition types for metafields IR.

This module contains the canonical visibility condition used by both the
server-side initial render and the client-side live re-evaluation.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict


class Operator(StrEnum):
    """Comparison operators for visibility conditions."""

    EQ = "=="
    STRICT_EQ = "==="
    NEQ = "!="
    STRICT_NEQ = "!=="
    GT = ">"
    GTE = ">="
    LT = "<"
    LTE = "<="
    IN = "in"
    NOT_IN = "not_in"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    EMPTY = "empty"
    NOT_EMPTY = "not_empty"


# Spellings accepted in raw configuration besides the canonical symbols
OPERATOR_ALIASES: dict[str, Operator] = {
    "=": Operator.EQ,
    "<>": Operator.NEQ,
    "not in": Operator.NOT_IN,
    "not contains": Operator.NOT_CONTAINS,
    "not empty": Operator.NOT_EMPTY,
    **{op.name.lower(): op for op in Operator},
}


def parse_operator(raw: Any) -> str:
    """Map a raw operator spelling to its canonical symbol.

    Unrecognised spellings are returned unchanged (stripped); the evaluator
    treats them as loose equality.
    """
    if raw is None or raw == "":
        return Operator.EQ.value
    text = str(raw).strip()
    try:
        return Operator(text).value
    except ValueError:
        pass
    alias = OPERATOR_ALIASES.get(text.lower())
    if alias is not None:
        return alias.value
    return text


def is_known_operator(operator: str) -> bool:
    """Check whether an operator string is one of the canonical symbols."""
    return operator in Operator._value2member_map_


class Condition(BaseModel):
    """
    A single canonical visibility test.

    ``field`` is a local key: it is resolved against the nearest enclosing
    repeater row or group at evaluation time, never at normalization time.

    Examples:
        - product_type == "physical"
        - quantity > 3
        - status in [draft, pending]
    """

    field: str
    operator: str = Operator.EQ.value
    value: Any = ""

    model_config = ConfigDict(frozen=True)

    @property
    def op(self) -> Operator | None:
        """The operator as an enum member, or None if unrecognised."""
        if is_known_operator(self.operator):
            return Operator(self.operator)
        return None

    def to_raw(self) -> dict[str, Any]:
        """Serialize to the explicit raw shape accepted by the normalizer."""
        return {"field": self.field, "operator": str(self.operator), "value": self.value}
