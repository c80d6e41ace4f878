"""
Value tree sanitizer.

Walks a canonical schema tree and a raw submitted value tree in lockstep and
produces a clean value tree whose shape always matches the schema:

- a group yields a full record (every child key, no extra keys)
- a repeater yields only the rows that pass the row-content test
- scalars yield whatever their kind sanitizer (or override) returns

Untrusted input never raises: unknown keys are dropped, malformed rows are
skipped and wrong-shape values fall back to field defaults.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import TYPE_CHECKING, Any

from metafields.core.ir import (
    ROW_INDEX_PLACEHOLDER,
    FieldKind,
    ResolvedSanitizer,
    SchemaNode,
)
from metafields.runtime.field_sanitizers import SCALAR_SANITIZERS, KindSanitizer, has_content

if TYPE_CHECKING:
    from metafields.runtime.context import RequestContext

logger = logging.getLogger(__name__)


# =============================================================================
# Containers
# =============================================================================


def child_raw_value(node: SchemaNode, record: Mapping[str, Any]) -> Any:
    """
    Pick a child's raw value out of its enclosing record.

    Missing or null keys fall back to the child's default. An amount_type submitted
    as a bare amount picks up its unit from the companion ``type_meta_key``.
    """
    raw = record.get(node.key)
    if raw is None:
        raw = node.default
    if node.kind == FieldKind.AMOUNT_TYPE and not isinstance(raw, Mapping):
        raw = {"amount": raw, "type": record.get(node.type_meta_key)}
    return raw


def sanitize_record(children: Iterable[SchemaNode], raw: Any) -> dict[str, Any]:
    """Sanitize a keyed record against a list of child nodes."""
    record = raw if isinstance(raw, Mapping) else {}
    return {node.key: sanitize(node, child_raw_value(node, record)) for node in children}


def sanitize_group(value: Any, node: SchemaNode) -> dict[str, Any]:
    """Groups always return a full record, never a partial or dropped one."""
    return sanitize_record(node.children, value)


def _iter_rows(value: Any) -> Iterable[tuple[str, Any]]:
    if isinstance(value, Mapping):
        for marker, row in value.items():
            yield str(marker), row
    elif isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
        for position, row in enumerate(value):
            yield str(position), row


def sanitize_repeater(value: Any, node: SchemaNode) -> list[dict[str, Any]]:
    """
    Sanitize repeater rows and keep only rows with content.

    Rows keyed by the unresolved template placeholder are skipped, as are
    rows that are not records. After filtering, the result is truncated to
    ``max_items`` when a cap is set.
    """
    rows: list[dict[str, Any]] = []
    dropped = 0

    for marker, raw_row in _iter_rows(value):
        if ROW_INDEX_PLACEHOLDER in marker:
            continue
        if not isinstance(raw_row, Mapping):
            dropped += 1
            continue

        clean_row = sanitize_record(node.children, raw_row)
        if any(has_content(child, clean_row[child.key]) for child in node.children):
            rows.append(clean_row)
        else:
            dropped += 1

    if dropped:
        logger.debug("Repeater '%s': dropped %d empty or malformed rows", node.key, dropped)

    if node.max_items > 0 and len(rows) > node.max_items:
        logger.debug("Repeater '%s': truncating %d rows to %d", node.key, len(rows), node.max_items)
        rows = rows[: node.max_items]

    return rows


KIND_SANITIZERS: dict[FieldKind, KindSanitizer] = {
    **SCALAR_SANITIZERS,
    FieldKind.GROUP: sanitize_group,
    FieldKind.REPEATER: sanitize_repeater,
}

_unhandled = set(FieldKind) - set(KIND_SANITIZERS)
if _unhandled:
    raise RuntimeError(f"No sanitizer registered for kinds: {sorted(_unhandled)}")


# =============================================================================
# Public API
# =============================================================================


def resolve_sanitizer(
    kind: FieldKind,
    callback: Callable[[Any], Any] | None = None,
) -> ResolvedSanitizer:
    """Resolve the sanitizer for a node: the override if given, else the kind default."""
    if callback is not None:
        return ResolvedSanitizer(callback, is_override=True)
    return ResolvedSanitizer(KIND_SANITIZERS[kind])


def sanitize(node: SchemaNode, raw: Any) -> Any:
    """Sanitize one node's raw value, recursing into containers."""
    sanitizer = node.sanitizer or resolve_sanitizer(node.kind, node.sanitize_callback)
    return sanitizer(raw, node)


def sanitize_submission(
    schema: Sequence[SchemaNode],
    raw_submission: Any,
    *,
    context: RequestContext | None = None,
) -> dict[str, Any]:
    """
    Sanitize a whole form submission into a clean value tree.

    Fields the context's permission check rejects are treated as absent:
    they do not appear in the output at all.

    Args:
        schema: Normalized top-level nodes
        raw_submission: Submitted data keyed by top-level field key
        context: Optional request context providing the permission check

    Returns:
        Clean value tree keyed by top-level field key
    """
    nodes = [node for node in schema if context is None or context.can_access(node.capability)]
    return sanitize_record(nodes, raw_submission)
