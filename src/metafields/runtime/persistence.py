"""
Persistence of clean value trees.

The store itself is an external collaborator; this module defines its
interface, an in-memory implementation and the save step that turns a
clean value tree into store writes.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Mapping, Sequence
from typing import Any, Protocol, runtime_checkable

from metafields.core.ir import BOOLEAN_KINDS, FieldKind, SchemaNode

logger = logging.getLogger(__name__)


@runtime_checkable
class PersistenceStore(Protocol):
    """Key/value storage for one content item's field values."""

    def get(self, key: str) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...

    def delete(self, key: str) -> None: ...


class InMemoryStore:
    """
    Dict-backed PersistenceStore.

    Values are deep-copied on the way in and out so callers cannot mutate
    stored state through a returned reference.
    """

    def __init__(self, initial: Mapping[str, Any] | None = None):
        self._data: dict[str, Any] = copy.deepcopy(dict(initial or {}))

    def get(self, key: str) -> Any:
        return copy.deepcopy(self._data.get(key))

    def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)

    def as_dict(self) -> dict[str, Any]:
        return copy.deepcopy(self._data)


def is_empty_value(value: Any) -> bool:
    """Values that are deleted from the store instead of written."""
    if value is None or value == "":
        return True
    if isinstance(value, (list, tuple, dict)) and not value:
        return True
    return False


def persist_values(
    store: PersistenceStore,
    schema: Sequence[SchemaNode],
    clean: Mapping[str, Any],
) -> dict[str, str]:
    """
    Write a clean value tree to a store.

    - checkbox/toggle values are always written (0 included)
    - amount_type writes the amount and its unit under ``type_meta_key``,
      or deletes both when there is no amount
    - other empty values are deleted
    - fields absent from ``clean`` (e.g. permission-filtered) are untouched

    Returns:
        Mapping of store key -> "set" or "delete"
    """
    actions: dict[str, str] = {}

    for node in schema:
        if node.key not in clean:
            continue
        value = clean[node.key]

        if node.kind in BOOLEAN_KINDS:
            store.set(node.key, value)
            actions[node.key] = "set"
            continue

        if node.kind == FieldKind.AMOUNT_TYPE:
            record = value if isinstance(value, Mapping) else {}
            if record.get("amount") is None:
                store.delete(node.key)
                store.delete(node.type_meta_key)
                actions[node.key] = actions[node.type_meta_key] = "delete"
            else:
                store.set(node.key, record["amount"])
                store.set(node.type_meta_key, record.get("type", ""))
                actions[node.key] = actions[node.type_meta_key] = "set"
            continue

        if is_empty_value(value):
            store.delete(node.key)
            actions[node.key] = "delete"
        else:
            store.set(node.key, value)
            actions[node.key] = "set"

    logger.debug(
        "Persisted %d keys (%d deleted)",
        len(actions),
        sum(1 for action in actions.values() if action == "delete"),
    )
    return actions


def load_values(store: PersistenceStore, schema: Sequence[SchemaNode]) -> dict[str, Any]:
    """
    Read a form's value tree back from a store.

    An amount_type is reassembled into its ``{amount, type}`` record.
    """
    values: dict[str, Any] = {}
    for node in schema:
        value = store.get(node.key)
        if node.kind == FieldKind.AMOUNT_TYPE and value is not None:
            value = {"amount": value, "type": store.get(node.type_meta_key) or node.type_default}
        values[node.key] = value
    return values
