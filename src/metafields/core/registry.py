"""
Form registry.

Keeps registered forms by id for lookup by the render, save and REST
layers. A registry is an ordinary object: create one per application (or
per test) rather than sharing module-level state.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from metafields.core.form_config import FormConfig, parse_form_config
from metafields.core.ir import SchemaNode

if TYPE_CHECKING:
    from metafields.runtime.persistence import PersistenceStore

logger = logging.getLogger(__name__)


class FormRegistry:
    """Registered forms keyed by id, in registration order."""

    def __init__(self) -> None:
        self._forms: dict[str, FormConfig] = {}

    def register(self, form: FormConfig | Mapping[str, Any], form_id: str | None = None) -> FormConfig:
        """
        Register a form, replacing any form with the same id.

        Accepts a FormConfig or a raw configuration mapping, which is
        normalized first.
        """
        if not isinstance(form, FormConfig):
            form = parse_form_config(form, form_id=form_id)
        elif form_id:
            form.id = form_id
        if form.id in self._forms:
            logger.info("Replacing registered form '%s'", form.id)
        self._forms[form.id] = form
        return form

    def has(self, form_id: str) -> bool:
        return form_id in self._forms

    def get(self, form_id: str) -> FormConfig | None:
        return self._forms.get(form_id)

    def get_all(self) -> dict[str, FormConfig]:
        return dict(self._forms)

    def get_fields(self, form_id: str) -> list[SchemaNode]:
        form = self._forms.get(form_id)
        return list(form.fields) if form else []

    def get_field(self, form_id: str, key: str) -> SchemaNode | None:
        form = self._forms.get(form_id)
        return form.get_field(key) if form else None

    def find_field(self, key: str) -> tuple[str, SchemaNode] | None:
        """Find a top-level field in any form; returns (form id, node)."""
        for form_id, form in self._forms.items():
            node = form.get_field(key)
            if node is not None:
                return form_id, node
        return None

    def for_content_type(self, content_type: str) -> list[FormConfig]:
        return [form for form in self._forms.values() if form.applies_to(content_type)]

    def remove(self, form_id: str) -> bool:
        return self._forms.pop(form_id, None) is not None

    def clear(self) -> None:
        self._forms.clear()

    def count(self) -> int:
        return len(self._forms)

    def __len__(self) -> int:
        return len(self._forms)

    def __contains__(self, form_id: object) -> bool:
        return form_id in self._forms


def get_field_value(
    store: PersistenceStore,
    key: str,
    registry: FormRegistry,
    form_id: str | None = None,
) -> Any:
    """
    Read a stored field value, falling back to the registered default.

    Args:
        store: Store of the content item
        key: Top-level field key
        registry: Registry to look the default up in
        form_id: Form to search; all forms are searched when omitted

    Returns:
        The stored value, the field default, or None for unknown fields
    """
    value = store.get(key)
    if value is not None and value != "":
        return value

    if form_id:
        node = registry.get_field(form_id, key)
    else:
        found = registry.find_field(key)
        node = found[1] if found else None

    if node is not None:
        return node.default
    return value
