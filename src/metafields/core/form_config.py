"""
Form configuration.

A form is one set of fields attached to content items of some types, with
form-level defaults (title, placement, key prefix, capability). Forms can be
declared in code as plain mappings or loaded from TOML/YAML files:

    [form]
    id = "product_info"
    title = "Product Details"
    content_types = ["product"]
    prefix = "_product_"

    [fields.product_type]
    type = "select"
    options = { physical = "Physical", digital = "Digital" }

    [fields.weight]
    type = "number"
    show_when = { product_type = "physical" }
"""

from __future__ import annotations

import logging
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from metafields.core.errors import ConfigError, ErrorContext, FormConfigError
from metafields.core.ir import SchemaNode
from metafields.core.normalizer import normalize_schema

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Additional Information"
DEFAULT_CAPABILITY = "edit_posts"

_FORM_KEYS = (
    "id",
    "title",
    "content_types",
    "post_types",
    "context",
    "priority",
    "prefix",
    "capability",
    "full_width",
    "strict_operators",
)


@dataclass
class FormConfig:
    """A normalized form: its settings plus the canonical field tree."""

    id: str
    title: str = DEFAULT_TITLE
    content_types: list[str] = field(default_factory=lambda: ["post"])
    context: str = "normal"  # "normal" | "side" | "advanced"
    priority: str = "high"  # "high" | "default" | "low"
    prefix: str = ""
    capability: str = DEFAULT_CAPABILITY
    full_width: bool = False
    fields: list[SchemaNode] = field(default_factory=list)
    source: Path | None = None

    def get_field(self, key: str) -> SchemaNode | None:
        """Get a top-level field by its (prefixed) key."""
        for node in self.fields:
            if node.key == key:
                return node
        return None

    def applies_to(self, content_type: str) -> bool:
        return content_type in self.content_types


def _with_form_capability(raw_fields: Mapping[str, Any], capability: str) -> dict[str, Any]:
    """Fields without their own capability inherit the form's."""
    merged: dict[str, Any] = {}
    for key, raw in raw_fields.items():
        if isinstance(raw, Mapping) and "capability" not in raw:
            raw = {**raw, "capability": capability}
        merged[key] = raw
    return merged


def parse_form_config(
    data: Mapping[str, Any],
    form_id: str | None = None,
    source: Path | None = None,
) -> FormConfig:
    """
    Build a FormConfig from a parsed document.

    Form settings may sit under a ``form`` table or at the top level next to
    ``fields``.

    Raises:
        FormConfigError: If the document is structurally invalid
        ConfigError: If a field declaration is invalid
    """
    settings = dict(data.get("form", {}))
    for key in _FORM_KEYS:
        if key in data and key not in settings:
            settings[key] = data[key]

    form_id = form_id or settings.get("id") or (source.stem if source else "")
    if not form_id or not isinstance(form_id, str):
        raise FormConfigError("Form configuration requires an 'id'")

    content_types = settings.get("content_types", settings.get("post_types", ["post"]))
    if isinstance(content_types, str):
        content_types = [content_types]

    raw_fields = data.get("fields", {})
    if not isinstance(raw_fields, Mapping):
        raise FormConfigError(f"[{form_id}] 'fields' must be a table of field declarations")

    capability = settings.get("capability", DEFAULT_CAPABILITY)
    try:
        fields = normalize_schema(
            _with_form_capability(raw_fields, capability),
            prefix=settings.get("prefix", ""),
            strict_operators=bool(settings.get("strict_operators", False)),
        )
    except ConfigError as e:
        context = ErrorContext(
            field_path=e.context.field_path if e.context else None,
            form_id=form_id,
            file=source,
        )
        raise ConfigError(e.message, context) from e

    logger.debug("Parsed form '%s' with %d fields", form_id, len(fields))

    return FormConfig(
        id=form_id,
        title=settings.get("title", DEFAULT_TITLE),
        content_types=list(content_types),
        context=settings.get("context", "normal"),
        priority=settings.get("priority", "high"),
        prefix=settings.get("prefix", ""),
        capability=capability,
        full_width=bool(settings.get("full_width", False)),
        fields=fields,
        source=source,
    )


def _read_document(path: Path) -> Any:
    suffix = path.suffix.lower()
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise FormConfigError(f"Cannot read form configuration {path}: {e}") from e

    if suffix == ".toml":
        try:
            return tomllib.loads(content)
        except tomllib.TOMLDecodeError as e:
            raise FormConfigError(f"Invalid TOML in {path}: {e}") from e

    if suffix in (".yaml", ".yml"):
        try:
            return yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise FormConfigError(f"Invalid YAML in {path}: {e}") from e

    raise FormConfigError(f"Unsupported form configuration format: {path.suffix or path.name}")


def load_form_config(path: Path | str, form_id: str | None = None) -> FormConfig:
    """
    Load a form configuration from a ``.toml``, ``.yaml`` or ``.yml`` file.

    Args:
        path: Configuration file
        form_id: Overrides the id declared in the file (defaults to the
            declared id, then the file stem)

    Raises:
        FormConfigError: If the file cannot be read or parsed
        ConfigError: If a field declaration is invalid
    """
    path = Path(path)
    data = _read_document(path)
    if not isinstance(data, Mapping):
        raise FormConfigError(f"Empty or invalid form configuration in {path}")
    return parse_form_config(data, form_id=form_id, source=path)
