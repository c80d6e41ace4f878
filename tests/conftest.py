"""Shared pytest fixtures for metafields tests."""

import copy
import logging
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import pytest

from metafields.core.ir import SchemaNode
from metafields.core.normalizer import normalize_schema

PRODUCT_FIELDS: dict[str, Any] = {
    "product_type": {
        "type": "select",
        "label": "Product Type",
        "options": {"physical": "Physical", "digital": "Digital"},
        "default": "physical",
    },
    "weight": {
        "type": "number",
        "min": 0,
        "step": 0.1,
        "show_when": {"product_type": "physical"},
    },
    "download_url": {
        "type": "url",
        "show_when": {"field": "product_type", "operator": "==", "value": "digital"},
    },
    "shipping": {
        "type": "group",
        "fields": {
            "method": {"type": "select", "options": ["standard", "express"], "default": "standard"},
            "express_fee": {"type": "number", "step": 0.01, "show_when": {"method": "express"}},
            "fragile_note": {"type": "text", "show_when": {"product_type": "physical"}},
        },
    },
    "features": {
        "type": "repeater",
        "max_items": 3,
        "row_title": "Feature {index}: {value}",
        "row_title_field": "name",
        "fields": {
            "name": {"type": "text"},
            "kind": {"type": "select", "options": ["text", "link"], "default": "text"},
            "url": {"type": "url", "show_when": {"kind": "link"}},
            "product_note": {"type": "text", "show_when": {"product_type": "physical"}},
        },
    },
}


@pytest.fixture(autouse=True)
def _restore_package_logger() -> Iterator[None]:
    """Undo handlers and levels installed by setup_logging (CLI and logging tests)."""
    logger = logging.getLogger("metafields")
    handlers, level = list(logger.handlers), logger.level
    yield
    for handler in logger.handlers:
        if handler not in handlers:
            handler.close()
    logger.handlers[:] = handlers
    logger.setLevel(level)


@pytest.fixture
def product_fields() -> dict[str, Any]:
    """Raw field declarations for a product form."""
    return copy.deepcopy(PRODUCT_FIELDS)


@pytest.fixture
def product_schema(product_fields: dict[str, Any]) -> list[SchemaNode]:
    """Normalized product form schema."""
    return normalize_schema(product_fields)


@pytest.fixture
def repeater_node() -> SchemaNode:
    """Repeater with row limits and a templated row title."""
    (node,) = normalize_schema(
        {
            "items": {
                "type": "repeater",
                "min_items": 1,
                "max_items": 2,
                "row_title": "Item {index}: {value}",
                "row_title_field": "name",
                "fields": {
                    "name": {"type": "text"},
                    "qty": {"type": "number", "min": 0},
                },
            }
        }
    )
    return node


@pytest.fixture
def form_toml(tmp_path: Path) -> Path:
    """A product form configuration file in TOML."""
    path = tmp_path / "product.toml"
    path.write_text(
        """
[form]
id = "product_info"
title = "Product Details"
content_types = ["product"]
capability = "edit_products"

[fields.product_type]
type = "select"
default = "physical"
options = { physical = "Physical", digital = "Digital" }

[fields.weight]
type = "number"
min = 0
show_when = { product_type = "physical" }

[fields.secret]
type = "text"
capability = "manage_options"

[fields.features]
type = "repeater"
row_title = "Feature {index}: {value}"
row_title_field = "name"

[fields.features.fields.name]
type = "text"
""",
        encoding="utf-8",
    )
    return path
