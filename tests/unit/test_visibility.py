"""
Tests for server-side initial visibility and wrapper views.
"""

import json
from typing import Any

from metafields.core.ir import SchemaNode
from metafields.core.normalizer import normalize_schema
from metafields.runtime.context import RequestContext
from metafields.runtime.persistence import InMemoryStore
from metafields.runtime.visibility import (
    CONDITIONAL_CLASS,
    HIDDEN_CLASS,
    build_field_views,
    compute_initial_visibility,
)

DIGITAL_VALUES: dict[str, Any] = {
    "product_type": "digital",
    "weight": 1.5,
    "shipping": {"method": "express"},
    "features": [{"name": "A", "kind": "link"}, {"name": "B"}],
}

# =============================================================================
# Initial Visibility
# =============================================================================


class TestComputeInitialVisibility:
    """Tests for compute_initial_visibility."""

    def test_defaults_drive_visibility(self, product_schema: list[SchemaNode]) -> None:
        flags = compute_initial_visibility(product_schema, {})
        assert flags == {
            "product_type": True,
            "weight": True,
            "download_url": False,
            "shipping": True,
            "shipping[method]": True,
            "shipping[express_fee]": False,
            "shipping[fragile_note]": True,
            "features": True,
        }

    def test_persisted_values(self, product_schema: list[SchemaNode]) -> None:
        flags = compute_initial_visibility(product_schema, DIGITAL_VALUES)
        assert flags["weight"] is False
        assert flags["download_url"] is True
        assert flags["shipping[express_fee]"] is True
        assert flags["shipping[fragile_note]"] is False

    def test_row_conditions_use_own_row(self, product_schema: list[SchemaNode]) -> None:
        flags = compute_initial_visibility(product_schema, DIGITAL_VALUES)
        assert flags["features[0][url]"] is True
        assert flags["features[1][url]"] is False
        assert flags["features[0][name]"] is True

    def test_row_conditions_never_read_top_level(self, product_schema: list[SchemaNode]) -> None:
        values = {"product_type": "physical", "features": [{"name": "A"}]}
        flags = compute_initial_visibility(product_schema, values)
        assert flags["features[0][product_note]"] is False

    def test_store_lookup_callable(self, product_schema: list[SchemaNode]) -> None:
        store = InMemoryStore({"product_type": "digital"})
        flags = compute_initial_visibility(product_schema, store.get)
        assert flags["weight"] is False
        assert flags["download_url"] is True

    def test_none_reads_as_default(self, product_schema: list[SchemaNode]) -> None:
        flags = compute_initial_visibility(product_schema, {"product_type": None})
        assert flags["weight"] is True

    def test_malformed_rows_are_skipped(self, product_schema: list[SchemaNode]) -> None:
        flags = compute_initial_visibility(product_schema, {"features": ["junk", {"kind": "link"}]})
        assert flags["features[0][url]"] is True
        assert "features[1][url]" not in flags

    def test_null_group_child_reads_as_default(self) -> None:
        schema = normalize_schema(
            {
                "g": {
                    "type": "group",
                    "fields": {
                        "mode": {"type": "select", "options": ["a", "b"], "default": "b"},
                        "extra": {"type": "text", "show_when": {"mode": "b"}},
                    },
                }
            }
        )
        assert compute_initial_visibility(schema, {"g": {"mode": None}})["g[extra]"] is True

    def test_template_row_is_not_numbered(self, product_schema: list[SchemaNode]) -> None:
        values = {"features": {"__INDEX__": {"kind": "link"}, "0": {"name": "A", "kind": "text"}}}
        flags = compute_initial_visibility(product_schema, values)
        assert flags["features[0][url]"] is False
        assert "features[1][url]" not in flags


# =============================================================================
# Wrapper Views
# =============================================================================


class TestBuildFieldViews:
    """Tests for build_field_views."""

    def test_hidden_conditional_field_classes(self, product_schema: list[SchemaNode]) -> None:
        form = build_field_views(product_schema, {"product_type": "digital"})
        weight = next(view for view in form.fields if view.path == "weight")
        assert weight.visible is False
        assert weight.css_classes == ["mf-field mf-field--number", CONDITIONAL_CLASS, HIDDEN_CLASS]

    def test_unconditional_field_has_no_conditional_markup(self, product_schema: list[SchemaNode]) -> None:
        form = build_field_views(product_schema, {})
        product_type = form.fields[0]
        assert product_type.css_classes == ["mf-field mf-field--select"]
        assert product_type.attributes == {"data-field-key": "product_type"}
        assert product_type.value == "physical"

    def test_show_when_attribute_is_canonical_json(self, product_schema: list[SchemaNode]) -> None:
        form = build_field_views(product_schema, {})
        weight = next(view for view in form.fields if view.path == "weight")
        assert json.loads(weight.attributes["data-show-when"]) == [
            {"field": "product_type", "operator": "==", "value": "physical"}
        ]

    def test_group_children_and_repeater_rows(self, product_schema: list[SchemaNode]) -> None:
        form = build_field_views(product_schema, DIGITAL_VALUES)
        shipping = next(view for view in form.fields if view.path == "shipping")
        assert [child.path for child in shipping.children] == [
            "shipping[method]",
            "shipping[express_fee]",
            "shipping[fragile_note]",
        ]
        features = next(view for view in form.fields if view.path == "features")
        assert features.row_titles == ["Feature 1: A", "Feature 2: B"]
        assert [view.path for view in features.rows[1]] == [
            "features[1][name]",
            "features[1][kind]",
            "features[1][url]",
            "features[1][product_note]",
        ]
        assert features.rows[1][1].value == "text"

    def test_assets_emitted_once_per_request(self, product_schema: list[SchemaNode]) -> None:
        context = RequestContext()
        first = build_field_views(product_schema, {}, context)
        second = build_field_views(product_schema, {}, context)
        assert first.emit_assets is True
        assert second.emit_assets is False
        assert build_field_views(product_schema, {}, RequestContext()).emit_assets is True

    def test_permission_filtering(self) -> None:
        schema = normalize_schema({"title": {}, "secret": {"capability": "manage_options"}})
        form = build_field_views(schema, {}, RequestContext.with_capabilities(["edit_posts"]))
        assert [view.path for view in form.fields] == ["title"]
