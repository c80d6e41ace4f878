"""
Tests for the live visibility controller.

The controller must agree with the server-side initial visibility for any
reachable state, re-evaluate only the affected scope, and never touch
values when hiding fields.
"""

from typing import Any

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from metafields.core.errors import RowLimitError
from metafields.core.ir import SchemaNode
from metafields.core.normalizer import normalize_schema
from metafields.runtime.controller import VisibilityController
from metafields.runtime.value_tree import sanitize_submission
from metafields.runtime.visibility import compute_initial_visibility

# =============================================================================
# Top-Level and Group Changes
# =============================================================================


class TestHandleChange:
    """Tests for handle_change outside repeaters."""

    def test_switching_controller_hides_dependent(self, product_schema: list[SchemaNode]) -> None:
        controller = VisibilityController(product_schema, {"product_type": "physical", "weight": 2})
        assert controller.is_hidden("weight") is False

        changed = controller.handle_change("product_type", "digital")

        assert changed == {"weight": False, "download_url": True, "shipping[fragile_note]": False}
        assert controller.is_hidden("weight") is True

    def test_hidden_value_is_kept_and_saved(self, product_schema: list[SchemaNode]) -> None:
        controller = VisibilityController(product_schema, {"product_type": "physical", "weight": 2})
        controller.handle_change("product_type", "digital")

        assert controller.values()["weight"] == 2
        assert sanitize_submission(product_schema, controller.values())["weight"] == 2

    def test_unrelated_change_reports_nothing(self, product_schema: list[SchemaNode]) -> None:
        controller = VisibilityController(product_schema)
        assert controller.handle_change("weight", 5) == {}

    def test_group_child_change(self, product_schema: list[SchemaNode]) -> None:
        controller = VisibilityController(product_schema)
        assert controller.is_hidden("shipping[express_fee]") is True
        assert controller.handle_change("shipping[method]", "express") == {"shipping[express_fee]": True}

    def test_null_group_change_reads_as_default(self, product_schema: list[SchemaNode]) -> None:
        controller = VisibilityController(product_schema, {"shipping": {"method": "express"}})

        assert controller.handle_change("shipping[method]", None) == {"shipping[express_fee]": False}
        assert controller.values()["shipping"]["method"] == "standard"
        assert controller.visibility() == compute_initial_visibility(product_schema, controller.values())

    def test_long_digit_input_does_not_raise(self) -> None:
        schema = normalize_schema(
            {
                "code": {"type": "text"},
                "hint": {"type": "text", "show_when": {"field": "code", "operator": ">", "value": 100}},
            }
        )
        controller = VisibilityController(schema)

        assert controller.handle_change("code", "9" * 5000) == {"hint": True}
        assert compute_initial_visibility(schema, {"code": "9" * 5000})["hint"] is True

    def test_top_level_change_leaves_rows_alone(self, product_schema: list[SchemaNode]) -> None:
        controller = VisibilityController(
            product_schema, {"product_type": "digital", "features": [{"name": "A"}]}
        )
        changed = controller.handle_change("product_type", "physical")
        assert not any(path.startswith("features[") for path in changed)
        assert controller.is_hidden("features[0][product_note]") is True

    @pytest.mark.parametrize(
        "path",
        ["nope", "shipping", "features", "shipping[nope]", "weight[x]", "features[9][name]", "features[0][nope]"],
    )
    def test_unknown_paths_raise_key_error(self, product_schema: list[SchemaNode], path: str) -> None:
        controller = VisibilityController(product_schema, {"features": [{"name": "A"}]})
        with pytest.raises(KeyError):
            controller.handle_change(path, "x")

    def test_is_hidden_unknown_path(self, product_schema: list[SchemaNode]) -> None:
        with pytest.raises(KeyError):
            VisibilityController(product_schema).is_hidden("features[0][url]")

    def test_rows_of_non_repeater(self, product_schema: list[SchemaNode]) -> None:
        with pytest.raises(KeyError):
            VisibilityController(product_schema).rows("shipping")


# =============================================================================
# Repeater Rows
# =============================================================================


class TestRowEvents:
    """Tests for row-scoped evaluation and row mutations."""

    @pytest.fixture
    def controller(self, product_schema: list[SchemaNode]) -> VisibilityController:
        return VisibilityController(
            product_schema,
            {"features": [{"name": "A", "kind": "link"}, {"name": "B"}]},
        )

    def test_initial_row_flags(self, controller: VisibilityController) -> None:
        assert controller.is_hidden("features[0][url]") is False
        assert controller.is_hidden("features[1][url]") is True

    def test_row_change_affects_only_that_row(self, controller: VisibilityController) -> None:
        changed = controller.handle_change("features[1][kind]", "link")
        assert changed == {"features[1][url]": True}
        assert controller.is_hidden("features[0][url]") is False

    def test_row_change_updates_title(self, controller: VisibilityController) -> None:
        controller.handle_change("features[1][name]", "Bolt")
        assert controller.rows("features")[1].title == "Feature 2: Bolt"

    def test_insert_evaluates_new_row(self, controller: VisibilityController) -> None:
        rows = controller.insert_row("features", {"kind": "link"})
        assert len(rows) == 3
        assert controller.is_hidden("features[2][url]") is False
        assert controller.is_hidden("features[2][product_note]") is True

    def test_refused_insert_keeps_state(self, controller: VisibilityController) -> None:
        controller.insert_row("features")
        before = controller.visibility()
        with pytest.raises(RowLimitError):
            controller.insert_row("features")
        assert controller.visibility() == before
        assert len(controller.rows("features")) == 3

    def test_remove_renumbers_flags(self, controller: VisibilityController) -> None:
        controller.remove_row("features", 0)
        assert controller.is_hidden("features[0][url]") is True
        assert "features[1][url]" not in controller.visibility()

    def test_reorder_moves_flags_with_rows(self, controller: VisibilityController) -> None:
        controller.reorder_rows("features", [1, 0])
        assert controller.is_hidden("features[0][url]") is True
        assert controller.is_hidden("features[1][url]") is False
        assert controller.values()["features"][1]["name"] == "A"

    def test_refresh_single_path(self, controller: VisibilityController) -> None:
        assert controller.refresh("features[0][url]") == {}
        assert controller.refresh("shipping[express_fee]") == {}

    def test_matches_initial_visibility_after_mutations(
        self, controller: VisibilityController, product_schema: list[SchemaNode]
    ) -> None:
        controller.insert_row("features", {"name": "C", "kind": "link"})
        controller.remove_row("features", 1)
        controller.reorder_rows("features", [1, 0])
        assert controller.visibility() == compute_initial_visibility(product_schema, controller.values())


# =============================================================================
# Property Tests
# =============================================================================

AGREEMENT_SCHEMA = normalize_schema(
    {
        "mode": {"type": "select", "options": ["a", "b", "c"], "default": "a"},
        "qty": {"type": "number", "show_when": {"field": "mode", "operator": "!=", "value": "a"}},
        "note": {"type": "text", "show_when": [{"mode": "b"}, {"field": "qty", "operator": ">", "value": 2}]},
        "box": {
            "type": "group",
            "fields": {
                "mode": {"type": "select", "options": ["x", "y"], "default": "x"},
                "size": {"type": "text", "show_when": {"mode": "y"}},
                "outer": {"type": "text", "show_when": {"qty": 3}},
            },
        },
        "lines": {
            "type": "repeater",
            "max_items": 4,
            "fields": {
                "mode": {"type": "select", "options": ["x", "y"], "default": "x"},
                "extra": {"type": "text", "show_when": {"field": "mode", "operator": "in", "value": ["y"]}},
                "outer": {"type": "text", "show_when": {"field": "qty", "operator": "empty"}},
            },
        },
    }
)

changes = st.one_of(
    st.tuples(st.just("mode"), st.sampled_from(["a", "b", "c", ""])),
    st.tuples(st.just("qty"), st.sampled_from(["", "1", "3", "10", 3])),
    st.tuples(st.just("box[mode]"), st.sampled_from(["x", "y", "", None])),
    st.tuples(st.just("lines[0][mode]"), st.sampled_from(["x", "y", None])),
)

initial_rows = st.lists(
    st.fixed_dictionaries({"mode": st.sampled_from(["x", "y"])}),
    min_size=1,
    max_size=3,
)


class TestControllerProperties:
    """The live controller agrees with the server-side initial computation."""

    @given(initial_rows, st.lists(changes, max_size=10), st.booleans())
    @settings(max_examples=100)
    def test_agrees_with_initial_visibility(
        self,
        rows: list[dict[str, Any]],
        events: list[tuple[str, Any]],
        insert: bool,
    ) -> None:
        controller = VisibilityController(AGREEMENT_SCHEMA, {"lines": rows})
        assert controller.visibility() == compute_initial_visibility(AGREEMENT_SCHEMA, controller.values())

        for path, value in events:
            controller.handle_change(path, value)
            assert controller.visibility() == compute_initial_visibility(AGREEMENT_SCHEMA, controller.values())

        if insert:
            controller.insert_row("lines", {"mode": "y"})
            assert controller.visibility() == compute_initial_visibility(AGREEMENT_SCHEMA, controller.values())
