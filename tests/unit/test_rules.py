"""
Tests for the visibility rule evaluator.

Covers the operator truth table, operand normalization, the loose-equality
fallback for unknown operators and AND/short-circuit semantics.
"""

import logging

import pytest

from metafields.core.ir import Condition
from metafields.core.rules import evaluate_condition, is_satisfied, normalize_operand

# =============================================================================
# Operand Normalization
# =============================================================================


class TestNormalizeOperand:
    """Tests for normalize_operand."""

    def test_none_becomes_empty_string(self) -> None:
        assert normalize_operand(None) == ""

    def test_booleans_become_ints(self) -> None:
        assert normalize_operand(True) == 1
        assert normalize_operand(False) == 0

    def test_numeric_strings_become_numbers(self) -> None:
        assert normalize_operand("42") == 42
        assert normalize_operand(" 3.5 ") == 3.5
        assert normalize_operand("-7") == -7

    def test_non_numeric_strings_pass_through(self) -> None:
        assert normalize_operand("physical") == "physical"
        assert normalize_operand("") == ""
        assert normalize_operand("12abc") == "12abc"

    def test_lists_normalized_element_wise(self) -> None:
        assert normalize_operand(["1", None, "a"]) == [1, "", "a"]


# =============================================================================
# Operator Truth Table
# =============================================================================


class TestOperatorTruthTable:
    """One row per operator: (actual, operator, expected, result)."""

    @pytest.mark.parametrize(
        "actual,operator,expected,result",
        [
            # Equality (loose)
            ("physical", "==", "physical", True),
            ("physical", "==", "digital", False),
            ("5", "==", 5, True),
            (1, "==", "1", True),
            ("5.0", "==", 5, True),
            (None, "==", "", True),
            (True, "==", "1", True),
            # Strict equality
            ("yes", "===", "yes", True),
            ("yes", "===", "Yes", False),
            ("7", "===", 7, True),
            # Inequality
            ("a", "!=", "b", True),
            ("a", "!=", "a", False),
            ("x", "!==", "y", True),
            ("x", "!==", "x", False),
            # Ordering
            ("10", ">", "9", True),
            (5, ">", "3", True),
            ("9", ">", "10", False),
            (5, ">=", 5, True),
            (3, "<", 4, True),
            ("4", "<=", "3", False),
            # Ordering against non-numbers is false, never an error
            ("abc", ">", 1, False),
            ("", ">", 0, False),
            ("abc", "<", 1, False),
            # Membership
            ("b", "in", ["a", "b"], True),
            ("c", "in", ["a", "b"], False),
            ("2", "in", [1, 2], True),
            (["a", "z"], "in", ["a"], True),
            (["x", "z"], "in", ["a"], False),
            ("a", "in", "a", True),
            ("c", "not_in", ["a", "b"], True),
            ("a", "not_in", ["a", "b"], False),
            # Substring
            ("hello world", "contains", "world", True),
            ("hello", "contains", "world", False),
            (["red", "blue"], "contains", "blue", True),
            ("hello", "not_contains", "x", True),
            ("hello", "not_contains", "ell", False),
            # Emptiness
            ("", "empty", None, True),
            (None, "empty", None, True),
            ("0", "empty", None, True),
            ([], "empty", None, True),
            ("x", "empty", None, False),
            ("x", "not_empty", None, True),
            ("", "not_empty", None, False),
        ],
    )
    def test_truth_table(self, actual, operator, expected, result) -> None:
        assert evaluate_condition(actual, operator, expected) is result

    def test_unknown_operator_uses_loose_equality(self) -> None:
        assert evaluate_condition("a", "~=", "a") is True
        assert evaluate_condition("a", "~=", "b") is False
        assert evaluate_condition("3", "~=", 3) is True

    def test_unknown_operator_logged_at_debug(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.DEBUG, logger="metafields.core.rules"):
            evaluate_condition("a", "~=", "a")
        assert any("~=" in record.getMessage() for record in caplog.records)


# =============================================================================
# Condition Lists
# =============================================================================


class TestIsSatisfied:
    """Tests for AND semantics over condition lists."""

    def test_empty_list_always_passes(self) -> None:
        assert is_satisfied([], lambda field: None) is True

    def test_all_conditions_must_pass(self) -> None:
        values = {"type": "physical", "qty": "3"}
        conditions = [
            Condition(field="type", value="physical"),
            Condition(field="qty", operator=">", value=2),
        ]
        assert is_satisfied(conditions, values.get) is True

        values["qty"] = "1"
        assert is_satisfied(conditions, values.get) is False

    def test_short_circuits_on_first_failure(self) -> None:
        seen: list[str] = []

        def lookup(field: str) -> str:
            seen.append(field)
            return "nope"

        conditions = [Condition(field="first", value="yes"), Condition(field="second", value="yes")]
        assert is_satisfied(conditions, lookup) is False
        assert seen == ["first"]

    def test_missing_field_reads_as_empty(self) -> None:
        conditions = [Condition(field="absent", operator="empty")]
        assert is_satisfied(conditions, lambda field: None) is True


# =============================================================================
# Oversized Numbers
# =============================================================================


class TestOversizedNumbers:
    """Digit strings past the int conversion limit still compare."""

    def test_long_digit_string_normalizes_to_float(self) -> None:
        assert isinstance(normalize_operand("1" * 5000), float)

    def test_long_digit_string_compares_without_raising(self) -> None:
        assert evaluate_condition("1" * 5000, "==", "1") is False
        assert evaluate_condition("9" * 5000, ">", 10) is True
        assert evaluate_condition("9" * 5000, "not_empty", None) is True
