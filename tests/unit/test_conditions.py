"""Tests for the condition evaluator."""

import pytest

from breezeflow.conditions import evaluate_condition
from breezeflow.contracts import ConditionOperator


def test_equals_is_case_sensitive_string_comparison():
    assert evaluate_condition("1", "equals", "1")
    assert evaluate_condition(1, "equals", "1")
    assert not evaluate_condition("Acme", "equals", "acme")
    assert evaluate_condition(True, ConditionOperator.EQUALS, "true")


def test_not_equals():
    assert evaluate_condition("a", "not_equals", "b")
    assert not evaluate_condition("a", "not_equals", "a")


def test_contains():
    assert evaluate_condition("objection_price", "contains", "objection")
    assert not evaluate_condition("question", "contains", "objection")
    assert evaluate_condition(None, "contains", "")


def test_numeric_comparisons():
    assert evaluate_condition("10", "greater_than", "9")
    assert evaluate_condition(2.5, "less_than", "3")
    assert not evaluate_condition("3", "less_than", "3")


@pytest.mark.parametrize("left, right", [("abc", "1"), ("1", "x"), ("", "0"), (None, "1"), ("nan", "1"), (True, "0")])
def test_malformed_numbers_are_false(left, right):
    assert evaluate_condition(left, "greater_than", right) is False
    assert evaluate_condition(left, "less_than", right) is False


def test_emptiness_ignores_right_side():
    assert evaluate_condition("", "is_empty", "whatever")
    assert evaluate_condition(None, "is_empty")
    assert not evaluate_condition(" ", "is_empty")
    assert evaluate_condition("x", "is_not_empty")
    assert not evaluate_condition("", "is_not_empty")


def test_unknown_operator_is_false():
    assert evaluate_condition("a", "matches_regex", "a") is False
    assert evaluate_condition("a", None, "a") is False


@pytest.mark.parametrize("operator", [op.value for op in ConditionOperator] + ["bogus"])
@pytest.mark.parametrize("left", ["", "1", "abc", None, 3, {"a": 1}, [1, 2], float("inf")])
def test_evaluator_is_total(operator, left):
    result = evaluate_condition(left, operator, "1")
    assert isinstance(result, bool)
