"""Tests for declarative condition parsing and evaluation."""

import pytest

from idlekit.core.conditions import (
    AllCondition,
    EqualsCondition,
    ExistsCondition,
    evaluate_condition,
    parse_condition,
)
from idlekit.core.templates import request_bindings
from idlekit.exceptions import ConditionError


@pytest.fixture
def scope(joiner_request):
    scope = request_bindings(joiner_request)
    scope["Plan"] = {"WorkflowName": "Joiner - Standard", "LifecycleEvent": "Joiner"}
    return scope


def _eval(raw, scope):
    return evaluate_condition(parse_condition(raw), scope)


# ── Parsing ──────────────────────────────────────────────────────────────────


def test_parse_equals():
    node = parse_condition({"Equals": {"Path": "Request.LifecycleEvent", "Value": "Joiner"}})
    assert node == EqualsCondition(path="Request.LifecycleEvent", value="Joiner")


def test_operator_and_operand_keys_are_case_insensitive():
    node = parse_condition({"equals": {"path": "Request.Actor", "VALUE": "hr-system"}})
    assert isinstance(node, EqualsCondition)


def test_exists_accepts_bare_path():
    assert parse_condition({"Exists": "Request.DesiredState.Manager"}) == ExistsCondition(
        path="Request.DesiredState.Manager"
    )


def test_composite_parses_children():
    node = parse_condition({"All": [
        {"Exists": "Request.Actor"},
        {"In": {"Path": "Request.LifecycleEvent", "Values": ["Joiner", "Mover"]}},
    ]})
    assert isinstance(node, AllCondition)
    assert len(node.items) == 2


def test_unknown_operator_raises():
    with pytest.raises(ConditionError, match="unknown condition operator"):
        parse_condition({"Matches": {"Path": "Request.Actor", "Value": ".*"}})


def test_multiple_operator_keys_raise():
    with pytest.raises(ConditionError, match="exactly one"):
        parse_condition({"Exists": "Request.Actor", "Equals": {"Path": "Request.Actor", "Value": "x"}})


def test_disallowed_root_raises():
    """Provider internals are never reachable from conditions."""
    with pytest.raises(ConditionError, match="must start with"):
        parse_condition({"Exists": "Providers.Identity.Token"})


def test_missing_operand_raises():
    with pytest.raises(ConditionError, match="missing"):
        parse_condition({"Equals": {"Path": "Request.Actor"}})


def test_error_path_names_location():
    with pytest.raises(ConditionError) as exc_info:
        parse_condition({"All": [{"Exists": "Request.Actor"}, {"Bogus": 1}]}, "Steps[3].Condition")
    assert exc_info.value.path.startswith("Steps[3].Condition.All[1]")


# ── Evaluation ───────────────────────────────────────────────────────────────


def test_equals_is_case_insensitive_for_strings(scope):
    assert _eval({"Equals": {"Path": "Request.LifecycleEvent", "Value": "JOINER"}}, scope)


def test_equals_does_not_coerce_bools(scope):
    scope["Request"]["DesiredState"]["Licensed"] = True
    assert _eval({"Equals": {"Path": "Request.DesiredState.Licensed", "Value": True}}, scope)
    assert not _eval({"Equals": {"Path": "Request.DesiredState.Licensed", "Value": "True"}}, scope)


def test_not_equals_on_missing_path_is_true(scope):
    assert _eval({"NotEquals": {"Path": "Request.DesiredState.Manager", "Value": "x"}}, scope)


def test_exists(scope):
    assert _eval({"Exists": "Request.DesiredState.Department"}, scope)
    assert not _eval({"Exists": "Request.DesiredState.Manager"}, scope)


def test_in(scope):
    assert _eval({"In": {"Path": "Request.LifecycleEvent", "Values": ["Mover", "joiner"]}}, scope)
    assert not _eval({"In": {"Path": "Request.LifecycleEvent", "Values": ["Leaver"]}}, scope)


def test_plan_root(scope):
    assert _eval({"Equals": {"Path": "Plan.WorkflowName", "Value": "Joiner - Standard"}}, scope)


def test_any_and_none(scope):
    missing = {"Exists": "Request.DesiredState.Manager"}
    present = {"Exists": "Request.Actor"}
    assert _eval({"Any": [missing, present]}, scope)
    assert not _eval({"None": [missing, present]}, scope)
    assert _eval({"None": [missing]}, scope)
