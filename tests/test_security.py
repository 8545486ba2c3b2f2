"""Tests for the data-only security gate."""

from dataclasses import dataclass
from datetime import datetime, timezone

import pytest

from idlekit.core.security import assert_data_map, assert_data_only, is_data_only, require_operation
from idlekit.exceptions import (
    EventSinkError,
    ExecutableContentDetected,
    SecurityViolation,
    WorkflowValidationError,
)


def test_plain_data_passes():
    assert_data_only({
        "Name": "Joiner",
        "Steps": [{"With": {"Count": 1, "Ratio": 0.5, "On": True, "Nothing": None}}],
        "When": datetime(2024, 1, 1, tzinfo=timezone.utc),
    })


def test_lambda_is_rejected_with_exact_path():
    raw = {"Steps": [{"Name": "a"}, {"With": {"Filter": lambda x: x}}]}
    with pytest.raises(ExecutableContentDetected) as exc_info:
        assert_data_only(raw, "Workflow")
    assert exc_info.value.path == "Workflow.Steps[1].With.Filter"


def test_callable_object_is_rejected():
    class Hook:
        def __call__(self):
            return None

    with pytest.raises(ExecutableContentDetected):
        assert_data_only({"Hook": Hook()})


def test_code_object_is_rejected():
    code = compile("1 + 1", "<test>", "eval")
    with pytest.raises(ExecutableContentDetected):
        assert_data_only([code])


def test_dataclass_fields_are_walked():
    @dataclass
    class Options:
        retries: int
        on_error: object

    with pytest.raises(ExecutableContentDetected) as exc_info:
        assert_data_only(Options(retries=1, on_error=print), "Options")
    assert exc_info.value.path == "Options.on_error"


def test_self_referencing_structure_terminates():
    data = {"a": 1}
    data["self"] = data
    assert is_data_only(data)


def test_security_violation_hierarchy():
    """Executable content errors are security violations, not validation errors."""
    with pytest.raises(SecurityViolation):
        assert_data_only({"x": len})


def test_assert_data_map_requires_mapping():
    assert_data_map(None, "Options")
    with pytest.raises(WorkflowValidationError):
        assert_data_map(["not", "a", "map"], "Options")


def test_require_operation_rejects_inline_callables():
    with pytest.raises(EventSinkError, match="inline callable"):
        require_operation(lambda *a: None, "write_event", "Event sink", error_cls=EventSinkError)


def test_require_operation_accepts_objects(sink):
    require_operation(sink, "write_event", "Event sink")
