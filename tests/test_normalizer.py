"""Tests for workflow shape validation and normalization."""

import pytest

from idlekit.exceptions import ExecutableContentDetected, WorkflowValidationError
from idlekit.types import WorkflowDefinition, WorkflowStep
from idlekit.workflows.normalizer import WorkflowNormalizer, normalize_workflow


def test_valid_workflow_normalizes(identity_workflow):
    wf = normalize_workflow(identity_workflow)
    assert isinstance(wf, WorkflowDefinition)
    assert wf.name == "Joiner - Identity"
    assert wf.version == "2"
    assert [s.name for s in wf.steps] == ["Create", "SetDepartment"]
    assert wf.steps[1].params["Name"] == "Department"
    assert [s.name for s in wf.on_failure_steps] == ["Notify"]


def test_keys_are_case_insensitive():
    wf = normalize_workflow({
        "name": "W",
        "LIFECYCLEEVENT": "Leaver",
        "steps": [{"name": "s", "TYPE": "EmitEvent", "with": {"Message": "m"}}],
    })
    assert wf.lifecycle_event == "Leaver"
    assert wf.steps[0].type == "EmitEvent"


def test_all_violations_are_reported():
    raw = {
        "Name": "",
        "LifecycleEvent": "Joiner",
        "Trigger": "cron",
        "Steps": [
            {"Name": "a", "Type": "EmitEvent"},
            {"Name": "a", "Type": ""},
            {"Name": "c", "Type": "EmitEvent", "Script": "rm -rf /"},
        ],
    }
    errors = WorkflowNormalizer().validate(raw)
    text = "\n".join(errors)
    assert "Workflow.Name" in text
    assert "Trigger" in text
    assert "duplicate step name" in text
    assert "Type is required" in text
    assert "Script" in text

    with pytest.raises(WorkflowValidationError) as exc_info:
        normalize_workflow(raw)
    assert exc_info.value.violations == errors


def test_missing_steps_is_an_error():
    errors = WorkflowNormalizer().validate({"Name": "W", "LifecycleEvent": "Joiner"})
    assert "Workflow.Steps is required." in errors


def test_requires_capabilities_cannot_be_authored():
    errors = WorkflowNormalizer().validate({
        "Name": "W", "LifecycleEvent": "Joiner",
        "Steps": [{"Name": "s", "Type": "EmitEvent", "RequiresCapabilities": ["X.Read"]}],
    })
    assert any("derived from step metadata" in e for e in errors)


def test_same_name_allowed_across_lists():
    """Uniqueness is per step list."""
    wf = normalize_workflow({
        "Name": "W", "LifecycleEvent": "Joiner",
        "Steps": [{"Name": "Notify", "Type": "EmitEvent"}],
        "OnFailureSteps": [{"Name": "Notify", "Type": "EmitEvent"}],
    })
    assert wf.steps[0].name == wf.on_failure_steps[0].name


def test_malformed_condition_is_reported():
    errors = WorkflowNormalizer().validate({
        "Name": "W", "LifecycleEvent": "Joiner",
        "Steps": [{"Name": "s", "Type": "EmitEvent", "Condition": {"Exists": "Providers.X"}}],
    })
    assert any("Steps[0].Condition" in e for e in errors)


def test_with_must_be_a_map():
    errors = WorkflowNormalizer().validate({
        "Name": "W", "LifecycleEvent": "Joiner",
        "Steps": [{"Name": "s", "Type": "EmitEvent", "With": ["x"]}],
    })
    assert any("With must be a map" in e for e in errors)


def test_step_limit():
    steps = [{"Name": f"s{i}", "Type": "EmitEvent"} for i in range(4)]
    errors = WorkflowNormalizer(max_steps=3).validate(
        {"Name": "W", "LifecycleEvent": "Joiner", "Steps": steps}
    )
    assert any("maximum allowed is 3" in e for e in errors)


def test_executable_content_is_rejected_before_shape_checks():
    with pytest.raises(ExecutableContentDetected) as exc_info:
        normalize_workflow({
            "Name": "W", "LifecycleEvent": "Joiner",
            "Steps": [{"Name": "s", "Type": "EmitEvent", "With": {"Message": print}}],
        })
    assert exc_info.value.path == "Workflow.Steps[0].With.Message"


def test_non_map_workflow():
    assert WorkflowNormalizer().validate(["not", "a", "workflow"]) == [
        "Workflow must be a map, got list."
    ]


def test_prebuilt_definition_gets_step_list_checks():
    duplicated = WorkflowDefinition(
        name="W",
        lifecycle_event="Joiner",
        steps=(WorkflowStep(name="s", type="EmitEvent"), WorkflowStep(name="s", type="EmitEvent")),
    )
    with pytest.raises(WorkflowValidationError, match="duplicate step name"):
        normalize_workflow(duplicated)

    unique = WorkflowDefinition(
        name="W",
        lifecycle_event="Joiner",
        steps=(WorkflowStep(name="s", type="EmitEvent"),),
        on_failure_steps=(WorkflowStep(name="s", type="EmitEvent"),),
    )
    assert normalize_workflow(unique) is unique
