"""Tests for PlanBuilder: templates, conditions, metadata and capabilities at build time."""

import pytest

from idlekit.api import new_lifecycle_request, new_plan
from idlekit.exceptions import (
    ExecutableContentDetected,
    MissingCapabilities,
    MissingStepTypeMetadata,
    TemplateError,
    WorkflowValidationError,
)
from idlekit.types import Plan, PlanStepStatus
from idlekit.workflows.planner import PlanBuilder


def _conditional_workflow(condition):
    return {
        "Name": "Mover",
        "LifecycleEvent": "Joiner",
        "Steps": [
            {"Name": "Always", "Type": "EmitEvent", "With": {"Message": "hi"}},
            {
                "Name": "Disable",
                "Type": "DisableIdentity",
                "With": {"IdentityKey": "{{Request.IdentityKeys.EmployeeId}}"},
                "Condition": condition,
            },
        ],
    }


def test_build_resolves_templates(identity_workflow, joiner_request, provider):
    plan = PlanBuilder().build(identity_workflow, joiner_request, {"Identity": provider})
    assert isinstance(plan, Plan)
    create = plan.steps[0]
    assert create.status == PlanStepStatus.RUN
    assert create.params == {"IdentityKey": "42", "Attributes": {"DisplayName": "Ada Lovelace"}}
    assert plan.steps[1].params["Value"] == "R&D"
    assert plan.workflow_version == "2"
    assert plan.correlation_id == "corr-0001"


def test_plan_records_required_and_available(identity_workflow, joiner_request, provider):
    plan = new_plan(identity_workflow, joiner_request, {"Identity": provider})
    assert plan.steps[0].requires_capabilities == ("IdLE.Identity.Create",)
    assert plan.capabilities.required == ("IdLE.Identity.Attribute.Ensure", "IdLE.Identity.Create")
    assert "IdLE.Identity.Disable" in plan.capabilities.available


def test_false_condition_marks_step_skip(joiner_request):
    condition = {"Equals": {"Path": "Request.LifecycleEvent", "Value": "Leaver"}}
    plan = new_plan(_conditional_workflow(condition), joiner_request, {})
    skipped = plan.steps[1]
    assert skipped.status == PlanStepStatus.SKIP
    assert "Condition not met" in skipped.reason
    # Skip steps do not count towards required capabilities.
    assert skipped.requires_capabilities == ()
    assert plan.capabilities.required == ()


def test_true_condition_requires_capabilities(joiner_request, make_provider):
    condition = {"Equals": {"Path": "Request.LifecycleEvent", "Value": "joiner"}}
    with pytest.raises(MissingCapabilities) as exc_info:
        new_plan(_conditional_workflow(condition), joiner_request, {"P": make_provider("X.Read")})
    assert exc_info.value.affected_steps == ["Disable"]


def test_on_failure_steps_always_count(joiner_request):
    workflow = {
        "Name": "W", "LifecycleEvent": "Joiner",
        "Steps": [{"Name": "a", "Type": "EmitEvent"}],
        "OnFailureSteps": [
            {
                "Name": "Rollback", "Type": "DeleteIdentity",
                "With": {"IdentityKey": "42"},
                "Condition": {"Exists": "Request.DesiredState.Nope"},
            },
        ],
    }
    with pytest.raises(MissingCapabilities) as exc_info:
        new_plan(workflow, joiner_request, {})
    assert exc_info.value.missing == ["IdLE.Identity.Delete"]
    assert exc_info.value.affected_steps == ["Rollback"]


def test_condition_on_plan_root(joiner_request, make_provider):
    condition = {"Equals": {"Path": "Plan.WorkflowName", "Value": "Mover"}}
    plan = new_plan(_conditional_workflow(condition), joiner_request, {"Identity": make_provider("IdLE.Identity.Disable")})
    assert plan.steps[1].status == PlanStepStatus.RUN


def test_unresolvable_template_fails_build(joiner_workflow, joiner_request):
    joiner_workflow["Steps"][0]["With"]["Message"] = "Hi {{Request.DesiredState.Manager}}"
    with pytest.raises(TemplateError):
        new_plan(joiner_workflow, joiner_request)


def test_unknown_step_type_fails_build(joiner_workflow, joiner_request):
    joiner_workflow["Steps"].append({"Name": "x", "Type": "Custom.Unknown"})
    with pytest.raises(MissingStepTypeMetadata) as exc_info:
        new_plan(joiner_workflow, joiner_request)
    assert exc_info.value.step_types == ["Custom.Unknown"]


def test_host_metadata_supplement(joiner_workflow, joiner_request, make_provider):
    joiner_workflow["Steps"].append({"Name": "sync", "Type": "Custom.Sync"})
    providers = {
        "Hr": make_provider("Hr.Read"),
        "StepMetadata": {"Custom.Sync": {"RequiredCapabilities": ["Hr.Read"]}},
    }
    plan = new_plan(joiner_workflow, joiner_request, providers)
    assert plan.steps[1].requires_capabilities == ("Hr.Read",)


def test_lifecycle_event_mismatch_fails(joiner_workflow):
    request = new_lifecycle_request("Leaver")
    with pytest.raises(WorkflowValidationError, match="lifecycle event"):
        new_plan(joiner_workflow, request)


def test_lifecycle_event_match_is_case_insensitive(joiner_workflow):
    plan = new_plan(joiner_workflow, new_lifecycle_request("joiner"))
    assert plan.lifecycle_event == "Joiner"


def test_executable_provider_config_is_rejected(joiner_workflow, joiner_request):
    with pytest.raises(ExecutableContentDetected):
        new_plan(joiner_workflow, joiner_request, {"Config": {"OnConnect": lambda: None}})


def test_deprecated_capability_adds_plan_warning(joiner_workflow, joiner_request, make_provider):
    joiner_workflow["Steps"].append({"Name": "mbx", "Type": "Custom.Mailbox"})
    providers = {
        "Exchange": make_provider("IdLE.Mailbox.Info.Read"),
        "StepMetadata": {"Custom.Mailbox": {"RequiredCapabilities": ["IdLE.Mailbox.Read"]}},
    }
    plan = new_plan(joiner_workflow, joiner_request, providers)
    assert plan.steps[1].requires_capabilities == ("IdLE.Mailbox.Info.Read",)
    assert len(plan.warnings) == 1
    assert plan.capabilities.remapped == {"IdLE.Mailbox.Read": "IdLE.Mailbox.Info.Read"}


def test_plan_snapshot_is_isolated_from_request(joiner_workflow):
    desired = {"Department": "R&D", "Groups": ["staff"]}
    request = new_lifecycle_request("Joiner", desired_state=desired)
    plan = new_plan(joiner_workflow, request)
    desired["Department"] = "Changed"
    desired["Groups"].append("admins")
    assert request.desired_state == {"Department": "R&D", "Groups": ["staff"]}
    assert plan.request.desired_state == {"Department": "R&D", "Groups": ["staff"]}


def test_request_and_plan_maps_are_read_only(joiner_workflow, joiner_request):
    joiner_workflow["Steps"][0]["With"]["Tags"] = ["a"]
    plan = new_plan(joiner_workflow, joiner_request)
    with pytest.raises(TypeError):
        joiner_request.desired_state["Department"] = "Changed"
    with pytest.raises(TypeError):
        plan.request.identity_keys.update(EmployeeId="43")
    with pytest.raises(TypeError):
        plan.steps[0].params["Message"] = "changed"
    with pytest.raises(TypeError):
        plan.steps[0].params["Tags"].append("b")
    assert plan.steps[0].params == {"Message": "Starting Joiner", "Tags": ["a"]}


def test_plan_is_frozen(joiner_workflow, joiner_request):
    plan = new_plan(joiner_workflow, joiner_request)
    with pytest.raises(Exception):
        plan.workflow_name = "other"
