"""
PlanBuilder — turns a workflow + lifecycle request into an immutable Plan.

Every check that can fail happens here, before any provider operation runs:

  1. Security gate over workflow, request and provider config maps
  2. Workflow shape normalization (all violations reported together)
  3. Lifecycle event match
  4. Request snapshot
  5. Template resolution in step parameters and conditions
  6. Condition evaluation → Run / Skip
  7. Step metadata resolution (every step type must have one owner)
  8. Capability validation (required ⊆ available)

The plan carries resolved data only; execution never re-evaluates it.
"""

import copy
import logging
from collections.abc import Mapping
from typing import Any, Optional

from idlekit.capabilities.registry import StepMetadataRegistry
from idlekit.capabilities.validator import CapabilityValidator
from idlekit.config import EngineSettings
from idlekit.core.conditions import evaluate_condition, parse_condition
from idlekit.core.security import assert_data_only
from idlekit.core.templates import request_bindings, resolve_templates
from idlekit.exceptions import WorkflowValidationError
from idlekit.providers.base import RESERVED_PROVIDER_KEYS, STEP_METADATA_KEY
from idlekit.steps.common import COMMON_STEP_METADATA, STEP_PACK_ID
from idlekit.types import (
    LifecycleRequest,
    Plan,
    PlanStep,
    PlanStepStatus,
    RequestSnapshot,
    WorkflowStep,
)
from idlekit.workflows.normalizer import WorkflowNormalizer

logger = logging.getLogger(__name__)


def default_metadata_registry() -> StepMetadataRegistry:
    """Registry preloaded with the built-in ``IdLE.Steps.Common`` catalog."""
    registry = StepMetadataRegistry()
    registry.register(STEP_PACK_ID, COMMON_STEP_METADATA)
    return registry


class PlanBuilder:
    """
    Builds plans. Stateless between calls; safe to reuse.

    Args:
        metadata_registry: Step pack catalogs. Defaults to the common pack.
        validator:         Capability validator (deprecation map).
        settings:          Engine settings (step limits).
    """

    def __init__(
        self,
        metadata_registry: Optional[StepMetadataRegistry] = None,
        validator: Optional[CapabilityValidator] = None,
        settings: Optional[EngineSettings] = None,
    ) -> None:
        self.metadata_registry = metadata_registry if metadata_registry is not None else default_metadata_registry()
        self.validator = validator or CapabilityValidator()
        self.settings = settings or EngineSettings()

    def build(
        self,
        workflow: Any,
        request: LifecycleRequest,
        providers: Optional[Mapping[str, Any]] = None,
    ) -> Plan:
        """
        Build a plan for *request* from *workflow*.

        Args:
            workflow:  Raw workflow data (map) or a normalized WorkflowDefinition.
            request:   The lifecycle request.
            providers: Host provider container. Provider entries are asked for
                       their capabilities; the ``StepMetadata`` entry, if
                       present, supplements the step metadata catalogs.

        Returns:
            A frozen Plan.

        Raises:
            ExecutableContentDetected: executable content in any input.
            WorkflowValidationError: shape, template or condition errors, or a
                lifecycle event mismatch.
            MissingStepTypeMetadata / DuplicateStepTypeMetadata: ownership errors.
            MissingCapabilities: providers do not cover the plan.
        """
        if not isinstance(request, (LifecycleRequest, RequestSnapshot)):
            raise WorkflowValidationError(
                f"Plan request must be a LifecycleRequest, got {type(request).__name__}."
            )
        assert_data_only(request, "Request")
        container = dict(providers or {})
        for alias, entry in container.items():
            if isinstance(entry, Mapping):
                assert_data_only(entry, f"Providers.{alias}")

        definition = WorkflowNormalizer(self.settings.max_workflow_steps).normalize(workflow)

        if definition.lifecycle_event.casefold() != request.lifecycle_event.casefold():
            message = (
                f"Workflow '{definition.name}' handles lifecycle event "
                f"'{definition.lifecycle_event}' but the request is for '{request.lifecycle_event}'."
            )
            raise WorkflowValidationError(message, violations=[message])

        metadata = self.metadata_registry
        supplement = container.get(STEP_METADATA_KEY)
        if supplement is not None:
            metadata = metadata.with_supplement(supplement)

        snapshot = _snapshot(request)
        scope = request_bindings(snapshot)
        scope["Plan"] = {
            "WorkflowName": definition.name,
            "WorkflowVersion": definition.version,
            "LifecycleEvent": definition.lifecycle_event,
        }

        step_types = [s.type for s in definition.steps] + [s.type for s in definition.on_failure_steps]
        resolved_metadata = metadata.resolve_many(step_types)

        warnings: list[str] = []
        remapped: dict[str, str] = {}

        primary: list[PlanStep] = []
        for index, step in enumerate(definition.steps):
            plan_step = self._plan_step(step, f"Steps[{index}]", scope)
            if plan_step.status == PlanStepStatus.RUN:
                caps = self.validator.remap(
                    resolved_metadata[step.type].required_capabilities, warnings, remapped
                )
                plan_step = plan_step.model_copy(update={"requires_capabilities": caps})
            primary.append(plan_step)

        on_failure: list[PlanStep] = []
        for index, step in enumerate(definition.on_failure_steps):
            plan_step = self._plan_step(step, f"OnFailureSteps[{index}]", scope)
            caps = self.validator.remap(
                resolved_metadata[step.type].required_capabilities, warnings, remapped
            )
            on_failure.append(plan_step.model_copy(update={"requires_capabilities": caps}))

        required_by_step = [(s.name, s.requires_capabilities) for s in primary] + [
            (s.name, s.requires_capabilities) for s in on_failure
        ]
        capabilities = self.validator.validate(
            required_by_step,
            {k: v for k, v in container.items() if k not in RESERVED_PROVIDER_KEYS},
            warnings,
            remapped,
        )

        plan = Plan(
            workflow_name=definition.name,
            workflow_version=definition.version,
            lifecycle_event=definition.lifecycle_event,
            request=snapshot,
            steps=tuple(primary),
            on_failure_steps=tuple(on_failure),
            warnings=tuple(warnings),
            capabilities=capabilities,
        )
        logger.info(
            "[Planner] Built plan for '%s': %d run, %d skip, %d on-failure, %d warning(s) correlation=%s",
            plan.workflow_name,
            sum(1 for s in primary if s.status == PlanStepStatus.RUN),
            sum(1 for s in primary if s.status == PlanStepStatus.SKIP),
            len(on_failure),
            len(warnings),
            plan.correlation_id,
        )
        return plan

    def _plan_step(self, step: WorkflowStep, where: str, scope: dict[str, Any]) -> PlanStep:
        params = resolve_templates(step.params, scope)

        if step.condition is None:
            return PlanStep(
                name=step.name, type=step.type, status=PlanStepStatus.RUN,
                reason="No condition.", params=params,
            )

        condition_data = resolve_templates(step.condition, scope)
        condition = parse_condition(condition_data, f"{where}.Condition")
        if evaluate_condition(condition, scope):
            status, reason = PlanStepStatus.RUN, f"Condition met: {condition.describe()}"
        else:
            status, reason = PlanStepStatus.SKIP, f"Condition not met: {condition.describe()}"
        logger.debug("[Planner] %s '%s' → %s (%s)", where, step.name, status.value, reason)
        return PlanStep(
            name=step.name, type=step.type, status=status, reason=reason,
            params=params, condition=condition_data,
        )


def _snapshot(request: Any) -> RequestSnapshot:
    return RequestSnapshot(
        lifecycle_event=request.lifecycle_event,
        correlation_id=request.correlation_id,
        actor=request.actor,
        identity_keys=copy.deepcopy(request.identity_keys),
        desired_state=copy.deepcopy(request.desired_state),
        changes=copy.deepcopy(request.changes),
    )


def build_plan(
    workflow: Any,
    request: LifecycleRequest,
    providers: Optional[Mapping[str, Any]] = None,
    metadata_registry: Optional[StepMetadataRegistry] = None,
    settings: Optional[EngineSettings] = None,
) -> Plan:
    """Shortcut for ``PlanBuilder(...).build(workflow, request, providers)``."""
    return PlanBuilder(metadata_registry=metadata_registry, settings=settings).build(
        workflow, request, providers
    )
