"""Execution engine. Runs a built plan; never re-plans or re-validates it.

Orchestrates: split host container → wire per-run sink/auth/context →
primary steps (stop at first failure) → OnFailure steps (only on failure).

Everything created here lives for one ``execute`` call. Nothing is shared
between executions except the host-supplied objects themselves.
"""

import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Optional

from idlekit.config import EngineSettings
from idlekit.core.auth import AuthSessionAdapter
from idlekit.core.context import ExecutionContext
from idlekit.core.dispatcher import StepDispatcher
from idlekit.core.events import (
    EventSink,
    ON_FAILURE_COMPLETED,
    ON_FAILURE_STARTED,
    ON_FAILURE_STEP_FAILED,
    RUN_COMPLETED,
    RUN_STARTED,
    STEP_COMPLETED,
    STEP_FAILED,
    STEP_SKIPPED,
    STEP_STARTED,
)
from idlekit.core.redaction import Redactor
from idlekit.exceptions import WorkflowValidationError
from idlekit.providers.base import (
    AUTH_SESSION_BROKER_KEY,
    EVENT_SINK_KEY,
    RESERVED_PROVIDER_KEYS,
    STEP_REGISTRY_KEY,
)
from idlekit.steps.base import StepHandlerRegistry
from idlekit.steps.common import register_common_steps
from idlekit.types import (
    ExecutionResult,
    OnFailureResult,
    OnFailureStatus,
    Plan,
    PlanStep,
    PlanStepStatus,
    RunStatus,
    StepResult,
    StepStatus,
)

logger = logging.getLogger(__name__)


class ExecutionEngine:
    """Runs plans against host-supplied providers.

    Usage::

        engine = ExecutionEngine()
        result = engine.execute(plan, providers={"Identity": provider})

    Args:
        settings: Engine settings (redaction placeholder, progress events).
    """

    def __init__(self, settings: Optional[EngineSettings] = None):
        self.settings = settings or EngineSettings()

    def execute(
        self,
        plan: Plan,
        providers: Optional[Mapping[str, Any]] = None,
        step_registry: Optional[StepHandlerRegistry] = None,
        auth_broker: Any = None,
        event_sink: Any = None,
    ) -> ExecutionResult:
        """Execute *plan* and return a fresh result.

        Host objects may be passed explicitly or through the reserved keys of
        the provider container (``StepRegistry``, ``AuthSessionBroker``,
        ``EventSink``). Explicit arguments win.

        Step failures never raise; they are reported in the result. Errors in
        wiring (invalid sink, invalid broker, missing plan) do raise.

        Raises:
            WorkflowValidationError: *plan* is not a Plan.
            EventSinkError: the host event sink is not an object with ``write_event``.
            AuthSessionError: the broker is not an object with ``acquire_session``.
        """
        if not isinstance(plan, Plan):
            raise WorkflowValidationError(
                f"execute() requires a Plan, got {type(plan).__name__}. Build one with new_plan()."
            )

        container = dict(providers or {})
        registry = step_registry if step_registry is not None else container.get(STEP_REGISTRY_KEY)
        if registry is None:
            registry = _default_registry()
        broker = auth_broker if auth_broker is not None else container.get(AUTH_SESSION_BROKER_KEY)
        external = event_sink if event_sink is not None else container.get(EVENT_SINK_KEY)
        step_providers = {
            alias: provider
            for alias, provider in container.items()
            if alias not in RESERVED_PROVIDER_KEYS and provider is not None
        }

        started_at = datetime.now(timezone.utc)
        correlation_id = plan.correlation_id
        redactor = Redactor(
            placeholder=self.settings.redaction_placeholder,
            extra_keys=self.settings.extra_sensitive_keys,
        )
        events = EventSink(redactor=redactor, external=external, correlation_id=correlation_id)
        auth = AuthSessionAdapter(broker, correlation_id=correlation_id, actor=plan.request.actor)
        context = ExecutionContext(plan, step_providers, events, auth)
        dispatcher = StepDispatcher(registry)
        progress = self.settings.emit_progress_events

        logger.info(
            "[Engine] Executing '%s' (%d steps) correlation=%s",
            plan.workflow_name, len(plan.steps), correlation_id,
        )
        if progress:
            events.write_event(RUN_STARTED, f"Run started: {plan.workflow_name}")

        # ── Primary phase ──
        results: list[StepResult] = []
        primary_failed = False
        for step in plan.steps:
            if step.status == PlanStepStatus.SKIP:
                results.append(_skipped(step))
                events.write_event(
                    STEP_SKIPPED, f"Step '{step.name}' skipped.", step.name,
                    {"Reason": step.reason},
                )
                continue

            if progress:
                events.write_event(STEP_STARTED, f"Step '{step.name}' started.", step.name)
            result = dispatcher.dispatch(step, context)
            results.append(result)

            if result.status == StepStatus.FAILED:
                primary_failed = True
                events.write_event(
                    STEP_FAILED, f"Step '{step.name}' failed.", step.name,
                    {"Error": result.error, "StepType": step.type},
                )
                logger.warning("[Engine] Step '%s' failed: %s", step.name, result.error)
                break
            if progress:
                events.write_event(
                    STEP_COMPLETED, f"Step '{step.name}' completed.", step.name,
                    {"Changed": result.changed},
                )

        # ── OnFailure phase ──
        on_failure = OnFailureResult()
        if primary_failed:
            on_failure = self._run_on_failure(plan, dispatcher, context, events)

        status = RunStatus.FAILED if primary_failed else RunStatus.COMPLETED
        if progress:
            events.write_event(RUN_COMPLETED, f"Run finished: {status.value}", None, {"Status": status.value})

        logger.info(
            "[Engine] '%s' finished: %s (%d/%d steps, on-failure=%s)",
            plan.workflow_name, status.value, len(results), len(plan.steps), on_failure.status.value,
        )
        return ExecutionResult(
            status=status,
            correlation_id=correlation_id,
            workflow_name=plan.workflow_name,
            steps=tuple(results),
            on_failure=on_failure,
            events=events.events,
            started_at=started_at,
            completed_at=datetime.now(timezone.utc),
        )

    def _run_on_failure(
        self,
        plan: Plan,
        dispatcher: StepDispatcher,
        context: ExecutionContext,
        events: EventSink,
    ) -> OnFailureResult:
        """Attempt every OnFailure step; a failing one does not stop the rest."""
        if not plan.on_failure_steps:
            return OnFailureResult(status=OnFailureStatus.COMPLETED)

        events.write_event(
            ON_FAILURE_STARTED, "Running OnFailure steps.", None,
            {"StepCount": len(plan.on_failure_steps)},
        )
        results: list[StepResult] = []
        any_failed = False
        for step in plan.on_failure_steps:
            if step.status == PlanStepStatus.SKIP:
                results.append(_skipped(step))
                events.write_event(
                    STEP_SKIPPED, f"OnFailure step '{step.name}' skipped.", step.name,
                    {"Reason": step.reason},
                )
                continue
            result = dispatcher.dispatch(step, context)
            results.append(result)
            if result.status == StepStatus.FAILED:
                any_failed = True
                events.write_event(
                    ON_FAILURE_STEP_FAILED, f"OnFailure step '{step.name}' failed.", step.name,
                    {"Error": result.error, "StepType": step.type},
                )
                logger.warning("[Engine] OnFailure step '%s' failed: %s", step.name, result.error)

        status = OnFailureStatus.PARTIALLY_FAILED if any_failed else OnFailureStatus.COMPLETED
        events.write_event(ON_FAILURE_COMPLETED, f"OnFailure finished: {status.value}", None, {"Status": status.value})
        return OnFailureResult(status=status, steps=tuple(results))


def _skipped(step: PlanStep) -> StepResult:
    return StepResult(name=step.name, type=step.type, status=StepStatus.SKIPPED)


def _default_registry() -> StepHandlerRegistry:
    return register_common_steps(StepHandlerRegistry())
