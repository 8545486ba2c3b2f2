"""Public entry points. Thin wrappers over PlanBuilder / ExecutionEngine.

Usage::

    from idlekit import new_lifecycle_request, new_plan, invoke_plan

    request = new_lifecycle_request("Joiner", identity_keys={"EmployeeId": "42"})
    plan = new_plan(workflow, request, providers={"Identity": provider})
    result = invoke_plan(plan, providers={"Identity": provider})
"""

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Optional, Union

from idlekit.capabilities.registry import StepMetadataRegistry
from idlekit.config import EngineSettings
from idlekit.core.auth import StaticAuthSessionBroker
from idlekit.core.engine import ExecutionEngine
from idlekit.core.security import assert_data_map
from idlekit.exceptions import WorkflowValidationError
from idlekit.steps.base import StepHandlerRegistry
from idlekit.steps.common import register_common_steps
from idlekit.types import ExecutionResult, LifecycleRequest, Plan
from idlekit.workflows import export as _export
from idlekit.workflows.loader import test_workflow  # noqa: F401 (re-export)
from idlekit.workflows.planner import PlanBuilder, default_metadata_registry  # noqa: F401

logger = logging.getLogger(__name__)


def configure_logging(settings: Optional[EngineSettings] = None) -> None:
    """Basic console logging at ``settings.log_level``. For scripts and demos."""
    settings = settings or EngineSettings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def new_lifecycle_request(
    lifecycle_event: str,
    identity_keys: Optional[Mapping[str, Any]] = None,
    desired_state: Optional[Mapping[str, Any]] = None,
    changes: Optional[Mapping[str, Any]] = None,
    actor: Optional[str] = None,
    correlation_id: Optional[str] = None,
) -> LifecycleRequest:
    """Create a frozen lifecycle request.

    Args:
        lifecycle_event: e.g. ``"Joiner"``, ``"Mover"``, ``"Leaver"``.
        identity_keys:   How to find the identity, e.g. ``{"EmployeeId": "42"}``.
        desired_state:   Target attributes and entitlements.
        changes:         Transfer-style deltas (Mover).
        actor:           Who asked for the change.
        correlation_id:  Generated (UUID4) when omitted.

    Raises:
        ExecutableContentDetected: any map holds executable content.
        WorkflowValidationError: empty lifecycle event or a non-map argument.
    """
    if not isinstance(lifecycle_event, str) or not lifecycle_event.strip():
        raise WorkflowValidationError("LifecycleEvent must be a non-empty string.")

    maps = {"IdentityKeys": identity_keys, "DesiredState": desired_state, "Changes": changes}
    for name, value in maps.items():
        assert_data_map(value, name)

    fields: dict[str, Any] = {
        "lifecycle_event": lifecycle_event.strip(),
        "identity_keys": dict(identity_keys or {}),
        "desired_state": dict(desired_state or {}),
        "changes": dict(changes or {}),
        "actor": actor,
    }
    if correlation_id:
        fields["correlation_id"] = correlation_id
    request = LifecycleRequest(**fields)
    logger.debug("[Request] %s correlation=%s", request.lifecycle_event, request.correlation_id)
    return request


def new_plan(
    workflow: Any,
    request: LifecycleRequest,
    providers: Optional[Mapping[str, Any]] = None,
    metadata_registry: Optional[StepMetadataRegistry] = None,
    settings: Optional[EngineSettings] = None,
) -> Plan:
    """Build a plan. ``workflow`` may be raw data, a definition, or a file path."""
    if isinstance(workflow, (str, Path)):
        workflow = test_workflow(workflow, max_steps=(settings or EngineSettings()).max_workflow_steps)
    builder = PlanBuilder(metadata_registry=metadata_registry, settings=settings)
    return builder.build(workflow, request, providers)


def invoke_plan(
    plan: Plan,
    providers: Optional[Mapping[str, Any]] = None,
    step_registry: Optional[StepHandlerRegistry] = None,
    auth_broker: Any = None,
    event_sink: Any = None,
    settings: Optional[EngineSettings] = None,
) -> ExecutionResult:
    """Execute a plan. See :meth:`ExecutionEngine.execute`."""
    engine = ExecutionEngine(settings=settings)
    return engine.execute(
        plan,
        providers=providers,
        step_registry=step_registry,
        auth_broker=auth_broker,
        event_sink=event_sink,
    )


def export_plan(
    plan: Plan,
    path: Optional[Union[str, Path]] = None,
    settings: Optional[EngineSettings] = None,
) -> str:
    """Redacted, diff-stable JSON for *plan*. Optionally written to *path*."""
    return _export.export_plan(plan, path=path, settings=settings)


def new_auth_session_broker(
    sessions: Optional[Mapping[str, Any]] = None,
    default: Any = None,
) -> StaticAuthSessionBroker:
    """Broker that routes session names to pre-built session objects."""
    return StaticAuthSessionBroker(sessions, default=default)


def default_step_registry() -> StepHandlerRegistry:
    """Handler registry with the built-in ``IdLE.Steps.Common`` pack."""
    return register_common_steps(StepHandlerRegistry())
