"""idlekit — identity lifecycle orchestration.

Usage:
    from idlekit import new_lifecycle_request, new_plan, invoke_plan, MockIdentityProvider

    provider = MockIdentityProvider()
    request = new_lifecycle_request("Joiner", identity_keys={"EmployeeId": "42"})
    plan = new_plan("workflows/joiner.yaml", request, providers={"Identity": provider})
    result = invoke_plan(plan, providers={"Identity": provider})
"""

from idlekit.types import (
    LifecycleRequest, RequestSnapshot, WorkflowDefinition, WorkflowStep,
    StepMetadata, Plan, PlanStep, EngineEvent, StepResult, OnFailureResult,
    ExecutionResult, PlanStepStatus, StepStatus, RunStatus, OnFailureStatus,
)
from idlekit.exceptions import (
    IdleError, WorkflowValidationError, TemplateError, ConditionError,
    SecurityViolation, ExecutableContentDetected, CapabilityError,
    MissingCapabilities, MissingStepTypeMetadata, DuplicateStepTypeMetadata,
    InvalidCapabilityIdentifier, StepHandlerNotFound, AuthSessionError,
    EventSinkError, ProviderError,
)
from idlekit.config import EngineSettings
from idlekit.api import (
    configure_logging, new_lifecycle_request, new_plan, invoke_plan, export_plan,
    test_workflow, new_auth_session_broker, default_step_registry,
    default_metadata_registry,
)
from idlekit.callbacks import LoggingEventSink
from idlekit.capabilities import StepMetadataRegistry
from idlekit.core.context import ExecutionContext
from idlekit.core.engine import ExecutionEngine
from idlekit.providers import MockIdentityProvider, SessionAwareProvider
from idlekit.steps import SessionAwareStepHandler, StepHandlerRegistry
from idlekit.workflows import PlanBuilder, load_workflow
from idlekit.version import __version__

__all__ = [
    "LifecycleRequest", "RequestSnapshot", "WorkflowDefinition", "WorkflowStep",
    "StepMetadata", "Plan", "PlanStep", "EngineEvent", "StepResult", "OnFailureResult",
    "ExecutionResult", "PlanStepStatus", "StepStatus", "RunStatus", "OnFailureStatus",
    "IdleError", "WorkflowValidationError", "TemplateError", "ConditionError",
    "SecurityViolation", "ExecutableContentDetected", "CapabilityError",
    "MissingCapabilities", "MissingStepTypeMetadata", "DuplicateStepTypeMetadata",
    "InvalidCapabilityIdentifier", "StepHandlerNotFound", "AuthSessionError",
    "EventSinkError", "ProviderError",
    "EngineSettings",
    "configure_logging", "new_lifecycle_request", "new_plan", "invoke_plan", "export_plan",
    "test_workflow", "new_auth_session_broker", "default_step_registry",
    "default_metadata_registry",
    "LoggingEventSink", "StepMetadataRegistry", "ExecutionContext", "ExecutionEngine",
    "MockIdentityProvider", "SessionAwareProvider",
    "SessionAwareStepHandler", "StepHandlerRegistry",
    "PlanBuilder", "load_workflow",
    "__version__",
]
