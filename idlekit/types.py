"""All shared types, enums, and data shapes. Everything imports from here."""

import uuid
from collections.abc import Mapping
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Optional

from pydantic import AfterValidator, BaseModel, Field


# ── Read-only containers ───────────────────────────────────────────────

class FrozenDict(dict):
    """A dict that refuses mutation. Copies (``copy``/``deepcopy``/pickle) stay frozen."""

    def _readonly(self, *args, **kwargs):
        raise TypeError(f"{type(self).__name__} is read-only")

    __setitem__ = __delitem__ = __ior__ = _readonly
    clear = pop = popitem = setdefault = update = _readonly

    def __reduce__(self):
        return (type(self), (dict(self),))


class FrozenList(list):
    """A list that refuses mutation. Compares equal to a plain list with the same items."""

    def _readonly(self, *args, **kwargs):
        raise TypeError(f"{type(self).__name__} is read-only")

    __setitem__ = __delitem__ = __iadd__ = __imul__ = _readonly
    append = extend = insert = pop = remove = clear = sort = reverse = _readonly

    def __reduce__(self):
        return (type(self), (list(self),))


def freeze(value: Any) -> Any:
    """Recursively convert maps and lists to their read-only counterparts."""
    if isinstance(value, Mapping):
        return FrozenDict({k: freeze(v) for k, v in value.items()})
    if isinstance(value, list):
        return FrozenList(freeze(v) for v in value)
    if isinstance(value, tuple):
        return tuple(freeze(v) for v in value)
    if isinstance(value, set):
        return frozenset(value)
    return value


def thaw(value: Any) -> Any:
    """Inverse of :func:`freeze`: plain, mutable dicts and lists."""
    if isinstance(value, Mapping):
        return {k: thaw(v) for k, v in value.items()}
    if isinstance(value, list):
        return [thaw(v) for v in value]
    if isinstance(value, tuple):
        return tuple(thaw(v) for v in value)
    return value


FrozenMap = Annotated[dict[str, Any], AfterValidator(freeze)]
FrozenData = Annotated[Optional[Any], AfterValidator(freeze)]


# ── Enums ──────────────────────────────────────────────────────────────

class PlanStepStatus(str, Enum):
    RUN = "Run"
    SKIP = "Skip"      # condition evaluated false at plan-build time

class StepStatus(str, Enum):
    COMPLETED = "Completed"
    SKIPPED = "Skipped"
    FAILED = "Failed"

class RunStatus(str, Enum):
    COMPLETED = "Completed"
    FAILED = "Failed"

class OnFailureStatus(str, Enum):
    NOT_RUN = "NotRun"                     # primary phase did not fail
    COMPLETED = "Completed"
    PARTIALLY_FAILED = "PartiallyFailed"   # at least one OnFailure step errored


# ── Request ────────────────────────────────────────────────────────────

class LifecycleRequest(BaseModel):
    """Business intent for one lifecycle operation. Read-only after creation, maps included."""
    model_config = {"frozen": True}

    lifecycle_event: str = Field(..., min_length=1)   # "Joiner", "Mover", "Leaver", ...
    identity_keys: FrozenMap = Field(default_factory=FrozenDict)
    desired_state: FrozenMap = Field(default_factory=FrozenDict)
    changes: FrozenMap = Field(default_factory=FrozenDict)     # transfer-type events
    actor: Optional[str] = None
    correlation_id: str = Field(default_factory=lambda: str(uuid.uuid4()), min_length=1)


class RequestSnapshot(BaseModel):
    """Request intent captured at plan-build time. Outlives the original request."""
    model_config = {"frozen": True}

    lifecycle_event: str
    correlation_id: str
    actor: Optional[str] = None
    identity_keys: FrozenMap = Field(default_factory=FrozenDict)
    desired_state: FrozenMap = Field(default_factory=FrozenDict)
    changes: FrozenMap = Field(default_factory=FrozenDict)


# ── Workflow definition (normalized) ───────────────────────────────────

class WorkflowStep(BaseModel):
    """One authored step after shape validation. Parameters are still unresolved."""
    model_config = {"frozen": True}

    name: str = Field(..., min_length=1)
    type: str = Field(..., min_length=1)
    params: dict[str, Any] = Field(default_factory=dict)      # authored as "With"
    condition: Optional[Any] = None                           # raw declarative predicate
    description: str = ""


class WorkflowDefinition(BaseModel):
    model_config = {"frozen": True}

    name: str = Field(..., min_length=1)
    lifecycle_event: str = Field(..., min_length=1)
    version: Optional[str] = None
    description: str = ""
    steps: tuple[WorkflowStep, ...] = ()
    on_failure_steps: tuple[WorkflowStep, ...] = ()


# ── Capabilities & step metadata ───────────────────────────────────────

class StepMetadata(BaseModel):
    """What a step type needs from providers. Owned by exactly one step pack."""
    model_config = {"frozen": True}

    step_type: str
    owner: str                                                # step pack / host supplement id
    required_capabilities: tuple[str, ...] = ()
    description: str = ""


class CapabilityValidation(BaseModel):
    """Record of the required-vs-available comparison embedded in a plan."""
    model_config = {"frozen": True}

    required: tuple[str, ...] = ()
    available: tuple[str, ...] = ()
    missing: tuple[str, ...] = ()
    remapped: dict[str, str] = Field(default_factory=dict)    # deprecated id → current id


# ── Plan ───────────────────────────────────────────────────────────────

class PlanStep(BaseModel):
    """A step with resolved parameters and its Run/Skip verdict."""
    model_config = {"frozen": True}

    name: str
    type: str
    status: PlanStepStatus = PlanStepStatus.RUN
    reason: str = ""                                          # why Run/Skip was chosen
    params: FrozenMap = Field(default_factory=FrozenDict)
    condition: FrozenData = None
    requires_capabilities: tuple[str, ...] = ()


class Plan(BaseModel):
    """Immutable execution plan. Execution never re-evaluates or re-validates it."""
    model_config = {"frozen": True}

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    workflow_name: str
    workflow_version: Optional[str] = None
    lifecycle_event: str
    request: RequestSnapshot
    steps: tuple[PlanStep, ...] = ()
    on_failure_steps: tuple[PlanStep, ...] = ()
    warnings: tuple[str, ...] = ()
    capabilities: CapabilityValidation = Field(default_factory=CapabilityValidation)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def correlation_id(self) -> str:
        return self.request.correlation_id

    def to_export_dict(self, placeholder: Optional[str] = None) -> dict[str, Any]:
        """Diff-stable, redacted interchange form. See idlekit.workflows.export."""
        from idlekit.workflows.export import plan_to_export_dict
        return plan_to_export_dict(self, placeholder=placeholder)


# ── Execution ──────────────────────────────────────────────────────────

class EngineEvent(BaseModel):
    """A structured progress/audit event. Data is always redacted before storage."""
    model_config = {"frozen": True}

    type: str                                   # "StepSkipped", "StepFailed", "Custom", ...
    message: str = ""                           # free text, never scanned for secrets
    step_name: Optional[str] = None
    data: Optional[dict[str, Any]] = None
    correlation_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class StepResult(BaseModel):
    model_config = {"frozen": True}

    name: str
    type: str
    status: StepStatus
    changed: bool = False
    error: Optional[str] = None                 # only set when status == FAILED


class OnFailureResult(BaseModel):
    model_config = {"frozen": True}

    status: OnFailureStatus = OnFailureStatus.NOT_RUN
    steps: tuple[StepResult, ...] = ()


class ExecutionResult(BaseModel):
    """Outcome of running a plan. Created fresh per execution, never mutated."""
    model_config = {"frozen": True}

    status: RunStatus
    correlation_id: str
    workflow_name: str
    steps: tuple[StepResult, ...] = ()
    on_failure: OnFailureResult = Field(default_factory=OnFailureResult)
    events: tuple[EngineEvent, ...] = ()
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None
