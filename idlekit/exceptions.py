"""Typed exception hierarchy. Every error idlekit can raise."""


class IdleError(Exception):
    """Base exception for all idlekit errors."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.details = details or {}


# ── Schema / validation (raised at plan-build time) ──────────────────────────


class WorkflowValidationError(IdleError):
    """Workflow or request shape is invalid (unknown keys, empty names, etc.)."""
    def __init__(self, message: str, violations: list = None, **kwargs):
        super().__init__(message, **kwargs)
        self.violations = violations or []
        self.details.setdefault("violations", list(self.violations))


class TemplateError(WorkflowValidationError):
    """A {{path}} placeholder could not be resolved."""
    def __init__(self, message: str, template: str = "", path: str = "", **kwargs):
        super().__init__(message, violations=[message], **kwargs)
        self.template = template
        self.path = path
        self.details.update({"template": template, "path": path})


class ConditionError(WorkflowValidationError):
    """A declarative condition is malformed or references a disallowed root."""
    def __init__(self, message: str, path: str = "", **kwargs):
        super().__init__(message, violations=[message], **kwargs)
        self.path = path
        self.details["path"] = path


# ── Security boundary ────────────────────────────────────────────────────────


class SecurityViolation(IdleError):
    """Untrusted data crossed a boundary it must not cross. Never recovered."""
    pass


class ExecutableContentDetected(SecurityViolation):
    """A callable or code object was found inside data that must be data-only."""
    def __init__(self, message: str, path: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.path = path
        self.details["path"] = path


# ── Capabilities & step metadata ─────────────────────────────────────────────


class CapabilityError(IdleError):
    """Base exception for capability and metadata ownership errors."""
    pass


class InvalidCapabilityIdentifier(CapabilityError):
    """A capability id does not match the dotted identifier format."""
    def __init__(self, message: str, capability: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.capability = capability
        self.details["capability"] = capability


class MissingStepTypeMetadata(CapabilityError):
    """A workflow references step types that no step pack owns."""
    def __init__(self, message: str, step_types: list = None, **kwargs):
        super().__init__(message, **kwargs)
        self.step_types = sorted(step_types or [])
        self.details["step_types"] = list(self.step_types)


class DuplicateStepTypeMetadata(CapabilityError):
    """Two owners claim the same step type, or a supplement tries to override one."""
    def __init__(self, message: str, step_type: str = "", owners: list = None, **kwargs):
        super().__init__(message, **kwargs)
        self.step_type = step_type
        self.owners = owners or []
        self.details.update({"step_type": step_type, "owners": list(self.owners)})


class MissingCapabilities(CapabilityError):
    """Required capabilities are not advertised by any supplied provider."""
    def __init__(
        self,
        message: str,
        missing: list = None,
        affected_steps: list = None,
        available: list = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.missing = missing or []
        self.affected_steps = affected_steps or []
        self.available = available or []
        self.details.update({
            "missing": list(self.missing),
            "affected_steps": list(self.affected_steps),
            "available": list(self.available),
        })


# ── Execution ────────────────────────────────────────────────────────────────


class StepHandlerNotFound(IdleError):
    """No handler is registered for a step type at execution time."""
    def __init__(self, message: str, step_type: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.step_type = step_type
        self.details["step_type"] = step_type


class StepExecutionError(IdleError):
    """A step handler reported a failure."""
    def __init__(self, message: str, step_name: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.step_name = step_name
        self.details["step_name"] = step_name


class AuthSessionError(IdleError):
    """Auth session could not be acquired (no broker, unknown name, broker error)."""
    def __init__(self, message: str, session_name: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.session_name = session_name
        self.details["session_name"] = session_name


class EventSinkError(IdleError):
    """A host-supplied event sink does not satisfy the sink contract."""
    pass


class ProviderError(IdleError):
    """A provider operation failed or the provider is missing."""
    def __init__(self, message: str, provider: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.provider = provider
        self.details["provider"] = provider
