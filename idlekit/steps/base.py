"""Step handler contracts and the handler registry.

Handlers are pre-registered by the host under a step type string. A handler
is an object with ``execute(context, step)``; handlers that want the auth
session acquired for the step subclass :class:`SessionAwareStepHandler` and
receive it as ``session=``.
"""

import abc
from typing import TYPE_CHECKING, Any, Optional, Protocol, runtime_checkable

from idlekit.core.security import require_operation
from idlekit.exceptions import StepHandlerNotFound, WorkflowValidationError
from idlekit.types import PlanStep, StepResult, StepStatus

if TYPE_CHECKING:
    from idlekit.core.context import ExecutionContext


@runtime_checkable
class StepHandler(Protocol):
    """Single-method handler contract."""

    def execute(self, context: "ExecutionContext", step: PlanStep) -> Any:
        ...


class SessionAwareStepHandler(abc.ABC):
    """Marker base for handlers that accept an auth session."""

    @abc.abstractmethod
    def execute(self, context: "ExecutionContext", step: PlanStep, session: Any = None) -> Any:
        ...


def completed(step: PlanStep, changed: bool = False) -> StepResult:
    return StepResult(name=step.name, type=step.type, status=StepStatus.COMPLETED, changed=changed)


def failed(step: PlanStep, error: str) -> StepResult:
    return StepResult(name=step.name, type=step.type, status=StepStatus.FAILED, error=error)


class StepHandlerRegistry:
    """Explicit map of step type → handler, built at host-composition time."""

    def __init__(self, handlers: Optional[dict[str, Any]] = None):
        self._handlers: dict[str, Any] = {}
        for step_type, handler in (handlers or {}).items():
            self.register(step_type, handler)

    def register(self, step_type: str, handler: Any, replace: bool = False) -> None:
        """Register *handler* for *step_type*.

        Args:
            step_type: Step type identifier, e.g. ``"DisableIdentity"``.
            handler:   Object exposing ``execute(context, step)``.
            replace:   Allow overriding an existing registration.

        Raises:
            WorkflowValidationError: empty type, duplicate type, or a handler
                without ``execute``.
        """
        if not isinstance(step_type, str) or not step_type.strip():
            raise WorkflowValidationError("Step type must be a non-empty string.")
        require_operation(handler, "execute", f"Handler for '{step_type}'")
        if step_type in self._handlers and not replace:
            raise WorkflowValidationError(
                f"A handler is already registered for step type '{step_type}'.",
                violations=[f"duplicate handler: {step_type}"],
            )
        self._handlers[step_type] = handler

    def get(self, step_type: str) -> Any:
        """Raises StepHandlerNotFound if *step_type* has no handler."""
        handler = self._handlers.get(step_type)
        if handler is None:
            raise StepHandlerNotFound(
                f"No step handler registered for type '{step_type}'.", step_type=step_type
            )
        return handler

    def list_types(self) -> list[str]:
        return sorted(self._handlers)

    def copy(self) -> "StepHandlerRegistry":
        clone = StepHandlerRegistry()
        clone._handlers = dict(self._handlers)
        return clone

    def __contains__(self, step_type: object) -> bool:
        return step_type in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)
