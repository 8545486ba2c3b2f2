"""Resolves a plan step to its handler and invokes it.

Orchestrates: handler lookup → auth session (if requested) → execute →
normalize the handler's return value into a StepResult.
"""

import copy
import logging
from collections.abc import Mapping
from typing import Any

from idlekit.core.context import ExecutionContext
from idlekit.exceptions import IdleError
from idlekit.steps.base import SessionAwareStepHandler, StepHandlerRegistry, failed
from idlekit.types import PlanStep, StepResult, StepStatus, thaw

logger = logging.getLogger(__name__)

AUTH_SESSION_NAME_KEY = "AuthSessionName"
AUTH_SESSION_OPTIONS_KEY = "AuthSessionOptions"


class StepDispatcher:
    """Invokes registered handlers for plan steps."""

    def __init__(self, registry: StepHandlerRegistry):
        self.registry = registry

    def dispatch(self, step: PlanStep, context: ExecutionContext) -> StepResult:
        """Run one step and return its result. Never raises for handler errors.

        Steps:
        1. Resolve ``step.type`` in the handler registry
        2. Acquire an auth session if ``AuthSessionName`` is set
        3. Call the handler with a private copy of the step's parameters,
           passing ``session=`` only to session-aware handlers
        4. Normalize the return value

        Any exception along the way becomes a Failed result whose ``error``
        is ``"<ExceptionType>: <message>"``.
        """
        try:
            handler = self.registry.get(step.type)

            # Handlers get their own mutable copy; the plan stays untouched.
            invocation = step.model_copy(update={"params": copy.deepcopy(thaw(step.params))})

            session = None
            session_name = invocation.params.get(AUTH_SESSION_NAME_KEY)
            if session_name is not None:
                session = context.acquire_auth_session(
                    session_name, invocation.params.get(AUTH_SESSION_OPTIONS_KEY)
                )

            if isinstance(handler, SessionAwareStepHandler):
                raw = handler.execute(context, invocation, session=session)
            else:
                raw = handler.execute(context, invocation)
            return self._normalize(step, raw)
        except IdleError as exc:
            logger.warning(
                "[Dispatcher] Step '%s' (%s) failed: %s", step.name, step.type, type(exc).__name__,
            )
            return failed(step, f"{type(exc).__name__}: {exc}")
        except Exception as exc:
            logger.error(
                "[Dispatcher] Step '%s' (%s) raised %s",
                step.name, step.type, type(exc).__name__, exc_info=True,
            )
            return failed(step, f"{type(exc).__name__}: {exc}")

    def _normalize(self, step: PlanStep, raw: Any) -> StepResult:
        if raw is None:
            return StepResult(name=step.name, type=step.type, status=StepStatus.COMPLETED)

        if isinstance(raw, StepResult):
            status, changed, error = raw.status, raw.changed, raw.error
        elif isinstance(raw, Mapping):
            fields = {str(k).lower(): v for k, v in raw.items()}
            status = _parse_status(fields.get("status", StepStatus.COMPLETED))
            if status is None:
                return failed(step, f"Handler returned unknown status {fields.get('status')!r}.")
            changed = bool(fields.get("changed", False))
            error = fields.get("error")
        else:
            return failed(
                step, f"Handler returned unsupported result type {type(raw).__name__}."
            )

        if status == StepStatus.FAILED:
            return StepResult(
                name=step.name, type=step.type, status=status, changed=changed,
                error=str(error) if error else "Step reported failure.",
            )
        return StepResult(name=step.name, type=step.type, status=status, changed=changed)


def _parse_status(value: Any):
    if isinstance(value, StepStatus):
        return value
    for member in StepStatus:
        if str(value).casefold() == member.value.casefold():
            return member
    return None
