"""Built-in step pack ``IdLE.Steps.Common``.

``EmitEvent`` writes a custom event. The identity steps are all instances of
one contract: call a named provider operation with arguments taken from the
step's parameters and report whether anything changed.

Step parameters understood by the identity steps:
  - ``Provider``     provider alias in the provider set (default ``Identity``)
  - ``IdentityKey``  key of the identity to act on (required)
  - operation-specific arguments, see ``COMMON_STEP_OPERATIONS``
"""

from collections.abc import Mapping
from typing import Any

from idlekit.core.events import CUSTOM
from idlekit.exceptions import ProviderError, StepExecutionError
from idlekit.providers.base import SessionAwareProvider
from idlekit.steps.base import SessionAwareStepHandler, StepHandlerRegistry, completed

STEP_PACK_ID = "IdLE.Steps.Common"
DEFAULT_PROVIDER_ALIAS = "Identity"


class EmitEventStep:
    """Writes ``With.Message`` (and optional ``With.Data``) as a ``Custom`` event."""

    def execute(self, context, step):
        message = step.params.get("Message", "")
        data = step.params.get("Data")
        if data is not None and not isinstance(data, Mapping):
            data = {"Value": data}
        context.write_event(step.params.get("EventType", CUSTOM), str(message), step.name, data)
        return completed(step, changed=False)


class ProviderOperationStep(SessionAwareStepHandler):
    """Calls ``provider.<method>(IdentityKey, *arguments)``.

    Args:
        method:    Provider method name, e.g. ``"disable_identity"``.
        arguments: Step parameter names passed positionally after the key.
        optional:  Subset of *arguments* that may be absent (passed as None).
    """

    def __init__(self, method: str, arguments: tuple[str, ...] = (), optional: tuple[str, ...] = ()):
        self.method = method
        self.arguments = arguments
        self.optional = frozenset(optional)

    def execute(self, context, step, session=None):
        params = step.params
        alias = params.get("Provider", DEFAULT_PROVIDER_ALIAS)
        provider = context.get_provider(alias)

        operation = getattr(provider, self.method, None)
        if operation is None or not callable(operation):
            raise ProviderError(
                f"Provider '{alias}' does not implement '{self.method}'.", provider=alias
            )

        identity_key = params.get("IdentityKey")
        if identity_key in (None, ""):
            raise StepExecutionError(
                f"Step '{step.name}' requires With.IdentityKey.", step_name=step.name
            )
        args = [identity_key]
        for name in self.arguments:
            if name not in params and name not in self.optional:
                raise StepExecutionError(
                    f"Step '{step.name}' requires With.{name}.", step_name=step.name
                )
            args.append(params.get(name))

        if isinstance(provider, SessionAwareProvider):
            outcome = operation(*args, session=session)
        else:
            outcome = operation(*args)
        return completed(step, changed=_changed(outcome))


def _changed(outcome: Any) -> bool:
    if isinstance(outcome, Mapping):
        for key, value in outcome.items():
            if str(key).lower() == "changed":
                return bool(value)
        return False
    if isinstance(outcome, bool):
        return outcome
    return bool(getattr(outcome, "changed", False))


# step type → (provider method, argument names, optional names)
COMMON_STEP_OPERATIONS: dict[str, tuple[str, tuple[str, ...], tuple[str, ...]]] = {
    "CreateIdentity": ("create_identity", ("Attributes",), ("Attributes",)),
    "EnsureAttribute": ("ensure_attribute", ("Name", "Value"), ()),
    "DisableIdentity": ("disable_identity", (), ()),
    "EnableIdentity": ("enable_identity", (), ()),
    "MoveIdentity": ("move_identity", ("TargetContainer",), ()),
    "DeleteIdentity": ("delete_identity", (), ()),
}

COMMON_STEP_METADATA: dict[str, dict[str, Any]] = {
    "EmitEvent": {"RequiredCapabilities": []},
    "CreateIdentity": {"RequiredCapabilities": ["IdLE.Identity.Create"]},
    "EnsureAttribute": {"RequiredCapabilities": ["IdLE.Identity.Attribute.Ensure"]},
    "DisableIdentity": {"RequiredCapabilities": ["IdLE.Identity.Disable"]},
    "EnableIdentity": {"RequiredCapabilities": ["IdLE.Identity.Enable"]},
    "MoveIdentity": {"RequiredCapabilities": ["IdLE.Identity.Move"]},
    "DeleteIdentity": {"RequiredCapabilities": ["IdLE.Identity.Delete"]},
}


def common_step_handlers() -> dict[str, Any]:
    handlers: dict[str, Any] = {"EmitEvent": EmitEventStep()}
    for step_type, (method, arguments, optional) in COMMON_STEP_OPERATIONS.items():
        handlers[step_type] = ProviderOperationStep(method, arguments, optional)
    return handlers


def register_common_steps(registry: StepHandlerRegistry) -> StepHandlerRegistry:
    for step_type, handler in common_step_handlers().items():
        registry.register(step_type, handler)
    return registry
