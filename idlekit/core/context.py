"""Per-execution context handed to step handlers."""

from collections.abc import Mapping
from types import MappingProxyType
from typing import Any, Optional

from idlekit.core.auth import AuthSessionAdapter
from idlekit.core.events import EventSink
from idlekit.exceptions import ProviderError
from idlekit.types import EngineEvent, Plan, RequestSnapshot


class ExecutionContext:
    """What a handler may see and do during one execution.

    Handlers get the plan's request snapshot (never the live request), the
    providers, the event sink and the auth-session call-out. Nothing here is
    shared between executions. The plan is read-only all the way down; its
    maps and lists raise TypeError when a handler tries to change them.
    """

    def __init__(
        self,
        plan: Plan,
        providers: Mapping[str, Any],
        events: EventSink,
        auth: AuthSessionAdapter,
    ) -> None:
        self.plan = plan
        self.providers = MappingProxyType(dict(providers))
        self.events = events
        self._auth = auth

    @property
    def request(self) -> RequestSnapshot:
        return self.plan.request

    @property
    def correlation_id(self) -> str:
        return self.plan.request.correlation_id

    @property
    def actor(self) -> Optional[str]:
        return self.plan.request.actor

    def get_provider(self, alias: str) -> Any:
        """Raises ProviderError if *alias* is not in the provider set."""
        provider = self.providers.get(alias)
        if provider is None:
            raise ProviderError(
                f"Provider '{alias}' was not supplied. Available: {sorted(self.providers)}.",
                provider=alias,
            )
        return provider

    def write_event(
        self,
        type: str,
        message: str = "",
        step_name: Optional[str] = None,
        data: Optional[Mapping[str, Any]] = None,
    ) -> EngineEvent:
        return self.events.write_event(type, message, step_name, data)

    def acquire_auth_session(self, name: str, options: Optional[Mapping[str, Any]] = None) -> Any:
        return self._auth.acquire(name, options)
