"""Provider contracts.

A provider is any host object exposing ``get_capabilities()``. Providers that
accept an auth session on their operations say so explicitly by subclassing
:class:`SessionAwareProvider`; callers check ``isinstance`` instead of
inspecting method signatures.
"""

from typing import Protocol, runtime_checkable

# Keys in the host's provider container that are not providers.
STEP_REGISTRY_KEY = "StepRegistry"
STEP_METADATA_KEY = "StepMetadata"
AUTH_SESSION_BROKER_KEY = "AuthSessionBroker"
EVENT_SINK_KEY = "EventSink"

RESERVED_PROVIDER_KEYS: frozenset[str] = frozenset({
    STEP_REGISTRY_KEY,
    STEP_METADATA_KEY,
    AUTH_SESSION_BROKER_KEY,
    EVENT_SINK_KEY,
})


@runtime_checkable
class Provider(Protocol):
    """Capability-advertising adapter for one external system."""

    def get_capabilities(self) -> list[str]:
        """Return a duplicate-free list of capability identifiers."""
        ...


class SessionAwareProvider:
    """Marker base: operations on this provider accept ``session=`` keyword."""

    accepts_auth_session = True
