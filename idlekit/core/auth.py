"""Auth session acquisition through a host-supplied broker.

The engine never authenticates on its own. A step that needs credentials
names a session (``AuthSessionName``) and optionally passes data-only
``AuthSessionOptions``; the adapter deep-copies the options, enriches them
with the correlation id and actor, and calls the broker's
``acquire_session(name, options)``.
"""

import copy
import logging
from collections.abc import Mapping
from typing import Any, Optional, Protocol, runtime_checkable

from idlekit.core.security import assert_data_map, require_operation
from idlekit.exceptions import AuthSessionError

logger = logging.getLogger(__name__)


@runtime_checkable
class AuthSessionBroker(Protocol):
    """Contract for host-supplied brokers."""

    def acquire_session(self, name: str, options: dict[str, Any]) -> Any:
        ...


class StaticAuthSessionBroker:
    """Routes session names to pre-built session objects.

    Usage::

        broker = StaticAuthSessionBroker(
            {"Directory": directory_credential, "Cloud": graph_token},
            default=directory_credential,
        )

    Args:
        sessions: Map of routing name → session/credential object.
        default:  Returned for unknown names; when None, unknown names raise.
    """

    def __init__(self, sessions: Optional[Mapping[str, Any]] = None, default: Any = None) -> None:
        self._sessions = dict(sessions or {})
        self._default = default

    def acquire_session(self, name: str, options: dict[str, Any]) -> Any:
        if name in self._sessions:
            return self._sessions[name]
        if self._default is not None:
            return self._default
        raise AuthSessionError(
            f"No auth session registered for '{name}'.", session_name=name
        )


class AuthSessionAdapter:
    """Engine-side call-out to the broker for one execution.

    Args:
        broker:         Host broker exposing ``acquire_session`` (may be None).
        correlation_id: Added to options as ``CorrelationId``.
        actor:          Added to options as ``Actor`` when present.
    """

    def __init__(self, broker: Any, correlation_id: Optional[str] = None, actor: Optional[str] = None):
        if broker is not None:
            require_operation(broker, "acquire_session", "AuthSessionBroker", error_cls=AuthSessionError)
        self._broker = broker
        self._correlation_id = correlation_id
        self._actor = actor

    @property
    def available(self) -> bool:
        return self._broker is not None

    def acquire(self, name: str, options: Optional[Mapping[str, Any]] = None) -> Any:
        """Acquire a session by routing *name*.

        Raises:
            AuthSessionError: no broker configured, invalid name, or broker failure.
            ExecutableContentDetected: *options* contains executable content.
        """
        if not isinstance(name, str) or not name.strip():
            raise AuthSessionError("AuthSessionName must be a non-empty string.", session_name=str(name))
        if self._broker is None:
            raise AuthSessionError(
                f"Step requested auth session '{name}' but no AuthSessionBroker was supplied.",
                session_name=name,
            )

        assert_data_map(options, "AuthSessionOptions")
        call_options = copy.deepcopy(dict(options or {}))
        if self._correlation_id:
            call_options.setdefault("CorrelationId", self._correlation_id)
        if self._actor:
            call_options.setdefault("Actor", self._actor)

        logger.debug("[Auth] Acquiring session '%s'", name)
        try:
            return self._broker.acquire_session(name, call_options)
        except AuthSessionError:
            raise
        except Exception as exc:
            raise AuthSessionError(
                f"Auth session broker failed for '{name}': {exc}", session_name=name
            ) from exc
