"""In-memory identity provider for tests, demos and dry runs.

Operations are idempotent: calling them a second time with the same input
reports ``Changed = False``.
"""

import copy
from typing import Any, Iterable, Optional

from idlekit.exceptions import ProviderError
from idlekit.providers.base import SessionAwareProvider


DEFAULT_CAPABILITIES: tuple[str, ...] = (
    "IdLE.Identity.Read",
    "IdLE.Identity.Create",
    "IdLE.Identity.Attribute.Ensure",
    "IdLE.Identity.Disable",
    "IdLE.Identity.Enable",
    "IdLE.Identity.Delete",
    "IdLE.Identity.Move",
)


class MockIdentityProvider(SessionAwareProvider):
    """Dictionary-backed identity store.

    Args:
        capabilities: Advertised capability ids (defaults to all identity ops).
        identities:   Initial store, identity key → attribute map.
    """

    def __init__(
        self,
        capabilities: Optional[Iterable[str]] = None,
        identities: Optional[dict[str, dict[str, Any]]] = None,
    ) -> None:
        self._capabilities = list(capabilities) if capabilities is not None else list(DEFAULT_CAPABILITIES)
        self.identities: dict[str, dict[str, Any]] = copy.deepcopy(identities or {})
        self.sessions: list[Any] = []      # sessions received, in call order

    def get_capabilities(self) -> list[str]:
        return list(self._capabilities)

    # ── Operations ────────────────────────────────────────────────────────────

    def get_identity(self, identity_key: str, session: Any = None) -> dict[str, Any]:
        self._record(session)
        return copy.deepcopy(self._require(identity_key))

    def create_identity(self, identity_key: str, attributes: Optional[dict] = None, session: Any = None) -> dict:
        self._record(session)
        if identity_key in self.identities:
            return {"Changed": False}
        self.identities[identity_key] = {"Enabled": True, **copy.deepcopy(attributes or {})}
        return {"Changed": True}

    def ensure_attribute(self, identity_key: str, name: str, value: Any, session: Any = None) -> dict:
        self._record(session)
        identity = self._require(identity_key)
        if identity.get(name) == value:
            return {"Changed": False}
        identity[name] = copy.deepcopy(value)
        return {"Changed": True}

    def disable_identity(self, identity_key: str, session: Any = None) -> dict:
        return self._set_enabled(identity_key, False, session)

    def enable_identity(self, identity_key: str, session: Any = None) -> dict:
        return self._set_enabled(identity_key, True, session)

    def move_identity(self, identity_key: str, target_container: str, session: Any = None) -> dict:
        self._record(session)
        identity = self._require(identity_key)
        if identity.get("Container") == target_container:
            return {"Changed": False}
        identity["Container"] = target_container
        return {"Changed": True}

    def delete_identity(self, identity_key: str, session: Any = None) -> dict:
        self._record(session)
        if identity_key not in self.identities:
            return {"Changed": False}
        del self.identities[identity_key]
        return {"Changed": True}

    # ── Internal helpers ──────────────────────────────────────────────────────

    def _set_enabled(self, identity_key: str, enabled: bool, session: Any) -> dict:
        self._record(session)
        identity = self._require(identity_key)
        if identity.get("Enabled") is enabled:
            return {"Changed": False}
        identity["Enabled"] = enabled
        return {"Changed": True}

    def _require(self, identity_key: str) -> dict[str, Any]:
        identity = self.identities.get(identity_key)
        if identity is None:
            raise ProviderError(f"Identity '{identity_key}' not found.", provider="Mock")
        return identity

    def _record(self, session: Any) -> None:
        if session is not None:
            self.sessions.append(session)
