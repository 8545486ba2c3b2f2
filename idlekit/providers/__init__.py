"""Provider contracts and the in-memory mock provider."""

from idlekit.providers.base import Provider, SessionAwareProvider, RESERVED_PROVIDER_KEYS
from idlekit.providers.mock import MockIdentityProvider

__all__ = ["Provider", "SessionAwareProvider", "RESERVED_PROVIDER_KEYS", "MockIdentityProvider"]
