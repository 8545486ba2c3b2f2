"""Redaction of secret-bearing data at output boundaries.

Applied to buffered and streamed events, exported plans and returned results.
Works on copies; the input is never modified.

Two rules:
  1. A map key that case-insensitively equals a known secret name has its
     value replaced by the placeholder, at any nesting depth.
  2. A value of a sensitive runtime type (pydantic ``SecretStr`` /
     ``SecretBytes``, or any object flagged with ``__idle_sensitive__``)
     is replaced regardless of its key.

Pydantic models and dataclasses are walked as maps of their field names.

Free-text message strings are not scanned.
"""

import dataclasses
from collections.abc import Mapping
from typing import Any, Iterable, Optional

from pydantic import BaseModel, SecretBytes, SecretStr

REDACTED = "[REDACTED]"

# Compared after lower-casing and stripping "-", "_" and spaces.
_SENSITIVE_KEYS: frozenset[str] = frozenset({
    "password",
    "passwd",
    "pwd",
    "secret",
    "clientsecret",
    "token",
    "accesstoken",
    "refreshtoken",
    "idtoken",
    "apikey",
    "authorization",
    "credential",
    "credentials",
    "privatekey",
    "certificatepassword",
    "connectionstring",
})

_SENSITIVE_TYPES = (SecretStr, SecretBytes)


def _normalize_key(key: Any) -> str:
    return str(key).lower().replace("-", "").replace("_", "").replace(" ", "")


def is_sensitive_key(key: Any, extra_keys: Iterable[str] = ()) -> bool:
    normalized = _normalize_key(key)
    if normalized in _SENSITIVE_KEYS:
        return True
    return any(normalized == _normalize_key(k) for k in extra_keys)


def is_sensitive_value(value: Any) -> bool:
    return isinstance(value, _SENSITIVE_TYPES) or bool(getattr(value, "__idle_sensitive__", False))


class Redactor:
    """Produces sanitized deep copies of structured data.

    Args:
        placeholder: Replacement for redacted values.
        extra_keys:  Additional secret key names (e.g. from ``EngineSettings``).
    """

    def __init__(self, placeholder: str = REDACTED, extra_keys: Iterable[str] = ()):
        self.placeholder = placeholder
        self._extra_keys = tuple(extra_keys)

    def redact(self, value: Any) -> Any:
        """Return a sanitized copy of *value*."""
        return self._copy(value, set())

    def _copy(self, value: Any, active: set[int]) -> Any:
        if is_sensitive_value(value):
            return self.placeholder
        if value is None or isinstance(value, (str, bytes, bool, int, float)):
            return value

        marker = id(value)
        if marker in active:
            return self.placeholder
        if isinstance(value, BaseModel):
            active.add(marker)
            result = {
                name: (self.placeholder if is_sensitive_key(name, self._extra_keys)
                       else self._copy(getattr(value, name), active))
                for name in type(value).model_fields
            }
            active.discard(marker)
            return result
        if dataclasses.is_dataclass(value) and not isinstance(value, type):
            active.add(marker)
            result = {
                field.name: (self.placeholder if is_sensitive_key(field.name, self._extra_keys)
                             else self._copy(getattr(value, field.name), active))
                for field in dataclasses.fields(value)
            }
            active.discard(marker)
            return result
        if isinstance(value, Mapping):
            active.add(marker)
            result = {
                k: (self.placeholder if is_sensitive_key(k, self._extra_keys)
                    else self._copy(v, active))
                for k, v in value.items()
            }
            active.discard(marker)
            return result
        if isinstance(value, (list, tuple, set, frozenset)):
            active.add(marker)
            items = [self._copy(v, active) for v in value]
            active.discard(marker)
            return tuple(items) if isinstance(value, tuple) else items
        return value


def redact(value: Any, placeholder: Optional[str] = None, extra_keys: Iterable[str] = ()) -> Any:
    """Convenience wrapper: ``Redactor(placeholder, extra_keys).redact(value)``."""
    return Redactor(placeholder or REDACTED, extra_keys).redact(value)
