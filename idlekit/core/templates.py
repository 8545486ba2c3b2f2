"""Template resolution for ``{{path}}`` placeholders in step parameters.

Templates are parsed once into a sequence of literal and placeholder segments
and rendered against the request data at plan-build time. They are never
re-evaluated during execution.

Syntax:
  - ``{{Request.DesiredState.Department}}`` — replaced by the scalar value
  - ``\\{{`` — literal ``{{`` (the backslash is dropped)
  - a stray ``}}`` outside a placeholder is literal text

Failure cases (all raise :class:`TemplateError`):
  - ``{{`` without a matching ``}}`` or a nested ``{{``
  - malformed path (segments must be identifiers)
  - path outside the allowed roots
  - missing or null value
  - non-scalar value (map, list, object)
"""

from __future__ import annotations

import re
import uuid
from collections.abc import Mapping
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, Union

from pydantic import BaseModel

from idlekit.exceptions import TemplateError

# Request-derived roots only. Plan, provider and workflow data are never reachable.
ALLOWED_TEMPLATE_ROOTS: tuple[str, ...] = (
    "Request.IdentityKeys",
    "Request.DesiredState",
    "Request.Changes",
    "Request.Input",
    "Request.LifecycleEvent",
    "Request.CorrelationId",
    "Request.Actor",
)

_PATH_RE = re.compile(r"^[A-Za-z][A-Za-z0-9_]*(\.[A-Za-z0-9_][A-Za-z0-9_-]*)*$")
_SCALAR_TYPES = (str, bool, int, float, Decimal, datetime, date, time, uuid.UUID, Enum)


# ── Parsed form ───────────────────────────────────────────────────────────────


class TextSegment(BaseModel):
    model_config = {"frozen": True}
    text: str


class PlaceholderSegment(BaseModel):
    model_config = {"frozen": True}
    path: str


Segment = Union[TextSegment, PlaceholderSegment]


def parse_template(text: str) -> tuple[Segment, ...]:
    """Split *text* into literal and placeholder segments.

    Raises:
        TemplateError: on unbalanced or nested braces, or a malformed path.
    """
    segments: list[Segment] = []
    buf: list[str] = []
    i = 0
    n = len(text)

    while i < n:
        if text.startswith("\\{{", i):
            buf.append("{{")
            i += 3
            continue
        if text.startswith("{{", i):
            end = text.find("}}", i + 2)
            if end == -1:
                raise TemplateError(
                    f"Unbalanced template braces in {text!r}: '{{{{' without closing '}}}}'.",
                    template=text,
                )
            inner = text[i + 2:end]
            if "{{" in inner:
                raise TemplateError(
                    f"Nested '{{{{' inside placeholder in {text!r}.", template=text
                )
            path = inner.strip()
            if not _PATH_RE.match(path):
                raise TemplateError(
                    f"Invalid template path {path!r} in {text!r}.", template=text, path=path
                )
            if buf:
                segments.append(TextSegment(text="".join(buf)))
                buf = []
            segments.append(PlaceholderSegment(path=path))
            i = end + 2
            continue
        buf.append(text[i])
        i += 1

    if buf:
        segments.append(TextSegment(text="".join(buf)))
    return tuple(segments)


def has_placeholders(text: str) -> bool:
    return "{{" in text


# ── Rendering ─────────────────────────────────────────────────────────────────


def resolve_template(
    text: str,
    data: Mapping[str, Any],
    allowed_roots: Iterable[str] = ALLOWED_TEMPLATE_ROOTS,
) -> str:
    """Resolve all placeholders in *text* against *data*.

    Args:
        text:          The string to resolve.
        data:          Root bindings, e.g. ``{"Request": {...}}``.
        allowed_roots: Path prefixes a placeholder may reference.

    Returns:
        The resolved string. Strings without ``{{`` are returned unchanged.
    """
    if not has_placeholders(text):
        return text

    roots = tuple(allowed_roots)
    out: list[str] = []
    for segment in parse_template(text):
        if isinstance(segment, TextSegment):
            out.append(segment.text)
            continue
        path = segment.path
        if not _is_allowed(path, roots):
            raise TemplateError(
                f"Template path '{path}' is not under an allowed root "
                f"({', '.join(roots)}).",
                template=text,
                path=path,
            )
        found, value = lookup_path(data, path)
        if not found or value is None:
            raise TemplateError(
                f"Template path '{path}' did not resolve to a value.",
                template=text,
                path=path,
            )
        if not isinstance(value, _SCALAR_TYPES):
            raise TemplateError(
                f"Template path '{path}' resolved to non-scalar "
                f"{type(value).__name__}; only scalar values can be embedded.",
                template=text,
                path=path,
            )
        out.append(scalar_to_string(value))
    return "".join(out)


def resolve_templates(
    value: Any,
    data: Mapping[str, Any],
    allowed_roots: Iterable[str] = ALLOWED_TEMPLATE_ROOTS,
) -> Any:
    """Resolve placeholders in every string nested inside *value*.

    Maps and sequences are rebuilt (keys are left as authored); other values
    are returned unchanged.
    """
    roots = tuple(allowed_roots)
    if isinstance(value, str):
        return resolve_template(value, data, roots)
    if isinstance(value, Mapping):
        return {k: resolve_templates(v, data, roots) for k, v in value.items()}
    if isinstance(value, list):
        return [resolve_templates(v, data, roots) for v in value]
    if isinstance(value, tuple):
        return tuple(resolve_templates(v, data, roots) for v in value)
    return value


def scalar_to_string(value: Any) -> str:
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    return str(value)


# ── Path lookup (shared with the condition evaluator) ─────────────────────────


def lookup_path(data: Any, path: str) -> tuple[bool, Any]:
    """Walk a dot-separated *path* through maps and model attributes.

    Returns:
        ``(found, value)``; ``found`` is False when any segment is missing.
    """
    current = data
    for part in path.split("."):
        if isinstance(current, Mapping):
            if part not in current:
                return False, None
            current = current[part]
        elif isinstance(current, BaseModel) and part in type(current).model_fields:
            current = getattr(current, part)
        else:
            return False, None
    return True, current


def _is_allowed(path: str, roots: tuple[str, ...]) -> bool:
    return any(path == root or path.startswith(root + ".") for root in roots)


def request_bindings(request: Any) -> dict[str, Any]:
    """Expose a request (or request snapshot) under the ``Request`` root.

    ``Request.Input`` is an alias of ``Request.DesiredState``.
    """
    return {
        "Request": {
            "LifecycleEvent": request.lifecycle_event,
            "CorrelationId": request.correlation_id,
            "Actor": request.actor,
            "IdentityKeys": request.identity_keys,
            "DesiredState": request.desired_state,
            "Changes": request.changes,
            "Input": request.desired_state,
        }
    }
