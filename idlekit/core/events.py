"""Event sink: buffers engine events and optionally forwards them to the host.

Every event's data passes through the redactor before it is buffered or
forwarded. A host sink must be an object exposing ``write_event``; inline
callables are rejected.
"""

import copy
import logging
from collections.abc import Mapping
from typing import Any, Optional, Protocol, runtime_checkable

from idlekit.core.redaction import Redactor
from idlekit.core.security import require_operation
from idlekit.exceptions import EventSinkError
from idlekit.types import EngineEvent

logger = logging.getLogger(__name__)

# ── Event types ──────────────────────────────────────────────────────────────

RUN_STARTED = "RunStarted"
RUN_COMPLETED = "RunCompleted"
STEP_STARTED = "StepStarted"
STEP_COMPLETED = "StepCompleted"
STEP_SKIPPED = "StepSkipped"
STEP_FAILED = "StepFailed"
ON_FAILURE_STARTED = "OnFailureStarted"
ON_FAILURE_STEP_FAILED = "OnFailureStepFailed"
ON_FAILURE_COMPLETED = "OnFailureCompleted"
CUSTOM = "Custom"


@runtime_checkable
class EventSinkProtocol(Protocol):
    """Contract for host-supplied sinks."""

    def write_event(
        self,
        type: str,
        message: str,
        step_name: Optional[str],
        data: Optional[dict[str, Any]],
    ) -> None:
        ...


class EventSink:
    """Per-execution event buffer with optional forwarding.

    Args:
        redactor:       Redactor applied to event data.
        external:       Optional host sink exposing ``write_event``.
        correlation_id: Stamped on every event.
    """

    def __init__(
        self,
        redactor: Optional[Redactor] = None,
        external: Any = None,
        correlation_id: Optional[str] = None,
    ) -> None:
        if external is not None:
            require_operation(external, "write_event", "Event sink", error_cls=EventSinkError)
        self._redactor = redactor or Redactor()
        self._external = external
        self._correlation_id = correlation_id
        self._buffer: list[EngineEvent] = []

    def write_event(
        self,
        type: str,
        message: str = "",
        step_name: Optional[str] = None,
        data: Optional[Mapping[str, Any]] = None,
    ) -> EngineEvent:
        """Redact, buffer and forward one event.

        Raises:
            EventSinkError: if *type* is empty or *data* is not a map.
        """
        if not type or not isinstance(type, str):
            raise EventSinkError("Event type must be a non-empty string.")
        if data is not None and not isinstance(data, Mapping):
            raise EventSinkError(f"Event data must be a map, got {data.__class__.__name__}.")

        event = EngineEvent(
            type=type,
            message=message or "",
            step_name=step_name,
            data=self._redactor.redact(data) if data is not None else None,
            correlation_id=self._correlation_id,
        )
        self._buffer.append(event)
        logger.debug("[Events] %s step=%s", event.type, event.step_name)

        if self._external is not None:
            self._external.write_event(
                event.type, event.message, event.step_name, copy.deepcopy(event.data)
            )
        return event

    @property
    def events(self) -> tuple[EngineEvent, ...]:
        return tuple(self._buffer)

    def __len__(self) -> int:
        return len(self._buffer)
