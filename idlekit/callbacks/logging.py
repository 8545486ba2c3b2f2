"""Host event sink that writes structured JSON log lines."""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

logger = logging.getLogger("idlekit.audit")

_ERROR_EVENTS = {"StepFailed", "OnFailureStepFailed"}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class LoggingEventSink:
    """Emits one self-contained JSON object per engine event.

    Each log line carries:
      - event: event type
      - ts: ISO-8601 UTC timestamp
      - message, step, data (already redacted by the engine)

    Log level: WARNING for failure events, INFO otherwise.
    Logger name: idlekit.audit (configure in your logging setup)

    Pass an instance as the host event sink::

        engine.execute(plan, providers, event_sink=LoggingEventSink())
    """

    def __init__(self, logger_name: Optional[str] = None):
        self._logger = logging.getLogger(logger_name) if logger_name else logger

    def write_event(
        self,
        type: str,
        message: str,
        step_name: Optional[str],
        data: Optional[dict[str, Any]],
    ) -> None:
        level = logging.WARNING if type in _ERROR_EVENTS else logging.INFO
        self._logger.log(level, json.dumps({
            "event": type,
            "ts": _now(),
            "message": message,
            "step": step_name,
            "data": data,
        }, default=str, sort_keys=True))
