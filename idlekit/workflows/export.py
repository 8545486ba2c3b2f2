"""Plan export: a diff-stable, redacted JSON document for review and CI.

Volatile fields (plan id, build timestamp) are left out so exporting the same
plan twice, or two plans built from the same inputs, yields identical text.
"""

import json
import logging
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union

from idlekit.config import EngineSettings
from idlekit.core.redaction import REDACTED, Redactor
from idlekit.types import Plan, PlanStep

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "1.0"


def _step_to_dict(step: PlanStep) -> dict[str, Any]:
    return {
        "name": step.name,
        "type": step.type,
        "status": step.status.value,
        "reason": step.reason,
        "with": step.params,
        "condition": step.condition,
        "requiresCapabilities": list(step.requires_capabilities),
    }


def plan_to_export_dict(
    plan: Plan,
    placeholder: Optional[str] = None,
    extra_keys: tuple[str, ...] = (),
    schema_version: str = SCHEMA_VERSION,
) -> dict[str, Any]:
    """Build the export document as plain, redacted data."""
    request = plan.request
    document = {
        "schemaVersion": schema_version,
        "workflow": {
            "name": plan.workflow_name,
            "lifecycleEvent": plan.lifecycle_event,
        },
        "request": {
            "lifecycleEvent": request.lifecycle_event,
            "correlationId": request.correlation_id,
            "actor": request.actor,
            "input": {
                "identityKeys": request.identity_keys,
                "desiredState": request.desired_state,
                "changes": request.changes,
            },
        },
        "plan": {
            "steps": [_step_to_dict(s) for s in plan.steps],
            "onFailureSteps": [_step_to_dict(s) for s in plan.on_failure_steps],
            "warnings": list(plan.warnings),
            "capabilities": {
                "required": list(plan.capabilities.required),
                "available": list(plan.capabilities.available),
            },
        },
    }
    return Redactor(placeholder=placeholder or REDACTED, extra_keys=extra_keys).redact(document)


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    return str(value)


def export_plan(
    plan: Plan,
    path: Optional[Union[str, Path]] = None,
    settings: Optional[EngineSettings] = None,
) -> str:
    """Serialize *plan* to JSON (sorted keys, 2-space indent).

    Args:
        plan:     The plan to export.
        path:     Optional file to write the document to (UTF-8).
        settings: Supplies the redaction placeholder, extra sensitive keys
                  and schema version.

    Returns:
        The JSON text, with a trailing newline.
    """
    settings = settings or EngineSettings()
    document = plan_to_export_dict(
        plan,
        placeholder=settings.redaction_placeholder,
        extra_keys=tuple(settings.extra_sensitive_keys),
        schema_version=settings.plan_export_schema_version,
    )
    text = json.dumps(document, sort_keys=True, indent=2, ensure_ascii=False, default=_json_default) + "\n"
    if path is not None:
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(text, encoding="utf-8")
        logger.info("[Export] Plan for '%s' written to %s", plan.workflow_name, target)
    return text
