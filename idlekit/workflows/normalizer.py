"""
WorkflowNormalizer — shape validation of an authored workflow definition.

Turns the deserialized, code-free data into a :class:`WorkflowDefinition`.
All checks run even if earlier ones fail so authors get the full violation
list in one shot.

Authored schema (keys are matched case-insensitively)::

    Name: str                 (required, non-empty)
    LifecycleEvent: str       (required, non-empty)
    Version: str | number     (optional)
    Description: str          (optional)
    Steps: [step, ...]        (required)
    OnFailureSteps: [step]    (optional)

    step:
      Name: str               (required, unique within its list)
      Type: str               (required)
      With: map               (optional)
      Condition: map          (optional)
      Description: str        (optional)
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from idlekit.core.conditions import parse_condition
from idlekit.core.security import assert_data_only
from idlekit.exceptions import ConditionError, WorkflowValidationError
from idlekit.types import WorkflowDefinition, WorkflowStep

logger = logging.getLogger(__name__)

_WORKFLOW_KEYS = {
    "name": "Name",
    "lifecycleevent": "LifecycleEvent",
    "version": "Version",
    "description": "Description",
    "steps": "Steps",
    "onfailuresteps": "OnFailureSteps",
}

_STEP_KEYS = {
    "name": "Name",
    "type": "Type",
    "with": "With",
    "condition": "Condition",
    "description": "Description",
}

# Derived from step metadata at plan time; authors may not set it.
_DERIVED_STEP_KEYS = {"requirescapabilities", "requiredcapabilities"}


class WorkflowNormalizer:
    """
    Validates and normalizes workflow definitions.

    Usage::

        normalizer = WorkflowNormalizer()
        errors = normalizer.validate(raw)
        workflow = normalizer.normalize(raw)   # raises on any error

    Args:
        max_steps: Upper bound per step list.
    """

    def __init__(self, max_steps: int = 200) -> None:
        self.max_steps = max_steps

    def validate(self, raw: Any) -> list[str]:
        """Return all shape violations. Empty list means the workflow is valid."""
        errors: list[str] = []
        self._collect(raw, errors)
        return errors

    def normalize(self, raw: Any) -> WorkflowDefinition:
        """
        Security-gate, validate and convert *raw* to a WorkflowDefinition.

        Raises:
            ExecutableContentDetected: if *raw* contains executable content.
            WorkflowValidationError: with every violation found.
        """
        assert_data_only(raw, "Workflow")
        errors: list[str] = []

        if isinstance(raw, WorkflowDefinition):
            # Pre-built definitions skip key parsing but not the per-list step checks.
            self._check_step_list([_authored(s) for s in raw.steps], "Steps", errors)
            self._check_step_list([_authored(s) for s in raw.on_failure_steps], "OnFailureSteps", errors)
            _raise_if_invalid(errors)
            return raw

        fields = self._collect(raw, errors)
        _raise_if_invalid(errors)

        version = fields.get("Version")
        workflow = WorkflowDefinition(
            name=fields["Name"].strip(),
            lifecycle_event=fields["LifecycleEvent"].strip(),
            version=str(version) if version is not None else None,
            description=str(fields.get("Description") or ""),
            steps=tuple(self._to_step(s) for s in fields["Steps"]),
            on_failure_steps=tuple(self._to_step(s) for s in fields.get("OnFailureSteps") or ()),
        )
        logger.debug(
            "[Workflow] Normalized '%s' (%d steps, %d on-failure steps)",
            workflow.name, len(workflow.steps), len(workflow.on_failure_steps),
        )
        return workflow

    # ── Checks ────────────────────────────────────────────────────────────────

    def _collect(self, raw: Any, errors: list[str]) -> dict[str, Any]:
        if not isinstance(raw, Mapping):
            errors.append(f"Workflow must be a map, got {type(raw).__name__}.")
            return {}

        fields = _canonical_keys(raw, _WORKFLOW_KEYS, "Workflow", errors)

        for key in ("Name", "LifecycleEvent"):
            value = fields.get(key)
            if not isinstance(value, str) or not value.strip():
                errors.append(f"Workflow.{key} is required and must be a non-empty string.")

        version = fields.get("Version")
        if version is not None and (isinstance(version, bool) or not isinstance(version, (str, int, float))):
            errors.append("Workflow.Version must be a string or number.")

        if "Steps" not in fields:
            errors.append("Workflow.Steps is required.")
        else:
            self._check_step_list(fields["Steps"], "Steps", errors)
        if fields.get("OnFailureSteps") is not None:
            self._check_step_list(fields["OnFailureSteps"], "OnFailureSteps", errors)

        return fields

    def _check_step_list(self, steps: Any, list_name: str, errors: list[str]) -> None:
        if isinstance(steps, (str, bytes, Mapping)) or not isinstance(steps, (list, tuple)):
            errors.append(f"Workflow.{list_name} must be a list of steps.")
            return
        if len(steps) > self.max_steps:
            errors.append(
                f"Workflow.{list_name} has {len(steps)} steps; maximum allowed is {self.max_steps}."
            )

        seen: dict[str, int] = {}
        for index, step in enumerate(steps):
            where = f"{list_name}[{index}]"
            if not isinstance(step, Mapping):
                errors.append(f"{where} must be a map.")
                continue

            for key in step:
                if str(key).lower() in _DERIVED_STEP_KEYS:
                    errors.append(
                        f"{where}.{key} is derived from step metadata and cannot be authored."
                    )
            fields = _canonical_keys(
                {k: v for k, v in step.items() if str(k).lower() not in _DERIVED_STEP_KEYS},
                _STEP_KEYS, where, errors,
            )

            name = fields.get("Name")
            if not isinstance(name, str) or not name.strip():
                errors.append(f"{where}.Name is required and must be a non-empty string.")
            else:
                where = f"{list_name}[{index}] ('{name}')"
                if name.strip() in seen:
                    errors.append(
                        f"{where}: duplicate step name; already used by "
                        f"{list_name}[{seen[name.strip()]}]."
                    )
                else:
                    seen[name.strip()] = index

            step_type = fields.get("Type")
            if not isinstance(step_type, str) or not step_type.strip():
                errors.append(f"{where}.Type is required and must be a non-empty string.")

            params = fields.get("With")
            if params is not None and not isinstance(params, Mapping):
                errors.append(f"{where}.With must be a map.")

            condition = fields.get("Condition")
            if condition is not None:
                try:
                    parse_condition(condition, f"{list_name}[{index}].Condition")
                except ConditionError as exc:
                    errors.append(str(exc))

    # ── Conversion ────────────────────────────────────────────────────────────

    def _to_step(self, raw: Mapping[str, Any]) -> WorkflowStep:
        fields = _canonical_keys(raw, _STEP_KEYS, "", [])
        return WorkflowStep(
            name=fields["Name"].strip(),
            type=fields["Type"].strip(),
            params=dict(fields.get("With") or {}),
            condition=fields.get("Condition"),
            description=str(fields.get("Description") or ""),
        )


def _authored(step: WorkflowStep) -> dict[str, Any]:
    raw: dict[str, Any] = {"Name": step.name, "Type": step.type, "With": step.params}
    if step.condition is not None:
        raw["Condition"] = step.condition
    return raw


def _raise_if_invalid(errors: list[str]) -> None:
    if errors:
        raise WorkflowValidationError(
            f"Workflow definition is invalid ({len(errors)} problem(s)): {errors[0]}",
            violations=errors,
        )


def normalize_workflow(raw: Any, max_steps: int = 200) -> WorkflowDefinition:
    """Module-level shortcut for ``WorkflowNormalizer(max_steps).normalize(raw)``."""
    return WorkflowNormalizer(max_steps=max_steps).normalize(raw)


def _canonical_keys(
    raw: Mapping[str, Any],
    allowed: dict[str, str],
    where: str,
    errors: list[str],
) -> dict[str, Any]:
    """Map authored keys to canonical casing; report unknown and duplicate keys."""
    fields: dict[str, Any] = {}
    prefix = f"{where}." if where else ""
    for key, value in raw.items():
        canonical = allowed.get(str(key).lower())
        if canonical is None:
            errors.append(
                f"{prefix}{key}: unknown key. Allowed: {', '.join(sorted(allowed.values()))}."
            )
            continue
        if canonical in fields:
            errors.append(f"{prefix}{canonical}: key specified more than once.")
            continue
        fields[canonical] = value
    return fields
