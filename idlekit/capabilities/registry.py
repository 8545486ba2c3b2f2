"""Step metadata registry: which step pack owns which step type.

Each step pack contributes a catalog ``step type → metadata`` under an owner
id. Catalogs are merged in ascending owner-id order so the merge does not
depend on registration order. A step type may have exactly one owner; a host
supplement may only add types no catalog owns.

Catalog entry shape::

    {"RequiredCapabilities": ["IdLE.Identity.Disable"], "Description": "..."}
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any, Optional

from idlekit.capabilities.validator import validate_capability_id
from idlekit.core.security import assert_data_only
from idlekit.exceptions import (
    DuplicateStepTypeMetadata,
    MissingStepTypeMetadata,
    WorkflowValidationError,
)
from idlekit.types import StepMetadata

logger = logging.getLogger(__name__)

HOST_SUPPLEMENT_OWNER = "Host"

_ENTRY_KEYS = {"requiredcapabilities": "required_capabilities", "description": "description"}


class StepMetadataRegistry:
    """Merges step-pack catalogs and resolves step types to metadata."""

    def __init__(self) -> None:
        self._catalogs: dict[str, dict[str, StepMetadata]] = {}
        self._supplement: dict[str, StepMetadata] = {}

    # ── Registration ──────────────────────────────────────────────────────────

    def register(self, owner_id: str, catalog: Mapping[str, Any]) -> None:
        """Add a step pack's catalog.

        Raises:
            WorkflowValidationError: empty owner, owner registered twice, or a
                malformed catalog entry.
            InvalidCapabilityIdentifier: a capability id is malformed.
        """
        if not isinstance(owner_id, str) or not owner_id.strip():
            raise WorkflowValidationError("Step metadata owner id must be a non-empty string.")
        if owner_id in self._catalogs:
            raise WorkflowValidationError(
                f"Step metadata owner '{owner_id}' is already registered.",
                violations=[f"duplicate owner: {owner_id}"],
            )
        self._catalogs[owner_id] = _normalize_catalog(owner_id, catalog, f"StepMetadata[{owner_id}]")
        logger.debug("[Metadata] Registered %d step types from '%s'", len(catalog), owner_id)

    def add_supplement(self, catalog: Mapping[str, Any]) -> None:
        """Add host-level metadata. Overlaps are detected when merging."""
        assert_data_only(catalog, "StepMetadata")
        entries = _normalize_catalog(HOST_SUPPLEMENT_OWNER, catalog, "StepMetadata")
        for step_type, entry in entries.items():
            if step_type in self._supplement:
                raise DuplicateStepTypeMetadata(
                    f"Host supplement declares step type '{step_type}' twice.",
                    step_type=step_type,
                    owners=[HOST_SUPPLEMENT_OWNER, HOST_SUPPLEMENT_OWNER],
                )
            self._supplement[step_type] = entry

    def with_supplement(self, catalog: Optional[Mapping[str, Any]]) -> "StepMetadataRegistry":
        """Return a copy with *catalog* added as host supplement. ``self`` is unchanged."""
        clone = StepMetadataRegistry()
        clone._catalogs = dict(self._catalogs)
        clone._supplement = dict(self._supplement)
        if catalog:
            clone.add_supplement(catalog)
        return clone

    # ── Resolution ────────────────────────────────────────────────────────────

    def merged(self) -> dict[str, StepMetadata]:
        """Merge all catalogs by ascending owner id, then the host supplement.

        Raises:
            DuplicateStepTypeMetadata: two owners claim the same type, or the
                supplement redefines an owned type.
        """
        merged: dict[str, StepMetadata] = {}
        for owner_id in sorted(self._catalogs):
            for step_type, entry in self._catalogs[owner_id].items():
                existing = merged.get(step_type)
                if existing is not None:
                    raise DuplicateStepTypeMetadata(
                        f"Step type '{step_type}' is claimed by both '{existing.owner}' "
                        f"and '{owner_id}'.",
                        step_type=step_type,
                        owners=[existing.owner, owner_id],
                    )
                merged[step_type] = entry
        for step_type, entry in sorted(self._supplement.items()):
            existing = merged.get(step_type)
            if existing is not None:
                raise DuplicateStepTypeMetadata(
                    f"Host supplement cannot override step type '{step_type}' "
                    f"owned by '{existing.owner}'.",
                    step_type=step_type,
                    owners=[existing.owner, HOST_SUPPLEMENT_OWNER],
                )
            merged[step_type] = entry
        return merged

    def resolve(self, step_type: str) -> StepMetadata:
        return self.resolve_many([step_type])[step_type]

    def resolve_many(self, step_types: Iterable[str]) -> dict[str, StepMetadata]:
        """Resolve every type; all unknown types are reported together.

        Raises:
            MissingStepTypeMetadata: with every unowned type listed.
            DuplicateStepTypeMetadata: see :meth:`merged`.
        """
        merged = self.merged()
        wanted = list(dict.fromkeys(step_types))
        missing = [t for t in wanted if t not in merged]
        if missing:
            raise MissingStepTypeMetadata(
                f"No step metadata for step type(s): {', '.join(sorted(missing))}. "
                "Register the step pack that owns them or add a host StepMetadata entry.",
                step_types=missing,
            )
        return {t: merged[t] for t in wanted}

    def owners(self) -> list[str]:
        return sorted(self._catalogs)


def _normalize_catalog(owner_id: str, catalog: Mapping[str, Any], where: str) -> dict[str, StepMetadata]:
    if not isinstance(catalog, Mapping):
        raise WorkflowValidationError(
            f"{where} must be a map of step type → metadata, got {type(catalog).__name__}."
        )
    entries: dict[str, StepMetadata] = {}
    for step_type, raw in catalog.items():
        if not isinstance(step_type, str) or not step_type.strip():
            raise WorkflowValidationError(f"{where}: step type keys must be non-empty strings.")
        entries[step_type] = _normalize_entry(owner_id, step_type, raw, f"{where}.{step_type}")
    return entries


def _normalize_entry(owner_id: str, step_type: str, raw: Any, where: str) -> StepMetadata:
    if isinstance(raw, StepMetadata):
        fields: dict[str, Any] = {
            "required_capabilities": raw.required_capabilities,
            "description": raw.description,
        }
    elif isinstance(raw, Mapping):
        fields = {}
        for key, value in raw.items():
            name = _ENTRY_KEYS.get(str(key).lower())
            if name is None:
                raise WorkflowValidationError(
                    f"{where}: unknown metadata key '{key}'. "
                    "Allowed: RequiredCapabilities, Description.",
                    violations=[f"{where}.{key}"],
                )
            fields[name] = value
    else:
        raise WorkflowValidationError(f"{where}: metadata must be a map.")

    caps = fields.get("required_capabilities") or ()
    if isinstance(caps, str):
        caps = (caps,)
    capabilities = tuple(dict.fromkeys(validate_capability_id(c) for c in caps))
    return StepMetadata(
        step_type=step_type,
        owner=owner_id,
        required_capabilities=capabilities,
        description=str(fields.get("description") or ""),
    )
