"""Capability validation: required (by steps) ⊆ available (from providers).

Provider discovery walks the host's provider container, skips the reserved
non-provider entries (step registry, metadata supplement, broker, sink) and
calls ``get_capabilities()`` on every candidate that has it.

Deprecated capability ids are remapped to their replacement before the subset
check, on both sides, and each remap adds one plan warning.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping
from typing import Any, Optional

from idlekit.exceptions import CapabilityError, InvalidCapabilityIdentifier, MissingCapabilities
from idlekit.providers.base import RESERVED_PROVIDER_KEYS
from idlekit.types import CapabilityValidation

logger = logging.getLogger(__name__)

CAPABILITY_ID_RE = re.compile(r"^[A-Za-z][A-Za-z0-9]*(\.[A-Za-z][A-Za-z0-9]*)+$")

# deprecated id → current id. Removed in the next major version.
DEPRECATED_CAPABILITIES: dict[str, str] = {
    "IdLE.Mailbox.Read": "IdLE.Mailbox.Info.Read",
}


def validate_capability_id(capability: Any) -> str:
    """Return *capability* stripped, or raise InvalidCapabilityIdentifier."""
    if not isinstance(capability, str) or not CAPABILITY_ID_RE.match(capability.strip()):
        raise InvalidCapabilityIdentifier(
            f"Invalid capability identifier {capability!r}. Expected dot-separated "
            "alphanumeric segments, e.g. 'IdLE.Identity.Disable'.",
            capability=str(capability),
        )
    return capability.strip()


def discover_providers(providers: Optional[Mapping[str, Any]]) -> dict[str, Any]:
    """Return the provider entries of the host container (reserved keys removed)."""
    if not providers:
        return {}
    return {
        alias: provider
        for alias, provider in providers.items()
        if alias not in RESERVED_PROVIDER_KEYS and provider is not None
    }


class CapabilityValidator:
    """Compares required and advertised capability sets.

    Args:
        deprecated: Map of deprecated id → replacement id.
    """

    def __init__(self, deprecated: Optional[Mapping[str, str]] = None):
        self.deprecated = dict(DEPRECATED_CAPABILITIES if deprecated is None else deprecated)

    def remap(
        self,
        capabilities: Iterable[str],
        warnings: list[str],
        remapped: dict[str, str],
    ) -> tuple[str, ...]:
        """Validate ids and apply the deprecation map, keeping first-seen order."""
        out: list[str] = []
        for raw in capabilities:
            capability = validate_capability_id(raw)
            replacement = self.deprecated.get(capability)
            if replacement is not None:
                if capability not in remapped:
                    remapped[capability] = replacement
                    warnings.append(
                        f"Capability '{capability}' is deprecated and was mapped to "
                        f"'{replacement}'. It will be removed in the next major version."
                    )
                    logger.warning("[Capabilities] Deprecated capability '%s' → '%s'", capability, replacement)
                capability = replacement
            if capability not in out:
                out.append(capability)
        return tuple(out)

    def provider_capabilities(self, alias: str, provider: Any) -> list[str]:
        """Call the provider's advertisement operation.

        Returns an empty list for entries without ``get_capabilities``.

        Raises:
            CapabilityError: the result is not a list of strings or has duplicates.
        """
        advertise = getattr(provider, "get_capabilities", None)
        if advertise is None or not callable(advertise):
            return []
        result = advertise()
        if result is None:
            return []
        if isinstance(result, (str, bytes)) or not isinstance(result, Iterable):
            raise CapabilityError(
                f"Provider '{alias}' get_capabilities() must return a list of strings.",
                details={"provider": alias},
            )
        capabilities = list(result)
        duplicates = sorted({c for c in capabilities if capabilities.count(c) > 1}, key=str)
        if duplicates:
            raise CapabilityError(
                f"Provider '{alias}' advertises duplicate capabilities: {duplicates}.",
                details={"provider": alias, "duplicates": duplicates},
            )
        return capabilities

    def available(
        self,
        providers: Optional[Mapping[str, Any]],
        warnings: list[str],
        remapped: dict[str, str],
    ) -> tuple[str, ...]:
        """Union of all discovered providers' capabilities, sorted."""
        union: set[str] = set()
        for alias, provider in sorted(discover_providers(providers).items()):
            advertised = self.provider_capabilities(alias, provider)
            union.update(self.remap(advertised, warnings, remapped))
        return tuple(sorted(union))

    def validate(
        self,
        required_by_step: Iterable[tuple[str, Iterable[str]]],
        providers: Optional[Mapping[str, Any]],
        warnings: Optional[list[str]] = None,
        remapped: Optional[dict[str, str]] = None,
    ) -> CapabilityValidation:
        """Fail fast if any required capability is not available.

        Args:
            required_by_step: Ordered (step name, required ids) pairs for
                every step that counts (Run primaries and all OnFailure steps).
            providers:        Host provider container.
            warnings:         Collects deprecation warnings.
            remapped:         Collects deprecated → current ids.

        Raises:
            MissingCapabilities: with missing ids, affected step names and the
                available ids.
        """
        warnings = warnings if warnings is not None else []
        remapped = remapped if remapped is not None else {}

        per_step = [
            (name, self.remap(caps, warnings, remapped)) for name, caps in required_by_step
        ]
        required = sorted({c for _, caps in per_step for c in caps})
        available = self.available(providers, warnings, remapped)

        available_set = set(available)
        missing = [c for c in required if c not in available_set]
        if missing:
            missing_set = set(missing)
            affected = list(dict.fromkeys(
                name for name, caps in per_step if missing_set & set(caps)
            ))
            raise MissingCapabilities(
                f"Missing capabilities: {', '.join(missing)}. "
                f"Affected steps: {', '.join(affected)}. "
                f"Available: {', '.join(available) or '(none)'}.",
                missing=missing,
                affected_steps=affected,
                available=list(available),
            )

        return CapabilityValidation(
            required=tuple(required),
            available=available,
            missing=(),
            remapped=dict(sorted(remapped.items())),
        )
