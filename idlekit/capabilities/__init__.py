"""Step metadata ownership and provider capability validation."""

from idlekit.capabilities.validator import (
    DEPRECATED_CAPABILITIES,
    CapabilityValidator,
    discover_providers,
    validate_capability_id,
)
from idlekit.capabilities.registry import StepMetadataRegistry

__all__ = [
    "CapabilityValidator", "StepMetadataRegistry", "DEPRECATED_CAPABILITIES",
    "discover_providers", "validate_capability_id",
]
