"""Step handler contracts and the built-in step pack."""

from idlekit.steps.base import SessionAwareStepHandler, StepHandler, StepHandlerRegistry
from idlekit.steps.common import (
    COMMON_STEP_METADATA,
    STEP_PACK_ID,
    EmitEventStep,
    ProviderOperationStep,
    register_common_steps,
)

__all__ = [
    "StepHandler", "SessionAwareStepHandler", "StepHandlerRegistry",
    "EmitEventStep", "ProviderOperationStep", "register_common_steps",
    "COMMON_STEP_METADATA", "STEP_PACK_ID",
]
