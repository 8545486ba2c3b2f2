"""Engine configuration. All env vars defined here with defaults."""

from pydantic_settings import BaseSettings


class EngineSettings(BaseSettings):
    # ── Logging ──
    log_level: str = "INFO"

    # ── Redaction ──
    redaction_placeholder: str = "[REDACTED]"
    extra_sensitive_keys: list[str] = []       # added to the built-in secret key list

    # ── Events ──
    emit_progress_events: bool = False         # RunStarted/StepStarted/StepCompleted/RunCompleted

    # ── Planning ──
    max_workflow_steps: int = 200              # per list (Steps and OnFailureSteps)
    plan_export_schema_version: str = "1.0"

    model_config = {"env_prefix": "IDLE_", "env_file": ".env", "extra": "ignore"}
