"""Test fixtures: sample workflows, requests, providers, recording handlers.

All tests should use these fixtures for consistency.
"""

import pytest

from idlekit.api import new_lifecycle_request
from idlekit.capabilities.registry import StepMetadataRegistry
from idlekit.config import EngineSettings
from idlekit.providers.mock import MockIdentityProvider
from idlekit.steps.base import SessionAwareStepHandler, StepHandlerRegistry
from idlekit.steps.common import COMMON_STEP_METADATA, STEP_PACK_ID, register_common_steps
from idlekit.types import StepResult, StepStatus


# ── Test doubles ─────────────────────────────────────────────────────────────


class _RecordingHandler:
    """Handler that records calls and returns a fixed outcome."""

    def __init__(self, outcome=None, raises: Exception = None):
        self.outcome = outcome
        self.raises = raises
        self.calls = []

    def execute(self, context, step):
        self.calls.append(step)
        if self.raises is not None:
            raise self.raises
        return self.outcome


class _FailingHandler(_RecordingHandler):
    def __init__(self, error: str = "boom"):
        super().__init__(raises=RuntimeError(error))


class _SessionRecordingHandler(SessionAwareStepHandler):
    """Session-aware handler that keeps the sessions it receives."""

    def __init__(self):
        self.sessions = []

    def execute(self, context, step, session=None):
        self.sessions.append(session)
        return StepResult(name=step.name, type=step.type, status=StepStatus.COMPLETED, changed=True)


class _RecordingSink:
    """Host event sink that keeps every forwarded event."""

    def __init__(self):
        self.events = []

    def write_event(self, type, message, step_name, data):
        self.events.append({"type": type, "message": message, "step": step_name, "data": data})


class _RecordingBroker:
    def __init__(self, session="session-token"):
        self.session = session
        self.calls = []

    def acquire_session(self, name, options):
        self.calls.append((name, options))
        return self.session


class _StaticProvider:
    """Capability-only provider."""

    def __init__(self, *capabilities):
        self.capabilities = list(capabilities)

    def get_capabilities(self):
        return list(self.capabilities)


# ── Fixtures ─────────────────────────────────────────────────────────────────


@pytest.fixture
def settings():
    """Default settings, isolated from IDLE_* environment variables."""
    return EngineSettings(_env_file=None)


@pytest.fixture
def joiner_workflow():
    """Minimal one-step Joiner workflow (EmitEvent only)."""
    return {
        "Name": "Joiner - Standard",
        "LifecycleEvent": "Joiner",
        "Steps": [
            {"Name": "Emit:Start", "Type": "EmitEvent", "With": {"Message": "Starting Joiner"}},
        ],
    }


@pytest.fixture
def identity_workflow():
    """Joiner workflow that touches the identity provider."""
    return {
        "Name": "Joiner - Identity",
        "LifecycleEvent": "Joiner",
        "Version": "2",
        "Steps": [
            {
                "Name": "Create",
                "Type": "CreateIdentity",
                "With": {
                    "IdentityKey": "{{Request.IdentityKeys.EmployeeId}}",
                    "Attributes": {"DisplayName": "{{Request.DesiredState.DisplayName}}"},
                },
            },
            {
                "Name": "SetDepartment",
                "Type": "EnsureAttribute",
                "With": {
                    "IdentityKey": "{{Request.IdentityKeys.EmployeeId}}",
                    "Name": "Department",
                    "Value": "{{Request.DesiredState.Department}}",
                },
            },
        ],
        "OnFailureSteps": [
            {"Name": "Notify", "Type": "EmitEvent", "With": {"Message": "Joiner failed"}},
        ],
    }


@pytest.fixture
def joiner_request():
    return new_lifecycle_request(
        "Joiner",
        identity_keys={"EmployeeId": "42"},
        desired_state={"DisplayName": "Ada Lovelace", "Department": "R&D"},
        actor="hr-system",
        correlation_id="corr-0001",
    )


@pytest.fixture
def provider():
    return MockIdentityProvider()


@pytest.fixture
def registry():
    """Handler registry with the common step pack."""
    return register_common_steps(StepHandlerRegistry())


@pytest.fixture
def metadata_registry():
    registry = StepMetadataRegistry()
    registry.register(STEP_PACK_ID, COMMON_STEP_METADATA)
    return registry


@pytest.fixture
def sink():
    return _RecordingSink()


@pytest.fixture
def make_handler():
    """Factory: ``make_handler(outcome=None, raises=None)`` records every call."""
    return _RecordingHandler


@pytest.fixture
def make_failing_handler():
    """Factory: ``make_failing_handler("boom")`` raises RuntimeError on every call."""
    return _FailingHandler


@pytest.fixture
def session_handler():
    return _SessionRecordingHandler()


@pytest.fixture
def make_broker():
    """Factory: ``make_broker(session)`` returns *session* and records requests."""
    return _RecordingBroker


@pytest.fixture
def make_provider():
    """Factory: ``make_provider("X.Read", ...)`` advertises the given capabilities."""
    return _StaticProvider
