"""Tests for auth session brokering."""

import pytest

from idlekit.api import new_auth_session_broker
from idlekit.core.auth import AuthSessionAdapter, StaticAuthSessionBroker
from idlekit.exceptions import AuthSessionError, ExecutableContentDetected


def test_static_broker_routes_by_name():
    broker = new_auth_session_broker({"Directory": "dir-cred", "Cloud": "cloud-cred"})
    assert isinstance(broker, StaticAuthSessionBroker)
    assert broker.acquire_session("Cloud", {}) == "cloud-cred"


def test_static_broker_default_and_unknown():
    assert StaticAuthSessionBroker({}, default="fallback").acquire_session("X", {}) == "fallback"
    with pytest.raises(AuthSessionError) as exc_info:
        StaticAuthSessionBroker({"A": 1}).acquire_session("B", {})
    assert exc_info.value.session_name == "B"


def test_adapter_enriches_and_copies_options(make_broker):
    broker = make_broker()
    adapter = AuthSessionAdapter(broker, correlation_id="c-1", actor="hr")
    options = {"Scope": "directory"}

    assert adapter.acquire("Directory", options) == "session-token"
    name, passed = broker.calls[0]
    assert name == "Directory"
    assert passed == {"Scope": "directory", "CorrelationId": "c-1", "Actor": "hr"}
    assert options == {"Scope": "directory"}


def test_adapter_without_broker_raises():
    adapter = AuthSessionAdapter(None)
    assert not adapter.available
    with pytest.raises(AuthSessionError, match="no AuthSessionBroker"):
        adapter.acquire("Directory")


def test_adapter_rejects_executable_options(make_broker):
    adapter = AuthSessionAdapter(make_broker())
    with pytest.raises(ExecutableContentDetected):
        adapter.acquire("Directory", {"Callback": lambda: None})


def test_broker_failures_are_wrapped():
    class BrokenBroker:
        def acquire_session(self, name, options):
            raise ConnectionError("ldap down")

    with pytest.raises(AuthSessionError, match="ldap down"):
        AuthSessionAdapter(BrokenBroker()).acquire("Directory")


def test_inline_callable_broker_is_rejected():
    with pytest.raises(AuthSessionError):
        AuthSessionAdapter(lambda name, options: None)
