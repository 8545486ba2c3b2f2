"""Tests for secret redaction."""

from dataclasses import dataclass

from pydantic import SecretStr

from idlekit.core.redaction import REDACTED, Redactor, is_sensitive_key, redact


def test_known_keys_are_redacted_at_any_depth():
    data = {"With": {"Password": "s3cr3t", "Nested": [{"client_secret": "x"}], "Name": "ada"}}
    out = redact(data)
    assert out["With"]["Password"] == REDACTED
    assert out["With"]["Nested"][0]["client_secret"] == REDACTED
    assert out["With"]["Name"] == "ada"


def test_key_matching_ignores_case_and_separators():
    for key in ("PASSWORD", "Api-Key", "access_token", "Connection String"):
        assert is_sensitive_key(key), key
    assert not is_sensitive_key("DisplayName")


def test_input_is_not_modified():
    data = {"Password": "s3cr3t"}
    redact(data)
    assert data == {"Password": "s3cr3t"}


def test_secret_types_are_redacted_regardless_of_key():
    out = redact({"Anything": SecretStr("hidden")})
    assert out == {"Anything": REDACTED}


def test_flagged_objects_are_redacted():
    class Credential:
        __idle_sensitive__ = True

    assert redact([Credential()]) == [REDACTED]


def test_extra_keys_and_custom_placeholder():
    redactor = Redactor(placeholder="***", extra_keys=["EmployeeSsn"])
    out = redactor.redact({"employee_ssn": "123", "Token": "t", "Id": 1})
    assert out == {"employee_ssn": "***", "Token": "***", "Id": 1}


def test_tuples_stay_tuples():
    out = redact(({"Secret": "x"}, "plain"))
    assert out == ({"Secret": REDACTED}, "plain")


@dataclass
class Account:
    user: str
    password: str


def test_dataclass_fields_are_walked_as_keys():
    out = redact({"Acct": Account("ada", "s3cr3t")})
    assert out == {"Acct": {"user": "ada", "password": REDACTED}}
