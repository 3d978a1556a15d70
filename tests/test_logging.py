"""
Tests for the structured log formatter
"""

import json
import logging

from tenanthub.core.logger import JSONFormatter


def _record(**extra):
    record = logging.LogRecord("tenanthub", logging.WARNING, __file__, 1, "Security event", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_extra_fields_lifted_to_top_level():
    out = json.loads(JSONFormatter().format(_record(action="login", result="failure", user_id="u1")))

    assert out["level"] == "WARNING"
    assert out["logger"] == "tenanthub"
    assert out["action"] == "login"
    assert out["result"] == "failure"
    assert out["user_id"] == "u1"
    assert "tenant_id" not in out


def test_credentials_in_meta_are_masked():
    meta = {"email": "a@b.io", "password": "hunter2", "nested": {"sso_token": "abc"}, "items": [{"secret": "s"}]}

    out = json.loads(JSONFormatter().format(_record(meta=meta)))

    assert out["meta"]["email"] == "a@b.io"
    assert out["meta"]["password"] == "***"
    assert out["meta"]["nested"]["sso_token"] == "***"
    assert out["meta"]["items"][0]["secret"] == "***"
