"""Log formatting and request-context stamping."""

import json
import logging

from flask import g

from advisory_hub.middleware.logging_config import JSONFormatter, ReadableFormatter, RequestContextFilter


def _record(msg="Request %s moved", args=("EE-1",), **extra):
    record = logging.LogRecord("advisory_hub.services", logging.INFO, __file__, 42, msg, args, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_filter_stamps_request_id_and_user(app):
    with app.test_request_context("/api/v1/requests"):
        g.request_id = "rid-1"
        g.acting_user_id = "u-1"
        record = _record()
        assert RequestContextFilter().filter(record) is True
    assert record.request_id == "rid-1"
    assert record.user_id == "u-1"


def test_filter_keeps_explicit_user(app):
    with app.test_request_context("/"):
        g.acting_user_id = "u-1"
        record = _record(user_id="admin-1")
        RequestContextFilter().filter(record)
    assert record.user_id == "admin-1"


def test_filter_outside_request_is_a_no_op():
    record = _record()
    assert RequestContextFilter().filter(record) is True
    assert not hasattr(record, "request_id")


def test_json_formatter_emits_context_fields():
    record = _record(request_id="rid-1", advisory_request="EE-1", from_status="Review", to_status="Approval")
    out = json.loads(JSONFormatter().format(record))
    assert out["msg"] == "Request EE-1 moved"
    assert out["level"] == "INFO"
    assert out["request_id"] == "rid-1"
    assert (out["from_status"], out["to_status"]) == ("Review", "Approval")
    assert "user_id" not in out


def test_readable_formatter_shows_request_id_and_duration():
    line = ReadableFormatter().format(_record(request_id="rid-9", duration_ms=12.4))
    assert "[rid-9]" in line
    assert line.endswith("Request EE-1 moved (12ms)")
