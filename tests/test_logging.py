"""
Tests for structured logging.
"""

import json
import logging
import sys

from coursehub.core.observability.logging import JSONFormatter


def _record(**extra):
    record = logging.LogRecord("coursehub.test", logging.WARNING, __file__, 1, "Module %s gone", ("m1",), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    def test_cloud_logging_fields(self):
        entry = json.loads(JSONFormatter().format(_record()))
        assert entry["severity"] == "WARNING"
        assert entry["logger"] == "coursehub.test"
        assert entry["message"] == "Module m1 gone"
        assert "timestamp" in entry

    def test_context_extras_included(self):
        entry = json.loads(JSONFormatter().format(_record(user_id="admin-123", entity_id="m1")))
        assert entry["user_id"] == "admin-123"
        assert entry["entity_id"] == "m1"
        assert "activity_type" not in entry

    def test_exception_included(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = logging.LogRecord("x", logging.ERROR, __file__, 1, "failed", (), sys.exc_info())
        entry = json.loads(JSONFormatter().format(record))
        assert "RuntimeError: boom" in entry["exception"]
