"""
Logging configuration tests — formatters, request context and handler install.
"""

import json
import logging

from flask import Flask, g

from reporttracker.auth import Principal
from reporttracker.middleware.logging_config import (
    JSONFormatter,
    ReadableFormatter,
    RequestContextFilter,
    configure_logging,
)


def _record(msg="Flag 3 accept by admin 1", **extra):
    record = logging.LogRecord("reporttracker.services.flag_workflow", logging.INFO,
                               __file__, 10, msg, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestFormatters:
    def test_json_carries_workflow_keys(self):
        line = JSONFormatter().format(_record(flag_id=3, daily_data_id=7, request_id="r-1"))
        entry = json.loads(line)
        assert entry["message"] == "Flag 3 accept by admin 1"
        assert entry["level"] == "INFO"
        assert (entry["flag_id"], entry["daily_data_id"], entry["request_id"]) == (3, 7, "r-1")
        assert "user_id" not in entry

    def test_readable_suffix(self):
        line = ReadableFormatter().format(_record(flag_id=3, daily_data_id=7, request_id="r-1"))
        assert line.endswith("Flag 3 accept by admin 1 [req=r-1 flag=3 daily=7]")
        assert "\033[" not in line

    def test_readable_without_context(self):
        assert ReadableFormatter().format(_record()).endswith("Flag 3 accept by admin 1")


class TestRequestContextFilter:
    def test_outside_request(self):
        record = _record()
        assert RequestContextFilter().filter(record)
        assert getattr(record, "request_id", None) is None

    def test_stamps_request_and_user(self, app):
        with app.test_request_context("/api/v1/flags"):
            g.request_id = "abc123"
            g.principal = Principal(user_id=42, role="admin", code="hq")
            record = _record()
            RequestContextFilter().filter(record)
        assert (record.request_id, record.user_id) == ("abc123", 42)

    def test_explicit_extra_wins(self, app):
        with app.test_request_context("/api/v1/flags"):
            g.request_id = "abc123"
            record = _record(user_id=7)
            RequestContextFilter().filter(record)
        assert record.user_id == 7


class TestConfigureLogging:
    def test_reconfigure_replaces_only_own_handler(self):
        root = logging.getLogger()
        foreign = logging.NullHandler()
        root.addHandler(foreign)
        saved_level = root.level
        bare = Flask("logging-test")
        bare.config.update(TESTING=True, LOG_FORMAT="json", LOG_LEVEL="warning")
        try:
            configure_logging(bare)
            handler = configure_logging(bare)

            ours = [h for h in root.handlers if h.get_name() == handler.get_name()]
            assert ours == [handler]
            assert foreign in root.handlers
            assert isinstance(handler.formatter, JSONFormatter)
            assert handler.level == logging.WARNING
        finally:
            root.removeHandler(foreign)
            root.removeHandler(handler)
            root.setLevel(saved_level)
