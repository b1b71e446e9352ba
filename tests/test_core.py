"""
test_core.py — Tests for cross-cutting infrastructure.

Covers:
    • Settings defaults and derived properties
    • Error hierarchy status codes and details
    • Scoped log context and the JSON / pretty formatters

Run with:
    pytest tests/test_core.py -v
"""

from __future__ import annotations

import json
import logging

from drillalert.core.config import Settings
from drillalert.core.errors import (
    AuthenticationError,
    ConflictError,
    DrillAlertError,
    NotFoundError,
    NotificationError,
    StorageError,
    ValidationError,
)
from drillalert.core.logging_config import (
    JSONFormatter,
    PrettyFormatter,
    get_log_context,
    log_context,
)


def _record(msg: str = "Drill 7 recorded", **extra) -> logging.LogRecord:
    record = logging.LogRecord("drillalert.test", logging.INFO, __file__, 1, msg, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestSettings:
    """Test Settings defaults."""

    def test_twilio_unconfigured_by_default(self):
        config = Settings(TWILIO_ACCOUNT_SID=None, TWILIO_AUTH_TOKEN=None, TWILIO_FROM=None)
        assert config.twilio_configured is False

    def test_twilio_configured(self):
        config = Settings(TWILIO_ACCOUNT_SID="AC1", TWILIO_AUTH_TOKEN="t", TWILIO_FROM="+1")
        assert config.twilio_configured is True

    def test_environment_flags(self):
        assert Settings(ENVIRONMENT="production").is_production
        assert Settings(ENVIRONMENT="development").is_development


class TestErrors:
    """Test the exception hierarchy."""

    def test_status_codes(self):
        assert ValidationError("bad").status_code == 422
        assert NotFoundError("Drill", drill_id=3).status_code == 404
        assert StorageError("create_drill").status_code == 503
        assert AuthenticationError().status_code == 401
        assert ConflictError("exists").status_code == 409
        assert NotificationError("+1", "timeout").status_code == 502

    def test_all_share_base(self):
        for exc in (ValidationError("x"), StorageError("op"), NotFoundError("Drill")):
            assert isinstance(exc, DrillAlertError)

    def test_details(self):
        assert ValidationError("bad", field="class").details == {"field": "class"}
        assert NotFoundError("Drill", drill_id=3).details == {"resource": "Drill", "drill_id": 3}
        assert StorageError("list_reports", "locked").message == (
            "Storage failure during list_reports: locked"
        )
        assert StorageError("list_reports").message == "Storage failure during list_reports"


class TestLogContext:
    """Test scoped log context."""

    def test_nested_and_restored(self):
        assert get_log_context() == {}
        with log_context(request_id="r1"):
            with log_context(ws_session="s1"):
                assert get_log_context() == {"request_id": "r1", "ws_session": "s1"}
            assert get_log_context() == {"request_id": "r1"}
        assert get_log_context() == {}

    def test_json_formatter_includes_extras_and_context(self):
        with log_context(request_id="abc"):
            line = JSONFormatter().format(_record(drill_id=7, class_name="ClassA"))
        entry = json.loads(line)
        assert entry["message"] == "Drill 7 recorded"
        assert entry["drill_id"] == 7
        assert entry["class_name"] == "ClassA"
        assert entry["context"] == {"request_id": "abc"}

    def test_pretty_formatter_tail(self):
        with log_context(ws_session="sess42"):
            line = PrettyFormatter().format(_record(drill_id=7, delivered=3))
        assert "[ws:sess42]" in line
        assert "drill_id=7" in line
        assert "delivered=3" in line
