"""Unit tests for the structured logging configuration.

Verifies that ``configure_logging()`` renders JSON records, carries the
``request_id`` context variable and stdlib ``extra=`` fields, and redacts
sensitive values.
"""

from __future__ import annotations

import json
import logging
from io import StringIO

from starlight.core.logging_config import configure_logging, request_id_var


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _emit(message: str, *, log_level: str = "INFO", **extra) -> dict:
    """Configure logging, emit one record, and return it parsed from JSON.

    The root handler's stream is swapped for a buffer while the record is
    written.
    """
    configure_logging(log_level)
    buffer = StringIO()
    handler = logging.getLogger().handlers[0]
    original = handler.stream
    handler.stream = buffer
    try:
        logging.getLogger("test.logging_config").warning(message, extra=extra)
        handler.flush()
    finally:
        handler.stream = original

    records = [json.loads(line) for line in buffer.getvalue().splitlines() if line.strip()]
    matching = [r for r in records if r.get("event") == message]
    assert matching, f"no record with event={message!r} in {buffer.getvalue()!r}"
    return matching[0]


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestJsonRecords:
    def test_required_fields_present(self) -> None:
        record = _emit("required_fields")

        assert {"timestamp", "level", "logger", "event"} <= record.keys()
        assert record["logger"] == "test.logging_config"

    def test_level_is_lowercase(self) -> None:
        assert _emit("level_case")["level"] == "warning"

    def test_extra_fields_are_rendered(self) -> None:
        record = _emit("codec: dropped", slot="starlight:reports", dropped=2)

        assert record["slot"] == "starlight:reports"
        assert record["dropped"] == 2


class TestRequestId:
    def test_request_id_is_injected(self) -> None:
        token = request_id_var.set("req-42")
        try:
            record = _emit("with_request_id")
        finally:
            request_id_var.reset(token)

        assert record["request_id"] == "req-42"

    def test_absent_without_request(self) -> None:
        request_id_var.set(None)

        assert _emit("without_request_id").get("request_id") is None


class TestRedaction:
    def test_mobile_number_is_redacted(self) -> None:
        record = _emit("profile_update", mobile_number="+4512345678")

        assert record["mobile_number"] == "[REDACTED]"

    def test_nested_token_is_redacted(self) -> None:
        record = _emit("nested", payload={"auth_token": "abc", "name": "Ann"})

        assert record["payload"] == {"auth_token": "[REDACTED]", "name": "Ann"}


def test_configure_twice_keeps_one_handler() -> None:
    configure_logging("INFO")
    configure_logging("INFO")

    assert len(logging.getLogger().handlers) == 1
