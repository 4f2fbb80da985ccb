"""Tests for structured logging configuration."""

import json
import logging
import sys

from copilot_mcp.observability.logging import (
    HumanReadableFormatter,
    StructuredFormatter,
    clear_log_context,
    configure_logging,
    set_log_context,
)


def _record(msg="Getting Copilot seats", level=logging.INFO, context=None):
    record = logging.LogRecord(
        name="copilot_mcp.connectors.copilot",
        level=level,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )
    if context is not None:
        record.context = context
    return record


class TestStructuredFormatter:
    """JSON output with level, message and context."""

    def teardown_method(self):
        clear_log_context()

    def test_includes_context(self):
        output = StructuredFormatter().format(_record(context={"org": "octo-org", "page": 1}))
        entry = json.loads(output)

        assert entry["level"] == "INFO"
        assert entry["message"] == "Getting Copilot seats"
        assert entry["context"] == {"org": "octo-org", "page": 1}

    def test_includes_tool_and_request_id(self):
        set_log_context(tool_name="list_copilot_seats", request_id="abc123")
        entry = json.loads(StructuredFormatter().format(_record()))

        assert entry["tool"] == "list_copilot_seats"
        assert entry["request_id"] == "abc123"
        assert "context" not in entry

    def test_non_serializable_context(self):
        from datetime import datetime, timezone

        when = datetime(2024, 5, 1, tzinfo=timezone.utc)
        entry = json.loads(StructuredFormatter().format(_record(context={"reset_at": when})))
        assert entry["context"]["reset_at"] == str(when)


class TestHumanReadableFormatter:
    def teardown_method(self):
        clear_log_context()

    def test_single_line_with_context(self):
        set_log_context(tool_name="add_copilot_seats")
        output = HumanReadableFormatter().format(
            _record(level=logging.WARNING, context={"attempt": 1})
        )

        assert "WARNING" in output
        assert "tool=add_copilot_seats" in output
        assert '{"attempt": 1}' in output


class TestConfigureLogging:
    def teardown_method(self):
        logging.getLogger().handlers.clear()

    def test_production_uses_json_on_stderr(self):
        configure_logging(environment="production", log_level="warn")
        root = logging.getLogger()

        assert root.level == logging.WARNING
        assert len(root.handlers) == 1
        assert root.handlers[0].stream is sys.stderr
        assert isinstance(root.handlers[0].formatter, StructuredFormatter)

    def test_development_uses_human_readable(self):
        configure_logging(environment="development", log_level="debug")
        root = logging.getLogger()

        assert root.level == logging.DEBUG
        assert isinstance(root.handlers[0].formatter, HumanReadableFormatter)
        assert logging.getLogger("httpx").level == logging.WARNING
