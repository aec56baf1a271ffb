"""Tests for structured logging."""

import json
import logging

from nudge.logging_config import JSONFormatter, setup_logging


def make_record(**extra):
    record = logging.LogRecord(
        name="nudge.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=10,
        msg="Sent %s messages",
        args=(3,),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    def test_basic_fields(self):
        entry = json.loads(JSONFormatter().format(make_record()))

        assert entry["level"] == "INFO"
        assert entry["logger"] == "nudge.test"
        assert entry["message"] == "Sent 3 messages"
        assert "exception" not in entry

    def test_context_is_included(self):
        entry = json.loads(JSONFormatter().format(make_record(context={"batch_id": "b1"})))

        assert entry["context"] == {"batch_id": "b1"}


class TestSetupLogging:
    def test_writes_json_to_file(self, tmp_path):
        log_file = tmp_path / "logs" / "app.log"
        setup_logging(log_level="debug", log_file=str(log_file))

        logging.getLogger("nudge.test").info("hello")
        for handler in logging.getLogger().handlers:
            handler.flush()

        lines = log_file.read_text(encoding="utf-8").splitlines()
        assert json.loads(lines[-1])["message"] == "hello"
        assert logging.getLogger().level == logging.DEBUG
        assert logging.getLogger("httpx").level == logging.WARNING

        setup_logging(console_only=True)
