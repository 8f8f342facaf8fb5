"""Unit tests for log formatters and the logging observer."""

import json
import logging
import sys

import pytest

from sopdesk.adapters.outbound.logging_observer import LoggingObserver
from sopdesk.config.logging import ConsoleFormatter, JSONExceptionFormatter, setup_logging
from sopdesk.core.domain.exceptions import SourceUnavailableError

pytestmark = pytest.mark.unit


def make_record(message="Search strategy keyword failed", exc_info=None, **extra):
    record = logging.LogRecord(
        name="sopdesk.core.services.search_service",
        level=logging.WARNING,
        pathname=__file__,
        lineno=10,
        msg=message,
        args=(),
        exc_info=exc_info,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.fixture
def source_error():
    return SourceUnavailableError(
        "Failed to reach Confluence",
        cause=ConnectionError("timed out"),
        context={"path": "/rest/api/content"},
    )


class TestJSONExceptionFormatter:
    def test_plain_record(self):
        entry = json.loads(JSONExceptionFormatter().format(make_record()))

        assert entry["level"] == "WARNING"
        assert entry["logger"] == "sopdesk.core.services.search_service"
        assert entry["message"] == "Search strategy keyword failed"
        assert "error_code" not in entry

    def test_engine_error_fields_from_extra(self, source_error):
        record = make_record(event="strategy_failed", strategy="keyword", error=source_error)
        entry = json.loads(JSONExceptionFormatter().format(record))

        assert entry["event"] == "strategy_failed"
        assert entry["strategy"] == "keyword"
        assert entry["error_code"] == "SOP_SRC_002"
        assert entry["error_type"] == "SourceUnavailableError"
        assert entry["context"] == {"path": "/rest/api/content"}
        assert entry["cause"] == {"type": "ConnectionError", "message": "timed out"}
        assert entry["raised_at"]["method"] == "source_error"

    def test_engine_error_fields_from_exc_info(self, source_error):
        try:
            raise source_error
        except SourceUnavailableError:
            record = make_record(exc_info=sys.exc_info())
        entry = json.loads(JSONExceptionFormatter().format(record))

        assert entry["error_code"] == "SOP_SRC_002"
        assert "SourceUnavailableError" in entry["traceback"]

    def test_non_engine_error_has_no_code(self):
        record = make_record(error=ValueError("bad"))
        entry = json.loads(JSONExceptionFormatter().format(record))

        assert "error_code" not in entry


class TestConsoleFormatter:
    def test_error_code_appended(self, source_error):
        line = ConsoleFormatter().format(make_record(error=source_error))

        assert line.endswith("Search strategy keyword failed [SOP_SRC_002]")
        assert "| sopdesk.core.services.search_service:" in line

    def test_plain_record_unchanged(self):
        line = ConsoleFormatter().format(make_record())
        assert line.endswith("| Search strategy keyword failed")


def test_setup_logging_selects_formatter(tmp_path):
    log_file = tmp_path / "logs" / "engine.log"
    logger = setup_logging(level="debug", log_file=log_file, json_format=True)

    assert logger.level == logging.DEBUG
    assert len(logger.handlers) == 2
    assert all(isinstance(h.formatter, JSONExceptionFormatter) for h in logger.handlers)
    assert (tmp_path / "logs").is_dir()

    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)


class TestLoggingObserver:
    def test_strategy_failure_is_structured(self, caplog, source_error):
        observer = LoggingObserver(logging.getLogger("sopdesk.test"))
        with caplog.at_level(logging.WARNING, logger="sopdesk.test"):
            observer.strategy_failed("semantic", source_error)

        record = caplog.records[-1]
        assert record.levelno == logging.WARNING
        assert record.strategy == "semantic"
        assert record.error is source_error

    def test_source_unavailable_logs_error(self, caplog, source_error):
        observer = LoggingObserver(logging.getLogger("sopdesk.test"))
        with caplog.at_level(logging.ERROR, logger="sopdesk.test"):
            observer.source_unavailable("sync", source_error)

        entry = json.loads(JSONExceptionFormatter().format(caplog.records[-1]))
        assert entry["operation"] == "sync"
        assert entry["error_code"] == "SOP_SRC_002"
