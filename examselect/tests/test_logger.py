"""
Tests for the logging helpers.
"""

import io
import json
import logging

import pytest

from examselect.common.logger import (
    JsonFormatter, LoggerAdapter, TextFormatter, configure_logger, get_logger, log_execution_time
)


@pytest.fixture
def stream():
    return io.StringIO()


def test_json_lines_carry_adapter_context(stream):
    logger = configure_logger("examselect-test-json", level="DEBUG", use_json=True, stream=stream)
    LoggerAdapter(logger, {"requester_id": "u1", "category_id": "c1"}).info("selected 5 items")

    payload = json.loads(stream.getvalue().strip())
    assert payload["message"] == "selected 5 items"
    assert payload["level"] == "INFO"
    assert payload["requester_id"] == "u1"
    assert payload["category_id"] == "c1"


def test_text_lines_append_context(stream):
    logger = configure_logger("examselect-test-text", level="INFO", stream=stream)
    LoggerAdapter(logger, {"algorithm": "adaptive"}).with_context(requester_id="u1").info("done")

    line = stream.getvalue()
    assert "done [algorithm=adaptive requester_id=u1]" in line


def test_level_filtering(stream):
    logger = configure_logger("examselect-test-level", level="WARNING", stream=stream)
    logger.info("hidden")
    logger.warning("shown")
    assert "hidden" not in stream.getvalue()
    assert "shown" in stream.getvalue()


def test_get_logger_places_modules_under_root():
    assert get_logger("selection.router") is get_logger("examselect.selection.router")
    assert get_logger("selection.router").name == "examselect.selection.router"


def test_execution_time_is_logged(stream):
    logger = configure_logger("examselect-test-timing", level="DEBUG", stream=stream)

    @log_execution_time(logger)
    def work():
        return 42

    @log_execution_time(logger)
    def broken():
        raise RuntimeError("boom")

    assert work() == 42
    with pytest.raises(RuntimeError):
        broken()

    output = stream.getvalue()
    assert "work took" in output
    assert "broken failed after" in output


def test_formatters_handle_plain_records():
    record = logging.LogRecord("examselect", logging.INFO, __file__, 1, "plain", None, None)
    assert json.loads(JsonFormatter().format(record))["message"] == "plain"
    assert "plain" in TextFormatter().format(record)
