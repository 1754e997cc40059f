"""Tests for tgram/logging_utils.py."""

import json
import logging

import pytest

from tgram.logging_utils import (
    ColoredFormatter,
    JSONFormatter,
    get_request_id,
    log_api_call,
    set_request_id,
    setup_logger,
)


def make_record(msg="hello", level=logging.INFO, **extra):
    record = logging.LogRecord("tgram.test", level, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.fixture(autouse=True)
def reset_request_id():
    set_request_id(None)
    yield
    set_request_id(None)


class TestRequestId:
    """Test request id context handling."""

    def test_set_and_reset(self):
        assert get_request_id() is None
        set_request_id("u42")
        assert get_request_id() == "u42"
        set_request_id(None)
        assert get_request_id() is None


class TestFormatters:
    """Test the console and JSON formatters."""

    def test_json_formatter(self):
        set_request_id("u7")
        record = make_record(extra_data={"api": "telegram"})

        entry = json.loads(JSONFormatter("tgram").format(record))
        assert entry["message"] == "hello"
        assert entry["level"] == "INFO"
        assert entry["app"] == "tgram"
        assert entry["request_id"] == "u7"
        assert entry["api"] == "telegram"

    def test_json_formatter_without_request_id(self):
        entry = json.loads(JSONFormatter("tgram").format(make_record()))
        assert "request_id" not in entry

    def test_colored_formatter_restores_record(self):
        set_request_id("u1")
        record = make_record()

        output = ColoredFormatter().format(record)
        assert "[u1] hello" in output
        assert record.levelname == "INFO"
        assert record.msg == "hello"


class TestSetupLogger:
    """Test logger configuration."""

    def test_console_only(self):
        logger = setup_logger("tgram_test_console", level="DEBUG")
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1
        assert logger.propagate is False

    def test_repeated_setup_replaces_handlers(self, tmp_path):
        setup_logger("tgram_test_repeat", log_dir=tmp_path)
        logger = setup_logger("tgram_test_repeat", log_dir=tmp_path)
        assert len(logger.handlers) == 2
        for handler in logger.handlers:
            handler.close()

    def test_unknown_level_defaults_to_info(self):
        logger = setup_logger("tgram_test_level", level="CHATTY")
        assert logger.level == logging.INFO

    def test_file_output_is_json(self, tmp_path):
        logger = setup_logger("tgram_test_file", log_dir=tmp_path)
        logger.info("written")
        for handler in logger.handlers:
            handler.flush()

        lines = (tmp_path / "tgram_test_file.log").read_text().splitlines()
        assert json.loads(lines[-1])["message"] == "written"
        for handler in logger.handlers:
            handler.close()


class TestLogApiCall:
    """Test API call logging."""

    def test_success_logged_at_debug(self, caplog):
        logger = logging.getLogger("tgram_test_api_ok")
        with caplog.at_level(logging.DEBUG, logger="tgram_test_api_ok"):
            log_api_call(logger, "telegram", "getUpdates", 0.1234, True)

        record = caplog.records[-1]
        assert record.levelno == logging.DEBUG
        assert record.extra_data["method"] == "getUpdates"
        assert record.extra_data["success"] is True

    def test_failure_logged_at_warning(self, caplog):
        logger = logging.getLogger("tgram_test_api_fail")
        with caplog.at_level(logging.DEBUG, logger="tgram_test_api_fail"):
            log_api_call(logger, "telegram", "sendMessage", 5.0, False, "timeout")

        record = caplog.records[-1]
        assert record.levelno == logging.WARNING
        assert "FAILED" in record.getMessage()
        assert record.extra_data["error"] == "timeout"
