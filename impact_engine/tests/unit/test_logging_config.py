"""Tests for impact_engine.logging_config."""

from __future__ import annotations

import json
import logging
import sys

import pytest
from impact_engine.logging_config import JSONFormatter, configure_logging


def _make_record(msg: str = "walked %d seed(s)", args: tuple = (3,), exc_info=None) -> logging.LogRecord:
    return logging.LogRecord(
        name="impact_engine.graph.walker",
        level=logging.WARNING,
        pathname="walker.py",
        lineno=1,
        msg=msg,
        args=args,
        exc_info=exc_info,
    )


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)
    logging.getLogger("httpx").setLevel(logging.NOTSET)
    logging.getLogger("httpcore").setLevel(logging.NOTSET)


class TestJSONFormatter:
    def test_basic_fields(self) -> None:
        data = json.loads(JSONFormatter().format(_make_record()))

        assert data["level"] == "WARNING"
        assert data["logger"] == "impact_engine.graph.walker"
        assert data["message"] == "walked 3 seed(s)"
        assert data["timestamp"].endswith("+00:00")
        assert "exc_info" not in data

    def test_single_line(self) -> None:
        assert "\n" not in JSONFormatter().format(_make_record("line one\nline two", ()))

    def test_exception_included(self) -> None:
        try:
            raise RuntimeError("lookup failed")
        except RuntimeError:
            record = _make_record("failed", (), exc_info=sys.exc_info())

        data = json.loads(JSONFormatter().format(record))
        assert "RuntimeError: lookup failed" in data["exc_info"]


class TestConfigureLogging:
    def test_structured_installs_single_json_handler(self, restore_root_logger) -> None:
        configure_logging(structured=True)

        assert len(restore_root_logger.handlers) == 1
        assert isinstance(restore_root_logger.handlers[0].formatter, JSONFormatter)
        assert restore_root_logger.level == logging.INFO

    def test_debug_level_and_noisy_loggers(self, restore_root_logger) -> None:
        configure_logging(debug=True)
        assert restore_root_logger.level == logging.DEBUG
        assert logging.getLogger("httpx").level == logging.DEBUG

        configure_logging(debug=False)
        assert restore_root_logger.level == logging.INFO
        assert logging.getLogger("httpx").level == logging.WARNING
