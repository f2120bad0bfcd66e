"""Tests for logger.py — setup_logging() and JsonFormatter.

Covers:
- CLI mode logging (stderr handler, optional file handler)
- MCP mode logging (file handler only, stdout untouched)
- Debug level override and LOG_LEVEL handling
- JSON formatter output
- Third-party logger silencing

Strategy: Mock logging.basicConfig to verify setup_logging passes correct args,
since pytest's log capture plugin interferes with actual basicConfig calls.
"""

import json
import logging
import sys
from unittest.mock import patch

import pytest

from cutsheet_sync.logger import JsonFormatter, setup_logging


@pytest.fixture
def basic_config():
    with patch("cutsheet_sync.logger.logging.basicConfig") as mock_basic:
        yield mock_basic
    for call in mock_basic.call_args_list:
        for handler in call.kwargs.get("handlers", []):
            if isinstance(handler, logging.FileHandler):
                handler.close()


# ---------------------------------------------------------------------------
# setup_logging tests
# ---------------------------------------------------------------------------


class TestSetupLogging:
    """Tests for setup_logging()."""

    def test_cli_mode_logs_to_stderr(self, basic_config):
        setup_logging(mode="cli")

        basic_config.assert_called_once()
        kwargs = basic_config.call_args.kwargs
        (handler,) = kwargs["handlers"]
        assert isinstance(handler, logging.StreamHandler)
        assert handler.stream is sys.stderr
        assert kwargs["force"] is True

    def test_mcp_mode_logs_to_file_only(self, basic_config, tmp_path):
        log_file = tmp_path / "mcp.log"
        setup_logging(mode="mcp", log_file=str(log_file))

        (handler,) = basic_config.call_args.kwargs["handlers"]
        assert isinstance(handler, logging.FileHandler)
        assert handler.baseFilename == str(log_file)

    def test_mcp_mode_log_file_from_env(self, basic_config, tmp_path, monkeypatch):
        log_file = tmp_path / "env.log"
        monkeypatch.setenv("LOG_FILE", str(log_file))
        setup_logging(mode="mcp")

        (handler,) = basic_config.call_args.kwargs["handlers"]
        assert handler.baseFilename == str(log_file)

    def test_cli_mode_with_log_file(self, basic_config, tmp_path):
        setup_logging(mode="cli", log_file=str(tmp_path / "cli.log"))

        handlers = basic_config.call_args.kwargs["handlers"]
        file_handlers = [h for h in handlers if isinstance(h, logging.FileHandler)]
        stream_handlers = [h for h in handlers if h not in file_handlers]
        assert len(stream_handlers) == 1
        assert len(file_handlers) == 1

    def test_debug_overrides_level(self, basic_config):
        setup_logging(mode="cli", debug=True)
        assert basic_config.call_args.kwargs["level"] == logging.DEBUG

    def test_env_log_level_honored(self, basic_config, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "error")
        setup_logging(mode="cli")
        assert basic_config.call_args.kwargs["level"] == logging.ERROR

    def test_debug_beats_env(self, basic_config, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "ERROR")
        setup_logging(mode="cli", debug=True)
        assert basic_config.call_args.kwargs["level"] == logging.DEBUG

    def test_unknown_env_level_falls_back_to_info(self, basic_config, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "CHATTY")
        setup_logging(mode="cli")
        assert basic_config.call_args.kwargs["level"] == logging.INFO

    def test_mcp_default_level_is_warning(self, basic_config, tmp_path, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        setup_logging(mode="mcp", log_file=str(tmp_path / "mcp.log"))
        assert basic_config.call_args.kwargs["level"] == logging.WARNING

    def test_cli_default_level_is_info(self, basic_config, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        setup_logging(mode="cli")
        assert basic_config.call_args.kwargs["level"] == logging.INFO

    def test_json_format_uses_json_formatter(self, basic_config):
        setup_logging(mode="cli", debug_format="json")

        (handler,) = basic_config.call_args.kwargs["handlers"]
        assert isinstance(handler.formatter, JsonFormatter)

    def test_third_party_silenced(self, basic_config):
        setup_logging(mode="cli")

        assert logging.getLogger("urllib3").level == logging.WARNING
        assert logging.getLogger("requests").level == logging.WARNING


# ---------------------------------------------------------------------------
# JsonFormatter tests
# ---------------------------------------------------------------------------


class TestJsonFormatter:
    """Tests for JsonFormatter."""

    def _record(self, exc_info=None) -> logging.LogRecord:
        return logging.LogRecord(
            name="cutsheet_sync.sync.reconciler",
            level=logging.ERROR if exc_info else logging.INFO,
            pathname="reconciler.py",
            lineno=1,
            msg="Downloaded %s",
            args=("ABB ACH550-01",),
            exc_info=exc_info,
        )

    def test_basic_output(self):
        formatter = JsonFormatter(datefmt="%Y-%m-%d %H:%M:%S")

        data = json.loads(formatter.format(self._record()))

        assert "ts" in data
        assert data["level"] == "INFO"
        assert data["logger"] == "cutsheet_sync.sync.reconciler"
        assert data["msg"] == "Downloaded ABB ACH550-01"
        assert "exc" not in data

    def test_includes_exception(self):
        formatter = JsonFormatter(datefmt="%Y-%m-%d %H:%M:%S")
        try:
            raise ValueError("test error")
        except ValueError:
            exc_info = sys.exc_info()

        data = json.loads(formatter.format(self._record(exc_info)))

        assert "ValueError: test error" in data["exc"]
