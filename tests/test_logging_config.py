"""
Tests for logging configuration.
"""

import json
import logging
import os
import sys

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from heapwatch.logging_config import (
    VERBOSE,
    HeapwatchFormatter,
    configure_from_environment,
    get_logger,
    get_logging_state,
    is_verbose,
    set_verbose,
    setup_logging,
)


@pytest.fixture(autouse=True)
def restore_root_logger():
    """setup_logging() replaces root handlers; restore them afterwards."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)


def _record(name="heapwatch.sampler", level=logging.INFO, msg="Sampler started"):
    return logging.LogRecord(name, level, __file__, 1, msg, None, None)


class TestHeapwatchFormatter:
    """Tests for HeapwatchFormatter."""

    def test_text_format(self):
        """Text lines carry level, component and message."""
        text = HeapwatchFormatter(use_colors=False).format(_record())
        assert "INFO" in text
        assert "[sampler]" in text
        assert text.endswith("Sampler started")

    def test_json_format(self):
        """JSON lines are parseable."""
        line = HeapwatchFormatter(json_format=True).format(_record(level=logging.WARNING))
        data = json.loads(line)
        assert data['level'] == "WARNING"
        assert data['component'] == "sampler"
        assert data['message'] == "Sampler started"

    def test_extra_data(self):
        """extra_data is appended to text output."""
        record = _record()
        record.extra_data = {'snapshots': 3}
        text = HeapwatchFormatter(use_colors=False).format(record)
        assert "| snapshots=3" in text


class TestSetupLogging:
    """Tests for setup_logging() and friends."""

    def test_verbose_level(self):
        """Verbose mode lowers the root level to VERBOSE."""
        setup_logging(verbose=True)
        assert logging.getLogger().level == VERBOSE
        assert is_verbose() is True

        set_verbose(False)
        assert logging.getLogger().level == logging.INFO

    def test_log_file(self, temp_dir):
        """A log file handler is added and its directory created."""
        log_file = temp_dir / "logs" / "heapwatch.log"
        setup_logging(log_file=str(log_file), console=False)
        get_logger("report").info("Report written")
        for handler in logging.getLogger().handlers:
            handler.flush()
        assert "Report written" in log_file.read_text()
        assert get_logging_state()['log_file'] == str(log_file)

    def test_get_logger_namespace(self):
        """Loggers are placed under the heapwatch namespace."""
        assert get_logger("sampler").name == "heapwatch.sampler"
        assert get_logger("heapwatch.report").name == "heapwatch.report"

    def test_configure_from_environment(self, monkeypatch):
        """HEAPWATCH_VERBOSE and HEAPWATCH_LOG_JSON are honoured."""
        monkeypatch.setenv('HEAPWATCH_VERBOSE', '1')
        monkeypatch.setenv('HEAPWATCH_LOG_JSON', 'true')
        monkeypatch.delenv('HEAPWATCH_LOG_FILE', raising=False)
        configure_from_environment()
        state = get_logging_state()
        assert state['verbose'] is True
        assert state['json_format'] is True
