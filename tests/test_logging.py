"""
Tests for logging setup.
"""

import logging
from pathlib import Path

from provision.core.observability.logging_config import (
    SUCCESS,
    TaggedFormatter,
    _parse_level,
    setup_logging,
)


class TestParseLevel:
    def test_names(self):
        assert _parse_level("debug") == logging.DEBUG
        assert _parse_level("SUCCESS") == SUCCESS

    def test_fallback(self):
        assert _parse_level(None) == logging.WARNING
        assert _parse_level("loud") == logging.WARNING


class TestTaggedFormatter:
    def test_plain_tag(self):
        record = logging.LogRecord("x", SUCCESS, __file__, 1, "Step '%s' applied", ("a",), None)
        line = TaggedFormatter("%(message)s", color=False).format(record)
        assert line == "[SUCCESS] Step 'a' applied"

    def test_colored_tag_keeps_message(self):
        record = logging.LogRecord("x", logging.ERROR, __file__, 1, "broken", (), None)
        line = TaggedFormatter("%(message)s", color=True).format(record)
        assert "[ERROR]" in line
        assert line.endswith("broken")


class TestSetupLogging:
    def test_env_level(self, monkeypatch):
        monkeypatch.setenv("PROVISION_LOG_LEVEL", "INFO")
        setup_logging(color=False)
        assert logging.getLogger().level == logging.INFO

    def test_flag_beats_env(self, monkeypatch):
        monkeypatch.setenv("PROVISION_LOG_LEVEL", "INFO")
        setup_logging("ERROR", color=False)
        assert logging.getLogger().level == logging.ERROR

    def test_log_file(self, tmp_path: Path, monkeypatch):
        log_file = tmp_path / "provision.log"
        monkeypatch.setenv("PROVISION_LOG_FILE", str(log_file))
        monkeypatch.setenv("PROVISION_LOG_FILE_LEVEL", "DEBUG")
        setup_logging("WARNING", color=False)

        logging.getLogger("provision.test").debug("detail for the file")
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert logging.getLogger().level == logging.DEBUG
        assert "detail for the file" in log_file.read_text()
