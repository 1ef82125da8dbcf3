"""Tests for logging configuration."""

import logging
import tempfile
from pathlib import Path
from unittest.mock import patch

from src.config.settings import settings
from src.services.logging import get_log_level, setup_logging


class TestSetupLogging:
    """Test settlement logging configuration."""

    def setup_method(self):
        """Save original handlers before each test."""
        self.root_logger = logging.getLogger()
        self.original_handlers = self.root_logger.handlers.copy()
        self.original_level = self.root_logger.level

    def teardown_method(self):
        """Restore original handlers after each test."""
        self.root_logger = logging.getLogger()
        for handler in self.root_logger.handlers[:]:
            handler.close()
            self.root_logger.removeHandler(handler)
        for handler in self.original_handlers:
            self.root_logger.addHandler(handler)
        self.root_logger.setLevel(self.original_level)

    def test_creates_log_directory(self) -> None:
        """Verify setup_logging creates the logs directory if missing."""
        with tempfile.TemporaryDirectory() as temp_dir:
            log_file = Path(temp_dir) / "nested" / "settlement.log"
            assert not log_file.parent.exists()

            setup_logging(str(log_file))

            assert log_file.parent.exists()

    def test_creates_stdout_and_file_handlers(self) -> None:
        """Verify setup_logging installs exactly two handlers."""
        with tempfile.TemporaryDirectory() as temp_dir:
            setup_logging(str(Path(temp_dir) / "settlement.log"))

            handler_types = {type(h) for h in self.root_logger.handlers}
            assert len(self.root_logger.handlers) == 2
            assert logging.FileHandler in handler_types
            assert logging.StreamHandler in handler_types

    def test_returns_settlement_logger(self) -> None:
        """Verify the returned logger is the CLI's named logger."""
        with tempfile.TemporaryDirectory() as temp_dir:
            logger = setup_logging(str(Path(temp_dir) / "settlement.log"))

            assert logger.name == "settlement"

    def test_level_from_environment(self) -> None:
        """Verify LOG_LEVEL controls root and handler levels."""
        with tempfile.TemporaryDirectory() as temp_dir:
            with patch.dict("os.environ", {"LOG_LEVEL": "WARNING"}, clear=False):
                setup_logging(str(Path(temp_dir) / "settlement.log"))

            assert self.root_logger.level == logging.WARNING
            for handler in self.root_logger.handlers:
                assert handler.level == logging.WARNING

    def test_writes_formatted_lines_to_file(self) -> None:
        """Verify messages reach the file with timestamp, logger name and level."""
        with tempfile.TemporaryDirectory() as temp_dir:
            log_file = Path(temp_dir) / "settlement.log"
            with patch.dict("os.environ", {"LOG_LEVEL": "INFO"}, clear=False):
                setup_logging(str(log_file))

            logging.getLogger("src.services.ledger_service").warning("Balance mismatch")

            contents = log_file.read_text()
            assert "[20" in contents
            assert "src.services.ledger_service" in contents
            assert "WARNING" in contents
            assert "Balance mismatch" in contents

    def test_repeated_setup_does_not_duplicate_handlers(self) -> None:
        """Verify a second call replaces handlers instead of stacking them."""
        with tempfile.TemporaryDirectory() as temp_dir:
            log_file = Path(temp_dir) / "settlement.log"
            dummy_handler = logging.StreamHandler()
            self.root_logger.addHandler(dummy_handler)

            setup_logging(str(log_file))
            setup_logging(str(log_file))

            assert len(self.root_logger.handlers) == 2
            assert dummy_handler not in self.root_logger.handlers


class TestGetLogLevel:
    """Test LOG_LEVEL parsing."""

    def test_known_level_case_insensitive(self) -> None:
        with patch.dict("os.environ", {"LOG_LEVEL": "debug"}, clear=False):
            assert get_log_level() == logging.DEBUG

    def test_unknown_level_defaults_to_info(self) -> None:
        with patch.dict("os.environ", {"LOG_LEVEL": "LOUD"}, clear=False):
            assert get_log_level() == logging.INFO

    def test_explicit_level_wins_over_environment(self) -> None:
        with patch.dict("os.environ", {"LOG_LEVEL": "DEBUG"}, clear=False):
            assert get_log_level("error") == logging.ERROR

    def test_falls_back_to_settings(self, monkeypatch) -> None:
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        monkeypatch.setattr(settings, "log_level", "CRITICAL")

        assert get_log_level() == logging.CRITICAL


class TestSetupLoggingDefaults:
    """Test defaults taken from Settings."""

    def setup_method(self):
        self.root_logger = logging.getLogger()
        self.original_handlers = self.root_logger.handlers.copy()
        self.original_level = self.root_logger.level

    def teardown_method(self):
        for handler in self.root_logger.handlers[:]:
            handler.close()
            self.root_logger.removeHandler(handler)
        for handler in self.original_handlers:
            self.root_logger.addHandler(handler)
        self.root_logger.setLevel(self.original_level)

    def test_log_file_from_settings(self, monkeypatch, tmp_path) -> None:
        log_file = tmp_path / "from-settings" / "engine.log"
        monkeypatch.setattr(settings, "log_file", str(log_file))

        setup_logging(level_name="INFO")
        logging.getLogger("src.services.settlement_service").info("Finalized settlement 5")

        assert "Finalized settlement 5" in log_file.read_text()
