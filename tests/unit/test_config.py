"""
Unit tests for configuration loading and logging setup.

Tests cover:
- YAML parsing and defaults
- Validation of unknown keys and bad values
- Logger handler installation and environment overrides
"""

import logging

import pytest
from pydantic import ValidationError
from rich.logging import RichHandler

from cardreplay.config import ReplayConfig, load_config, load_config_from_string
from cardreplay.logging_config import PACKAGE_LOGGER, setup_logging


class TestLoadConfig:
    """Tests for YAML configuration."""

    def test_defaults(self) -> None:
        config = ReplayConfig()
        assert config.replay.validate_states is True
        assert config.replay.step_by_step is False
        assert config.sanitize.placeholder_component == "Unknown"
        assert config.logging.level == "WARNING"

    def test_empty_string(self) -> None:
        assert load_config_from_string("") == ReplayConfig()

    def test_partial_sections(self) -> None:
        config = load_config_from_string(
            """
replay:
  validate_states: false
  stop_at_step: 12
logging:
  level: DEBUG
  format: plain
"""
        )
        assert config.replay.validate_states is False
        assert config.replay.stop_at_step == 12
        assert config.sanitize.enabled is True
        assert config.logging.format == "plain"

    def test_from_file(self, temp_dir) -> None:
        path = temp_dir / "cardreplay.yaml"
        path.write_text("sanitize:\n  placeholder_component: Board\n")
        assert load_config(path).sanitize.placeholder_component == "Board"

    def test_missing_file(self, temp_dir) -> None:
        with pytest.raises(FileNotFoundError):
            load_config(temp_dir / "missing.yaml")

    @pytest.mark.parametrize(
        "content",
        [
            "replay:\n  speed: 2\n",
            "replay:\n  stop_at_step: -1\n",
            "logging:\n  level: LOUD\n",
            "sanitize:\n  placeholder_component: ''\n",
            "unknown_section: {}\n",
        ],
    )
    def test_invalid(self, content) -> None:
        with pytest.raises(ValidationError):
            load_config_from_string(content)


class TestSetupLogging:
    """Tests for setup_logging."""

    @pytest.fixture(autouse=True)
    def restore_logger(self):
        logger = logging.getLogger(PACKAGE_LOGGER)
        handlers, level = logger.handlers[:], logger.level
        yield
        logger.handlers = handlers
        logger.setLevel(level)

    def test_rich_handler(self, monkeypatch) -> None:
        monkeypatch.delenv("CARDREPLAY_LOG_LEVEL", raising=False)
        monkeypatch.delenv("CARDREPLAY_LOG_FORMAT", raising=False)
        logger = setup_logging("INFO")
        assert logger.name == "cardreplay"
        assert logger.level == logging.INFO
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0], RichHandler)

    def test_plain_handler_replaces_previous(self, monkeypatch) -> None:
        monkeypatch.delenv("CARDREPLAY_LOG_LEVEL", raising=False)
        monkeypatch.delenv("CARDREPLAY_LOG_FORMAT", raising=False)
        setup_logging("INFO")
        logger = setup_logging("ERROR", fmt="plain")
        assert len(logger.handlers) == 1
        assert not isinstance(logger.handlers[0], RichHandler)
        assert logger.level == logging.ERROR

    def test_environment_overrides(self, monkeypatch) -> None:
        monkeypatch.setenv("CARDREPLAY_LOG_LEVEL", "debug")
        monkeypatch.setenv("CARDREPLAY_LOG_FORMAT", "plain")
        logger = setup_logging("ERROR", fmt="rich")
        assert logger.level == logging.DEBUG
        assert not isinstance(logger.handlers[0], RichHandler)

    def test_unknown_level_falls_back_to_warning(self, monkeypatch) -> None:
        monkeypatch.delenv("CARDREPLAY_LOG_LEVEL", raising=False)
        assert setup_logging("CHATTY").level == logging.WARNING
