"""Tests for cleir.config (sections, YAML loading, key resolution) and package logging."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest
from pydantic import ValidationError

from cleir.config import (
    AIConfig,
    AppConfig,
    ConfigurationError,
    PlacesConfig,
    VoiceConfig,
    get_config,
    load_config,
)
from cleir.utils import LogContext, setup_logging


class TestDefaults:
    """Default values of the configuration sections."""

    def test_routing_and_places_defaults(self):
        config = AppConfig()
        assert config.routing.confidence_threshold == pytest.approx(0.3)
        assert config.places.concurrency == 3
        assert config.places.chunk_delay_seconds == pytest.approx(0.2)
        assert config.places.review_snippet_chars == 200

    def test_voice_defaults(self):
        voice = VoiceConfig()
        assert voice.max_words == 150
        assert voice.truncate_to == 140

    def test_truncate_to_cannot_exceed_max_words(self):
        with pytest.raises(ValidationError):
            VoiceConfig(max_words=10, truncate_to=20)

    def test_threshold_out_of_range_rejected(self):
        with pytest.raises(ValidationError):
            AppConfig(routing={"confidence_threshold": 1.5})

    def test_log_level_is_uppercased(self):
        assert AppConfig(log_level="debug").log_level == "DEBUG"


class TestApiKeys:
    """Key resolution order and masking."""

    def test_explicit_key_wins(self, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "env-key")
        assert AIConfig(api_key="explicit-key").resolve_api_key() == "explicit-key"

    def test_falls_back_to_environment(self, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "env-key")
        monkeypatch.setenv("GOOGLE_MAPS_API_KEY", "maps-env-key")
        assert AIConfig().resolve_api_key() == "env-key"
        assert PlacesConfig().resolve_api_key() == "maps-env-key"

    def test_missing_key_is_none(self, monkeypatch):
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        assert AIConfig().resolve_api_key() is None

    def test_display_dict_masks_secrets(self, monkeypatch):
        monkeypatch.delenv("GOOGLE_MAPS_API_KEY", raising=False)
        config = AppConfig(ai=AIConfig(api_key="super-secret-value"))
        display = config.to_display_dict()

        assert display["ai.api_key"] == "set"
        assert display["places.api_key"] == "not set"
        assert display["routing.confidence_threshold"] == pytest.approx(0.3)
        assert "super-secret-value" not in str(display)


class TestLoadConfig:
    """YAML loading."""

    def test_load_explicit_file(self, tmp_path: Path):
        config_file = tmp_path / "cleir.yaml"
        config_file.write_text("routing:\n  confidence_threshold: 0.5\nplaces:\n  concurrency: 5\n")

        config = load_config(config_file)

        assert config.routing.confidence_threshold == pytest.approx(0.5)
        assert config.places.concurrency == 5

    def test_missing_explicit_file_raises(self, tmp_path: Path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_config(tmp_path / "absent.yaml")

    def test_non_mapping_file_raises(self, tmp_path: Path):
        config_file = tmp_path / "cleir.yaml"
        config_file.write_text("- just\n- a list\n")

        with pytest.raises(ConfigurationError, match="mapping"):
            load_config(config_file)

    def test_invalid_values_raise(self, tmp_path: Path):
        config_file = tmp_path / "cleir.yaml"
        config_file.write_text("places:\n  concurrency: 0\n")

        with pytest.raises(ConfigurationError, match="Invalid configuration"):
            load_config(config_file)

    def test_malformed_default_file_is_skipped(self, tmp_path: Path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / "cleir.yaml").write_text("routing: [unclosed\n")

        config = load_config()

        assert config.routing.confidence_threshold == pytest.approx(0.3)

    def test_default_file_is_discovered(self, tmp_path: Path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / "cleir.yaml").write_text("voice:\n  max_words: 60\n  truncate_to: 50\n")

        assert load_config().voice.max_words == 60

    def test_get_config_is_cached(self, tmp_path: Path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert get_config() is get_config()


class TestLogging:
    """Package logging set up by setup_logging."""

    @pytest.fixture
    def package_logger(self):
        logger = logging.getLogger("cleir")
        saved = (logger.handlers[:], logger.level, logger.propagate)
        yield logger
        for handler in logger.handlers:
            handler.close()
        logger.handlers, logger.level, logger.propagate = saved[0], saved[1], saved[2]

    def test_module_loggers_reach_package_handlers(self, tmp_path: Path, package_logger):
        log_file = tmp_path / "logs" / "cleir.log"
        setup_logging(level="INFO", log_file=log_file)

        logging.getLogger("cleir.router").info("Routing to VisaAnalyzer")
        with LogContext("Enriching 2 itinerary days", logger=logging.getLogger("cleir.places.enrichment")):
            pass
        logging.getLogger("cleir.router").debug("below threshold")

        text = log_file.read_text(encoding="utf-8")
        assert "cleir.router" in text
        assert "Routing to VisaAnalyzer" in text
        assert "Enriching 2 itinerary days completed in" in text
        assert "below threshold" not in text

    def test_setup_replaces_handlers(self, package_logger):
        setup_logging(level="WARNING")
        setup_logging(level="WARNING")

        assert len(package_logger.handlers) == 1
        assert package_logger.propagate is False
