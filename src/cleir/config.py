"""Configuration for Cleir.

Settings are grouped into sections (AI, routing, places, voice) and combined
in a single ``AppConfig`` that reads ``CLEIR_*`` environment variables. A YAML
file can supply the same structure.

Configuration priority (highest wins):
1. Values from the YAML config file
2. Environment variables (CLEIR_*, nested with ``__``)
3. In-code defaults

API keys are held as ``SecretStr``. When a section does not carry a key, the
conventional ``GEMINI_API_KEY`` / ``GOOGLE_MAPS_API_KEY`` variables are used.

Example:
    ```python
    from cleir.config import get_config

    config = get_config()
    print(config.routing.confidence_threshold)
    ```
"""

from __future__ import annotations

import functools
import logging
import os
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


# =============================================================================
# Exceptions
# =============================================================================


class ConfigurationError(Exception):
    """Raised when configuration is invalid or cannot be loaded."""

    pass


# =============================================================================
# Configuration Sections
# =============================================================================


class AIConfig(BaseModel):
    """Settings for the Gemini client.

    Attributes:
        model: Gemini model used for detection and analysis.
        temperature: Sampling temperature (0.0-2.0).
        max_output_tokens: Maximum tokens in a response.
        timeout_seconds: Per-request deadline.
        max_retries: Retry attempts for retriable failures at the analyzer stage.
        retry_base_delay: Base delay for exponential backoff, in seconds.
        max_retry_delay: Upper bound on a single backoff delay.
        api_key: Gemini API key. Falls back to GEMINI_API_KEY.
    """

    model: str = "gemini-2.0-flash"
    temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    max_output_tokens: int = Field(default=8192, ge=100, le=100000)
    timeout_seconds: float = Field(default=60.0, gt=0, le=600)
    max_retries: int = Field(default=3, ge=0, le=10)
    retry_base_delay: float = Field(default=1.0, ge=0.0)
    max_retry_delay: float = Field(default=60.0, ge=0.0)
    api_key: SecretStr | None = None

    def resolve_api_key(self) -> str | None:
        """Return the configured key, or GEMINI_API_KEY from the environment."""
        if self.api_key is not None and self.api_key.get_secret_value():
            return self.api_key.get_secret_value()
        return os.environ.get("GEMINI_API_KEY") or None


class RoutingConfig(BaseModel):
    """Settings for the detection gate.

    Attributes:
        confidence_threshold: Detections below this score are not routed.
    """

    confidence_threshold: float = Field(default=0.3, ge=0.0, le=1.0)


class PlacesConfig(BaseModel):
    """Settings for itinerary enrichment through Google Places.

    Attributes:
        api_key: Google Maps API key. Falls back to GOOGLE_MAPS_API_KEY.
        concurrency: Activities resolved in parallel per chunk.
        chunk_delay_seconds: Pause between chunks.
        timeout_seconds: HTTP deadline for each Places call.
        photo_max_width: Width requested for photo URLs.
        max_photos: Photos kept per place.
        max_reviews: Reviews kept per place.
        review_snippet_chars: Top review text is cut to this many characters.
    """

    api_key: SecretStr | None = None
    concurrency: int = Field(default=3, ge=1, le=20)
    chunk_delay_seconds: float = Field(default=0.2, ge=0.0, le=10.0)
    timeout_seconds: float = Field(default=20.0, gt=0, le=120)
    photo_max_width: int = Field(default=800, ge=100, le=1600)
    max_photos: int = Field(default=5, ge=0, le=10)
    max_reviews: int = Field(default=3, ge=0, le=5)
    review_snippet_chars: int = Field(default=200, ge=20)

    def resolve_api_key(self) -> str | None:
        """Return the configured key, or GOOGLE_MAPS_API_KEY from the environment."""
        if self.api_key is not None and self.api_key.get_secret_value():
            return self.api_key.get_secret_value()
        return os.environ.get("GOOGLE_MAPS_API_KEY") or None


class VoiceConfig(BaseModel):
    """Settings for the speech-friendly rendering.

    Attributes:
        max_words: Longer renderings are truncated.
        truncate_to: Word count kept when truncating.
    """

    max_words: int = Field(default=150, ge=10)
    truncate_to: int = Field(default=140, ge=5)

    @field_validator("truncate_to")
    @classmethod
    def _not_above_limit(cls, v: int, info: Any) -> int:
        max_words = info.data.get("max_words")
        if max_words is not None and v > max_words:
            raise ValueError("truncate_to must not exceed max_words")
        return v


class AppConfig(BaseSettings):
    """Top-level application configuration.

    Attributes:
        ai: Gemini client settings.
        routing: Detection gate settings.
        places: Places enrichment settings.
        voice: Voice rendering settings.
        log_level: Default log level for the CLI.
        log_file: Optional log file path.
        debug: Enable debug mode (verbose logging).

    Example:
        >>> config = AppConfig()
        >>> config.places.concurrency
        3
    """

    ai: AIConfig = Field(default_factory=AIConfig)
    routing: RoutingConfig = Field(default_factory=RoutingConfig)
    places: PlacesConfig = Field(default_factory=PlacesConfig)
    voice: VoiceConfig = Field(default_factory=VoiceConfig)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"
    log_file: Path | None = None
    debug: bool = False

    model_config = {
        "env_prefix": "CLEIR_",
        "env_nested_delimiter": "__",
        "case_sensitive": False,
        "extra": "ignore",
    }

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_level(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v

    def to_display_dict(self) -> dict[str, Any]:
        """Flatten settings for display, masking secrets.

        Returns:
            Mapping of dotted setting names to printable values.
        """
        data = self.model_dump(mode="json")
        data["ai"]["api_key"] = "set" if self.ai.resolve_api_key() else "not set"
        data["places"]["api_key"] = "set" if self.places.resolve_api_key() else "not set"

        flat: dict[str, Any] = {}
        for key, value in data.items():
            if isinstance(value, dict):
                for sub_key, sub_value in value.items():
                    flat[f"{key}.{sub_key}"] = sub_value
            else:
                flat[key] = value
        return flat


# =============================================================================
# Loading
# =============================================================================


def _default_search_paths() -> list[Path]:
    return [
        Path("./cleir.yaml"),
        Path("./cleir.yml"),
        Path.home() / ".cleir" / "config.yaml",
    ]


def load_config(path: Path | None = None) -> AppConfig:
    """Load configuration from a YAML file merged over environment settings.

    An explicit ``path`` must exist and hold a mapping. Files found on the
    default search path are best effort: unreadable or malformed ones are
    logged and skipped.

    Args:
        path: Explicit config file. If None, the default locations are searched.

    Returns:
        AppConfig instance.

    Raises:
        ConfigurationError: If the explicit file is missing, malformed, or invalid.
    """
    config_file: Path | None = None
    if path is not None:
        if not path.exists():
            raise ConfigurationError(f"Configuration file not found: {path}")
        config_file = path
    else:
        for candidate in _default_search_paths():
            if candidate.exists():
                config_file = candidate
                break

    config_data: dict[str, Any] = {}
    if config_file is not None:
        try:
            loaded = yaml.safe_load(config_file.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as e:
            if path is not None:
                raise ConfigurationError(f"Invalid configuration file {config_file}: {e}") from e
            logger.warning(f"Failed to read config file {config_file}: {e}. Using defaults.")
            loaded = None

        if isinstance(loaded, dict):
            config_data = loaded
        elif loaded is not None:
            if path is not None:
                raise ConfigurationError(f"Configuration file {config_file} must contain a mapping")
            logger.warning(f"Config file {config_file} has unexpected format. Using defaults.")

    try:
        return AppConfig(**config_data)
    except ValueError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


@functools.lru_cache(maxsize=1)
def get_config() -> AppConfig:
    """Get the cached configuration singleton.

    Returns:
        Cached AppConfig instance.
    """
    return load_config()


def reset_config() -> None:
    """Clear the configuration cache so the next get_config() reloads."""
    get_config.cache_clear()
