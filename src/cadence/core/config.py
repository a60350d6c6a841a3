"""
Configuration Management for cadence.

This module provides centralized configuration handling with:
    - Default values (Defaults class)
    - Dataclass-based configuration objects
    - YAML file loading with environment variable overrides
    - Validation with meaningful error messages

Configuration Hierarchy (highest priority first):
    1. Environment variables (CADENCE_TRUSTED_TOKEN, CADENCE_LOG_LEVEL, etc.)
    2. YAML config file (config/settings.yaml)
    3. Defaults class values

Example settings.yaml:
    speech:
      default_voice: en-US-AriaNeural
      receive_timeout_s: 60

    server:
      allowed_origins: ["*"]

    logging:
      level: 2  # NORMAL
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional
import os
import yaml


class ConfigValidationError(Exception):
    """
    Raised when configuration validation fails.

    This exception is thrown when a configuration value is outside
    acceptable bounds or of the wrong type.
    """
    pass


class Defaults:
    """
    Centralized default configuration values.

    Sections:
        - Speech: Remote synthesis service endpoints and protocol options
        - Server: HTTP surface (CORS)
        - Logging: Log level and formatting
    """

    # ─────────────────────────────────────────────────────────────────────────
    # Speech Service
    # ─────────────────────────────────────────────────────────────────────────
    SPEECH_VOICES_URL = "https://speech.platform.bing.com/consumer/speech/synthesize/readaloud/voices/list"
    SPEECH_WSS_URL = "wss://speech.platform.bing.com/consumer/speech/synthesize/readaloud/edge/v1"
    SPEECH_TRUSTED_TOKEN = "6A5AA1D4EAFF4E9FB37E23D68491D6F4"
    SPEECH_OUTPUT_FORMAT = "audio-24khz-48kbitrate-mono-mp3"
    SPEECH_DEFAULT_VOICE = "en-US-AriaNeural"
    SPEECH_CATALOG_TIMEOUT_S = 10.0     # HTTP timeout for the voice catalog
    SPEECH_OPEN_TIMEOUT_S = 10.0        # WebSocket handshake timeout
    SPEECH_RECEIVE_TIMEOUT_S = None     # None = wait for the peer indefinitely
    SPEECH_ESCAPE_SSML_TEXT = False     # Embed request text verbatim
    SPEECH_WORD_BOUNDARY = True         # Ask for word-boundary metadata

    # ─────────────────────────────────────────────────────────────────────────
    # HTTP Server
    # ─────────────────────────────────────────────────────────────────────────
    SERVER_ALLOWED_ORIGINS = ["*"]
    SERVER_REQUIRE_VOICES = True        # Refuse to start without a voice catalog

    # ─────────────────────────────────────────────────────────────────────────
    # Logging
    # ─────────────────────────────────────────────────────────────────────────
    LOGGING_TEXT_PREVIEW_CHARS = 80     # Characters to show in text preview
    LOGGING_LEVEL = 2                   # 1=MINIMAL, 2=NORMAL, 3=VERBOSE, 4=DEBUG


@dataclass
class SpeechConfig:
    """
    Remote synthesis service configuration.

    Covers the voice catalog endpoint, the streaming WebSocket endpoint,
    the access token sent with both, and the per-call timeouts.
    """
    voices_url: str = Defaults.SPEECH_VOICES_URL
    wss_url: str = Defaults.SPEECH_WSS_URL
    trusted_token: str = Defaults.SPEECH_TRUSTED_TOKEN
    output_format: str = Defaults.SPEECH_OUTPUT_FORMAT
    default_voice: str = Defaults.SPEECH_DEFAULT_VOICE
    catalog_timeout_s: float = Defaults.SPEECH_CATALOG_TIMEOUT_S
    open_timeout_s: Optional[float] = Defaults.SPEECH_OPEN_TIMEOUT_S
    receive_timeout_s: Optional[float] = Defaults.SPEECH_RECEIVE_TIMEOUT_S
    escape_ssml_text: bool = Defaults.SPEECH_ESCAPE_SSML_TEXT
    word_boundary: bool = Defaults.SPEECH_WORD_BOUNDARY


@dataclass
class ServerConfig:
    """HTTP server configuration."""
    allowed_origins: List[str] = field(default_factory=lambda: list(Defaults.SERVER_ALLOWED_ORIGINS))
    require_voices: bool = Defaults.SERVER_REQUIRE_VOICES


@dataclass
class LoggingConfig:
    """
    Logging configuration.

    Log levels:
        1 = MINIMAL: Startup, shutdown, critical errors only
        2 = NORMAL: Request lifecycle (default)
        3 = VERBOSE: Per-stage timing, frame flow
        4 = DEBUG: Internal state, full tracing
    """
    text_preview_chars: int = Defaults.LOGGING_TEXT_PREVIEW_CHARS
    level: int = Defaults.LOGGING_LEVEL


@dataclass
class ServiceConfig:
    """
    Validated configuration for SpeechService and the HTTP app.

    Usage:
        settings = load_settings("config/settings.yaml")
        config = ServiceConfig.from_settings(settings)
        print(config.speech.default_voice)
    """
    speech: SpeechConfig = field(default_factory=SpeechConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_settings(cls, settings: "Settings") -> "ServiceConfig":
        """
        Create ServiceConfig from Settings with validation.

        Args:
            settings: Raw Settings object loaded from YAML.

        Returns:
            Validated ServiceConfig instance.

        Raises:
            ConfigValidationError: If any value fails validation.
        """
        raw = settings.raw

        # ─────────────────────────────────────────────────────────────────────
        # Speech configuration
        # ─────────────────────────────────────────────────────────────────────
        speech_raw = raw.get("speech", {}) or {}
        speech = SpeechConfig(
            voices_url=str(speech_raw.get("voices_url", Defaults.SPEECH_VOICES_URL)),
            wss_url=str(speech_raw.get("wss_url", Defaults.SPEECH_WSS_URL)),
            trusted_token=str(os.getenv("CADENCE_TRUSTED_TOKEN")
                              or speech_raw.get("trusted_token", Defaults.SPEECH_TRUSTED_TOKEN)),
            output_format=str(speech_raw.get("output_format", Defaults.SPEECH_OUTPUT_FORMAT)),
            default_voice=str(os.getenv("CADENCE_DEFAULT_VOICE")
                              or speech_raw.get("default_voice", Defaults.SPEECH_DEFAULT_VOICE)),
            catalog_timeout_s=float(speech_raw.get("catalog_timeout_s", Defaults.SPEECH_CATALOG_TIMEOUT_S)),
            open_timeout_s=cls._optional_float(speech_raw.get("open_timeout_s", Defaults.SPEECH_OPEN_TIMEOUT_S)),
            receive_timeout_s=cls._optional_float(
                speech_raw.get("receive_timeout_s", Defaults.SPEECH_RECEIVE_TIMEOUT_S)),
            escape_ssml_text=bool(speech_raw.get("escape_ssml_text", Defaults.SPEECH_ESCAPE_SSML_TEXT)),
            word_boundary=bool(speech_raw.get("word_boundary", Defaults.SPEECH_WORD_BOUNDARY)),
        )
        cls._validate_not_empty("speech.voices_url", speech.voices_url)
        cls._validate_not_empty("speech.wss_url", speech.wss_url)
        cls._validate_not_empty("speech.trusted_token", speech.trusted_token)
        cls._validate_not_empty("speech.output_format", speech.output_format)
        cls._validate_not_empty("speech.default_voice", speech.default_voice)
        cls._validate_positive("speech.catalog_timeout_s", speech.catalog_timeout_s)
        if speech.open_timeout_s is not None:
            cls._validate_positive("speech.open_timeout_s", speech.open_timeout_s)
        if speech.receive_timeout_s is not None:
            cls._validate_positive("speech.receive_timeout_s", speech.receive_timeout_s)

        # ─────────────────────────────────────────────────────────────────────
        # Server configuration
        # ─────────────────────────────────────────────────────────────────────
        server_raw = raw.get("server", {}) or {}
        origins_env = os.getenv("CADENCE_ALLOWED_ORIGINS")
        if origins_env:
            origins = [o.strip() for o in origins_env.split(",") if o.strip()]
        else:
            origins = server_raw.get("allowed_origins", Defaults.SERVER_ALLOWED_ORIGINS)
            if isinstance(origins, str):
                origins = [o.strip() for o in origins.split(",") if o.strip()]
        server = ServerConfig(
            allowed_origins=[str(o) for o in origins],
            require_voices=bool(server_raw.get("require_voices", Defaults.SERVER_REQUIRE_VOICES)),
        )

        # ─────────────────────────────────────────────────────────────────────
        # Logging configuration
        # ─────────────────────────────────────────────────────────────────────
        logging_raw = raw.get("logging", {}) or {}
        log_level_raw = logging_raw.get("level", Defaults.LOGGING_LEVEL)

        # Handle string log levels (e.g., "INFO", "DEBUG")
        if isinstance(log_level_raw, str):
            level_map = {
                "MINIMAL": 1, "1": 1,
                "NORMAL": 2, "INFO": 2, "2": 2,
                "VERBOSE": 3, "3": 3,
                "DEBUG": 4, "TRACE": 4, "4": 4,
            }
            log_level = level_map.get(log_level_raw.upper(), Defaults.LOGGING_LEVEL)
        else:
            log_level = int(log_level_raw)

        logging_cfg = LoggingConfig(
            text_preview_chars=int(logging_raw.get("text_preview_chars", Defaults.LOGGING_TEXT_PREVIEW_CHARS)),
            level=log_level,
        )
        cls._validate_non_negative("logging.text_preview_chars", logging_cfg.text_preview_chars)
        cls._validate_range("logging.level", logging_cfg.level, 1, 4)

        return cls(speech=speech, server=server, logging=logging_cfg)

    @staticmethod
    def _optional_float(value: Any) -> Optional[float]:
        """Convert to float, keeping None (and empty strings) as None."""
        if value is None or value == "":
            return None
        return float(value)

    @staticmethod
    def _validate_not_empty(name: str, value: str) -> None:
        """Validate that a string value is not blank."""
        if not value or not value.strip():
            raise ConfigValidationError(f"{name} must not be empty")

    @staticmethod
    def _validate_positive(name: str, value: int | float) -> None:
        """Validate that a value is positive (> 0)."""
        if value <= 0:
            raise ConfigValidationError(f"{name} must be positive, got {value}")

    @staticmethod
    def _validate_non_negative(name: str, value: int | float) -> None:
        """Validate that a value is non-negative (>= 0)."""
        if value < 0:
            raise ConfigValidationError(f"{name} must be non-negative, got {value}")

    @staticmethod
    def _validate_range(name: str, value: int | float, min_val: int | float, max_val: int | float) -> None:
        """Validate that a value is within a range [min_val, max_val]."""
        if not (min_val <= value <= max_val):
            raise ConfigValidationError(f"{name} must be between {min_val} and {max_val}, got {value}")


@dataclass(frozen=True)
class Settings:
    """
    Immutable settings container loaded from YAML.

    This is the raw settings object before validation. Use
    get_service_config() to get a validated ServiceConfig.

    Attributes:
        raw: Dictionary of raw configuration values.
    """
    raw: Dict[str, Any]

    @property
    def default_voice(self) -> str:
        """Get the voice used when a request names none."""
        return self.get_service_config().speech.default_voice

    @property
    def environment(self) -> str:
        """Get the deployment environment name (development/production)."""
        return str(self.raw.get("server", {}).get("environment")
                   or os.getenv("CADENCE_ENV", "development"))

    def get_service_config(self) -> ServiceConfig:
        """
        Get validated ServiceConfig from these settings.

        Raises:
            ConfigValidationError: If validation fails.
        """
        return ServiceConfig.from_settings(self)


def load_settings(path: str = "config/settings.yaml") -> Settings:
    """
    Load settings from a YAML configuration file.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        Settings object with loaded configuration.

    Raises:
        FileNotFoundError: If the settings file doesn't exist.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"settings file not found: {p.resolve()}")

    with p.open("r", encoding="utf-8") as f:
        raw: Dict[str, Any] = yaml.safe_load(f) or {}

    return Settings(raw=raw)
