"""
FastAPI Dependency Injection Providers.

Architecture:
    1. get_settings() - Loads and caches application configuration
    2. get_speech_service() - Creates/returns the singleton SpeechService
    3. init_service_voices() - Fills the voice registry on startup

Usage in Route Handlers:
    from fastapi import Depends
    from cadence.api.dependencies import get_speech_service

    @router.get("/api/speech/voices")
    def voices(service: SpeechService = Depends(get_speech_service)):
        return service.list_voices()

Tests replace get_speech_service through app.dependency_overrides.
"""
from __future__ import annotations

import os
from functools import lru_cache

from cadence.core.config import Settings, load_settings
from cadence.core.logging import error, get_logger, info, warn
from cadence.speech.errors import SpeechError
from cadence.speech.service import SpeechService, get_service

_LOG = get_logger("cadence.api")

DEFAULT_SETTINGS_PATH = "config/settings.yaml"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Load and cache application settings.

    The path comes from CADENCE_SETTINGS (default config/settings.yaml).
    A missing file is not fatal: built-in defaults and environment
    overrides are used instead.
    """
    path = os.getenv("CADENCE_SETTINGS", DEFAULT_SETTINGS_PATH)
    try:
        return load_settings(path)
    except FileNotFoundError:
        warn(_LOG, "settings_missing", path=path)
        return Settings(raw={})


def get_speech_service() -> SpeechService:
    """Get the singleton SpeechService instance."""
    return get_service(get_settings())


def init_service_voices() -> None:
    """
    Populate the voice registry before serving requests.

    Skipped when CADENCE_SKIP_VOICE_INIT=1. When the catalog cannot be
    loaded, startup fails if server.require_voices is set; otherwise the
    server starts with an empty registry and every synthesis request is
    rejected as an unknown voice.

    Raises:
        ServiceUnavailableError: Catalog failure with require_voices set.
    """
    if os.getenv("CADENCE_SKIP_VOICE_INIT", "0") == "1":
        info(_LOG, "voice_init_skipped")
        return

    service = get_speech_service()
    try:
        service.init_voices()
    except SpeechError as exc:
        error(_LOG, "voice_init_failed", code=exc.code, error=exc.message)
        if service.config.server.require_voices:
            raise
