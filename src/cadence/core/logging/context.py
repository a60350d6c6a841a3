"""
Request Context and Configuration State for Logging.

The request id lives in a ContextVar so that every log line emitted
while handling one synthesis call carries the same correlation id,
whether the call runs in the server threadpool or in the CLI.

Environment Variables:
    - CADENCE_LOG_LEVEL: Override log level (1-4 or name)
    - CADENCE_LOG_DIR: Directory for the JSONL log file
    - CADENCE_JSONL_FILE: JSONL filename
    - CADENCE_LOG_ROTATE_BYTES: Max file size before rotation
    - CADENCE_LOG_ROTATE_BACKUP: Number of rotated files to keep
"""
from __future__ import annotations

import os
from contextvars import ContextVar
from typing import Any, Dict

import yaml

from .levels import LEVEL_NAMES, LogLevel

# "-" marks log lines emitted outside any request
_request_id: ContextVar[str] = ContextVar("request_id", default="-")

_configured: bool = False
_log_config: Dict[str, Any] = {}
_current_level: LogLevel = LogLevel.NORMAL


def get_request_id() -> str:
    """Get current request ID from context, or "-" if not set."""
    return _request_id.get()


def set_request_id(rid: str) -> None:
    """Set request ID in context for log correlation."""
    _request_id.set(rid)


def get_level() -> LogLevel:
    """Get current log level."""
    return _current_level


def set_level(level: LogLevel) -> None:
    """Set current log level."""
    global _current_level
    _current_level = level


def get_level_name() -> str:
    """Get current log level as a name ("MINIMAL" .. "DEBUG")."""
    return LEVEL_NAMES.get(_current_level, "NORMAL")


def is_configured() -> bool:
    return _configured


def set_configured(value: bool) -> None:
    global _configured
    _configured = value


def get_log_config() -> Dict[str, Any]:
    return _log_config


def set_log_config(config: Dict[str, Any]) -> None:
    global _log_config
    _log_config = config


def _int_env(name: str) -> int | None:
    value = os.getenv(name)
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def read_logging_config() -> Dict[str, Any]:
    """
    Read logging configuration from the settings file and environment.

    The settings file is read directly with PyYAML rather than through
    core.config so that configuring logging never fails on an invalid
    service section. Environment variables take precedence.

    Returns:
        Dictionary with resolved logging configuration.
    """
    cfg: Dict[str, Any] = {}

    settings_path = os.getenv("CADENCE_SETTINGS", "config/settings.yaml")
    if os.path.exists(settings_path):
        try:
            with open(settings_path, "r", encoding="utf-8") as f:
                raw = yaml.safe_load(f) or {}
            cfg.update(raw.get("logging", {}) or {})
        except (OSError, yaml.YAMLError, AttributeError):
            # Unreadable settings: keep defaults, config loading reports it later
            cfg = {}

    if os.getenv("CADENCE_LOG_LEVEL"):
        cfg["level"] = os.environ["CADENCE_LOG_LEVEL"]
    if os.getenv("CADENCE_LOG_DIR"):
        cfg["log_dir"] = os.environ["CADENCE_LOG_DIR"]
    if os.getenv("CADENCE_JSONL_FILE"):
        cfg["jsonl_file"] = os.environ["CADENCE_JSONL_FILE"]

    rotate_bytes = _int_env("CADENCE_LOG_ROTATE_BYTES")
    if rotate_bytes is not None:
        cfg["rotate_max_bytes"] = rotate_bytes
    rotate_backup = _int_env("CADENCE_LOG_ROTATE_BACKUP")
    if rotate_backup is not None:
        cfg["rotate_backup_count"] = rotate_backup

    return cfg
