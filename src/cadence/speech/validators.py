"""
Input Validation for synthesis requests.

Normalization happens in two steps:

    1. apply_defaults(): empty voice -> default voice, empty pitch/rate/volume
       -> "0Hz"/"0%"/"0%", and a value missing its unit gets the unit
       appended ("20" -> "20%").
    2. validate_request(): five independent checks (voice, text, pitch,
       rate, volume). Every failure is collected and raised together as one
       InvalidInputError, so callers see all problems at once.

Numeric rules:
    - must match ^-?\\d{1,3}<unit>$   -> otherwise {FIELD}_INVALID_FORMAT
    - must lie in [-100, 100]         -> otherwise {FIELD}_OUT_OF_RANGE

Usage:
    from cadence.speech.validators import normalize_request

    try:
        req = normalize_request(raw, registry)
    except InvalidInputError as e:
        for v in e.violations:
            print(v.field, v.code, v.message)
"""
from __future__ import annotations

import re
from dataclasses import replace
from typing import Dict, List, Optional

from cadence.core.logging import debug, get_logger
from cadence.speech.errors import InvalidInputError, Violation
from cadence.speech.models import (
    DEFAULT_VOICE,
    MAX_PROSODY,
    MIN_PROSODY,
    PERCENT_UNIT,
    PITCH_UNIT,
    SynthesisRequest,
)
from cadence.speech.registry import VoiceRegistry

_LOG = get_logger("cadence.validators")

_NUMBER_PATTERNS: Dict[str, "re.Pattern[str]"] = {
    unit: re.compile(rf"-?[0-9]{{1,3}}{re.escape(unit)}") for unit in (PITCH_UNIT, PERCENT_UNIT)
}


def _with_unit(value: str, unit: str) -> str:
    if not value:
        return f"0{unit}"
    if not value.endswith(unit):
        return value + unit
    return value


def apply_defaults(request: SynthesisRequest, default_voice: str = DEFAULT_VOICE) -> SynthesisRequest:
    """
    Fill in defaults and units. Returns a new request; the input is not modified.
    """
    return replace(
        request,
        voice=request.voice or default_voice,
        pitch=_with_unit(request.pitch, PITCH_UNIT),
        rate=_with_unit(request.rate, PERCENT_UNIT),
        volume=_with_unit(request.volume, PERCENT_UNIT),
    )


def validate_number(value: str, unit: str, field: str) -> Optional[Violation]:
    """
    Check a prosody value such as "-20Hz" or "50%".

    Returns:
        A Violation, or None when the value is acceptable.
    """
    label = field.upper()
    bounds = f"between {MIN_PROSODY}{unit} and {MAX_PROSODY}{unit}"

    pattern = _NUMBER_PATTERNS.get(unit) or re.compile(rf"-?[0-9]{{1,3}}{re.escape(unit)}")
    if not pattern.fullmatch(value):
        return Violation(field, f"{label}_INVALID_FORMAT", f"invalid format: {field} must be {bounds}")

    number = int(value[: -len(unit)])
    if number < MIN_PROSODY or number > MAX_PROSODY:
        return Violation(field, f"{label}_OUT_OF_RANGE", f"value out of range: {field} must be {bounds}")

    return None


def validate_voice(voice: str, registry: VoiceRegistry) -> Optional[Violation]:
    if not registry.contains(voice):
        return Violation("voice", "VOICE_UNKNOWN", f"invalid voice: {voice}")
    return None


def validate_text(text: str) -> Optional[Violation]:
    if not text or not text.strip():
        return Violation("text", "TEXT_REQUIRED", "text cannot be empty")
    return None


def validate_pitch(pitch: str) -> Optional[Violation]:
    return validate_number(pitch, PITCH_UNIT, "pitch")


def validate_rate(rate: str) -> Optional[Violation]:
    return validate_number(rate, PERCENT_UNIT, "rate")


def validate_volume(volume: str) -> Optional[Violation]:
    return validate_number(volume, PERCENT_UNIT, "volume")


def validate_request(request: SynthesisRequest, registry: Optional[VoiceRegistry]) -> None:
    """
    Run every check and raise once with all failures.

    Passing registry=None skips the voice check (offline dry runs).

    Raises:
        InvalidInputError: If at least one check fails.
    """
    checks = [
        validate_voice(request.voice, registry) if registry is not None else None,
        validate_text(request.text),
        validate_pitch(request.pitch),
        validate_rate(request.rate),
        validate_volume(request.volume),
    ]
    violations: List[Violation] = [v for v in checks if v is not None]

    if violations:
        debug(_LOG, "validation_failed", fields=",".join(v.field for v in violations))
        raise InvalidInputError(
            "; ".join(v.message for v in violations),
            violations,
        )


def normalize_request(
    request: SynthesisRequest,
    registry: Optional[VoiceRegistry],
    default_voice: str = DEFAULT_VOICE,
) -> SynthesisRequest:
    """
    Apply defaults, then validate.

    Returns:
        The normalized request.

    Raises:
        InvalidInputError: With every violation found.
    """
    normalized = apply_defaults(request, default_voice)
    validate_request(normalized, registry)
    return normalized
