"""
cadence Speech Layer.

Components:
    - registry.py / catalog.py: Voice Registry and the remote voice list
    - validators.py: Request normalization and validation
    - ssml.py: SSML rendering
    - protocol.py: Wire format of the synthesis WebSocket
    - session.py: One synthesis call over one connection
    - service.py: SpeechService, the pipeline tying them together
"""
from .errors import (
    ErrorCode,
    InvalidInputError,
    NetworkFailureError,
    NoAudioReceivedError,
    ServiceUnavailableError,
    SpeechError,
    SynthesisError,
    Violation,
)
from .models import SynthesisRequest, Voice
from .registry import VoiceRegistry
from .service import SpeechService, SynthesisResult, get_service, reset_service

__all__ = [
    "SpeechService",
    "SynthesisRequest",
    "SynthesisResult",
    "Voice",
    "VoiceRegistry",
    "SpeechError",
    "InvalidInputError",
    "NetworkFailureError",
    "ServiceUnavailableError",
    "SynthesisError",
    "NoAudioReceivedError",
    "Violation",
    "ErrorCode",
    "get_service",
    "reset_service",
]
