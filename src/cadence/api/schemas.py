"""
API Request/Response Schemas.

Models:
    SpeechRequest: Input schema for POST /api/speech/synthesize
    VoicesResponse: Envelope for GET /api/speech/voices
    HealthResponse: Payload of GET /health

Example Request:
    {
        "text": "Hello there",
        "voice": "en-US-AriaNeural",
        "pitch": "-10Hz",
        "rate": "20%",
        "volume": "0%"
    }

Field values are checked by speech/validators.py, not here, so that
every problem with a request is reported in one 400 response.
"""
from __future__ import annotations

from typing import Any, Dict, List

from pydantic import BaseModel, Field

from cadence.speech.models import SynthesisRequest


class SpeechRequest(BaseModel):
    """
    Synthesis request body.

    All prosody fields are optional; empty values fall back to "0Hz"/"0%"
    and an empty voice falls back to the configured default voice.
    """
    text: str = Field(
        default="",
        description="Text to speak (required, non-blank)"
    )
    voice: str = Field(
        default="",
        description="Voice short name, e.g. 'en-US-AriaNeural'"
    )
    pitch: str = Field(
        default="",
        description="Pitch shift, -100Hz..100Hz"
    )
    rate: str = Field(
        default="",
        description="Speaking rate change, -100%..100%"
    )
    volume: str = Field(
        default="",
        description="Volume change, -100%..100%"
    )

    def to_request(self) -> SynthesisRequest:
        return SynthesisRequest(
            text=self.text,
            voice=self.voice,
            pitch=self.pitch,
            rate=self.rate,
            volume=self.volume,
        )


class VoicesResponse(BaseModel):
    """Voice catalog envelope; entries keep the catalog key names."""
    success: bool = True
    data: List[Dict[str, str]] = Field(default_factory=list)


class HealthResponse(BaseModel):
    status: str = "ok"
    voices: int = 0
    voices_loaded: bool = False
    metrics: Dict[str, Any] = Field(default_factory=dict)
