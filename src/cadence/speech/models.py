"""
Data model for speech synthesis requests and voices.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict

DEFAULT_VOICE = "en-US-AriaNeural"

# Inclusive bounds for pitch, rate and volume
MIN_PROSODY = -100
MAX_PROSODY = 100

PITCH_UNIT = "Hz"
PERCENT_UNIT = "%"


@dataclass
class SynthesisRequest:
    """
    Request for speech synthesis.

    Attributes:
        text: Text to speak (required, non-blank).
        voice: Voice short name, e.g. "en-US-AriaNeural". Empty means default.
        pitch: Integer with "Hz" suffix, e.g. "-20Hz". A leading "+" is rejected.
        rate: Signed integer with "%" suffix.
        volume: Signed integer with "%" suffix.

    Empty prosody fields become "0<unit>" during normalization and a
    value missing its unit gets the unit appended.
    """
    text: str
    voice: str = ""
    pitch: str = ""
    rate: str = ""
    volume: str = ""


@dataclass(frozen=True)
class Voice:
    """A voice as published by the remote catalog."""
    name: str
    short_name: str
    gender: str
    locale: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Voice":
        """
        Build a Voice from one catalog entry.

        Raises:
            KeyError: If the entry has no ShortName.
        """
        return cls(
            name=str(data.get("Name", "")),
            short_name=str(data["ShortName"]),
            gender=str(data.get("Gender", "")),
            locale=str(data.get("Locale", "")),
        )

    def to_dict(self) -> Dict[str, str]:
        """Serialize using the catalog's key names."""
        return {
            "Name": self.name,
            "ShortName": self.short_name,
            "Gender": self.gender,
            "Locale": self.locale,
        }
