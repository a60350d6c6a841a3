"""
SSML rendering.

The synthesis service accepts a single-voice SSML document:

    <speak version='1.0' xml:lang='en-US'><voice name='...'><prosody pitch='...' rate='...' volume='...'>TEXT</prosody></voice></speak>

Voice and prosody values are embedded as-is; they are already validated
by the time they reach this module. The text is embedded verbatim unless
escape_text is set, in which case &, < and > are escaped.
"""
from __future__ import annotations

from xml.sax.saxutils import escape

from cadence.speech.models import SynthesisRequest

SSML_TEMPLATE = (
    "<speak version='1.0' xml:lang='en-US'>"
    "<voice name='{voice}'>"
    "<prosody pitch='{pitch}' rate='{rate}' volume='{volume}'>{text}</prosody>"
    "</voice></speak>"
)


def build_ssml(request: SynthesisRequest, escape_text: bool = False) -> str:
    """Render a normalized request as SSML."""
    text = escape(request.text) if escape_text else request.text
    return SSML_TEMPLATE.format(
        voice=request.voice,
        pitch=request.pitch,
        rate=request.rate,
        volume=request.volume,
        text=text,
    )
