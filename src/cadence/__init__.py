"""
cadence: Speech synthesis streaming service.

Turns a text-to-speech request into framed messages on a WebSocket
connection to a remote synthesis service and reassembles the streamed
response into one audio payload.

Key Features:
    - Request validation against the remote voice catalog
    - SSML rendering with pitch, rate and volume
    - Streaming session with typed errors for every failure mode
    - HTTP API (/api/speech/synthesize, /api/speech/voices, /health, /metrics)
    - Command line client

Example Usage:
    >>> from cadence.core.config import Settings
    >>> from cadence.speech import SpeechService, SynthesisRequest
    >>>
    >>> service = SpeechService(Settings(raw={}))
    >>> service.init_voices()
    >>> result = service.synthesize(SynthesisRequest(text="Hello", rate="10%"))
    >>> with open("speech.mp3", "wb") as f:
    ...     f.write(result.audio_bytes)
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
