"""
SpeechService - the synthesis pipeline behind the API and the CLI.

Architecture:
    Request → Normalize/Validate → SSML → Session (connect, send, stream) → Audio

Key Components:
    - VoiceRegistry: voices accepted by the validator, filled by init_voices()
    - VoiceCatalog: remote voice list (httpx)
    - SynthesisSession: one WebSocket connection per call (websockets)

Error Handling:
    Every failure is a SpeechError subclass (see speech/errors.py). Nothing
    is retried; the error reaches the caller with its cause chained.

Example:
    >>> from cadence.core.config import Settings
    >>> from cadence.speech import SpeechService, SynthesisRequest
    >>>
    >>> service = SpeechService(Settings(raw={}))
    >>> service.init_voices()
    >>> result = service.synthesize(SynthesisRequest(text="Hello there"))
    >>> with open("speech.mp3", "wb") as f:
    ...     f.write(result.audio_bytes)
"""
from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import httpx

from cadence.core.config import ServiceConfig, Settings
from cadence.core.logging import debug, fail, get_logger, info, success
from cadence.core.metrics import metrics
from cadence.speech.catalog import VoiceCatalog
from cadence.speech.errors import SpeechError
from cadence.speech.models import SynthesisRequest, Voice
from cadence.speech.registry import VoiceRegistry
from cadence.speech.session import ConnectFn, SynthesisSession
from cadence.speech.ssml import build_ssml
from cadence.speech.validators import normalize_request

_LOG = get_logger("cadence.service")


@dataclass
class SynthesisResult:
    """
    Result of one synthesis call.

    Attributes:
        audio_bytes: Complete audio in the configured output format.
        request_id: Id of the call (also the connection id).
        voice: Voice that spoke the text.
        total_seconds: Wall time of the call, validation included.
        frames: Number of audio frames received.
    """
    audio_bytes: bytes
    request_id: str
    voice: str
    total_seconds: float
    frames: int


class SpeechService:
    """
    Orchestrates validation, SSML rendering and the synthesis session.

    Args:
        settings: Application settings.
        registry: Voice registry to validate against (a new empty one by default).
        http_client: httpx.Client for the voice catalog (tests inject a mock transport).
        connect: WebSocket connection factory passed to every session.

    Thread Safety:
        synthesize() may be called from many threads at once. Calls share
        only the registry.
    """

    def __init__(
        self,
        settings: Settings,
        registry: Optional[VoiceRegistry] = None,
        http_client: Optional[httpx.Client] = None,
        connect: Optional[ConnectFn] = None,
    ):
        self._settings = settings
        self._config = ServiceConfig.from_settings(settings)
        self._registry = registry if registry is not None else VoiceRegistry()
        self._connect = connect

        speech = self._config.speech
        self._catalog = VoiceCatalog(
            voices_url=speech.voices_url,
            trusted_token=speech.trusted_token,
            timeout=speech.catalog_timeout_s,
            client=http_client,
        )
        self._text_preview_chars = self._config.logging.text_preview_chars

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def config(self) -> ServiceConfig:
        return self._config

    @property
    def registry(self) -> VoiceRegistry:
        return self._registry

    def list_voices(self) -> List[Voice]:
        """
        Fetch the full voice catalog.

        Raises:
            NetworkFailureError: Catalog unreachable.
            ServiceUnavailableError: Bad status or malformed catalog.
        """
        return self._catalog.list_voices()

    def init_voices(self) -> int:
        """
        Populate the registry from the catalog.

        Returns:
            Number of voices registered.

        Raises:
            ServiceUnavailableError: If the catalog cannot be fetched or decoded.
        """
        t0 = time.perf_counter()
        count = self._registry.populate(self._catalog.list_voices)
        metrics.set_voices_loaded(len(self._registry))
        success(_LOG, "voices_loaded", count=count,
                seconds=round(time.perf_counter() - t0, 3))
        return count

    def prepare(self, request: SynthesisRequest) -> Tuple[SynthesisRequest, str]:
        """
        Normalize a request and render its SSML.

        Raises:
            InvalidInputError: With every violation found.
        """
        speech = self._config.speech
        normalized = normalize_request(request, self._registry, speech.default_voice)
        return normalized, build_ssml(normalized, escape_text=speech.escape_ssml_text)

    def new_session(self, request_id: Optional[str] = None) -> SynthesisSession:
        speech = self._config.speech
        return SynthesisSession(
            speech.wss_url,
            speech.trusted_token,
            speech.output_format,
            word_boundary=speech.word_boundary,
            open_timeout=speech.open_timeout_s,
            receive_timeout=speech.receive_timeout_s,
            connect=self._connect,
            request_id=request_id,
        )

    def synthesize(self, request: SynthesisRequest, request_id: Optional[str] = None) -> SynthesisResult:
        """
        Turn a request into complete audio.

        Pipeline:
            1. Normalize and validate (all violations reported together)
            2. Render SSML
            3. Open a session, send config + SSML, assemble audio frames

        Args:
            request: Raw request from the caller.
            request_id: Optional call id; a fresh uuid4 hex is used otherwise.

        Returns:
            SynthesisResult with the audio bytes.

        Raises:
            InvalidInputError, NetworkFailureError, SynthesisError,
            NoAudioReceivedError.
        """
        preview = request.text[:self._text_preview_chars] if self._text_preview_chars > 0 else ""
        info(_LOG, "request", chars=len(request.text or ""), voice=request.voice or "-",
             text_preview=preview)

        t0 = time.perf_counter()
        session: Optional[SynthesisSession] = None
        try:
            normalized, ssml = self.prepare(request)
            debug(_LOG, "ssml", ssml=ssml)

            session = self.new_session(request_id)
            audio = session.run(ssml)
        except SpeechError as exc:
            elapsed = time.perf_counter() - t0
            metrics.record_synthesis(exc.code, elapsed)
            fail(_LOG, "synthesis_failed", code=exc.code, error=exc.message,
                 seconds=round(elapsed, 3))
            raise

        elapsed = time.perf_counter() - t0
        metrics.record_synthesis("success", elapsed, len(audio))
        success(_LOG, "done", bytes=len(audio), voice=normalized.voice,
                frames=session.assembler.audio_frames, seconds=round(elapsed, 3))

        return SynthesisResult(
            audio_bytes=audio,
            request_id=session.request_id,
            voice=normalized.voice,
            total_seconds=elapsed,
            frames=session.assembler.audio_frames,
        )

    def get_health_info(self) -> Dict[str, Any]:
        """Voice registry state plus request/error counters."""
        return {
            "status": "ok",
            "voices": len(self._registry),
            "voices_loaded": self._registry.populated,
            "metrics": metrics.snapshot(),
        }


# =============================================================================
# Global Service Singleton
# =============================================================================

_service: Optional[SpeechService] = None
_service_lock = threading.Lock()


def get_service(settings: Settings) -> SpeechService:
    """
    Get or create the global SpeechService instance.

    Thread-safe lazy singleton.
    """
    global _service
    if _service is None:
        with _service_lock:
            if _service is None:
                _service = SpeechService(settings)
    return _service


def reset_service() -> None:
    """Reset the global service instance (used by tests)."""
    global _service
    with _service_lock:
        _service = None
