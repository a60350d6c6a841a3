"""
Speech API Routes.

Endpoints:
    POST /api/speech/synthesize  - Synthesize text, returns MP3 audio
    GET  /api/speech/voices      - Voice catalog of the synthesis service
    GET  /health                 - Health check with voice and request counters
    GET  /metrics                - Prometheus metrics

Error Handling:
    All errors are returned as JSON with standardized format:
    {
        "ok": false,
        "error": "<ERROR_CODE>",
        "message": "<human readable message>",
        "details": {...},
        "request_id": "<id>"
    }

    HTTP status codes come from the SpeechError subclass:
        - INVALID_INPUT -> 400 Bad Request
        - NETWORK_FAILURE, SERVICE_UNAVAILABLE -> 503 Service Unavailable
        - SYNTHESIS_FAILED, NO_AUDIO -> 500 Internal Server Error
    Anything unexpected is a 500 INTERNAL_ERROR without internal details.

Example Usage:
    >>> import httpx
    >>> response = httpx.post(
    ...     "http://localhost:8000/api/speech/synthesize",
    ...     json={"text": "Hello there", "rate": "10%"}
    ... )
    >>> with open("speech.mp3", "wb") as f:
    ...     f.write(response.content)

Handlers are plain `def` functions so each synthesis call blocks a
threadpool worker, never the event loop.
"""
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Response
from fastapi.responses import JSONResponse

from cadence.api.dependencies import get_speech_service
from cadence.api.schemas import HealthResponse, SpeechRequest, VoicesResponse
from cadence.core.logging import exception, get_logger, get_request_id, set_request_id
from cadence.core.metrics import metrics
from cadence.speech.errors import ErrorCode, SpeechError
from cadence.speech.service import SpeechService

router = APIRouter()

_LOG = get_logger("cadence.api")

AUDIO_MEDIA_TYPE = "audio/mpeg"
AUDIO_FILENAME = "speech.mp3"


def _request_id() -> str:
    """Request id set by the middleware, or a fresh one."""
    rid = get_request_id()
    if not rid or rid == "-":
        rid = str(uuid.uuid4())[:12]
        set_request_id(rid)
    return rid


def _error_response(error: SpeechError, rid: str) -> JSONResponse:
    content = error.to_dict()
    content["request_id"] = rid
    return JSONResponse(status_code=error.status_code, content=content)


def _internal_error(rid: str) -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content={
            "ok": False,
            "error": ErrorCode.INTERNAL_ERROR,
            "message": "Internal server error",
            "request_id": rid,
        },
    )


@router.post("/api/speech/synthesize", response_class=Response)
def synthesize(
    req: SpeechRequest,
    service: SpeechService = Depends(get_speech_service),
):
    """
    Synthesize speech.

    Returns:
        Response: MP3 audio with headers:
            - Content-Disposition: attachment; filename=speech.mp3
            - X-Request-Id: Request identifier for tracing
            - X-Voice: Voice that spoke the text
            - X-Bytes: Size of the audio in bytes

    Raises:
        400: Invalid input (every violation listed in details)
        503: Synthesis service unreachable
        500: Protocol failure or no audio received
    """
    rid = _request_id()

    try:
        result = service.synthesize(req.to_request())
    except SpeechError as e:
        return _error_response(e, rid)
    except Exception:
        exception(_LOG, "synthesize_unhandled")
        return _internal_error(rid)

    headers = {
        "Content-Disposition": f"attachment; filename={AUDIO_FILENAME}",
        "X-Request-Id": rid,
        "X-Voice": result.voice,
        "X-Bytes": str(len(result.audio_bytes)),
    }
    return Response(content=result.audio_bytes, media_type=AUDIO_MEDIA_TYPE, headers=headers)


@router.get("/api/speech/voices")
def voices(service: SpeechService = Depends(get_speech_service)):
    """
    List the voices offered by the synthesis service.

    The catalog is fetched on every call; it is not cached.
    """
    rid = _request_id()

    try:
        catalog = service.list_voices()
    except SpeechError as e:
        return _error_response(e, rid)
    except Exception:
        exception(_LOG, "voices_unhandled")
        return _internal_error(rid)

    return VoicesResponse(success=True, data=[v.to_dict() for v in catalog])


@router.get("/health", response_model=HealthResponse)
def health(service: SpeechService = Depends(get_speech_service)):
    """Health check for load balancers and probes."""
    return service.get_health_info()


@router.get("/metrics")
def prometheus_metrics():
    """Prometheus metrics endpoint."""
    content, content_type = metrics.get_metrics_response()
    return Response(content=content, media_type=content_type)


def init_voices():
    """
    Fill the voice registry from the catalog.

    Called from main.py during application startup. Skipped via
    CADENCE_SKIP_VOICE_INIT=1 for testing.
    """
    from cadence.api.dependencies import init_service_voices
    init_service_voices()
