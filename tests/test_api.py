"""
Tests for the HTTP API.

Tests cover:
- POST /api/speech/synthesize: audio response and headers
- Status mapping: 400 / 503 / 500
- GET /api/speech/voices envelope
- GET /health and GET /metrics
- Request id middleware, CORS, malformed bodies
- Startup voice initialization
"""
from unittest.mock import MagicMock

import httpx
import pytest
from fastapi.testclient import TestClient

from cadence.api.dependencies import get_settings, get_speech_service
from cadence.core.config import Settings
from cadence.speech.errors import (
    NetworkFailureError,
    NoAudioReceivedError,
    ServiceUnavailableError,
    SynthesisError,
)
from cadence.speech.models import Voice
from cadence.speech.registry import VoiceRegistry
from cadence.speech.service import SpeechService, reset_service
from conftest import VOICES, FakeConnection, FakeConnector, audio_frame, text_frame


@pytest.fixture(autouse=True)
def skip_voice_init(monkeypatch):
    """Skip the catalog fetch for all tests."""
    monkeypatch.setenv("CADENCE_SKIP_VOICE_INIT", "1")
    yield


def _client(service) -> TestClient:
    from cadence.main import create_app

    app = create_app()
    app.dependency_overrides[get_speech_service] = lambda: service
    return TestClient(app)


def _service_with(script) -> SpeechService:
    return SpeechService(
        Settings(raw={}),
        registry=VoiceRegistry(VOICES),
        connect=FakeConnector(FakeConnection(script)),
    )


class TestSynthesizeEndpoint:
    """Tests for POST /api/speech/synthesize."""

    def test_returns_audio(self, audio_script):
        with _client(_service_with(audio_script)) as c:
            r = c.post("/api/speech/synthesize", json={"text": "Hello there", "rate": "10%"})

        assert r.status_code == 200
        assert r.headers["content-type"] == "audio/mpeg"
        assert r.headers["content-disposition"] == "attachment; filename=speech.mp3"
        assert r.headers["x-voice"] == "en-US-AriaNeural"
        assert r.headers["x-bytes"] == str(len(r.content))
        assert r.content == b"\xff\xf3chunk-one\xff\xf3chunk-two"

    def test_request_id_echoed(self, audio_script):
        with _client(_service_with(audio_script)) as c:
            r = c.post("/api/speech/synthesize", json={"text": "Hi"},
                       headers={"X-Request-ID": "trace-123"})
        assert r.headers["x-request-id"] == "trace-123"

    def test_request_id_generated(self, audio_script):
        with _client(_service_with(audio_script)) as c:
            r = c.post("/api/speech/synthesize", json={"text": "Hi"})
        assert len(r.headers["x-request-id"]) == 12

    def test_invalid_input_is_400(self):
        service = _service_with([])
        with _client(service) as c:
            r = c.post("/api/speech/synthesize",
                       json={"text": "", "voice": "xx-XX-Nobody", "volume": "150%"})

        assert r.status_code == 400
        body = r.json()
        assert body["ok"] is False
        assert body["error"] == "INVALID_INPUT"
        fields = [v["field"] for v in body["details"]["violations"]]
        assert fields == ["voice", "text", "volume"]
        assert "request_id" in body

    def test_missing_text_is_400(self):
        with _client(_service_with([])) as c:
            r = c.post("/api/speech/synthesize", json={})
        assert r.status_code == 400
        assert r.json()["details"]["violations"][0]["code"] == "TEXT_REQUIRED"

    def test_malformed_body_is_400(self):
        with _client(_service_with([])) as c:
            r = c.post("/api/speech/synthesize", content=b"{not json",
                       headers={"Content-Type": "application/json"})
        assert r.status_code == 400
        assert r.json()["error"] == "INVALID_INPUT"

    def test_network_failure_is_503(self):
        service = SpeechService(Settings(raw={}), registry=VoiceRegistry(VOICES),
                                connect=FakeConnector(error=ConnectionRefusedError("refused")))
        with _client(service) as c:
            r = c.post("/api/speech/synthesize", json={"text": "Hi"})

        assert r.status_code == 503
        assert r.json()["error"] == "NETWORK_FAILURE"

    def test_no_audio_is_500(self):
        with _client(_service_with([text_frame("turn.end")])) as c:
            r = c.post("/api/speech/synthesize", json={"text": "Hi"})

        assert r.status_code == 500
        assert r.json()["error"] == "NO_AUDIO"

    def test_error_frame_is_500(self):
        script = [audio_frame(b"x"), text_frame("error", "bad ssml")]
        with _client(_service_with(script)) as c:
            r = c.post("/api/speech/synthesize", json={"text": "Hi"})

        assert r.status_code == 500
        body = r.json()
        assert body["error"] == "SYNTHESIS_FAILED"
        assert "bad ssml" in body["details"]["frame"]

    def test_unexpected_error_hides_details(self):
        service = MagicMock()
        service.synthesize.side_effect = RuntimeError("secret internals")
        with _client(service) as c:
            r = c.post("/api/speech/synthesize", json={"text": "Hi"})

        assert r.status_code == 500
        body = r.json()
        assert body["error"] == "INTERNAL_ERROR"
        assert "secret" not in r.text


class TestVoicesEndpoint:
    """Tests for GET /api/speech/voices."""

    def test_envelope(self):
        service = MagicMock()
        service.list_voices.return_value = [
            Voice(name="Aria", short_name="en-US-AriaNeural", gender="Female", locale="en-US"),
        ]
        with _client(service) as c:
            r = c.get("/api/speech/voices")

        assert r.status_code == 200
        assert r.json() == {
            "success": True,
            "data": [{"Name": "Aria", "ShortName": "en-US-AriaNeural", "Gender": "Female", "Locale": "en-US"}],
        }

    @pytest.mark.parametrize("error,status", [
        (ServiceUnavailableError("catalog down"), 503),
        (NetworkFailureError("unreachable"), 503),
        (SynthesisError("odd"), 500),
    ])
    def test_failures(self, error, status):
        service = MagicMock()
        service.list_voices.side_effect = error
        with _client(service) as c:
            r = c.get("/api/speech/voices")

        assert r.status_code == status
        assert r.json()["error"] == error.code


class TestHealthAndMetrics:
    """Tests for GET /health and GET /metrics."""

    def test_health(self):
        with _client(_service_with([])) as c:
            r = c.get("/health")

        assert r.status_code == 200
        body = r.json()
        assert body["status"] == "ok"
        assert body["voices"] == len(VOICES)
        assert body["voices_loaded"] is False
        assert {"request_count", "error_count", "last_error_time"} <= set(body["metrics"])

    def test_error_counter_tracks_5xx(self):
        with _client(_service_with([text_frame("turn.end")])) as c:
            before = c.get("/health").json()["metrics"]["error_count"]
            c.post("/api/speech/synthesize", json={"text": "Hi"})
            after = c.get("/health").json()["metrics"]

        assert after["error_count"] == before + 1
        assert after["last_error_time"] is not None

    def test_metrics_endpoint(self):
        with _client(_service_with([])) as c:
            c.get("/health")
            r = c.get("/metrics")

        assert r.status_code == 200
        assert "cadence_http_requests_total" in r.text
        assert "cadence_synthesis_requests_total" in r.text


class TestCors:
    """CORS headers follow server.allowed_origins."""

    def test_preflight(self):
        with _client(_service_with([])) as c:
            r = c.options("/api/speech/synthesize", headers={
                "Origin": "http://localhost:3000",
                "Access-Control-Request-Method": "POST",
            })
        assert r.status_code == 200
        assert r.headers["access-control-allow-origin"] == "*"

    def test_restricted_origins(self, monkeypatch):
        monkeypatch.setenv("CADENCE_ALLOWED_ORIGINS", "https://app.example.test")
        get_settings.cache_clear()
        try:
            with _client(_service_with([])) as c:
                allowed = c.get("/health", headers={"Origin": "https://app.example.test"})
                denied = c.get("/health", headers={"Origin": "https://evil.example.test"})
        finally:
            get_settings.cache_clear()

        assert allowed.headers["access-control-allow-origin"] == "https://app.example.test"
        assert "access-control-allow-origin" not in denied.headers


class TestStartup:
    """Voice initialization on application startup."""

    def _catalog_service(self, handler, require_voices=True):
        settings = Settings(raw={"server": {"require_voices": require_voices}})
        client = httpx.Client(transport=httpx.MockTransport(handler))
        return SpeechService(settings, http_client=client)

    def test_startup_populates_registry(self, monkeypatch):
        from cadence.api import dependencies

        monkeypatch.setenv("CADENCE_SKIP_VOICE_INIT", "0")
        service = self._catalog_service(lambda request: httpx.Response(
            200, json=[{"Name": "Aria", "ShortName": "en-US-AriaNeural", "Gender": "Female", "Locale": "en-US"}]))
        monkeypatch.setattr(dependencies, "get_speech_service", lambda: service)

        dependencies.init_service_voices()
        assert service.registry.contains("en-US-AriaNeural")

    def test_startup_failure_is_fatal_when_required(self, monkeypatch):
        from cadence.api import dependencies

        monkeypatch.setenv("CADENCE_SKIP_VOICE_INIT", "0")
        service = self._catalog_service(lambda request: httpx.Response(500))
        monkeypatch.setattr(dependencies, "get_speech_service", lambda: service)

        with pytest.raises(ServiceUnavailableError):
            dependencies.init_service_voices()

    def test_startup_failure_tolerated_when_optional(self, monkeypatch):
        from cadence.api import dependencies

        monkeypatch.setenv("CADENCE_SKIP_VOICE_INIT", "0")
        service = self._catalog_service(lambda request: httpx.Response(500), require_voices=False)
        monkeypatch.setattr(dependencies, "get_speech_service", lambda: service)

        dependencies.init_service_voices()
        assert len(service.registry) == 0

    def test_skip_flag(self, monkeypatch):
        from cadence.api import dependencies

        service = MagicMock()
        monkeypatch.setattr(dependencies, "get_speech_service", lambda: service)
        dependencies.init_service_voices()
        service.init_voices.assert_not_called()

    def test_health_with_real_singleton(self):
        """Without overrides the app builds its own service from settings."""
        from cadence.main import create_app

        reset_service()
        try:
            with TestClient(create_app()) as c:
                r = c.get("/health")
            assert r.status_code == 200
            assert r.json()["status"] == "ok"
        finally:
            reset_service()
