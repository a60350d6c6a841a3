"""
Tests for SpeechService - the synthesis pipeline.

Tests cover:
- Initialization from settings
- init_voices() and list_voices() with a mocked catalog
- prepare() normalization and SSML
- synthesize() happy path with a scripted connection
- Error propagation (InvalidInput, NetworkFailure, NoAudio)
- Metrics recorded per outcome
- get_health_info() response structure
- get_service()/reset_service() singleton
"""
import httpx
import pytest

from cadence.core.config import Settings
from cadence.core.metrics import metrics
from cadence.speech.errors import (
    ErrorCode,
    InvalidInputError,
    NetworkFailureError,
    NoAudioReceivedError,
    ServiceUnavailableError,
)
from cadence.speech.models import SynthesisRequest
from cadence.speech.service import (
    SpeechService,
    SynthesisResult,
    get_service,
    reset_service,
)
from conftest import FakeConnection, FakeConnector, audio_frame, text_frame

CATALOG = [
    {"Name": "Aria", "ShortName": "en-US-AriaNeural", "Gender": "Female", "Locale": "en-US"},
    {"Name": "Ryan", "ShortName": "en-GB-RyanNeural", "Gender": "Male", "Locale": "en-GB"},
]


def _outcome_count(outcome: str) -> float:
    value = metrics.registry.get_sample_value(
        "cadence_synthesis_requests_total", {"outcome": outcome})
    return value or 0.0


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("CADENCE_TRUSTED_TOKEN", "CADENCE_DEFAULT_VOICE"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def settings():
    return Settings(raw={
        "speech": {
            "voices_url": "https://speech.example.test/voices/list",
            "wss_url": "wss://speech.example.test/edge/v1",
            "trusted_token": "token-123",
            "receive_timeout_s": 5,
        },
        "logging": {"text_preview_chars": 10},
    })


@pytest.fixture
def catalog_client():
    return httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(200, json=CATALOG)))


def _service(settings, registry=None, client=None, connector=None) -> SpeechService:
    return SpeechService(settings, registry=registry, http_client=client, connect=connector)


class TestInitialization:
    """Tests for construction."""

    def test_config_parsed(self, settings):
        service = _service(settings)
        assert service.config.speech.trusted_token == "token-123"
        assert service.config.speech.receive_timeout_s == 5.0
        assert service.settings is settings

    def test_registry_defaults_to_empty(self, settings):
        assert len(_service(settings).registry) == 0


class TestVoices:
    """Tests for init_voices() and list_voices()."""

    def test_init_voices_populates_registry(self, settings, catalog_client):
        service = _service(settings, client=catalog_client)

        assert service.init_voices() == 2
        assert service.registry.contains("en-GB-RyanNeural")
        assert metrics.registry.get_sample_value("cadence_voices_loaded") == 2

    def test_init_voices_failure(self, settings):
        client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(500)))
        service = _service(settings, client=client)

        with pytest.raises(ServiceUnavailableError):
            service.init_voices()
        assert service.registry.populated is False

    def test_list_voices(self, settings, catalog_client):
        voices = _service(settings, client=catalog_client).list_voices()
        assert [v.to_dict() for v in voices] == CATALOG


class TestPrepare:
    """Tests for prepare()."""

    def test_normalizes_and_renders(self, settings, registry):
        normalized, ssml = _service(settings, registry=registry).prepare(
            SynthesisRequest(text="Hello", rate="20"))

        assert normalized.rate == "20%"
        assert normalized.voice == "en-US-AriaNeural"
        assert "rate='20%'" in ssml
        assert ">Hello</prosody>" in ssml

    def test_escape_setting_applied(self, registry):
        service = _service(Settings(raw={"speech": {"escape_ssml_text": True}}), registry=registry)
        _, ssml = service.prepare(SynthesisRequest(text="a < b"))
        assert "a &lt; b" in ssml


class TestSynthesize:
    """Tests for synthesize()."""

    def test_happy_path(self, settings, registry, audio_script):
        conn = FakeConnection(audio_script)
        connector = FakeConnector(conn)
        service = _service(settings, registry=registry, connector=connector)
        before = _outcome_count("success")

        result = service.synthesize(SynthesisRequest(text="Hello there", voice="en-GB-SoniaNeural"))

        assert isinstance(result, SynthesisResult)
        assert result.audio_bytes == b"\xff\xf3chunk-one\xff\xf3chunk-two"
        assert result.voice == "en-GB-SoniaNeural"
        assert result.frames == 2
        assert result.total_seconds >= 0
        assert _outcome_count("success") == before + 1

        url, kwargs = connector.calls[0]
        assert url.startswith("wss://speech.example.test/edge/v1?")
        assert f"ConnectionId={result.request_id}" in url
        assert conn.recv_timeouts[0] == 5.0
        assert "<voice name='en-GB-SoniaNeural'>" in conn.sent[1]

    def test_request_id_used_for_connection(self, settings, registry, audio_script):
        connector = FakeConnector(FakeConnection(audio_script))
        service = _service(settings, registry=registry, connector=connector)

        result = service.synthesize(SynthesisRequest(text="Hi"), request_id="0" * 32)
        assert result.request_id == "0" * 32
        assert "ConnectionId=" + "0" * 32 in connector.calls[0][0]

    def test_invalid_input_never_connects(self, settings, registry):
        connector = FakeConnector(FakeConnection([]))
        service = _service(settings, registry=registry, connector=connector)
        before = _outcome_count(ErrorCode.INVALID_INPUT)

        with pytest.raises(InvalidInputError) as exc_info:
            service.synthesize(SynthesisRequest(text="", rate="500%"))

        assert exc_info.value.fields == ["text", "rate"]
        assert connector.calls == []
        assert _outcome_count(ErrorCode.INVALID_INPUT) == before + 1

    def test_empty_registry_rejects_voice(self, settings):
        """Before population every voice is unknown."""
        service = _service(settings, connector=FakeConnector(FakeConnection([])))
        with pytest.raises(InvalidInputError) as exc_info:
            service.synthesize(SynthesisRequest(text="Hi"))
        assert exc_info.value.violations[0].code == "VOICE_UNKNOWN"

    def test_network_failure(self, settings, registry):
        service = _service(settings, registry=registry,
                           connector=FakeConnector(error=ConnectionRefusedError("refused")))
        with pytest.raises(NetworkFailureError):
            service.synthesize(SynthesisRequest(text="Hi"))

    def test_no_audio(self, settings, registry):
        conn = FakeConnection([text_frame("turn.start"), text_frame("turn.end")])
        service = _service(settings, registry=registry, connector=FakeConnector(conn))
        before = _outcome_count(ErrorCode.NO_AUDIO)

        with pytest.raises(NoAudioReceivedError):
            service.synthesize(SynthesisRequest(text="Hi"))
        assert _outcome_count(ErrorCode.NO_AUDIO) == before + 1

    def test_each_call_has_own_connection(self, settings, registry):
        conns = [
            FakeConnection([audio_frame(b"one"), text_frame("turn.end")]),
            FakeConnection([audio_frame(b"two"), text_frame("turn.end")]),
        ]
        calls = []

        def connect(url, **kwargs):
            calls.append(url)
            return conns[len(calls) - 1]

        service = _service(settings, registry=registry, connector=connect)
        first = service.synthesize(SynthesisRequest(text="a"))
        second = service.synthesize(SynthesisRequest(text="b"))

        assert (first.audio_bytes, second.audio_bytes) == (b"one", b"two")
        assert first.request_id != second.request_id
        assert all(c.close_calls == 1 for c in conns)


class TestHealthInfo:
    """Tests for get_health_info()."""

    def test_structure(self, settings, registry):
        info = _service(settings, registry=registry).get_health_info()

        assert info["status"] == "ok"
        assert info["voices"] == len(registry)
        assert info["voices_loaded"] is False
        assert set(info["metrics"]) == {"request_count", "error_count", "last_error_time"}


class TestSingleton:
    """Tests for get_service()/reset_service()."""

    def test_same_instance(self, settings):
        reset_service()
        try:
            assert get_service(settings) is get_service(settings)
        finally:
            reset_service()

    def test_reset_creates_new_instance(self, settings):
        reset_service()
        try:
            first = get_service(settings)
            reset_service()
            assert get_service(settings) is not first
        finally:
            reset_service()
