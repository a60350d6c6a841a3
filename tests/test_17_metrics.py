"""Tests for Prometheus metrics."""
from __future__ import annotations

import pytest


@pytest.fixture(autouse=True)
def skip_voice_init(monkeypatch):
    """Skip the catalog fetch for all tests."""
    monkeypatch.setenv("CADENCE_SKIP_VOICE_INIT", "1")
    yield


class TestSpeechMetricsClass:
    """Test SpeechMetrics on fresh instances."""

    def test_global_instance_exists(self):
        from cadence.core.metrics import SpeechMetrics, metrics

        assert isinstance(metrics, SpeechMetrics)

    def test_instances_do_not_share_registry(self):
        from cadence.core.metrics import SpeechMetrics

        a, b = SpeechMetrics(), SpeechMetrics()
        a.record_synthesis("success", 0.5)
        assert a.registry.get_sample_value(
            "cadence_synthesis_requests_total", {"outcome": "success"}) == 1.0
        assert b.registry.get_sample_value(
            "cadence_synthesis_requests_total", {"outcome": "success"}) is None

    def test_record_synthesis(self):
        from cadence.core.metrics import SpeechMetrics

        m = SpeechMetrics()
        m.record_synthesis("success", 0.8, audio_bytes=1000)
        m.record_synthesis("NO_AUDIO", 1.2)

        assert m.registry.get_sample_value(
            "cadence_synthesis_requests_total", {"outcome": "NO_AUDIO"}) == 1.0
        assert m.registry.get_sample_value("cadence_audio_bytes_total") == 1000.0
        assert m.registry.get_sample_value("cadence_synthesis_duration_seconds_count") == 2.0

    def test_set_voices_loaded(self):
        from cadence.core.metrics import SpeechMetrics

        m = SpeechMetrics()
        m.set_voices_loaded(412)
        assert m.registry.get_sample_value("cadence_voices_loaded") == 412.0


class TestHealthCounters:
    """record_http() feeds the /health snapshot."""

    def test_initial_snapshot(self):
        from cadence.core.metrics import SpeechMetrics

        assert SpeechMetrics().snapshot() == {
            "request_count": 0,
            "error_count": 0,
            "last_error_time": None,
        }

    def test_client_errors_are_not_errors(self):
        from cadence.core.metrics import SpeechMetrics

        m = SpeechMetrics()
        m.record_http(200)
        m.record_http(400)

        snap = m.snapshot()
        assert snap["request_count"] == 2
        assert snap["error_count"] == 0
        assert m.registry.get_sample_value("cadence_http_requests_total", {"status": "4xx"}) == 1.0

    def test_server_errors_counted(self):
        from cadence.core.metrics import SpeechMetrics

        m = SpeechMetrics()
        m.record_http(503)

        snap = m.snapshot()
        assert snap["error_count"] == 1
        assert snap["last_error_time"] is not None
        assert m.registry.get_sample_value("cadence_http_requests_total", {"status": "5xx"}) == 1.0


class TestMetricsResponse:
    """Test metrics response format."""

    def test_get_metrics_response_returns_tuple(self):
        """get_metrics_response should return (bytes, str) tuple."""
        from cadence.core.metrics import SpeechMetrics

        content, content_type = SpeechMetrics().get_metrics_response()
        assert isinstance(content, bytes)
        assert content_type.startswith("text/plain")

    def test_metric_names_present(self):
        from cadence.core.metrics import SpeechMetrics

        m = SpeechMetrics()
        m.record_synthesis("success", 0.1)
        content = m.get_metrics_response()[0].decode("utf-8")

        assert "# HELP" in content
        assert "cadence_synthesis_requests_total" in content
        assert "cadence_voices_loaded" in content


class TestMetricsEndpoint:
    """Test /metrics endpoint."""

    def test_metrics_endpoint_exists(self):
        from cadence.main import create_app

        app = create_app()
        assert "/metrics" in [r.path for r in app.routes]

    def test_metrics_returns_prometheus_text(self):
        from fastapi.testclient import TestClient

        from cadence.main import create_app
        from cadence.speech.service import reset_service

        reset_service()
        try:
            with TestClient(create_app()) as client:
                r = client.get("/metrics")
        finally:
            reset_service()

        assert r.status_code == 200
        assert "text/plain" in r.headers["content-type"]
        assert "cadence_http_requests_total" in r.text
