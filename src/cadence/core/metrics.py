"""
Prometheus Metrics for the Speech Service.

Metrics Exposed:
    cadence_synthesis_requests_total     - Synthesis calls by outcome (error code or "success")
    cadence_synthesis_duration_seconds   - Histogram of synthesis call latency
    cadence_audio_bytes_total            - Total audio bytes returned to callers
    cadence_voices_loaded                - Number of voices in the registry
    cadence_http_requests_total          - HTTP requests by status class

Alongside the Prometheus collectors, a small set of plain counters
(request count, error count, last error time) backs the /health payload.

Usage:
    from cadence.core.metrics import metrics

    metrics.record_synthesis(outcome="success", duration=0.8, audio_bytes=18432)
    metrics.set_voices_loaded(412)
    content, content_type = metrics.get_metrics_response()
"""
from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)


class SpeechMetrics:
    """
    Metrics collection for synthesis calls and the HTTP surface.

    Uses a private CollectorRegistry so that several instances (one per
    test, for example) never collide on metric names.

    Thread Safety:
        Prometheus collectors are thread-safe; the health counters are
        guarded by their own lock.
    """

    def __init__(self):
        self._registry = CollectorRegistry()
        self._lock = threading.Lock()
        self._request_count = 0
        self._error_count = 0
        self._last_error_time: Optional[datetime] = None
        self._setup_metrics()

    def _setup_metrics(self) -> None:
        self._synthesis_total = Counter(
            "cadence_synthesis_requests_total",
            "Total synthesis calls",
            ["outcome"],
            registry=self._registry,
        )
        self._synthesis_duration = Histogram(
            "cadence_synthesis_duration_seconds",
            "Synthesis call duration in seconds",
            buckets=(0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
            registry=self._registry,
        )
        self._audio_bytes_total = Counter(
            "cadence_audio_bytes_total",
            "Total audio bytes returned",
            registry=self._registry,
        )
        self._voices_loaded = Gauge(
            "cadence_voices_loaded",
            "Number of voices in the registry",
            registry=self._registry,
        )
        self._http_requests = Counter(
            "cadence_http_requests_total",
            "Total HTTP requests",
            ["status"],
            registry=self._registry,
        )

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    def record_synthesis(self, outcome: str, duration: float, audio_bytes: int = 0) -> None:
        """
        Record a finished synthesis call.

        Args:
            outcome: "success" or the ErrorCode of the failure
            duration: Call duration in seconds
            audio_bytes: Size of the returned audio
        """
        self._synthesis_total.labels(outcome=outcome).inc()
        if duration >= 0:
            self._synthesis_duration.observe(duration)
        if audio_bytes > 0:
            self._audio_bytes_total.inc(audio_bytes)

    def set_voices_loaded(self, count: int) -> None:
        self._voices_loaded.set(count)

    def record_http(self, status_code: int) -> None:
        """Count one HTTP request; 5xx responses also count as errors."""
        self._http_requests.labels(status=f"{status_code // 100}xx").inc()
        with self._lock:
            self._request_count += 1
            if status_code >= 500:
                self._error_count += 1
                self._last_error_time = datetime.now(timezone.utc)

    def snapshot(self) -> Dict[str, Any]:
        """Plain counters for the /health payload."""
        with self._lock:
            return {
                "request_count": self._request_count,
                "error_count": self._error_count,
                "last_error_time": self._last_error_time.isoformat() if self._last_error_time else None,
            }

    def get_metrics_response(self) -> tuple[bytes, str]:
        """Get metrics in Prometheus text format as (content, content_type)."""
        return generate_latest(self._registry), CONTENT_TYPE_LATEST


# Global metrics instance
metrics = SpeechMetrics()
