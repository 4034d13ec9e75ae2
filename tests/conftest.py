"""Pytest fixtures for alertrelay tests."""

from datetime import datetime, timezone

import pytest
from prometheus_client import CollectorRegistry

from alertrelay.alerts.delivery import DeliveryOptions, RetryConfig
from alertrelay.alerts.providers import Provider
from alertrelay.alerts.schemas import Alert
from alertrelay.observability.metrics import MetricsCollector

T0 = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)

WEBHOOK_BASE = "https://chat.example.com/v1/spaces/AAA/messages"
WEBHOOK_URL = f"{WEBHOOK_BASE}?key=test-key&token=test-token"


def make_alert(
    fingerprint: str = "abc",
    status: str = "firing",
    labels: dict[str, str] | None = None,
    annotations: dict[str, str] | None = None,
    starts_at: datetime = T0,
) -> Alert:
    """Helper to create an Alert with sensible defaults."""
    return Alert(
        fingerprint=fingerprint,
        status=status,
        labels=labels if labels is not None else {"alertname": "HighCPU", "severity": "high"},
        annotations=(
            annotations if annotations is not None else {"summary": "CPU above 90%"}
        ),
        starts_at=starts_at,
    )


def fast_delivery_options(retry_max: int = 3) -> DeliveryOptions:
    """Delivery options with millisecond backoff."""
    return DeliveryOptions(
        timeout=5.0,
        retry=RetryConfig(retry_max=retry_max, wait_min=0.001, wait_max=0.005),
    )


class RecordingProvider(Provider):
    """Provider double that records pushed batches."""

    def __init__(self, room: str, error: Exception | None = None) -> None:
        self._room = room
        self._error = error
        self.pushed: list[list[Alert]] = []
        self.started = False
        self.stopped = False

    @property
    def id(self) -> str:
        return "recording"

    @property
    def room(self) -> str:
        return self._room

    async def push(self, alerts: list[Alert]) -> None:
        self.pushed.append(list(alerts))
        if self._error is not None:
            raise self._error

    def start(self) -> None:
        self.started = True

    async def stop(self) -> None:
        self.stopped = True


@pytest.fixture
def sample_alert() -> Alert:
    return make_alert()


@pytest.fixture
def metrics() -> MetricsCollector:
    """Metrics collector on an isolated registry."""
    return MetricsCollector(registry=CollectorRegistry())


@pytest.fixture
def sample_payload() -> dict:
    """Alertmanager webhook body with one firing alert."""
    return {
        "version": "4",
        "groupKey": "{}:{alertname=\"HighCPU\"}",
        "status": "firing",
        "receiver": "ops",
        "groupLabels": {"alertname": "HighCPU"},
        "commonLabels": {"alertname": "HighCPU", "severity": "high"},
        "commonAnnotations": {},
        "externalURL": "http://alertmanager:9093",
        "alerts": [
            {
                "status": "firing",
                "labels": {"alertname": "HighCPU", "severity": "high"},
                "annotations": {"summary": "CPU above 90%"},
                "startsAt": "2026-10-19T12:00:00.123456789Z",
                "endsAt": "0001-01-01T00:00:00Z",
                "generatorURL": "http://prometheus:9090/graph?g0.expr=cpu",
                "fingerprint": "abc",
            },
        ],
    }
