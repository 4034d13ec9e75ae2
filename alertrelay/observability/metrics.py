"""
Prometheus metrics for alert relaying.

Defines metrics for:
- Alerts dispatched per provider and room
- Dispatch errors by reason (preparing, sending)
- Dispatch and prune latency
- Active correlation entries
- Inbound HTTP requests

Each collector owns its registry, so several apps (or tests) can live in
one process without duplicate-registration errors.
"""

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)
import structlog

logger = structlog.get_logger(__name__)

NAMESPACE = "alertrelay"

# Buckets for latency histograms (in seconds)
LATENCY_BUCKETS = (0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0)


class MetricsCollector:
    """
    Prometheus metrics collector for the relay.

    Usage:
        metrics = MetricsCollector()
        metrics.record_dispatch("google_chat", "ops")
        metrics.record_dispatch_error("google_chat", "ops", reason="sending")
        body = metrics.render()
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        """Initialize Prometheus metrics on ``registry`` (a fresh one if None)."""
        self.registry = registry or CollectorRegistry()

        self.alerts_dispatched = Counter(
            "alerts_dispatched_total",
            "Total alerts dispatched to a provider",
            ["provider", "room"],
            namespace=NAMESPACE,
            registry=self.registry,
        )

        self.alerts_dispatch_errors = Counter(
            "alerts_dispatched_errors_total",
            "Total alert dispatch errors",
            ["provider", "room", "reason"],  # reason: preparing, sending
            namespace=NAMESPACE,
            registry=self.registry,
        )

        self.alerts_dispatch_duration = Histogram(
            "alerts_dispatched_duration_seconds",
            "Time to render and deliver one alert",
            ["provider", "room"],
            buckets=LATENCY_BUCKETS,
            namespace=NAMESPACE,
            registry=self.registry,
        )

        self.prune_duration = Histogram(
            "alerts_prune_duration_seconds",
            "Time to prune expired active alerts",
            buckets=(0.0001, 0.001, 0.01, 0.1, 1.0),
            namespace=NAMESPACE,
            registry=self.registry,
        )

        self.active_alerts = Gauge(
            "active_alerts",
            "Number of alerts holding a correlation token",
            ["provider", "room"],
            namespace=NAMESPACE,
            registry=self.registry,
        )

        self.http_requests = Counter(
            "http_requests_total",
            "Total inbound HTTP requests",
            ["handler"],
            namespace=NAMESPACE,
            registry=self.registry,
        )

        self.http_request_errors = Counter(
            "http_request_errors_total",
            "Total inbound HTTP request errors",
            ["handler"],
            namespace=NAMESPACE,
            registry=self.registry,
        )

        self.http_request_duration = Histogram(
            "http_request_duration_seconds",
            "Time to handle an inbound request, including background dispatch",
            ["handler"],
            buckets=LATENCY_BUCKETS,
            namespace=NAMESPACE,
            registry=self.registry,
        )

        logger.debug("Prometheus metrics initialized")

    # Convenience methods

    def record_dispatch(self, provider: str, room: str) -> None:
        self.alerts_dispatched.labels(provider=provider, room=room).inc()

    def record_dispatch_error(self, provider: str, room: str, reason: str) -> None:
        """
        Record a per-alert or per-chunk failure.

        Args:
            provider: Provider id
            room: Room name
            reason: ``preparing`` (render failure) or ``sending`` (delivery failure)
        """
        self.alerts_dispatch_errors.labels(
            provider=provider,
            room=room,
            reason=reason,
        ).inc()

    def record_dispatch_duration(self, provider: str, room: str, seconds: float) -> None:
        self.alerts_dispatch_duration.labels(provider=provider, room=room).observe(seconds)

    def record_prune(self, seconds: float) -> None:
        self.prune_duration.observe(seconds)

    def set_active_alerts(self, provider: str, room: str, count: int) -> None:
        self.active_alerts.labels(provider=provider, room=room).set(count)

    def record_request(self, handler: str) -> None:
        self.http_requests.labels(handler=handler).inc()

    def record_request_error(self, handler: str) -> None:
        self.http_request_errors.labels(handler=handler).inc()

    def record_request_duration(self, handler: str, seconds: float) -> None:
        self.http_request_duration.labels(handler=handler).observe(seconds)

    def render(self) -> tuple[bytes, str]:
        """Return (exposition body, content type) for the ``/metrics`` endpoint."""
        return generate_latest(self.registry), CONTENT_TYPE_LATEST
