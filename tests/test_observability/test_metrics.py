"""Tests for MetricsCollector and logging setup."""

import logging

import pytest
import structlog
from prometheus_client import CollectorRegistry

from alertrelay.observability.logging import redact_webhook_secrets, setup_logging
from alertrelay.observability.metrics import MetricsCollector


class TestMetricsCollector:
    def test_dispatch_counters(self, metrics):
        metrics.record_dispatch("google_chat", "ops")
        metrics.record_dispatch("google_chat", "ops")
        metrics.record_dispatch_error("google_chat", "ops", reason="sending")

        assert metrics.registry.get_sample_value(
            "alertrelay_alerts_dispatched_total",
            {"provider": "google_chat", "room": "ops"},
        ) == 2
        assert metrics.registry.get_sample_value(
            "alertrelay_alerts_dispatched_errors_total",
            {"provider": "google_chat", "room": "ops", "reason": "sending"},
        ) == 1

    def test_duration_histograms(self, metrics):
        metrics.record_dispatch_duration("google_chat", "ops", 0.2)
        metrics.record_prune(0.0005)

        assert metrics.registry.get_sample_value(
            "alertrelay_alerts_dispatched_duration_seconds_sum",
            {"provider": "google_chat", "room": "ops"},
        ) == pytest.approx(0.2)
        assert metrics.registry.get_sample_value(
            "alertrelay_alerts_prune_duration_seconds_count",
        ) == 1

    def test_active_alerts_gauge(self, metrics):
        metrics.set_active_alerts("google_chat", "ops", 7)
        metrics.set_active_alerts("google_chat", "ops", 3)

        assert metrics.registry.get_sample_value(
            "alertrelay_active_alerts", {"provider": "google_chat", "room": "ops"},
        ) == 3

    def test_request_metrics(self, metrics):
        metrics.record_request("dispatch")
        metrics.record_request_error("dispatch")
        metrics.record_request_duration("dispatch", 0.01)

        assert metrics.registry.get_sample_value(
            "alertrelay_http_requests_total", {"handler": "dispatch"},
        ) == 1
        assert metrics.registry.get_sample_value(
            "alertrelay_http_request_errors_total", {"handler": "dispatch"},
        ) == 1

    def test_render(self, metrics):
        metrics.record_dispatch("google_chat", "ops")

        body, content_type = metrics.render()

        assert content_type.startswith("text/plain")
        assert b'alertrelay_alerts_dispatched_total{provider="google_chat",room="ops"} 1.0' in body

    def test_independent_registries(self):
        """Two collectors must not clash on registration."""
        first = MetricsCollector(registry=CollectorRegistry())
        second = MetricsCollector(registry=CollectorRegistry())

        first.record_request("ping")

        assert second.registry.get_sample_value(
            "alertrelay_http_requests_total", {"handler": "ping"},
        ) is None


class TestSetupLogging:
    @pytest.fixture(autouse=True)
    def reset_logging(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        structlog.reset_defaults()
        root.handlers[:] = handlers
        root.setLevel(level)

    def test_sets_root_level(self):
        setup_logging("WARNING")

        assert logging.getLogger().level == logging.WARNING
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_json_logs(self, capsys):
        setup_logging("INFO", json_logs=True)

        structlog.get_logger("alertrelay.test").info("Dispatching alerts", room="ops")

        out = capsys.readouterr().out
        assert '"room": "ops"' in out
        assert '"event": "Dispatching alerts"' in out

    def test_webhook_secrets_redacted(self, capsys):
        setup_logging("INFO", json_logs=True)

        structlog.get_logger("alertrelay.test").info(
            "Sending alert",
            url="https://chat.example.com/v1/spaces/AAA/messages?key=k1&token=t1&threadKey=abc",
        )

        out = capsys.readouterr().out
        assert "k1" not in out
        assert "t1" not in out
        assert "key=REDACTED&token=REDACTED&threadKey=abc" in out


class TestRedaction:
    def test_leaves_other_fields(self):
        event = {"event": "Dispatching alerts", "room": "ops", "count": 2}

        assert redact_webhook_secrets(None, "info", dict(event)) == event

    def test_masks_query_credentials(self):
        event = redact_webhook_secrets(
            None, "info", {"url": "https://x/messages?token=secret&key=other"},
        )

        assert event["url"] == "https://x/messages?token=REDACTED&key=REDACTED"
