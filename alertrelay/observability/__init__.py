"""Observability layer - logging and metrics."""

from alertrelay.observability.logging import setup_logging
from alertrelay.observability.metrics import MetricsCollector

__all__ = ["setup_logging", "MetricsCollector"]
