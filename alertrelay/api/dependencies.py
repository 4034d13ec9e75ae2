"""
Dependency injection for FastAPI endpoints.

Components are created by ``create_app`` and stored on ``app.state``;
these accessors hand them to route handlers.
"""

from fastapi import Request

from alertrelay.alerts.routing import RoomRouter
from alertrelay.observability.metrics import MetricsCollector


def get_router(request: Request) -> RoomRouter:
    """Room router for the running app."""
    return request.app.state.router


def get_metrics(request: Request) -> MetricsCollector:
    """Metrics collector for the running app."""
    return request.app.state.metrics
