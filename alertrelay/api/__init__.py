"""
FastAPI relay service.

Provides REST API with:
- POST /dispatch - Relay an Alertmanager notification to a room
- GET /ping - Health check
- GET /metrics - Prometheus metrics
"""

from alertrelay.api.app import create_app

__all__ = ["create_app"]
