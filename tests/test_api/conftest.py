"""Shared fixtures for API tests."""

import pytest
from fastapi.testclient import TestClient

from alertrelay.alerts.routing import RoomRouter
from alertrelay.api.app import create_app
from tests.conftest import RecordingProvider


@pytest.fixture
def ops_provider():
    """Recording provider for the ``ops`` room."""
    return RecordingProvider("ops")


@pytest.fixture
def room_router(ops_provider):
    return RoomRouter([ops_provider, RecordingProvider("dev")])


@pytest.fixture
def client(room_router, metrics):
    """TestClient with lifespan running against recording providers."""
    app = create_app(router=room_router, metrics=metrics)
    with TestClient(app) as test_client:
        yield test_client
