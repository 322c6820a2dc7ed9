"""
Pytest configuration and fixtures
"""

import pytest
from unittest.mock import Mock, patch
from fastapi.testclient import TestClient

from logdash.core.config import settings
from logdash.main import create_app
from logdash.api.websocket.logs import get_log_source


@pytest.fixture(autouse=True)
def local_docker_settings(monkeypatch):
    """Always build clients through docker.from_env, whatever the host has set"""
    monkeypatch.setattr(settings, "docker_host", None)
    monkeypatch.setattr(settings, "log_tail", "all")


@pytest.fixture
def mock_docker_client():
    """Mock Docker client returned by docker.from_env"""
    with patch("docker.from_env") as mock:
        client = Mock()
        mock.return_value = client

        client.ping.return_value = True
        client.close = Mock()

        # Low-level API used by the container directory
        client.api = Mock()
        client.api.containers.return_value = []

        # High-level API used by the log source
        client.containers = Mock()

        yield client


@pytest.fixture
def app():
    """Fresh application instance"""
    application = create_app()
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
def client(app):
    """HTTP and WebSocket test client"""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def override_log_source(app):
    """Replace the Docker log source with the given one"""
    def _override(source):
        app.dependency_overrides[get_log_source] = lambda: source
        return source
    return _override
