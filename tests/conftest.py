"""
Pytest configuration and fixtures for testing.

This module provides shared fixtures for relay settings, the session
registry and the fake client/upstream sockets.
"""

import pytest

from realtime_relay.registry import SessionRegistry
from realtime_relay.settings import Settings
from tests.mocks.websocket_mocks import (
    FakeClientWebSocket,
    FakeConnector,
    FakeUpstream,
)

TEST_API_KEY = "sk-test-relay-key"


@pytest.fixture
def settings():
    """
    Provides relay settings with small limits and short timeouts.

    The environment and any .env file are ignored so the developer's own
    configuration never leaks into tests.

    Returns:
        Settings: Test settings
    """
    return Settings(
        OPENAI_API_KEY=TEST_API_KEY,
        UPSTREAM_URL="ws://127.0.0.1:9/v1/realtime",
        UPSTREAM_CONNECT_TIMEOUT_SECONDS=1.0,
        CLOSE_TIMEOUT_SECONDS=1.0,
        WRITE_TIMEOUT_SECONDS=1.0,
        SHUTDOWN_TIMEOUT_SECONDS=2.0,
        MAX_MESSAGE_SIZE_BYTES=1024,
        PENDING_MESSAGE_LIMIT=8,
        STALE_SESSION_CHECK_INTERVAL_SECONDS=3600.0,
        _env_file=None,
    )


@pytest.fixture
def registry():
    """Provides an empty SessionRegistry."""
    return SessionRegistry()


@pytest.fixture
def client():
    """Provides a connected fake client WebSocket."""
    return FakeClientWebSocket()


@pytest.fixture
def upstream():
    """Provides a fake upstream connection."""
    return FakeUpstream()


@pytest.fixture
def connector(upstream):
    """
    Provides a connector that immediately returns the ``upstream`` fixture.

    Args:
        upstream: Fixture providing the fake upstream connection
    """
    return FakeConnector(upstream)
