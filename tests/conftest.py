"""
Pytest configuration and fixtures for testing.

This module provides the shared relay fixtures: a registry, a recording
transport, a mocked persistence gateway and a hub wiring them together.
"""

import os

import pytest

# Set required environment variables for testing before importing app modules
os.environ.setdefault("DB_USER", "test-user")
os.environ.setdefault("DB_PASSWORD", "test-password")

from support_relay.core.hub import RelayHub  # noqa: E402
from support_relay.core.registry import ConnectionRegistry  # noqa: E402
from tests.mocks.gateway_mocks import create_mock_gateway  # noqa: E402
from tests.mocks.transport_mocks import RecordingTransport  # noqa: E402


@pytest.fixture
def registry():
    """
    Provides an empty connection registry.

    Returns:
        ConnectionRegistry: Fresh registry instance
    """
    return ConnectionRegistry()


@pytest.fixture
def transport():
    """
    Provides a transport that records every event it is handed.

    Returns:
        RecordingTransport: Recording transport instance
    """
    return RecordingTransport()


@pytest.fixture
def gateway():
    """
    Provides a mocked persistence gateway with an empty identity store.

    Returns:
        MagicMock: Gateway mock whose methods are AsyncMocks
    """
    return create_mock_gateway()


@pytest.fixture
def hub(gateway, transport):
    """
    Provides a relay hub wired to the mocked gateway and recording transport.

    Returns:
        RelayHub: Hub instance
    """
    return RelayHub(gateway, transport)


@pytest.fixture
def lifecycle(hub):
    """Session lifecycle of the ``hub`` fixture."""
    return hub.lifecycle
