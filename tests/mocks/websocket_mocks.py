"""
Mock factory functions for WebSocket testing.
"""

from unittest.mock import AsyncMock, MagicMock


def create_mock_websocket():
    """
    Creates a mock WebSocket connection with common methods.

    Returns:
        MagicMock: Mocked WebSocket instance
    """
    from fastapi import WebSocket

    ws_mock = MagicMock(spec=WebSocket)

    ws_mock.send_text = AsyncMock()
    ws_mock.send_json = AsyncMock()
    ws_mock.accept = AsyncMock()
    ws_mock.close = AsyncMock()

    ws_mock.client_state = MagicMock()
    ws_mock.application_state = MagicMock()
    ws_mock.headers = {}
    ws_mock.query_params = {}

    return ws_mock


def create_mock_session():
    """
    Creates a mock AsyncSession usable as ``async with session_factory()``.

    Returns:
        AsyncMock: Mocked database session
    """
    from sqlmodel.ext.asyncio.session import AsyncSession

    session = AsyncMock(spec=AsyncSession)
    session.__aenter__.return_value = session
    session.__aexit__.return_value = False
    session.add = MagicMock()
    session.flush = AsyncMock()
    session.refresh = AsyncMock()
    session.rollback = AsyncMock()
    session.commit = AsyncMock()
    session.exec = AsyncMock()
    session.get = AsyncMock()
    return session
