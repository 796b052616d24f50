"""
Unit Test Fixtures.

Fixtures for unit tests - external dependencies are mocked or faked.
Unit tests should be fast and isolated, never touching real databases.
"""

import asyncio
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from den.backend.events.notifier import ChangeNotifier


# =============================================================================
# Database Mock Fixtures
# =============================================================================


@pytest.fixture
def mock_db_session() -> AsyncMock:
    """
    Mock database session for unit tests.

    Usage:
        def test_service(mock_db_session: AsyncMock):
            service = NoteService(mock_db_session)
    """
    session = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.flush = AsyncMock()
    session.refresh = AsyncMock()
    session.execute = AsyncMock()
    session.add = MagicMock()
    return session


# =============================================================================
# Stream Fakes
# =============================================================================


class FakeConnection:
    """Records frames sent to it. Optionally fails or hangs on send."""

    def __init__(self, fail: bool = False, hang: bool = False) -> None:
        self.sent: list[str] = []
        self.fail = fail
        self.hang = hang

    async def send_text(self, data: str) -> None:
        if self.fail:
            raise ConnectionResetError("peer went away")
        if self.hang:
            await asyncio.Event().wait()
        self.sent.append(data)


@pytest.fixture
def fake_connection() -> type[FakeConnection]:
    """Provide the FakeConnection class."""
    return FakeConnection


@pytest.fixture
def notifier() -> ChangeNotifier:
    return ChangeNotifier(send_timeout=0.1)


# =============================================================================
# Logging Mock Fixtures
# =============================================================================


@pytest.fixture
def mock_logger() -> MagicMock:
    """
    Mock logger for testing logging calls.

    Usage:
        def test_logging(mock_logger):
            with patch("module.logger", mock_logger):
                mock_logger.warning.assert_called_once()
    """
    logger = MagicMock()
    logger.debug = MagicMock()
    logger.info = MagicMock()
    logger.warning = MagicMock()
    logger.error = MagicMock()
    logger.exception = MagicMock()
    return logger


def _note_payload(**overrides: Any) -> dict[str, Any]:
    payload = {
        "id": "note-1",
        "title": "Title",
        "content": "Body",
        "pinned": False,
        "tags": [],
        "created_at": "2026-10-19T08:00:00.000000Z",
        "updated_at": "2026-10-19T08:00:00.000000Z",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def note_payload() -> Any:
    """
    Factory for wire-format notes.

    Usage:
        def test_x(note_payload):
            raw = note_payload(id="a", pinned=True)
    """
    return _note_payload
