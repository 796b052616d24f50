"""
FastAPI Dependencies.

Shared dependencies for request handling.
"""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.requests import HTTPConnection

from den.backend.core.database import get_db_session
from den.backend.core.security import AuthGate
from den.backend.events.notifier import ChangeNotifier
from den.backend.events.publishers import NoteEventPublisher

# Type alias for database session dependency
DbSession = Annotated[AsyncSession, Depends(get_db_session)]


def get_notifier(connection: HTTPConnection) -> ChangeNotifier:
    """The application's change notifier, created in create_app. Works for HTTP and WebSocket."""
    return connection.app.state.notifier


Notifier = Annotated[ChangeNotifier, Depends(get_notifier)]


def get_publisher(notifier: Notifier) -> NoteEventPublisher:
    return NoteEventPublisher(notifier)


Publisher = Annotated[NoteEventPublisher, Depends(get_publisher)]


def get_auth_gate(connection: HTTPConnection) -> AuthGate:
    return connection.app.state.auth_gate


Gate = Annotated[AuthGate, Depends(get_auth_gate)]
