"""
Root Pytest Fixtures.

Shared fixtures available to all test types.

Test Database Configuration:
    Every test that touches storage gets its own SQLite file under pytest's
    tmp_path. A file (not :memory:) is used so that the FTS5 triggers, WAL
    mode and multiple connections behave as they do in production.
"""

from collections.abc import AsyncGenerator, Generator
from pathlib import Path

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from den.backend.core.config import get_app_config, get_settings
from den.backend.core.database import _set_sqlite_pragmas
from den.backend.models.base import Base
import den.backend.models.note  # noqa: F401  registers the notes table

TEST_TOKEN = "test-token-0123456789abcdef"


# =============================================================================
# Configuration Isolation
# =============================================================================


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Keep DEN_* variables from the developer's shell out of tests."""
    monkeypatch.delenv("DEN_AUTH_TOKEN", raising=False)
    monkeypatch.delenv("DEN_DB_PATH", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
    get_app_config.cache_clear()


@pytest.fixture
def db_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the application at a fresh SQLite file."""
    path = tmp_path / "den-test.db"
    monkeypatch.setenv("DEN_DB_PATH", str(path))
    get_settings.cache_clear()
    return path


# =============================================================================
# Database Engine Fixtures
# =============================================================================


@pytest.fixture
async def db_engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """
    Create a test engine on a temporary SQLite file with the full schema,
    including the full-text table and its triggers.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'repo-test.db'}")
    event.listen(engine.sync_engine, "connect", _set_sqlite_pragmas)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def db_session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create a session factory bound to the test engine."""
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture
async def db_session(
    db_session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """
    Provide a database session for a single test.

    Usage:
        async def test_create(db_session: AsyncSession):
            repo = NoteRepository(db_session)
            note = await repo.create(title="t", content="c")
    """
    async with db_session_factory() as session:
        yield session
        await session.rollback()


# =============================================================================
# Utility Fixtures
# =============================================================================


@pytest.fixture
def auth_headers() -> dict[str, str]:
    """Authorization header carrying the test token."""
    return {"Authorization": f"Bearer {TEST_TOKEN}"}
