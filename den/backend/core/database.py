"""
Database Configuration.

SQLAlchemy async engine and session management over aiosqlite.
Uses lazy initialization so importing the module never touches the disk.
"""

from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from den.backend.core.logging import get_logger

logger = get_logger(__name__)

# Module-level state for lazy initialization
_engine: Any = None
_async_session_factory: async_sessionmaker[AsyncSession] | None = None


def _set_sqlite_pragmas(dbapi_connection: Any, connection_record: Any) -> None:
    """Apply per-connection pragmas: WAL journal and enforced foreign keys."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _create_engine() -> Any:
    """Create async SQLAlchemy engine for the configured SQLite file."""
    from den.backend.core.config import get_app_config, get_database_path, get_database_url

    db_config = get_app_config().database
    db_path = get_database_path()
    db_path.parent.mkdir(parents=True, exist_ok=True)

    engine = create_async_engine(
        get_database_url(),
        echo=db_config.echo,
        connect_args={"timeout": db_config.busy_timeout_seconds},
    )
    event.listen(engine.sync_engine, "connect", _set_sqlite_pragmas)

    logger.debug("Database engine created", extra={"path": str(db_path)})
    return engine


def get_engine() -> Any:
    """
    Get the database engine, creating it on first use.

    Returns:
        SQLAlchemy async engine instance
    """
    global _engine
    if _engine is None:
        _engine = _create_engine()
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """
    Get the session factory, creating it on first use.

    Returns:
        SQLAlchemy async session factory
    """
    global _async_session_factory
    if _async_session_factory is None:
        _async_session_factory = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _async_session_factory


async def init_database() -> None:
    """
    Create the schema if it does not exist.

    Creates the notes table together with its full-text index and the
    triggers that keep the index in step with the table.
    """
    from den.backend.models.base import Base
    import den.backend.models.note  # noqa: F401  registers the notes table

    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info("Database schema ready")


async def ping_database() -> None:
    """Run a trivial query. Raises on any connection or driver failure."""
    async with get_engine().connect() as conn:
        await conn.execute(text("SELECT 1"))


async def dispose_engine() -> None:
    """Close pooled connections and forget the engine."""
    global _engine, _async_session_factory
    if _engine is not None:
        await _engine.dispose()
        logger.debug("Database engine disposed")
    _engine = None
    _async_session_factory = None


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency that provides a database session.

    Usage in endpoints:
        @router.get("/notes")
        async def list_notes(db: AsyncSession = Depends(get_db_session)):
            ...
    """
    session_factory = get_session_factory()
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
