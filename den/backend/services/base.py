"""
Base Service.

Base class for all services providing common patterns for business logic.
Services orchestrate repositories, own transaction boundaries, and
implement business rules.

Usage:
    from den.backend.services.base import BaseService

    class NoteService(BaseService):
        def __init__(self, session: AsyncSession) -> None:
            super().__init__(session)
            self.repo = NoteRepository(session)

        async def create_note(self, data: NoteCreate) -> Note:
            note = await self._execute_db_operation("create_note", self.repo.create(...))
            await self._commit("create_note")
            return note
"""

from typing import Any, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from den.backend.core.exceptions import ConflictError, DatabaseError
from den.backend.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class BaseService:
    """
    Base class for all services.

    Provides:
    - Database session management
    - Logging context
    - Error wrapping for database operations

    Subclasses should:
    - Call super().__init__(session) in their __init__
    - Initialize repositories in __init__
    - Implement business logic methods
    """

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize the service with a database session.

        Args:
            session: SQLAlchemy async session for database operations
        """
        self._session = session
        self._logger = get_logger(self.__class__.__module__)

    @property
    def session(self) -> AsyncSession:
        """Get the database session."""
        return self._session

    async def _execute_db_operation(
        self,
        operation: str,
        coro: Any,
    ) -> T:
        """
        Execute a database operation with error handling.

        Wraps database operations to convert SQLAlchemy exceptions
        to application-specific exceptions.

        Args:
            operation: Description of the operation for logging
            coro: Coroutine to execute

        Returns:
            Result of the coroutine

        Raises:
            ConflictError: For unique constraint violations
            DatabaseError: For other database errors
        """
        try:
            return await coro
        except IntegrityError as e:
            self._logger.warning(
                "Database integrity error",
                extra={"operation": operation, "error": str(e)},
            )
            error_str = str(e).lower()
            if "unique" in error_str or "duplicate" in error_str:
                raise ConflictError("Resource already exists") from e
            raise DatabaseError(f"Database constraint violation: {operation}") from e
        except SQLAlchemyError as e:
            self._logger.error(
                "Database error",
                extra={"operation": operation, "error": str(e)},
            )
            raise DatabaseError(f"Database operation failed: {operation}") from e

    async def _commit(self, operation: str) -> None:
        """Commit the current transaction, converting driver errors."""
        await self._execute_db_operation(operation, self._session.commit())

    def _log_operation(
        self,
        operation: str,
        **context: Any,
    ) -> None:
        """
        Log a service operation with context.

        Args:
            operation: Description of the operation
            **context: Additional context to include in log
        """
        self._logger.info(
            operation,
            extra={"service": self.__class__.__name__, **context},
        )

    def _log_debug(
        self,
        message: str,
        **context: Any,
    ) -> None:
        """
        Log debug information.

        Args:
            message: Debug message
            **context: Additional context to include in log
        """
        self._logger.debug(
            message,
            extra={"service": self.__class__.__name__, **context},
        )
