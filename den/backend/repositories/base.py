"""
Base Repository.

Base class for all repositories with common CRUD operations.
"""

from typing import Any, Generic, TypeVar

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from den.backend.core.exceptions import NotFoundError
from den.backend.core.logging import get_logger
from den.backend.models.base import Base

logger = get_logger(__name__)

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Base repository with common CRUD operations.

    Subclasses should set the model class:

        class NoteRepository(BaseRepository[Note]):
            model = Note
    """

    model: type[ModelType]

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_by_id(self, id: str) -> ModelType:
        """
        Get a single record by ID.

        Raises:
            NotFoundError: If record not found
        """
        instance = await self.get_by_id_or_none(id)
        if instance is None:
            raise NotFoundError()
        return instance

    async def get_by_id_or_none(self, id: str) -> ModelType | None:
        """Get a single record by ID, returning None if not found."""
        result = await self.session.execute(
            select(self.model).where(self.model.id == str(id))
        )
        return result.scalar_one_or_none()

    async def create(self, **kwargs: Any) -> ModelType:
        """Create a new record."""
        instance = self.model(**kwargs)
        self.session.add(instance)
        await self.session.flush()
        await self.session.refresh(instance)
        return instance

    async def delete_by_id(self, id: str) -> bool:
        """Delete a record by ID. Returns whether a row was removed."""
        result = await self.session.execute(
            delete(self.model).where(self.model.id == str(id))
        )
        await self.session.flush()
        return result.rowcount > 0
