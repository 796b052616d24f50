"""
Note Repository.

Data access layer for notes: pinned-first listing, FTS5 prefix search,
and updates that always move `updated_at` forward.
"""

import re
from typing import Any

from sqlalchemy import Select, column, false, func, literal_column, select, table, text, update
from sqlalchemy.ext.asyncio import AsyncSession

from den.backend.core.exceptions import ConflictError, NotFoundError
from den.backend.core.logging import get_logger
from den.backend.core.pagination import clamp_limit, clamp_offset
from den.backend.core.utils import next_timestamp
from den.backend.models.note import FTS_TABLE, Note
from den.backend.repositories.base import BaseRepository

logger = get_logger(__name__)

IMMUTABLE_FIELDS = frozenset({"id", "created_at", "updated_at"})
UPDATE_ATTEMPTS = 5

# Characters the FTS5 tokenizer keeps inside a token
_SEARCHABLE = re.compile(r"[^\W_]")

_fts = table(FTS_TABLE, column("rowid"))
_fts_docsize = table(f"{FTS_TABLE}_docsize", column("id"))


def build_fts_query(search: str) -> str | None:
    """
    Turn free text into an FTS5 MATCH expression.

    Each whitespace-separated term becomes a quoted phrase with a prefix
    wildcard; embedded quotes are doubled. Terms are ANDed. Terms without
    a letter or digit are dropped.

        build_fts_query('meet notes')  -> '"meet"* "notes"*'
        build_fts_query('to-do ???')  -> '"to-do"*'

    Returns None when no searchable term remains.
    """
    terms = [term for term in search.split() if _SEARCHABLE.search(term)]
    if not terms:
        return None
    return " ".join('"' + term.replace('"', '""') + '"*' for term in terms)


class NoteRepository(BaseRepository[Note]):
    """
    Repository for Note model.

    Inherits standard CRUD operations from BaseRepository
    and adds listing, search and timestamp-safe updates.
    """

    model = Note

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)

    def _filtered(self, stmt: Select, pinned: bool | None, search: str | None) -> Select:
        if pinned is not None:
            stmt = stmt.where(Note.pinned == pinned)

        if search is None or not search.strip():
            return stmt

        fts_query = build_fts_query(search)
        if fts_query is None:
            stmt = stmt.where(false())
        else:
            stmt = stmt.join(
                _fts, _fts.c.rowid == literal_column("notes.rowid")
            ).where(
                text(f"{FTS_TABLE} MATCH :fts_query").bindparams(fts_query=fts_query)
            )
        return stmt

    async def list_notes(
        self,
        limit: int = 50,
        offset: int = 0,
        pinned: bool | None = None,
        search: str | None = None,
    ) -> tuple[list[Note], int]:
        """
        List notes pinned-first, most recently updated first.

        Args:
            limit: Page size, clamped to [0, 200]
            offset: Rows to skip, negative treated as 0
            pinned: Only pinned (True) or unpinned (False) notes
            search: Free text matched against title and content

        Returns:
            The page of notes and the total number of matching notes
        """
        limit = clamp_limit(limit)
        offset = clamp_offset(offset)

        total = await self.count(pinned=pinned, search=search)

        stmt = self._filtered(select(Note), pinned, search)
        stmt = stmt.order_by(Note.pinned.desc(), Note.updated_at.desc())
        stmt = stmt.limit(limit).offset(offset)

        result = await self.session.execute(stmt)
        return list(result.scalars().all()), total

    async def count(self, pinned: bool | None = None, search: str | None = None) -> int:
        """Count notes matching the filters."""
        stmt = self._filtered(select(func.count()).select_from(Note), pinned, search)
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def update(self, note_id: str, **kwargs: Any) -> Note:
        """
        Merge the given fields into a note and refresh `updated_at`.

        `id`, `created_at` and `updated_at` are ignored. The UPDATE only
        applies while the row still carries the `updated_at` it was computed
        from; otherwise it is retried against the fresh row, so `updated_at`
        is always strictly greater than the value it replaces.

        Raises:
            NotFoundError: If note not found
        """
        fields = {k: v for k, v in kwargs.items() if k not in IMMUTABLE_FIELDS}

        for _ in range(UPDATE_ATTEMPTS):
            instance = await self._load_fresh(note_id)
            previous = instance.updated_at
            result = await self.session.execute(
                update(Note)
                .where(Note.id == note_id, Note.updated_at == previous)
                .values(**fields, updated_at=next_timestamp(previous))
                .execution_options(synchronize_session=False)
            )
            if result.rowcount:
                await self.session.refresh(instance)
                return instance

            logger.debug("Note changed underneath update, retrying", extra={"note_id": note_id})

        raise ConflictError("Note is being modified concurrently")

    async def _load_fresh(self, note_id: str) -> Note:
        result = await self.session.execute(
            select(Note)
            .where(Note.id == note_id)
            .execution_options(populate_existing=True)
        )
        instance = result.scalar_one_or_none()
        if instance is None:
            raise NotFoundError()
        return instance

    async def fts_row_count(self) -> int:
        """Number of documents held by the full-text index."""
        result = await self.session.execute(
            select(func.count()).select_from(_fts_docsize)
        )
        return result.scalar_one()
