"""
Note Service.

Business logic layer for notes: title resolution, the transaction
boundary, and change notification after every successful mutation.
"""

import re

from sqlalchemy.ext.asyncio import AsyncSession

from den.backend.core.exceptions import NotFoundError
from den.backend.core.pagination import NoteListParams
from den.backend.core.utils import utc_now
from den.backend.events.publishers import NoteEventPublisher
from den.backend.models.base import new_id
from den.backend.models.note import Note
from den.backend.repositories.note import NoteRepository
from den.backend.schemas.note import NoteCreate, NoteResponse, NoteUpdate
from den.backend.services.base import BaseService

UNTITLED = "Untitled"

_HEADING_MARKERS = re.compile(r"^#+\s*")


def derive_title(content: str) -> str:
    """
    Title implied by a note body: its first line without leading `#`
    markers, trimmed. May be empty.
    """
    first_line = content.split("\n", 1)[0]
    return _HEADING_MARKERS.sub("", first_line).strip()


def resolve_title(title: str | None, content: str) -> str:
    """Explicit non-blank title, else the derived title, else "Untitled"."""
    explicit = (title or "").strip()
    if explicit:
        return explicit
    return derive_title(content) or UNTITLED


class NoteService(BaseService):
    """
    Service for note business logic.

    Mutations commit before they are broadcast, so stream clients never
    see a change that was rolled back.
    """

    def __init__(
        self,
        session: AsyncSession,
        publisher: NoteEventPublisher | None = None,
    ) -> None:
        super().__init__(session)
        self.repo = NoteRepository(session)
        self.publisher = publisher

    async def _notify(self, action: str, note: NoteResponse) -> None:
        if self.publisher is None:
            return
        try:
            if action == "created":
                await self.publisher.note_created(note)
            elif action == "updated":
                await self.publisher.note_updated(note)
            else:
                await self.publisher.note_deleted(note)
        except Exception:
            self._logger.exception("Change broadcast failed", extra={"note_id": note.id, "action": action})

    async def create_note(self, data: NoteCreate) -> NoteResponse:
        """
        Create a new note.

        Args:
            data: Note creation data

        Returns:
            The stored note
        """
        now = utc_now()
        title = resolve_title(data.title, data.content)

        self._log_operation("Creating note", title=title)

        note = await self._execute_db_operation(
            "create_note",
            self.repo.create(
                id=new_id(),
                title=title,
                content=data.content,
                pinned=bool(data.pinned),
                tags=list(data.tags) if data.tags is not None else [],
                created_at=now,
                updated_at=now,
            ),
        )
        await self._commit("create_note")

        response = NoteResponse.model_validate(note)
        self._log_debug("Note created", note_id=response.id)
        await self._notify("created", response)
        return response

    async def get_note(self, note_id: str) -> Note:
        """
        Get a note by ID.

        Raises:
            NotFoundError: If note not found
        """
        return await self._execute_db_operation("get_note", self.repo.get_by_id(note_id))

    async def list_notes(self, params: NoteListParams) -> tuple[list[Note], int]:
        """
        List notes pinned-first, then most recently updated.

        Returns:
            Tuple of (notes page, total matching count)
        """
        return await self._execute_db_operation(
            "list_notes",
            self.repo.list_notes(
                limit=params.limit,
                offset=params.offset,
                pinned=params.pinned,
                search=params.search,
            ),
        )

    async def update_note(self, note_id: str, data: NoteUpdate) -> NoteResponse:
        """
        Apply a partial update.

        When content changes without a title, and the stored title is
        empty, the title is re-derived from the new content. A title that
        is already set is left alone.

        Raises:
            NotFoundError: If note not found
        """
        existing = await self.get_note(note_id)
        changes = data.changes()

        if "content" in changes and "title" not in changes and not existing.title:
            changes["title"] = derive_title(changes["content"]) or UNTITLED

        self._log_operation("Updating note", note_id=note_id, fields=sorted(changes))

        note = await self._execute_db_operation(
            "update_note",
            self.repo.update(note_id, **changes),
        )
        await self._commit("update_note")

        response = NoteResponse.model_validate(note)
        await self._notify("updated", response)
        return response

    async def delete_note(self, note_id: str) -> NoteResponse:
        """
        Delete a note.

        Returns:
            The note as it was before deletion

        Raises:
            NotFoundError: If note not found
        """
        existing = await self.get_note(note_id)
        snapshot = NoteResponse.model_validate(existing)

        self._log_operation("Deleting note", note_id=note_id)

        removed = await self._execute_db_operation("delete_note", self.repo.delete_by_id(note_id))
        if not removed:
            raise NotFoundError()
        await self._commit("delete_note")

        await self._notify("deleted", snapshot)
        return snapshot
