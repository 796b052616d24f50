"""
Client Sync State.

The state every Den front-end keeps: cached notes, the active note,
optimistic creates and deletes, debounced saves, and reconciliation with
streamed change events. Public methods never raise on server or network
failure; they log and degrade.
"""

import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from den.backend.core.logging import get_logger, log_with_source
from den.client.api import DenAPIClient
from den.client.cache import LocalNoteCache
from den.client.config import ClientConfig
from den.client.debounce import Debouncer
from den.client.exceptions import ApiError, ClientError, NetworkFailure
from den.client.models import Note, NoteEvent

logger = get_logger(__name__)

OPTIMISTIC_PREFIX = "optimistic-"
REFRESH_LIMIT = 200


def sort_notes(notes: list[Note]) -> list[Note]:
    """Pinned first, then most recently updated first."""
    return sorted(notes, key=lambda n: (not n.pinned, -n.updated_at.timestamp()))


def is_optimistic(note_id: str) -> bool:
    return note_id.startswith(OPTIMISTIC_PREFIX)


class NoteSyncState:
    """
    Local view of the note collection kept consistent with the server.

    Usage:
        state = NoteSyncState(api, LocalNoteCache(), ClientConfig.load())
        await state.start()
        note = await state.create_note("# Idea")
        state.save_note(note.id, content="# Idea\\nmore")
        await state.handle_event(event)
    """

    def __init__(
        self,
        api: DenAPIClient,
        cache: LocalNoteCache,
        config: ClientConfig,
        config_path: Path | None = None,
    ) -> None:
        self.api = api
        self.cache = cache
        self.config = config
        self.config_path = config_path
        self.notes: list[Note] = []
        self.active_note_id: str | None = None
        self.server_online = False
        self._pending: dict[str, dict[str, Any]] = {}
        self._debouncer = Debouncer()

    # ===== lookup =====

    def get(self, note_id: str) -> Note | None:
        for note in self.notes:
            if note.id == note_id:
                return note
        return None

    @property
    def active_note(self) -> Note | None:
        return self.get(self.active_note_id) if self.active_note_id else None

    def has_pending(self, note_id: str) -> bool:
        return note_id in self._pending

    def filter_notes(self, query: str) -> list[Note]:
        """Case-insensitive local filter over title, content and tags."""
        q = query.strip().lower()
        if not q:
            return list(self.notes)
        return [
            n for n in self.notes
            if q in n.title.lower() or q in n.content.lower() or any(q in t.lower() for t in n.tags)
        ]

    # ===== lifecycle =====

    async def start(self, now: datetime | None = None) -> None:
        """Show cached notes, restore a recent active note, then refresh."""
        self.notes = sort_notes(self.cache.load())
        self.active_note_id = self.config.resumable_note_id(now)
        await self.refresh()

        if self.active_note_id and self.get(self.active_note_id) is None:
            self.active_note_id = None

    async def close(self) -> None:
        """Send any edits still waiting on the debounce timer."""
        await self._debouncer.flush_all()
        await self._debouncer.wait_idle()

    def set_active(self, note_id: str | None) -> None:
        self.active_note_id = note_id
        self.config.remember_active(note_id)
        self._save_config()

    async def refresh(self) -> None:
        """Replace the local collection with the server's. Keeps the cache on failure."""
        try:
            page = await self.api.list_notes(limit=REFRESH_LIMIT)
        except NetworkFailure as e:
            self.server_online = False
            log_with_source(logger, "client", "warning", "Refresh failed, showing cached notes", error=str(e))
            return
        except ApiError as e:
            log_with_source(logger, "client", "error", "Refresh rejected", status=e.status, error=e.message)
            return

        self.server_online = True
        local_only = [n for n in self.notes if is_optimistic(n.id)]
        self.notes = sort_notes(page.notes + local_only)
        self._persist()

    # ===== mutations =====

    async def create_note(self, content: str = "", title: str | None = None) -> Note:
        """
        Insert a local note immediately, then swap in the server's copy.

        On failure the local note stays, under its optimistic id.
        """
        now = datetime.now(timezone.utc)
        local = Note(
            id=f"{OPTIMISTIC_PREFIX}{uuid.uuid4().hex}",
            title=title or "",
            content=content,
            created_at=now,
            updated_at=now,
        )
        self.notes = sort_notes(self.notes + [local])
        self.set_active(local.id)

        try:
            created = await self.api.create_note(content, title=title)
        except ClientError as e:
            self._record_failure("Create failed, keeping local note", e, note_id=local.id)
            return local

        self.server_online = True
        pending = self._pending.pop(local.id, None)
        self._debouncer.cancel(local.id)

        shown = created.model_copy(update=pending) if pending else created
        self.notes = [n for n in self.notes if n.id not in (local.id, created.id)]
        self.notes = sort_notes(self.notes + [shown])
        if self.active_note_id == local.id:
            self.set_active(created.id)

        if pending:
            self._queue_save(created.id, pending)

        self._persist()
        return shown

    def save_note(self, note_id: str, **fields: Any) -> Note | None:
        """
        Apply an edit locally now and send it after the debounce window.

        Edits arriving within the window are merged into one update.
        """
        note = self.get(note_id)
        if note is None:
            return None

        updated = note.model_copy(update=fields)
        self.notes = sort_notes([updated if n.id == note_id else n for n in self.notes])

        merged = {**self._pending.get(note_id, {}), **fields}
        if is_optimistic(note_id):
            # No server id yet; create_note sends these once it has one.
            self._pending[note_id] = merged
            return updated

        self._queue_save(note_id, merged)
        return updated

    def _queue_save(self, note_id: str, fields: dict[str, Any]) -> None:
        self._pending[note_id] = fields
        self._debouncer.schedule(
            note_id,
            self.config.debounce_seconds,
            lambda: self._flush_save(note_id),
        )

    async def flush(self, note_id: str) -> None:
        """Send a pending edit now instead of waiting for the timer."""
        await self._debouncer.flush(note_id)

    async def _flush_save(self, note_id: str) -> None:
        fields = self._pending.pop(note_id, None)
        if not fields:
            return

        try:
            saved = await self.api.update_note(note_id, **fields)
        except ClientError as e:
            self._record_failure("Save failed", e, note_id=note_id)
            return

        self.server_online = True
        if note_id in self._pending:
            # Newer local edits are queued; keep them on top of the server copy.
            saved = saved.model_copy(update=self._pending[note_id])
        self._replace_or_insert(saved)
        self._persist()

    async def delete_note(self, note_id: str) -> bool:
        """Remove locally, then on the server. Restored if the server refuses."""
        previous = list(self.notes)
        self.notes = [n for n in self.notes if n.id != note_id]
        self._debouncer.cancel(note_id)
        self._pending.pop(note_id, None)
        if self.active_note_id == note_id:
            self.set_active(None)

        if is_optimistic(note_id):
            self._persist()
            return True

        try:
            await self.api.delete_note(note_id)
        except ApiError as e:
            if e.status == 404:
                self._persist()
                return True
            self.notes = previous
            self._record_failure("Delete failed, restored note", e, note_id=note_id)
            return False
        except NetworkFailure as e:
            self.notes = previous
            self._record_failure("Delete failed, restored note", e, note_id=note_id)
            return False

        self.server_online = True
        self._persist()
        return True

    async def toggle_pin(self, note_id: str) -> Note | None:
        """Flip the pinned flag and save without waiting for the debounce window."""
        note = self.get(note_id)
        if note is None:
            return None
        self.save_note(note_id, pinned=not note.pinned)
        await self.flush(note_id)
        return self.get(note_id)

    # ===== stream reconciliation =====

    async def handle_event(self, event: NoteEvent) -> None:
        """Merge a streamed change into the local collection by note id."""
        note = event.note

        if event.type == "note:created":
            if self.get(note.id) is not None:
                return
            self.notes = sort_notes(self.notes + [note])
        elif event.type == "note:updated":
            if note.id in self._pending:
                note = note.model_copy(update=self._pending[note.id])
            self._replace_or_insert(note)
        else:
            self.notes = [n for n in self.notes if n.id != note.id]
            self._debouncer.cancel(note.id)
            self._pending.pop(note.id, None)
            if self.active_note_id == note.id:
                self.set_active(None)

        self._persist()

    # ===== internals =====

    def _replace_or_insert(self, note: Note) -> None:
        others = [n for n in self.notes if n.id != note.id]
        self.notes = sort_notes(others + [note])

    def _persist(self) -> None:
        try:
            self.cache.save(self.notes)
        except OSError as e:
            log_with_source(logger, "client", "error", "Cache write failed", error=str(e))

    def _save_config(self) -> None:
        if self.config_path is None:
            return
        try:
            self.config.save(self.config_path)
        except OSError as e:
            log_with_source(logger, "client", "error", "Config write failed", error=str(e))

    def _record_failure(self, message: str, error: ClientError, **context: Any) -> None:
        if isinstance(error, NetworkFailure):
            self.server_online = False
        log_with_source(logger, "client", "warning", message, error=str(error), **context)
