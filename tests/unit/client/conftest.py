"""
Client Test Fixtures.

A scriptable in-memory stand-in for DenAPIClient plus config and cache
rooted in tmp_path.
"""

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from den.client.cache import LocalNoteCache
from den.client.config import ClientConfig
from den.client.exceptions import ApiError, NetworkFailure
from den.client.models import Note, NoteList

BASE_TIME = datetime(2026, 10, 19, 8, 0, tzinfo=timezone.utc)


def make_note(note_id: str, minutes: int = 0, **fields: Any) -> Note:
    at = BASE_TIME + timedelta(minutes=minutes)
    return Note(id=note_id, created_at=at, updated_at=at, **fields)


class FakeApi:
    """Records calls; `fail` maps a method name to the exception it should raise."""

    def __init__(self, notes: list[Note] | None = None) -> None:
        self.notes = {n.id: n for n in notes or []}
        self.calls: list[tuple[str, Any]] = []
        self.fail: dict[str, Exception] = {}
        self._counter = 0

    def _maybe_fail(self, method: str) -> None:
        error = self.fail.get(method)
        if error is not None:
            raise error

    async def list_notes(self, limit: int = 200, **kwargs: Any) -> NoteList:
        self.calls.append(("list_notes", limit))
        self._maybe_fail("list_notes")
        notes = list(self.notes.values())
        return NoteList(notes=notes, total=len(notes))

    async def create_note(self, content: str, title: str | None = None, **kwargs: Any) -> Note:
        self.calls.append(("create_note", content))
        self._maybe_fail("create_note")
        self._counter += 1
        note = make_note(f"server-{self._counter}", minutes=self._counter, title=title or "Untitled", content=content)
        self.notes[note.id] = note
        return note

    async def update_note(self, note_id: str, **fields: Any) -> Note:
        self.calls.append(("update_note", (note_id, fields)))
        self._maybe_fail("update_note")
        if note_id not in self.notes:
            raise ApiError(404, "Not found")
        note = self.notes[note_id].model_copy(
            update={**fields, "updated_at": BASE_TIME + timedelta(hours=1)}
        )
        self.notes[note_id] = note
        return note

    async def delete_note(self, note_id: str) -> None:
        self.calls.append(("delete_note", note_id))
        self._maybe_fail("delete_note")
        if self.notes.pop(note_id, None) is None:
            raise ApiError(404, "Not found")

    def calls_to(self, method: str) -> list[Any]:
        return [args for name, args in self.calls if name == method]


@pytest.fixture
def fake_api() -> FakeApi:
    return FakeApi()


@pytest.fixture
def cache(tmp_path) -> LocalNoteCache:
    return LocalNoteCache(tmp_path / "cache.json")


@pytest.fixture
def client_config() -> ClientConfig:
    return ClientConfig(token="secret", debounce_ms=60_000)


@pytest.fixture
def offline() -> NetworkFailure:
    return NetworkFailure("connection refused")


@pytest.fixture
def note_factory():
    """
    Build client-side notes with ordered timestamps.

    Usage:
        def test_x(note_factory):
            note = note_factory("a", minutes=5, pinned=True)
    """
    return make_note
