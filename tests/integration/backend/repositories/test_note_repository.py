"""
Integration Tests for the Note Repository.

Runs against a real SQLite file so the FTS5 table and its triggers are
exercised exactly as in production.
"""

from datetime import datetime, timedelta

import pytest
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from den.backend.core.exceptions import NotFoundError
from den.backend.core.utils import utc_now
from den.backend.models.base import new_id
from den.backend.models.note import Note
from den.backend.repositories.note import NoteRepository

START = datetime(2026, 10, 19, 8, 0, 0)


@pytest.fixture
def repo(db_session: AsyncSession) -> NoteRepository:
    return NoteRepository(db_session)


async def _add(repo: NoteRepository, minutes: int, **fields) -> Note:
    at = START + timedelta(minutes=minutes)
    defaults = {"title": "", "content": "", "pinned": False, "tags": []}
    return await repo.create(id=new_id(), created_at=at, updated_at=at, **{**defaults, **fields})


class TestListing:
    @pytest.mark.asyncio
    async def test_pinned_then_newest(self, repo):
        a = await _add(repo, 1, title="a")
        b = await _add(repo, 2, title="b", pinned=True)
        c = await _add(repo, 3, title="c")
        d = await _add(repo, 0, title="d", pinned=True)

        notes, total = await repo.list_notes()

        assert [n.id for n in notes] == [b.id, d.id, c.id, a.id]
        assert total == 4

    @pytest.mark.asyncio
    async def test_limit_is_clamped(self, repo):
        for i in range(3):
            await _add(repo, i)

        notes, total = await repo.list_notes(limit=10_000, offset=-5)

        assert len(notes) == 3
        assert total == 3

    @pytest.mark.asyncio
    async def test_offset_past_end(self, repo):
        await _add(repo, 0)

        notes, total = await repo.list_notes(offset=50)

        assert notes == []
        assert total == 1


class TestSearch:
    @pytest.mark.asyncio
    async def test_prefix_match_on_title_or_content(self, repo):
        in_title = await _add(repo, 1, title="Project kickoff")
        in_content = await _add(repo, 2, content="the projection is wrong")
        await _add(repo, 3, title="unrelated")

        notes, total = await repo.list_notes(search="proj")

        assert {n.id for n in notes} == {in_title.id, in_content.id}
        assert total == 2

    @pytest.mark.asyncio
    async def test_tags_are_not_searched(self, repo):
        await _add(repo, 1, title="plain", tags=["secretword"])

        _, total = await repo.list_notes(search="secretword")

        assert total == 0

    @pytest.mark.asyncio
    async def test_search_is_case_insensitive(self, repo):
        note = await _add(repo, 1, content="Kubernetes cluster")

        notes, _ = await repo.list_notes(search="KUBER")

        assert [n.id for n in notes] == [note.id]

    @pytest.mark.asyncio
    async def test_quotes_cannot_break_the_query(self, repo):
        note = await _add(repo, 1, content='she said "hello" twice')

        notes, _ = await repo.list_notes(search='"hello')

        assert [n.id for n in notes] == [note.id]

    @pytest.mark.asyncio
    async def test_search_keeps_pinned_first_order(self, repo):
        older_pinned = await _add(repo, 1, content="budget", pinned=True)
        newer = await _add(repo, 5, content="budget")

        notes, _ = await repo.list_notes(search="budget")

        assert [n.id for n in notes] == [older_pinned.id, newer.id]

    @pytest.mark.asyncio
    async def test_count_matches_filters(self, repo):
        await _add(repo, 1, content="alpha", pinned=True)
        await _add(repo, 2, content="alpha")
        await _add(repo, 3, content="beta", pinned=True)

        assert await repo.count() == 3
        assert await repo.count(pinned=True) == 2
        assert await repo.count(pinned=False, search="alpha") == 1


class TestIndexConsistency:
    """The full-text index mirrors the table after every write."""

    @pytest.mark.asyncio
    async def test_row_counts_stay_equal(self, repo, db_session):
        notes = [await _add(repo, i, content=f"note {i}") for i in range(4)]
        await repo.update(notes[0].id, content="changed")
        await repo.delete_by_id(notes[1].id)
        await db_session.flush()

        table_rows = (await db_session.execute(text("SELECT count(*) FROM notes"))).scalar_one()

        assert table_rows == 3
        assert await repo.fts_row_count() == 3

    @pytest.mark.asyncio
    async def test_edited_words_leave_the_index(self, repo):
        note = await _add(repo, 1, title="walrus")

        await repo.update(note.id, title="penguin")

        assert await repo.count(search="walrus") == 0
        assert await repo.count(search="penguin") == 1

    @pytest.mark.asyncio
    async def test_deleted_notes_leave_the_index(self, repo):
        note = await _add(repo, 1, content="ephemeral")

        assert await repo.delete_by_id(note.id) is True
        assert await repo.count(search="ephemeral") == 0
        assert await repo.delete_by_id(note.id) is False


class TestUpdate:
    @pytest.mark.asyncio
    async def test_updated_at_strictly_increases(self, repo):
        future = utc_now() + timedelta(days=1)
        note = await _add(repo, 0)
        note.updated_at = future

        updated = await repo.update(note.id, pinned=True)

        assert updated.updated_at > future
        assert updated.pinned is True

    @pytest.mark.asyncio
    async def test_immutable_fields_ignored(self, repo):
        note = await _add(repo, 0)
        original_created = note.created_at

        updated = await repo.update(note.id, id="hijack", created_at=START - timedelta(days=9), content="x")

        assert updated.id == note.id
        assert updated.created_at == original_created
        assert updated.content == "x"

    @pytest.mark.asyncio
    async def test_explicit_updated_at_is_ignored(self, repo):
        note = await _add(repo, 0)

        updated = await repo.update(note.id, updated_at=START - timedelta(days=1), content="x")

        assert updated.updated_at > START

    @pytest.mark.asyncio
    async def test_concurrent_writer_wins_first_then_update_retries(self, db_session_factory):
        """A write committed between our read and our UPDATE never moves updated_at backwards."""
        async with db_session_factory() as setup_session:
            note = await _add(NoteRepository(setup_session), 0, title="t")
            await setup_session.commit()

        async with db_session_factory() as ours, db_session_factory() as theirs:
            repo = NoteRepository(ours)
            other = NoteRepository(theirs)
            load = repo._load_fresh
            loads = 0
            raced_at = None

            async def load_then_race(note_id):
                nonlocal loads, raced_at
                instance = await load(note_id)
                loads += 1
                if loads == 1:
                    raced = await other.update(note_id, title="theirs")
                    raced_at = raced.updated_at
                    await theirs.commit()
                return instance

            repo._load_fresh = load_then_race

            updated = await repo.update(note.id, content="ours")
            await ours.commit()

        assert loads == 2
        assert updated.title == "theirs"
        assert updated.content == "ours"
        assert updated.updated_at > raced_at

    @pytest.mark.asyncio
    async def test_update_missing_note(self, repo):
        with pytest.raises(NotFoundError):
            await repo.update("missing", content="x")

    @pytest.mark.asyncio
    async def test_tags_round_trip_in_order(self, repo):
        note = await _add(repo, 0, tags=["z", "a", "m"])

        fetched = await repo.get_by_id(note.id)

        assert fetched.tags == ["z", "a", "m"]
