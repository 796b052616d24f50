"""
Note Model.

The notes table and its FTS5 full-text projection. The projection is an
external-content FTS5 table over `title` and `content`; three triggers
keep it in step with the table inside the writing transaction.
"""

from sqlalchemy import JSON, DDL, Boolean, Index, Text, event
from sqlalchemy.orm import Mapped, mapped_column

from den.backend.models.base import Base, TimestampMixin, UUIDMixin

FTS_TABLE = "notes_fts"


class Note(UUIDMixin, TimestampMixin, Base):
    """
    Note database model.

    Tags are stored as a JSON array and are not part of the search index.
    """

    __tablename__ = "notes"

    title: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
        server_default="",
    )
    content: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
        server_default="",
    )
    pinned: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default="0",
    )
    tags: Mapped[list[str]] = mapped_column(
        JSON,
        nullable=False,
        default=list,
    )

    __table_args__ = (
        Index("ix_notes_pinned_updated_at", "pinned", "updated_at"),
    )

    def __repr__(self) -> str:
        return f"<Note(id={self.id}, title={self.title!r}, pinned={self.pinned})>"


# SQLite runs one statement per execute, so each piece of DDL is separate.
_FTS_DDL = [
    f"""
    CREATE VIRTUAL TABLE IF NOT EXISTS {FTS_TABLE} USING fts5(
        title, content, content='notes', content_rowid='rowid'
    )
    """,
    f"""
    CREATE TRIGGER IF NOT EXISTS notes_ai AFTER INSERT ON notes BEGIN
        INSERT INTO {FTS_TABLE}(rowid, title, content)
        VALUES (new.rowid, new.title, new.content);
    END
    """,
    f"""
    CREATE TRIGGER IF NOT EXISTS notes_ad AFTER DELETE ON notes BEGIN
        INSERT INTO {FTS_TABLE}({FTS_TABLE}, rowid, title, content)
        VALUES ('delete', old.rowid, old.title, old.content);
    END
    """,
    f"""
    CREATE TRIGGER IF NOT EXISTS notes_au AFTER UPDATE ON notes BEGIN
        INSERT INTO {FTS_TABLE}({FTS_TABLE}, rowid, title, content)
        VALUES ('delete', old.rowid, old.title, old.content);
        INSERT INTO {FTS_TABLE}(rowid, title, content)
        VALUES (new.rowid, new.title, new.content);
    END
    """,
]

for _statement in _FTS_DDL:
    event.listen(Note.__table__, "after_create", DDL(_statement))

for _trigger in ("notes_ai", "notes_ad", "notes_au"):
    event.listen(Note.__table__, "before_drop", DDL(f"DROP TRIGGER IF EXISTS {_trigger}"))
event.listen(Note.__table__, "before_drop", DDL(f"DROP TABLE IF EXISTS {FTS_TABLE}"))
