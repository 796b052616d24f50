"""
Client Models.

Wire shapes as seen by a client. Timestamps are accepted with or
without fractional seconds and always emitted with microseconds and Z.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from den.backend.core.utils import format_timestamp


class Note(BaseModel):
    """A note as held in the client cache."""

    model_config = ConfigDict(extra="ignore")

    id: str
    title: str = ""
    content: str = ""
    pinned: bool = False
    tags: list[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    @field_serializer("created_at", "updated_at")
    def _serialize_timestamp(self, value: datetime) -> str:
        return format_timestamp(value)


class NoteList(BaseModel):
    notes: list[Note]
    total: int


class NoteEvent(BaseModel):
    """A change pushed over the stream."""

    model_config = ConfigDict(extra="ignore")

    type: Literal["note:created", "note:updated", "note:deleted"]
    note: Note
