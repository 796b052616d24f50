"""
Event Schemas.

Change events pushed to every connected stream client.

Usage:
    from den.backend.events.schemas import NoteEvent, NoteEventType

    event = NoteEvent(type=NoteEventType.CREATED, note=NoteResponse.model_validate(note))
"""

from enum import Enum

from pydantic import BaseModel

from den.backend.schemas.note import NoteResponse


class NoteEventType(str, Enum):
    CREATED = "note:created"
    UPDATED = "note:updated"
    DELETED = "note:deleted"


class NoteEvent(BaseModel):
    """
    A single note change.

    Delete events carry the note as it was just before deletion.
    """

    type: NoteEventType
    note: NoteResponse

    def to_json(self) -> str:
        return self.model_dump_json()
