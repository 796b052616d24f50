"""
Note Schemas.

Pydantic schemas for note API request/response validation.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from den.backend.core.utils import format_timestamp


class NoteCreate(BaseModel):
    """Schema for creating a new note. Types are not coerced."""

    model_config = ConfigDict(strict=True, extra="ignore")

    content: str = Field(description="Note body", examples=["# Groceries\nmilk, eggs"])
    title: str | None = Field(default=None, description="Explicit title; derived from content when blank")
    pinned: bool | None = Field(default=None, description="Pin to the top of listings")
    tags: list[str] | None = Field(default=None, description="Free-form labels, order preserved")


class NoteUpdate(BaseModel):
    """
    Schema for partially updating a note.

    Fields left out, or sent as null, are not changed.
    """

    model_config = ConfigDict(strict=True, extra="ignore")

    title: str | None = None
    content: str | None = None
    pinned: bool | None = None
    tags: list[str] | None = None

    def changes(self) -> dict:
        """Fields the caller actually supplied with a value."""
        return self.model_dump(exclude_unset=True, exclude_none=True)


class NoteResponse(BaseModel):
    """Schema for note in API responses and change events."""

    id: str = Field(description="Note unique identifier")
    title: str = Field(description="Note title")
    content: str = Field(description="Note content")
    pinned: bool = Field(description="Whether the note is pinned")
    tags: list[str] = Field(description="Labels attached to the note")
    created_at: datetime = Field(description="Creation timestamp (UTC)")
    updated_at: datetime = Field(description="Last update timestamp (UTC)")

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("created_at", "updated_at")
    def _serialize_timestamp(self, value: datetime) -> str:
        return format_timestamp(value)


class NoteListResponse(BaseModel):
    """One page of notes plus the total number of matches."""

    notes: list[NoteResponse]
    total: int
