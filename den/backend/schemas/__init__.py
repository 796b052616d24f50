# Pydantic schemas package
from den.backend.schemas.base import ErrorResponse, OkResponse
from den.backend.schemas.note import NoteCreate, NoteListResponse, NoteResponse, NoteUpdate

__all__ = [
    "ErrorResponse",
    "NoteCreate",
    "NoteListResponse",
    "NoteResponse",
    "NoteUpdate",
    "OkResponse",
]
