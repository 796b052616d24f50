"""
Notes API Endpoints.

REST API endpoints for note management. Request bodies are parsed here
rather than by FastAPI so that a missing note is reported before a bad
body, and so malformed JSON maps to a 400.
"""

import json
from typing import Any, TypeVar

from fastapi import APIRouter, Query, Request
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from den.backend.core.config import get_app_config
from den.backend.core.dependencies import DbSession, Publisher
from den.backend.core.exceptions import ValidationError
from den.backend.core.pagination import parse_list_params
from den.backend.schemas.base import OkResponse
from den.backend.schemas.note import NoteCreate, NoteListResponse, NoteResponse, NoteUpdate
from den.backend.services.note import NoteService

router = APIRouter()

SchemaT = TypeVar("SchemaT", bound=BaseModel)


async def _parse_body(request: Request, schema: type[SchemaT]) -> SchemaT:
    """
    Decode and validate a JSON object body.

    Raises:
        ValidationError: On malformed JSON, a non-object body, or a
            missing or mistyped field
    """
    raw = await request.body()
    try:
        payload: Any = json.loads(raw)
    except ValueError as e:
        raise ValidationError("Invalid JSON") from e

    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")

    try:
        return schema.model_validate(payload)
    except PydanticValidationError as e:
        errors = [
            {"field": ".".join(str(loc) for loc in err["loc"]), "type": err["type"]}
            for err in e.errors()
        ]
        fields = {err["field"].split(".")[0] for err in errors}
        if "content" in fields and schema is NoteCreate:
            message = "content is required"
        else:
            message = f"Invalid field: {', '.join(sorted(fields))}"
        raise ValidationError(message, details={"validation_errors": errors}) from e


@router.post(
    "",
    response_model=NoteResponse,
    status_code=201,
    summary="Create a note",
    description="Create a note. The title is derived from the first line of content when not given.",
)
async def create_note(
    request: Request,
    db: DbSession,
    publisher: Publisher,
) -> NoteResponse:
    """Create a new note."""
    data = await _parse_body(request, NoteCreate)
    service = NoteService(db, publisher)
    return await service.create_note(data)


@router.get(
    "",
    response_model=NoteListResponse,
    summary="List notes",
    description="Pinned notes first, then most recently updated. Optional pinned filter and full-text search.",
)
async def list_notes(
    db: DbSession,
    limit: str | None = Query(default=None, description="Page size, at most 200"),
    offset: str | None = Query(default=None, description="Rows to skip"),
    pinned: str | None = Query(default=None, description="'true' for pinned notes only, anything else for unpinned"),
    search: str | None = Query(default=None, description="Prefix search over title and content"),
) -> NoteListResponse:
    """List notes with total count."""
    pagination = get_app_config().application.pagination
    params = parse_list_params(
        limit=limit,
        offset=offset,
        pinned=pinned,
        search=search,
        default_limit=pagination.default_limit,
        max_limit=pagination.max_limit,
    )

    service = NoteService(db)
    notes, total = await service.list_notes(params)

    return NoteListResponse(
        notes=[NoteResponse.model_validate(note) for note in notes],
        total=total,
    )


@router.get(
    "/{note_id}",
    response_model=NoteResponse,
    summary="Get a note",
)
async def get_note(note_id: str, db: DbSession) -> NoteResponse:
    """Get a single note by ID."""
    service = NoteService(db)
    note = await service.get_note(note_id)
    return NoteResponse.model_validate(note)


@router.put(
    "/{note_id}",
    response_model=NoteResponse,
    summary="Update a note",
    description="Partial update. Only fields present in the body are changed.",
)
async def update_note(
    note_id: str,
    request: Request,
    db: DbSession,
    publisher: Publisher,
) -> NoteResponse:
    """Update an existing note."""
    service = NoteService(db, publisher)
    await service.get_note(note_id)
    data = await _parse_body(request, NoteUpdate)
    return await service.update_note(note_id, data)


@router.delete(
    "/{note_id}",
    response_model=OkResponse,
    summary="Delete a note",
)
async def delete_note(
    note_id: str,
    db: DbSession,
    publisher: Publisher,
) -> OkResponse:
    """Delete a note permanently."""
    service = NoteService(db, publisher)
    await service.delete_note(note_id)
    return OkResponse()
