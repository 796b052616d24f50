"""
API Router.

Aggregates the note endpoint routers mounted under /api.
"""

from fastapi import APIRouter

from den.backend.api.endpoints import notes

router = APIRouter()

router.include_router(notes.router, prefix="/notes", tags=["notes"])
