"""
Base Schemas.

Shared response shapes used by every endpoint.
"""

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Error body returned for every failed request."""

    error: str
    code: str | None = None


class OkResponse(BaseModel):
    """Acknowledgement body for operations without a payload."""

    ok: bool = True
