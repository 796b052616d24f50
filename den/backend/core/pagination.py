"""
Pagination Utilities.

Lenient parsing of list query parameters. Malformed values fall back to
defaults instead of failing the request.
"""

from dataclasses import dataclass

DEFAULT_LIMIT = 50
MAX_LIMIT = 200


@dataclass
class NoteListParams:
    """Normalised query for listing notes."""

    limit: int = DEFAULT_LIMIT
    offset: int = 0
    pinned: bool | None = None
    search: str | None = None


def _parse_int(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


def clamp_limit(limit: int, max_limit: int = MAX_LIMIT) -> int:
    """Clamp a page size into [0, max_limit]."""
    return max(0, min(limit, max_limit))


def clamp_offset(offset: int) -> int:
    """Negative offsets read as 0. There is no upper bound."""
    return max(0, offset)


def parse_list_params(
    limit: str | None = None,
    offset: str | None = None,
    pinned: str | None = None,
    search: str | None = None,
    default_limit: int = DEFAULT_LIMIT,
    max_limit: int = MAX_LIMIT,
) -> NoteListParams:
    """
    Normalise raw query-string values.

    - limit: non-numeric or absent -> default, then clamped to [0, max_limit]
    - offset: non-numeric or absent -> 0, negative -> 0
    - pinned: present -> value == "true", absent -> no filter
    - search: trimmed, empty -> no search
    """
    parsed_limit = _parse_int(limit)
    if parsed_limit is None:
        parsed_limit = default_limit

    parsed_offset = _parse_int(offset) or 0

    search_term = search.strip() if search is not None else None

    return NoteListParams(
        limit=clamp_limit(parsed_limit, max_limit),
        offset=clamp_offset(parsed_offset),
        pinned=None if pinned is None else pinned == "true",
        search=search_term or None,
    )
