"""
Local Note Cache.

Persists the client's note collection as a JSON file so a restart shows
notes before the server answers.
"""

import json
from pathlib import Path

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from den.backend.core.logging import get_logger, log_with_source
from den.client.config import DEFAULT_CONFIG_DIR, write_json_atomic
from den.client.models import Note

logger = get_logger(__name__)

DEFAULT_CACHE_PATH = DEFAULT_CONFIG_DIR / "cache.json"

_notes_adapter = TypeAdapter(list[Note])


class LocalNoteCache:
    """JSON file of notes. Reads never raise; writes are atomic."""

    def __init__(self, path: Path | None = None) -> None:
        self.path = path or DEFAULT_CACHE_PATH

    def load(self) -> list[Note]:
        """Return cached notes, or [] when the file is missing or corrupt."""
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError:
            return []
        except OSError as e:
            log_with_source(logger, "client", "warning", "Cache unreadable", path=str(self.path), error=str(e))
            return []

        try:
            return _notes_adapter.validate_json(raw)
        except (PydanticValidationError, ValueError) as e:
            log_with_source(logger, "client", "warning", "Cache corrupt, ignoring", path=str(self.path), error=str(e))
            return []

    def save(self, notes: list[Note]) -> None:
        payload = json.dumps([note.model_dump(mode="json") for note in notes], ensure_ascii=False)
        write_json_atomic(self.path, payload)
