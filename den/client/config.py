"""
Client Configuration.

Per-client settings persisted as JSON, by default at ~/.den/config.json.
Stored values are merged over defaults; a missing or unreadable file
yields the defaults.
"""

import json
import os
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from den.backend.core.logging import get_logger, log_with_source

logger = get_logger(__name__)

DEFAULT_CONFIG_DIR = Path.home() / ".den"
DEFAULT_CONFIG_PATH = DEFAULT_CONFIG_DIR / "config.json"


def write_json_atomic(path: Path, payload: str) -> None:
    """Write a file via a temp file in the same directory and rename it into place."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(payload)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class ClientConfig(BaseModel):
    """Server location, credential and local preferences."""

    model_config = ConfigDict(extra="ignore", validate_assignment=True)

    server_url: str = "http://localhost:7745"
    token: str = ""
    last_active_note_id: str | None = None
    last_active_at: datetime | None = None
    resume_timeout_seconds: float = Field(default=300, ge=0)
    debounce_ms: int = Field(default=500, ge=0)
    reconnect_min_seconds: float = Field(default=1, gt=0)
    reconnect_max_seconds: float = Field(default=30, gt=0)
    ping_interval_seconds: float = Field(default=30, gt=0)

    @classmethod
    def load(cls, path: Path | None = None) -> "ClientConfig":
        """Read the config file, falling back to defaults."""
        path = path or DEFAULT_CONFIG_PATH
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
            if not isinstance(raw, dict):
                raise ValueError("config root must be an object")
            return cls.model_validate(raw)
        except FileNotFoundError:
            return cls()
        except (OSError, ValueError, PydanticValidationError) as e:
            log_with_source(logger, "client", "warning", "Unreadable client config, using defaults",
                            path=str(path), error=str(e))
            return cls()

    def save(self, path: Path | None = None) -> None:
        write_json_atomic(path or DEFAULT_CONFIG_PATH, self.model_dump_json(indent=2))

    @property
    def debounce_seconds(self) -> float:
        return self.debounce_ms / 1000

    @property
    def stream_url(self) -> str:
        """WebSocket URL for the change stream (token not included)."""
        base = self.server_url.rstrip("/")
        if base.startswith("https://"):
            base = "wss://" + base[len("https://"):]
        elif base.startswith("http://"):
            base = "ws://" + base[len("http://"):]
        return f"{base}/ws"

    def remember_active(self, note_id: str | None, now: datetime | None = None) -> None:
        """Record the active note, or clear it."""
        self.last_active_note_id = note_id
        self.last_active_at = (now or datetime.now(timezone.utc)) if note_id else None

    def resumable_note_id(self, now: datetime | None = None) -> str | None:
        """The last active note if it was active within the resume window."""
        if not self.last_active_note_id or self.last_active_at is None:
            return None
        now = now or datetime.now(timezone.utc)
        last = self.last_active_at
        if last.tzinfo is None:
            last = last.replace(tzinfo=timezone.utc)
        if now - last > timedelta(seconds=self.resume_timeout_seconds):
            return None
        return self.last_active_note_id
