"""
Event Publishers.

Builds note change events and hands them to the change notifier.

Publishing honours the `enabled` flag in notifier.yaml. When disabled,
events are silently skipped (no error, no log noise).

Usage:
    from den.backend.events.publishers import NoteEventPublisher

    publisher = NoteEventPublisher(notifier)
    await publisher.note_created(note)
"""

from typing import Any

from den.backend.core.logging import get_logger
from den.backend.events.notifier import ChangeNotifier
from den.backend.events.schemas import NoteEvent, NoteEventType
from den.backend.schemas.note import NoteResponse

logger = get_logger(__name__)


class NoteEventPublisher:
    """Publishes note change events to connected stream clients."""

    def __init__(self, notifier: ChangeNotifier, enabled: bool | None = None) -> None:
        self.notifier = notifier
        self._enabled = enabled

    @property
    def enabled(self) -> bool:
        if self._enabled is None:
            from den.backend.core.config import get_app_config

            self._enabled = get_app_config().notifier.enabled
        return self._enabled

    async def note_created(self, note: Any) -> int:
        """Publish a note:created event."""
        return await self._publish(NoteEventType.CREATED, note)

    async def note_updated(self, note: Any) -> int:
        """Publish a note:updated event."""
        return await self._publish(NoteEventType.UPDATED, note)

    async def note_deleted(self, note: Any) -> int:
        """Publish a note:deleted event carrying the pre-deletion note."""
        return await self._publish(NoteEventType.DELETED, note)

    async def _publish(self, event_type: NoteEventType, note: Any) -> int:
        """Broadcast an event if publishing is enabled."""
        if not self.enabled:
            return 0

        if not isinstance(note, NoteResponse):
            note = NoteResponse.model_validate(note)

        event = NoteEvent(type=event_type, note=note)
        return await self.notifier.broadcast(event)
