"""
Den client library.

The sync pattern shared by every Den front-end: a local cache of notes,
an active-note pointer that expires, optimistic creates, debounced saves
per note, and reconciliation against the server's change stream.

Usage:
    from den.client import ClientConfig, DenAPIClient, LocalNoteCache, NoteSyncState, NoteStreamClient

    config = ClientConfig.load()
    api = DenAPIClient(config.server_url, config.token)
    state = NoteSyncState(api, LocalNoteCache(), config)
    await state.start()

    stream = NoteStreamClient.from_config(config, on_event=state.handle_event)
    stream.start()
"""

from den.client.api import DenAPIClient
from den.client.cache import LocalNoteCache
from den.client.config import ClientConfig
from den.client.debounce import Debouncer
from den.client.exceptions import ApiError, ClientError, NetworkFailure
from den.client.models import Note, NoteEvent, NoteList
from den.client.stream import NoteStreamClient
from den.client.sync import NoteSyncState

__all__ = [
    "ApiError",
    "ClientConfig",
    "ClientError",
    "Debouncer",
    "DenAPIClient",
    "LocalNoteCache",
    "NetworkFailure",
    "Note",
    "NoteEvent",
    "NoteList",
    "NoteStreamClient",
    "NoteSyncState",
]
