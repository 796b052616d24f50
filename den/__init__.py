"""
Den Personal Notes.

- backend/: Notes server (FastAPI, SQLite FTS5, WebSocket change stream)
- client/: Client sync state (local cache, debounced saves, stream reconciliation)
"""
