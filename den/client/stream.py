"""
Change Stream Client.

Keeps a WebSocket open to /ws, hands every change event to a callback,
and sends "ping" on an interval so the server does not reap the
connection. Reconnects forever with capped exponential backoff; the
backoff starts over after every successful connect.

Usage:
    stream = NoteStreamClient.from_config(config, on_event=state.handle_event)
    stream.start()
    ...
    await stream.stop()
"""

import asyncio
import contextlib
from collections.abc import Awaitable, Callable
from typing import Any
from urllib.parse import quote

from pydantic import ValidationError as PydanticValidationError
from tenacity import AsyncRetrying, retry_if_exception_type, wait_exponential
from websockets.asyncio.client import connect as websocket_connect
from websockets.exceptions import ConnectionClosed, WebSocketException

from den.backend.core.logging import get_logger, log_with_source
from den.backend.core.resilience import retry_logger
from den.client.config import ClientConfig
from den.client.models import NoteEvent

logger = get_logger(__name__)

EventHandler = Callable[[NoteEvent], Awaitable[None]]

CONNECT_ERRORS = (OSError, asyncio.TimeoutError, WebSocketException)

PING_MESSAGE = "ping"
PONG_MESSAGE = "pong"


class NoteStreamClient:
    """Reconnecting subscriber to the server's change stream."""

    def __init__(
        self,
        url: str,
        token: str,
        on_event: EventHandler,
        ping_interval: float = 30.0,
        reconnect_min: float = 1.0,
        reconnect_max: float = 30.0,
        connect: Callable[[str], Awaitable[Any]] = websocket_connect,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.url = url
        self.token = token
        self.on_event = on_event
        self.ping_interval = ping_interval
        self.reconnect_min = reconnect_min
        self.reconnect_max = reconnect_max
        self._connect = connect
        self._sleep = sleep
        self._task: asyncio.Task | None = None
        self.connected = False

    @classmethod
    def from_config(cls, config: ClientConfig, on_event: EventHandler) -> "NoteStreamClient":
        return cls(
            url=config.stream_url,
            token=config.token,
            on_event=on_event,
            ping_interval=config.ping_interval_seconds,
            reconnect_min=config.reconnect_min_seconds,
            reconnect_max=config.reconnect_max_seconds,
        )

    @property
    def stream_url(self) -> str:
        return f"{self.url}?token={quote(self.token, safe='')}"

    def start(self) -> asyncio.Task:
        """Run the connect loop in a background task."""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run())
        return self._task

    async def stop(self) -> None:
        """Cancel the loop and close the current connection."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _open(self) -> Any:
        """Connect, retrying with exponential backoff until it works."""
        retrying = AsyncRetrying(
            wait=wait_exponential(
                multiplier=self.reconnect_min,
                min=self.reconnect_min,
                max=self.reconnect_max,
            ),
            retry=retry_if_exception_type(CONNECT_ERRORS),
            before_sleep=retry_logger("note_stream"),
            sleep=self._sleep,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await self._connect(self.stream_url)

    async def run(self) -> None:
        """Connect, consume, and reconnect until cancelled."""
        while True:
            # A fresh retry policy per connect puts the backoff back at its minimum.
            websocket = await self._open()
            self.connected = True
            log_with_source(logger, "stream", "info", "Change stream connected", url=self.url)

            try:
                await self._consume(websocket)
            except (ConnectionClosed, OSError) as e:
                log_with_source(logger, "stream", "warning", "Change stream dropped", error=str(e))
            finally:
                self.connected = False
                with contextlib.suppress(Exception):
                    await websocket.close()

            await self._sleep(self.reconnect_min)

    async def _consume(self, websocket: Any) -> None:
        pinger = asyncio.create_task(self._ping_loop(websocket))
        try:
            async for raw in websocket:
                await self._dispatch(raw)
        finally:
            pinger.cancel()
            with contextlib.suppress(asyncio.CancelledError, ConnectionClosed, OSError):
                await pinger

    async def _ping_loop(self, websocket: Any) -> None:
        while True:
            await asyncio.sleep(self.ping_interval)
            await websocket.send(PING_MESSAGE)

    async def _dispatch(self, raw: str | bytes) -> None:
        if raw == PONG_MESSAGE:
            return

        try:
            event = NoteEvent.model_validate_json(raw)
        except PydanticValidationError as e:
            log_with_source(logger, "stream", "warning", "Ignoring malformed stream message", error=str(e))
            return

        try:
            await self.on_event(event)
        except Exception:
            logger.exception("Event handler failed", extra={"event_type": event.type, "note_id": event.note.id})
