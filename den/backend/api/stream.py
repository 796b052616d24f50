"""
Change Stream Endpoint.

WebSocket at /ws. The bearer secret travels in the `token` query
parameter since browsers cannot set headers on a WebSocket handshake.
A connection that sends nothing (not even "ping") for the configured
idle timeout is closed.
"""

import asyncio

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status

from den.backend.core.config import get_app_config
from den.backend.core.dependencies import Gate, Notifier
from den.backend.core.logging import get_logger

router = APIRouter()
logger = get_logger(__name__)


@router.websocket("/ws")
async def note_stream(
    websocket: WebSocket,
    notifier: Notifier,
    gate: Gate,
    token: str | None = Query(default=None),
) -> None:
    """Push note change events to the client and answer pings."""
    if not gate.check_token(token):
        logger.warning("Rejected stream connection with bad token")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    config = get_app_config().notifier

    await websocket.accept()
    connection_id = notifier.register(websocket)

    try:
        while True:
            try:
                message = await asyncio.wait_for(
                    websocket.receive(),
                    timeout=config.idle_timeout_seconds,
                )
            except asyncio.TimeoutError:
                logger.info("Closing idle stream client", extra={"connection_id": connection_id})
                await websocket.close(code=status.WS_1000_NORMAL_CLOSURE)
                break

            if message["type"] == "websocket.disconnect":
                break

            if message.get("text") == config.ping_message:
                await websocket.send_text(config.pong_message)
    except WebSocketDisconnect:
        logger.debug("Stream client went away", extra={"connection_id": connection_id})
    finally:
        notifier.unregister(connection_id)
