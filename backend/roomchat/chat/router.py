"""Chat router providing the realtime websocket endpoint.

WebSocket /ws/chat?token=<jwt>

The token may also be supplied as ``Authorization: Bearer <jwt>``. Frames in
both directions are JSON envelopes ``{"event": name, "data": payload}``; see
:mod:`roomchat.chat.gateway` for the event catalogue.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Query, WebSocket

from roomchat.auth.security import extract_bearer

from .gateway import gateway

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws/chat")
async def websocket_chat_endpoint(
    websocket: WebSocket,
    token: Optional[str] = Query(None, description="Bearer token (without the Bearer prefix)"),
) -> None:
    """Serve one chat connection until the client goes away."""
    credential = token or extract_bearer(websocket.headers.get("authorization"))
    session = await gateway.handle_connect(websocket, credential)
    logger.info(
        f"[WS] New connection {session.connection_id} "
        f"(authenticated={session.authenticated})"
    )

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                logger.info(
                    f"[WS] Connection {session.connection_id} closed "
                    f"(code={message.get('code', 1000)})"
                )
                break
            # binary frames carry "bytes" instead of "text"
            await gateway.handle_frame(session, message.get("text"))
    finally:
        await gateway.handle_disconnect(session)
