"""WebSocket routes for notification streaming."""
from fastapi import APIRouter, WebSocket
from ..streaming.websocket import handle_websocket_stream

router = APIRouter(tags=["websocket"])


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """
    WebSocket endpoint for real-time notifications.

    Clients receive a welcome message, then one message per notification:
    {"type": "notification", "data": {"kind": "peer_paired", ...}}.
    The server pings every 30 seconds; clients answer "pong".
    """
    await handle_websocket_stream(websocket)
