"""
WebSocket router: real-time settlement events.

Frontend connects to ws://host/ws/events?token=<access_token> and receives
JSON events for swaps, items and payments.

Event shape:
  {
    "event": "swap:approved",
    "payload": {"id": "uuid", "item_id": "uuid", "status": "approved"}
  }

Each connection listens on two channels: "global" (item and swap status for
everyone) and "user:<id>" (events addressed to this user, e.g. a completed
purchase).

Note on auth: browsers can't set an Authorization header on a WebSocket, so
the token is passed as a query param and validated before accept. If invalid,
the connection is immediately closed with 1008 (Policy Violation).
"""
from fastapi import APIRouter, WebSocket, WebSocketDisconnect, Query, Depends
from sqlalchemy.orm import Session

from rewear.database import get_db
from rewear.core.dependencies import user_from_token
from rewear.core.exceptions import CredentialsException
from rewear.services.event_bus import bus, GLOBAL_CHANNEL, user_channel

router = APIRouter()


@router.websocket("/ws/events")
async def events_websocket(
    websocket: WebSocket,
    token: str = Query(..., description="JWT access token for authentication"),
    db: Session = Depends(get_db),
):
    """
    Connection lifecycle:
      1. Client sends: ws://host/ws/events?token=<access_token>
      2. Server validates token; invalid or inactive → close 1008
      3. Valid → accept and register on the global and user channels
      4. Server pushes events as settlements commit
      5. Client disconnects → connection cleaned up from the bus

    The client can send "ping" to keep the connection warm through proxies
    that close idle WebSockets.
    """
    # ── Authenticate before accepting ────────────────────────────────────────
    try:
        user = user_from_token(db, token)
    except CredentialsException:
        await websocket.close(code=1008, reason="Invalid token")
        return
    if not user.is_active:
        await websocket.close(code=1008, reason="Unauthorized")
        return

    channels = [GLOBAL_CHANNEL, user_channel(user.id)]
    # The session isn't needed past authentication; don't hold it for the socket lifetime.
    db.close()

    await bus.connect(websocket, channels)

    try:
        await websocket.send_json({
            "event": "connected",
            "payload": {"channels": channels},
        })

        while True:
            data = await websocket.receive_text()
            if data == "ping":
                await websocket.send_text("pong")

    except WebSocketDisconnect:
        bus.disconnect(websocket, channels)
