import pytest
from starlette.websockets import WebSocketDisconnect

from rewear.core.security import create_access_token
from rewear.services.event_bus import bus, user_channel


def test_connect_and_ping(client, make_user):
    user = make_user()
    token = create_access_token(str(user.id))

    with client.websocket_connect(f"/ws/events?token={token}") as ws:
        hello = ws.receive_json()
        assert hello["event"] == "connected"
        assert user_channel(user.id) in hello["payload"]["channels"]
        assert user_channel(user.id) in bus.active_connections

        ws.send_text("ping")
        assert ws.receive_text() == "pong"


def test_invalid_token_is_refused(client):
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect("/ws/events?token=not-a-jwt") as ws:
            ws.receive_json()

    assert exc_info.value.code == 1008
