"""
End-to-end relay flows over the /realtime WebSocket endpoint.
"""

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from app import create_app, origin_allowed
from conftest import FailingBackend


def join(ws, room, **fields):
    ws.send_json({"event": "join-room", "data": {"room": room, **fields}})


def test_root_reports_running(client):
    assert client.get("/").json() == {"message": "API is running"}


def test_meeting_room_walkthrough(client):
    with client.websocket_connect("/realtime") as ws1:
        join(ws1, "math101")
        first = ws1.receive_json()
        assert first["event"] == "room-members"
        assert len(first["data"]["members"]) == 1
        c1 = first["data"]["members"][0]

        with client.websocket_connect("/realtime") as ws2:
            join(ws2, "math101")

            joined = ws1.receive_json()
            assert joined["event"] == "user-joined"
            c2 = joined["data"]["socketId"]
            assert joined["data"] == {"socketId": c2, "userId": None, "displayName": None}

            members = ws2.receive_json()
            assert members["event"] == "room-members"
            assert sorted(members["data"]["members"]) == sorted([c1, c2])

            ws1.send_json({"event": "signal", "data": {"to": c2, "sdp": "v=0"}})
            assert ws2.receive_json() == {"event": "signal", "data": {"to": c2, "sdp": "v=0"}}

        # ws2 closing runs the disconnect path
        assert ws1.receive_json() == {"event": "user-left", "data": {"socketId": c2}}

        ws1.send_json({"event": "leave-room", "data": {"room": "math101"}})
        relay = client.app.state.relay
        ws1.send_json({"event": "join-room", "data": {"room": "probe"}})
        assert ws1.receive_json()["event"] == "room-members"
        assert relay.rooms_of(c1) == {"probe"}


def test_join_survives_store_failure():
    app = create_app(backend=FailingBackend(), cors_origins=["*"])
    with TestClient(app) as client:
        with client.websocket_connect("/realtime") as ws1:
            join(ws1, "r", userId="5", displayName="Ravi")
            members = ws1.receive_json()
            assert members["event"] == "room-members"
            assert len(members["data"]["members"]) == 1


def test_malformed_frames_keep_connection_open(client):
    with client.websocket_connect("/realtime") as ws:
        ws.send_text("hello")
        ws.send_json({"event": "signal", "data": {"sdp": "no target"}})
        ws.send_bytes(b"\x00\x01")
        join(ws, "r")
        assert ws.receive_json()["event"] == "room-members"


def test_disallowed_origin_is_rejected(client):
    with pytest.raises(WebSocketDisconnect) as excinfo:
        with client.websocket_connect("/realtime", headers={"origin": "http://evil.example"}):
            pass
    assert excinfo.value.code == 1008


def test_allowed_origin_is_accepted(client):
    with client.websocket_connect("/realtime", headers={"origin": "http://localhost:3000"}) as ws:
        join(ws, "r")
        assert ws.receive_json()["event"] == "room-members"


@pytest.mark.parametrize("origin, allowed, expected", [
    (None, ["http://a"], True),
    ("http://a", ["http://a"], True),
    ("http://b", ["http://a"], False),
    ("http://b", ["*"], True),
])
def test_origin_allowed(origin, allowed, expected):
    assert origin_allowed(origin, allowed) is expected
