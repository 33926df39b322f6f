# Copyright (C) 2024 HandsfreeClaw Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""End-to-end relay tests over a real WebSocket (Starlette TestClient, app lifespan runs)."""

import uuid

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from handsfree_relay.main import app
from handsfree_relay.services.email import get_notifier

from conftest import Outbox


@pytest.fixture
def tc():
    box = Outbox()
    app.dependency_overrides[get_notifier] = lambda: box
    with TestClient(app) as client:
        client.outbox = box
        yield client
    app.dependency_overrides.pop(get_notifier, None)


def _sign_in(tc: TestClient, email: str) -> str:
    assert tc.post("/api/v1/auth/request-code", json={"email": email}).status_code == 200
    code = tc.outbox.last_code(email)
    r = tc.post("/api/v1/auth/verify-code", json={"email": email, "code": code})
    assert r.status_code == 200
    return r.json()["access_token"]


def _paired(tc: TestClient) -> tuple[str, str]:
    """Register a fresh gateway token and return (token, owner's session)."""
    suffix = uuid.uuid4().hex[:8]
    email = f"user_{suffix}@example.com"
    token = f"T1-{suffix}"
    r = tc.post("/api/v1/pairings/register", json={"email": email, "gateway_token": token})
    assert r.status_code == 200
    return token, _sign_in(tc, email)


def _close_code(ws) -> int:
    with pytest.raises(WebSocketDisconnect) as exc:
        ws.receive_json()
    return exc.value.code


def test_relay_round_trip(tc: TestClient):
    token, session = _paired(tc)

    with tc.websocket_connect(f"/ws?token={token}&type=gateway") as gw:
        assert gw.receive_json() == {"type": "connected", "clientType": "gateway", "token": token}

        with tc.websocket_connect(f"/ws?token={token}&type=app&session={session}") as app_ws:
            assert app_ws.receive_json() == {"type": "gateway_connected"}
            assert app_ws.receive_json() == {"type": "connected", "clientType": "app", "token": token}
            assert gw.receive_json() == {"type": "app_connected"}

            app_ws.send_json({"type": "message", "text": "hello"})
            assert gw.receive_json() == {"type": "message", "text": "hello"}

            gw.send_json({"type": "response", "text": "hi there"})
            assert app_ws.receive_json() == {"type": "response", "text": "hi there"}

            # Garbage is dropped without closing the connection
            app_ws.send_text("not json")
            app_ws.send_json({"type": "message", "text": "still here"})
            assert gw.receive_json() == {"type": "message", "text": "still here"}

            gw.close()
            assert app_ws.receive_json() == {"type": "gateway_disconnected"}

            app_ws.send_json({"type": "message", "text": "anyone?"})
            assert app_ws.receive_json() == {"type": "error", "error": "Peer not connected"}


def test_app_reconnect_sees_live_gateway(tc: TestClient):
    token, session = _paired(tc)
    app_url = f"/ws?token={token}&type=app&session={session}"

    with tc.websocket_connect(f"/ws?token={token}&type=gateway") as gw:
        gw.receive_json()
        with tc.websocket_connect(app_url) as first:
            first.receive_json()
            first.receive_json()
            assert gw.receive_json() == {"type": "app_connected"}
        assert gw.receive_json() == {"type": "app_disconnected"}

        with tc.websocket_connect(app_url) as second:
            assert second.receive_json() == {"type": "gateway_connected"}
            second.receive_json()
            assert gw.receive_json() == {"type": "app_connected"}
            gw.send_json({"type": "response", "text": "welcome back"})
            assert second.receive_json() == {"type": "response", "text": "welcome back"}


def test_missing_parameters_rejected(tc: TestClient):
    with tc.websocket_connect("/ws?type=gateway") as ws:
        assert _close_code(ws) == 4000


def test_unregistered_gateway_rejected(tc: TestClient):
    with tc.websocket_connect(f"/ws?token=nope-{uuid.uuid4().hex}&type=gateway") as ws:
        assert _close_code(ws) == 4001


def test_app_admission_codes(tc: TestClient):
    token, session = _paired(tc)
    _, other_session = _paired(tc)

    with tc.websocket_connect(f"/ws?token={token}&type=app") as ws:
        assert _close_code(ws) == 4002
    with tc.websocket_connect(f"/ws?token={token}&type=app&session=forged") as ws:
        assert _close_code(ws) == 4003
    with tc.websocket_connect(f"/ws?token={token}&type=app&session={other_session}") as ws:
        assert _close_code(ws) == 4004
    with tc.websocket_connect(f"/ws?token={token}&type=desktop") as ws:
        assert _close_code(ws) == 4005
