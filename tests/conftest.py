# Copyright (C) 2024 HandsfreeClaw Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Pytest fixtures. Tests run against a throwaway SQLite database unless DATABASE_URL is set."""

import json
import os
import re
import tempfile

_DB_DIR = tempfile.mkdtemp(prefix="handsfree-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_DB_DIR}/relay.db")

import pytest
from httpx import ASGITransport, AsyncClient
from starlette.websockets import WebSocketState

from handsfree_relay import rate_limit
from handsfree_relay.database import async_session_maker, engine
from handsfree_relay.main import app
from handsfree_relay.models import Base
from handsfree_relay.services.broker import ConnectionBroker
from handsfree_relay.services.email import get_notifier


class Outbox:
    """Notifier that records messages instead of sending them."""

    def __init__(self) -> None:
        self.messages: list[tuple[str, str, str]] = []

    async def __call__(self, to: str, subject: str, body: str) -> None:
        self.messages.append((to, subject, body))

    def last_code(self, email: str) -> str:
        for to, _, body in reversed(self.messages):
            if to == email:
                return re.search(r"\b(\d{6})\b", body).group(1)
        raise AssertionError(f"no code sent to {email}")


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _reset_rate_limits():
    rate_limit.reset()
    yield
    rate_limit.reset()


@pytest.fixture
async def db():
    """Fresh schema and a session on it."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    async with async_session_maker() as session:
        yield session


@pytest.fixture
def outbox():
    box = Outbox()
    app.dependency_overrides[get_notifier] = lambda: box
    yield box
    app.dependency_overrides.pop(get_notifier, None)


@pytest.fixture
async def client(db):
    app.state.broker = ConnectionBroker()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


class FakeSocket:
    """Stands in for a WebSocket; records what the broker sends."""

    def __init__(self) -> None:
        self.sent: list[dict] = []
        self.application_state = WebSocketState.CONNECTED
        self.client_state = WebSocketState.CONNECTED

    async def send_text(self, data: str) -> None:
        self.sent.append(json.loads(data))

    def drop(self) -> None:
        self.client_state = WebSocketState.DISCONNECTED


async def sign_in(client: AsyncClient, outbox: Outbox, email: str) -> str:
    """Request and verify a code over HTTP; return the bearer token."""
    r = await client.post("/api/v1/auth/request-code", json={"email": email})
    assert r.status_code == 200
    code = outbox.last_code(email.strip().lower())
    r = await client.post("/api/v1/auth/verify-code", json={"email": email, "code": code})
    assert r.status_code == 200
    return r.json()["access_token"]
