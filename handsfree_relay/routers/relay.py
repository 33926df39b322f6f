# Copyright (C) 2024 HandsfreeClaw Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Relay WebSocket endpoint.

Connect to ``/ws?token=<gateway token>&type=app|gateway[&session=<token>]``.
The handshake is always accepted so that refused clients receive one of the
documented close codes (see ``services.broker.CloseCode``).
"""

import logging

from fastapi import APIRouter, Query, WebSocket

from handsfree_relay.database import async_session_maker
from handsfree_relay.errors import AdmissionRejected
from handsfree_relay.services.broker import ConnectionBroker, check_admission

logger = logging.getLogger(__name__)

router = APIRouter(tags=["relay"])


@router.websocket("/ws")
async def relay_socket(
    websocket: WebSocket,
    token: str | None = Query(None),
    client_type: str | None = Query(None, alias="type"),
    session: str | None = Query(None),
) -> None:
    await websocket.accept()
    broker: ConnectionBroker = websocket.app.state.broker

    try:
        async with async_session_maker() as db:
            role = await check_admission(db, token, client_type, session)
    except AdmissionRejected as e:
        logger.info("Relay connection rejected (%s): %s", e.close_code, e.reason)
        await websocket.close(code=e.close_code, reason=e.reason)
        return

    handle = await broker.admit(token, role, websocket)
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            raw = message.get("text")
            if raw is None:
                raw = message.get("bytes") or b""
            await broker.relay(handle, raw)
    finally:
        await broker.disconnect(handle)
