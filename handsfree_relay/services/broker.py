# Copyright (C) 2024 HandsfreeClaw Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Connection broker: pairs one app socket with one gateway socket per token
and relays JSON messages between them.

Wire envelope (JSON objects with a ``type`` discriminator):

    {"type": "connected", "clientType": "app", "token": "..."}   admitted
    {"type": "gateway_connected"} / {"type": "app_connected"}     peer joined
    {"type": "gateway_disconnected"} / {"type": "app_disconnected"}
    {"type": "error", "error": "Peer not connected"}             no peer

Any other object with a ``type`` is application payload and is forwarded
unchanged to the opposite role.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession
from starlette.websockets import WebSocket, WebSocketDisconnect, WebSocketState

from handsfree_relay.auth import authenticate
from handsfree_relay.errors import AdmissionRejected, RelayDropped, Unauthorized
from handsfree_relay.services.pairings import get_pairing_by_token

logger = logging.getLogger(__name__)

PEER_NOT_CONNECTED = {"type": "error", "error": "Peer not connected"}


class Role(str, Enum):
    APP = "app"
    GATEWAY = "gateway"

    @property
    def peer(self) -> "Role":
        return Role.GATEWAY if self is Role.APP else Role.APP


class CloseCode(IntEnum):
    """WebSocket close codes for rejected admissions. Stable for clients."""

    MISSING_PARAMETERS = 4000
    PAIRING_NOT_REGISTERED = 4001
    SESSION_REQUIRED = 4002
    INVALID_SESSION = 4003
    PAIRING_NOT_OWNED = 4004
    INVALID_CLIENT_TYPE = 4005


CLOSE_REASONS: dict[CloseCode, str] = {
    CloseCode.MISSING_PARAMETERS: "Missing token or client type",
    CloseCode.PAIRING_NOT_REGISTERED: "Pairing not registered",
    CloseCode.SESSION_REQUIRED: "Session required",
    CloseCode.INVALID_SESSION: "Invalid session",
    CloseCode.PAIRING_NOT_OWNED: "Pairing not owned by this account",
    CloseCode.INVALID_CLIENT_TYPE: "Invalid client type",
}


def reject(code: CloseCode) -> AdmissionRejected:
    return AdmissionRejected(int(code), CLOSE_REASONS[code])


async def check_admission(
    db: AsyncSession,
    token: str | None,
    client_type: str | None,
    session_token: str | None,
) -> Role:
    """
    Validate a relay connection attempt and return its role.

    Apps must present a live session owning the pairing; gateways only need
    the token to be registered. Raises AdmissionRejected otherwise.
    """
    if not token or not client_type:
        raise reject(CloseCode.MISSING_PARAMETERS)
    try:
        role = Role(client_type)
    except ValueError:
        raise reject(CloseCode.INVALID_CLIENT_TYPE) from None

    if role is Role.GATEWAY:
        if await get_pairing_by_token(db, token) is None:
            raise reject(CloseCode.PAIRING_NOT_REGISTERED)
        return role

    if not session_token:
        raise reject(CloseCode.SESSION_REQUIRED)
    try:
        account = await authenticate(db, session_token)
    except Unauthorized:
        raise reject(CloseCode.INVALID_SESSION) from None
    pairing = await get_pairing_by_token(db, token)
    # Unregistered and foreign tokens are indistinguishable to apps
    if pairing is None or pairing.account_id != account.id:
        raise reject(CloseCode.PAIRING_NOT_OWNED)
    return role


def is_open(websocket: WebSocket) -> bool:
    return (
        websocket.application_state == WebSocketState.CONNECTED
        and websocket.client_state == WebSocketState.CONNECTED
    )


@dataclass(eq=False)
class PeerHandle:
    """An admitted socket. Identity marks which occupant of a slot it is."""

    token: str
    role: Role
    websocket: WebSocket


@dataclass(eq=False)
class LiveConnection:
    """In-memory relay state for one pairing token."""

    token: str
    app: PeerHandle | None = None
    gateway: PeerHandle | None = None
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    # Set once the entry is dropped from the broker table; admissions then retry.
    retired: bool = False

    def slot(self, role: Role) -> PeerHandle | None:
        return self.app if role is Role.APP else self.gateway

    def install(self, role: Role, handle: PeerHandle | None) -> None:
        if role is Role.APP:
            self.app = handle
        else:
            self.gateway = handle

    def is_empty(self) -> bool:
        return self.app is None and self.gateway is None


class ConnectionBroker:
    """
    Process-wide table of live connections keyed by pairing token.

    Table lookups and inserts never await, so the event loop serializes
    them. Everything that touches an entry's slots, including sends to its
    sockets, runs under that entry's lock.
    """

    def __init__(self) -> None:
        self._entries: dict[str, LiveConnection] = {}

    def _entry(self, token: str) -> LiveConnection:
        entry = self._entries.get(token)
        if entry is None:
            entry = LiveConnection(token)
            self._entries[token] = entry
        return entry

    async def _send(self, handle: PeerHandle, payload: dict[str, Any]) -> bool:
        """Send JSON to a socket. Failures are logged and reported as False."""
        if not is_open(handle.websocket):
            return False
        try:
            await handle.websocket.send_text(json.dumps(payload))
            return True
        except (RuntimeError, OSError, WebSocketDisconnect) as e:
            logger.warning("Send to %s on %s failed: %s", handle.role.value, handle.token, e)
            return False

    async def admit(self, token: str, role: Role, websocket: WebSocket) -> PeerHandle:
        """Install an admitted socket, superseding any previous one for the role."""
        handle = PeerHandle(token, role, websocket)
        while True:
            entry = self._entry(token)
            async with entry.lock:
                if entry.retired:
                    continue
                previous = entry.slot(role)
                if previous is not None:
                    logger.info("Superseding %s socket for %s", role.value, token)
                entry.install(role, handle)
                logger.info("%s connected with token %s", role.value, token)

                peer = entry.slot(role.peer)
                if peer is not None and is_open(peer.websocket):
                    await self._send(handle, {"type": f"{role.peer.value}_connected"})
                    await self._send(peer, {"type": f"{role.value}_connected"})
                await self._send(handle, {"type": "connected", "clientType": role.value, "token": token})
                return handle

    @staticmethod
    def _parse(raw: str | bytes) -> dict[str, Any]:
        try:
            message = json.loads(raw)
        except (ValueError, UnicodeDecodeError) as e:
            raise RelayDropped(f"malformed payload: {e}") from e
        if not isinstance(message, dict) or "type" not in message:
            raise RelayDropped("payload is not an object with a type")
        return message

    async def relay(self, handle: PeerHandle, raw: str | bytes) -> bool:
        """
        Forward one message from ``handle`` to its peer.

        Returns True when delivered. Malformed messages and messages from a
        superseded socket are dropped; with no open peer the sender gets a
        "Peer not connected" error instead.
        """
        try:
            message = self._parse(raw)
        except RelayDropped as e:
            logger.warning("Relay dropped from %s on %s: %s", handle.role.value, handle.token, e.message)
            return False

        entry = self._entries.get(handle.token)
        if entry is None:
            logger.warning("Relay dropped from %s on %s: no live entry", handle.role.value, handle.token)
            return False
        async with entry.lock:
            if entry.slot(handle.role) is not handle:
                logger.info("Relay dropped from superseded %s socket on %s", handle.role.value, handle.token)
                return False
            logger.debug("Message from %s on %s: %s", handle.role.value, handle.token, message.get("type"))
            target = entry.slot(handle.role.peer)
            if target is not None and await self._send(target, message):
                return True
            await self._send(handle, PEER_NOT_CONNECTED)
            return False

    async def disconnect(self, handle: PeerHandle) -> None:
        """Clear the handle's slot (if it still owns it) and tell the peer."""
        entry = self._entries.get(handle.token)
        if entry is None:
            return
        async with entry.lock:
            if entry.slot(handle.role) is not handle:
                logger.info("Superseded %s socket for %s closed", handle.role.value, handle.token)
                return
            entry.install(handle.role, None)
            logger.info("%s disconnected: %s", handle.role.value, handle.token)
            peer = entry.slot(handle.role.peer)
            if peer is not None:
                await self._send(peer, {"type": f"{handle.role.value}_disconnected"})
            if entry.is_empty() and self._entries.get(handle.token) is entry:
                entry.retired = True
                del self._entries[handle.token]

    def status(self, token: str) -> tuple[bool, bool]:
        """(app_connected, gateway_connected) for a token."""
        entry = self._entries.get(token)
        if entry is None:
            return False, False
        return entry.app is not None, entry.gateway is not None

    def live_count(self) -> int:
        """Number of tokens with at least one connected socket."""
        return len(self._entries)
