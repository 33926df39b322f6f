# Copyright (C) 2024 HandsfreeClaw Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Pairing API routes."""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from handsfree_relay.auth import get_current_account
from handsfree_relay.database import get_db
from handsfree_relay.models import Account
from handsfree_relay.api.schemas import (
    PairingCreate,
    PairingRegister,
    PairingResponse,
    PairingStatusResponse,
)
from handsfree_relay.rate_limit import rate_limit_auth_dep
from handsfree_relay.services import pairings

router = APIRouter(prefix="/pairings", tags=["pairings"])


@router.get("", response_model=list[PairingResponse])
async def list_pairings(
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
) -> list[PairingResponse]:
    """List current account's pairings, newest first."""
    rows = await pairings.list_pairings(db, account.id)
    return [PairingResponse.model_validate(p) for p in rows]


@router.post("", response_model=PairingResponse)
async def create_pairing(
    data: PairingCreate,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
) -> PairingResponse:
    """Mint a new gateway token for the current account."""
    pairing = await pairings.create_pairing(db, account, data.name)
    return PairingResponse.model_validate(pairing)


@router.post("/register", response_model=PairingResponse, dependencies=[Depends(rate_limit_auth_dep)])
async def register_pairing(
    data: PairingRegister,
    db: AsyncSession = Depends(get_db),
) -> PairingResponse:
    """Register (or re-own) a gateway token for an email. Called by gateways; no session."""
    pairing = await pairings.register_pairing(db, data.email, data.gateway_token, data.name)
    return PairingResponse.model_validate(pairing)


@router.get("/{pairing_id}/status", response_model=PairingStatusResponse)
async def pairing_status(
    pairing_id: int,
    request: Request,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
) -> PairingStatusResponse:
    """Which sides of a pairing are currently connected to the relay."""
    pairing = await pairings.get_owned_pairing(db, account.id, pairing_id)
    app_connected, gateway_connected = request.app.state.broker.status(pairing.gateway_token)
    return PairingStatusResponse(
        token=pairing.gateway_token,
        app_connected=app_connected,
        gateway_connected=gateway_connected,
    )


@router.delete("/{pairing_id}")
async def delete_pairing(
    pairing_id: int,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
) -> dict:
    """Delete one of the current account's pairings."""
    await pairings.delete_pairing(db, account.id, pairing_id)
    return {"status": "ok"}
