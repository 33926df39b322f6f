# Copyright (C) 2024 HandsfreeClaw Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Pairing registry: gateway tokens and the accounts that own them."""

import logging
import secrets

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from handsfree_relay.config import settings
from handsfree_relay.errors import InvalidInput, NotFound
from handsfree_relay.models import Account, Pairing
from handsfree_relay.services.verification import get_or_create_account, normalize_email

logger = logging.getLogger(__name__)

MAX_TOKEN_LENGTH = 128


def generate_gateway_token() -> str:
    """Server-minted pairing token, e.g. ``hfc_Xy3...`` (16 URL-safe characters)."""
    return settings.pairing_token_prefix + secrets.token_urlsafe(12)


async def get_pairing_by_token(db: AsyncSession, gateway_token: str) -> Pairing | None:
    result = await db.execute(select(Pairing).where(Pairing.gateway_token == gateway_token))
    return result.scalar_one_or_none()


async def register_pairing(
    db: AsyncSession,
    email: str,
    gateway_token: str,
    name: str | None = None,
) -> Pairing:
    """
    Insert or re-own the pairing for a gateway token.

    Called by gateway processes, not end users: knowing the token plus an
    email is the whole authorization. An existing token silently moves to
    the new owner and takes the new name.
    """
    email = normalize_email(email)
    gateway_token = (gateway_token or "").strip()
    if not gateway_token or len(gateway_token) > MAX_TOKEN_LENGTH:
        raise InvalidInput(f"gateway_token must be 1-{MAX_TOKEN_LENGTH} characters")

    account = await get_or_create_account(db, email)
    pairing = await get_pairing_by_token(db, gateway_token)
    if pairing is None:
        pairing = Pairing(gateway_token=gateway_token, account_id=account.id, name=name)
        db.add(pairing)
        logger.info("Registered pairing for account %s", account.id)
    else:
        if pairing.account_id != account.id:
            logger.info("Pairing %s moved from account %s to %s", pairing.id, pairing.account_id, account.id)
        pairing.account_id = account.id
        pairing.name = name
    await db.commit()
    await db.refresh(pairing)
    return pairing


async def create_pairing(db: AsyncSession, account: Account, name: str | None = None) -> Pairing:
    """Mint a new gateway token owned by the account."""
    pairing = Pairing(gateway_token=generate_gateway_token(), account_id=account.id, name=name)
    db.add(pairing)
    await db.commit()
    await db.refresh(pairing)
    logger.info("Created pairing %s for account %s", pairing.id, account.id)
    return pairing


async def list_pairings(db: AsyncSession, account_id: int) -> list[Pairing]:
    """Pairings owned by the account, newest first."""
    result = await db.execute(
        select(Pairing)
        .where(Pairing.account_id == account_id)
        .order_by(Pairing.created_at.desc(), Pairing.id.desc())
    )
    return list(result.scalars().all())


async def get_owned_pairing(db: AsyncSession, account_id: int, pairing_id: int) -> Pairing:
    result = await db.execute(
        select(Pairing).where(
            Pairing.id == pairing_id,
            Pairing.account_id == account_id,
        )
    )
    pairing = result.scalar_one_or_none()
    if pairing is None:
        raise NotFound("Pairing")
    return pairing


async def delete_pairing(db: AsyncSession, account_id: int, pairing_id: int) -> None:
    """Delete a pairing owned by the account. Others' pairings look absent."""
    pairing = await get_owned_pairing(db, account_id, pairing_id)
    await db.delete(pairing)
    await db.commit()
    logger.info("Deleted pairing %s for account %s", pairing_id, account_id)
