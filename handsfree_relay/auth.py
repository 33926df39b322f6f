# Copyright (C) 2024 HandsfreeClaw Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Authentication: bearer session validation."""

import logging
from datetime import datetime

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from handsfree_relay.database import get_db
from handsfree_relay.errors import Unauthorized
from handsfree_relay.models import Account, AuthSession
from handsfree_relay.models.timestamp import as_utc, utcnow

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


async def authenticate(db: AsyncSession, token: str | None, now: datetime | None = None) -> Account:
    """
    Resolve a session token to its account.

    Expired sessions are deleted when encountered and can never be used again.
    """
    if not token:
        raise Unauthorized()
    result = await db.execute(
        select(AuthSession, Account)
        .join(Account, AuthSession.account_id == Account.id)
        .where(AuthSession.token == token)
    )
    row = result.first()
    if row is None:
        raise Unauthorized("Invalid or expired token")
    session, account = row
    if (now or utcnow()) >= as_utc(session.expires_at):
        await db.execute(delete(AuthSession).where(AuthSession.id == session.id))
        await db.commit()
        logger.info("Session for account %s expired; deleted", account.id)
        raise Unauthorized("Invalid or expired token")
    return account


async def logout(db: AsyncSession, token: str) -> None:
    """Delete the session for a token. Unknown tokens are ignored."""
    await db.execute(delete(AuthSession).where(AuthSession.token == token))
    await db.commit()


async def get_bearer_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str:
    """Extract the bearer token from the Authorization header. Raises 401 if absent."""
    if not credentials or not credentials.credentials:
        raise Unauthorized()
    return credentials.credentials


async def get_current_account(
    token: str = Depends(get_bearer_token),
    db: AsyncSession = Depends(get_db),
) -> Account:
    """Dependency: the account owning the request's bearer session."""
    return await authenticate(db, token)
