# Copyright (C) 2024 HandsfreeClaw Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Authentication API routes."""

from fastapi import APIRouter, Depends
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from handsfree_relay import auth
from handsfree_relay.auth import bearer_scheme, get_current_account
from handsfree_relay.database import get_db
from handsfree_relay.models import Account
from handsfree_relay.api.schemas import (
    AccountResponse,
    MessageResponse,
    RequestCodeRequest,
    SessionResponse,
    VerifyCodeRequest,
)
from handsfree_relay.rate_limit import rate_limit_auth_dep
from handsfree_relay.services.email import Notifier, get_notifier
from handsfree_relay.services.verification import request_code, verify_code

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/request-code", response_model=MessageResponse, dependencies=[Depends(rate_limit_auth_dep)])
async def request_code_route(
    data: RequestCodeRequest,
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
) -> MessageResponse:
    """Email a six-digit sign-in code. Creates no account until verified."""
    await request_code(db, data.email, notifier)
    return MessageResponse(message="Verification code sent.")


@router.post("/verify-code", response_model=SessionResponse, dependencies=[Depends(rate_limit_auth_dep)])
async def verify_code_route(
    data: VerifyCodeRequest,
    db: AsyncSession = Depends(get_db),
) -> SessionResponse:
    """Exchange a code for a bearer session. Creates the account on first sign-in."""
    session, account = await verify_code(db, data.email, data.code)
    return SessionResponse(
        access_token=session.token,
        expires_at=session.expires_at,
        account=AccountResponse.model_validate(account),
    )


@router.post("/logout", response_model=MessageResponse)
async def logout(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    """End the current session. Succeeds even if it is already gone."""
    if credentials and credentials.credentials:
        await auth.logout(db, credentials.credentials)
    return MessageResponse(message="Logged out.")


@router.get("/me", response_model=AccountResponse)
async def get_me(
    account: Account = Depends(get_current_account),
) -> AccountResponse:
    """Get current account."""
    return AccountResponse.model_validate(account)
