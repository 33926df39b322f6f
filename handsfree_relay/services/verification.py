# Copyright (C) 2024 HandsfreeClaw Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Email code sign-in: issue one-time codes, exchange them for sessions."""

import logging
import secrets
from datetime import datetime, timedelta

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from handsfree_relay.config import settings
from handsfree_relay.errors import CodeExpired, InvalidCode, InvalidInput
from handsfree_relay.models import Account, AuthSession, VerificationCode
from handsfree_relay.models.timestamp import as_utc, utcnow
from handsfree_relay.services.email import Notifier

logger = logging.getLogger(__name__)

CODE_LENGTH = 6


def normalize_email(email: str) -> str:
    """Validate the address shape and return it trimmed and lowercased."""
    candidate = (email or "").strip()
    try:
        validate_email(candidate, check_deliverability=False)
    except EmailNotValidError as e:
        raise InvalidInput(f"Invalid email address: {e}") from e
    return candidate.lower()


def generate_code() -> str:
    """Uniformly random numeric code, zero-padded."""
    return "".join(secrets.choice("0123456789") for _ in range(CODE_LENGTH))


async def get_or_create_account(db: AsyncSession, email: str) -> Account:
    """Return the account for a normalized email, creating it on first sight."""
    result = await db.execute(select(Account).where(Account.email == email))
    account = result.scalar_one_or_none()
    if account is None:
        account = Account(email=email)
        db.add(account)
        await db.flush()
        logger.info("Created account %s for %s", account.id, email)
    return account


async def create_session(db: AsyncSession, account: Account, now: datetime | None = None) -> AuthSession:
    """Mint a bearer session for the account."""
    now = now or utcnow()
    session = AuthSession(
        token=secrets.token_urlsafe(32),
        account_id=account.id,
        expires_at=now + timedelta(days=settings.session_ttl_days),
        created_at=now,
    )
    db.add(session)
    await db.flush()
    return session


async def request_code(
    db: AsyncSession,
    email: str,
    notifier: Notifier,
    now: datetime | None = None,
) -> VerificationCode:
    """
    Store a fresh code for the email and hand it to the notifier.

    The code is committed before delivery, so it stays usable even when
    the notifier raises DeliveryFailed.
    """
    email = normalize_email(email)
    now = now or utcnow()
    ttl = settings.verification_code_ttl_minutes
    vc = VerificationCode(
        email=email,
        code=generate_code(),
        expires_at=now + timedelta(minutes=ttl),
        created_at=now,
    )
    db.add(vc)
    await db.commit()
    await notifier(
        email,
        "Your Handsfree sign-in code",
        f"Your verification code is: {vc.code}\n\nEnter this code in the app to sign in.\n\nThe code expires in {ttl} minutes.",
    )
    return vc


async def verify_code(
    db: AsyncSession,
    email: str,
    code: str,
    now: datetime | None = None,
) -> tuple[AuthSession, Account]:
    """Consume a code and return a new session with its account."""
    if not (email or "").strip():
        raise InvalidInput("Email is required")
    code = (code or "").strip()
    if len(code) != CODE_LENGTH or not code.isdigit():
        raise InvalidInput("Code must be 6 digits")
    email = email.strip().lower()
    now = now or utcnow()

    result = await db.execute(
        select(VerificationCode)
        .where(
            VerificationCode.email == email,
            VerificationCode.code == code,
            VerificationCode.used == False,  # noqa: E712
        )
        .order_by(VerificationCode.created_at.desc(), VerificationCode.id.desc())
        .limit(1)
    )
    vc = result.scalar_one_or_none()
    if vc is None:
        raise InvalidCode()
    if now >= as_utc(vc.expires_at):
        raise CodeExpired()

    vc.used = True
    account = await get_or_create_account(db, email)
    session = await create_session(db, account, now)
    await db.commit()
    logger.info("Verified %s, session issued for account %s", email, account.id)
    return session, account
