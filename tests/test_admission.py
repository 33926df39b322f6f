# Copyright (C) 2024 HandsfreeClaw Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Relay admission checks and their close codes."""

import pytest

from handsfree_relay.errors import AdmissionRejected
from handsfree_relay.services import pairings
from handsfree_relay.services.broker import CLOSE_REASONS, CloseCode, Role, check_admission, reject
from handsfree_relay.services.verification import create_session, get_or_create_account

pytestmark = pytest.mark.anyio


async def _session_for(db, email):
    account = await get_or_create_account(db, email)
    session = await create_session(db, account)
    await db.commit()
    return session.token


async def _rejected(db, *args) -> int:
    with pytest.raises(AdmissionRejected) as exc:
        await check_admission(db, *args)
    return exc.value.close_code


@pytest.mark.parametrize("token,client_type", [(None, "app"), ("tok", None), ("", ""), (None, None)])
async def test_missing_parameters(db, token, client_type):
    assert await _rejected(db, token, client_type, None) == CloseCode.MISSING_PARAMETERS


async def test_unknown_client_type(db):
    assert await _rejected(db, "tok", "desktop", None) == CloseCode.INVALID_CLIENT_TYPE


async def test_gateway_requires_registered_pairing(db):
    assert await _rejected(db, "unregistered", "gateway", None) == CloseCode.PAIRING_NOT_REGISTERED
    await pairings.register_pairing(db, "gw@example.com", "registered")
    assert await check_admission(db, "registered", "gateway", None) is Role.GATEWAY


async def test_app_requires_session(db):
    await pairings.register_pairing(db, "app@example.com", "tok-app")
    assert await _rejected(db, "tok-app", "app", None) == CloseCode.SESSION_REQUIRED
    assert await _rejected(db, "tok-app", "app", "bogus") == CloseCode.INVALID_SESSION


async def test_app_requires_ownership(db):
    await pairings.register_pairing(db, "owner@example.com", "tok-owned")
    stranger = await _session_for(db, "stranger@example.com")
    owner = await _session_for(db, "owner@example.com")

    assert await _rejected(db, "tok-owned", "app", stranger) == CloseCode.PAIRING_NOT_OWNED
    assert await _rejected(db, "tok-missing", "app", owner) == CloseCode.PAIRING_NOT_OWNED
    assert await check_admission(db, "tok-owned", "app", owner) is Role.APP


async def test_reasons_are_distinct(db):
    await pairings.register_pairing(db, "owner@example.com", "tok")
    with pytest.raises(AdmissionRejected) as missing:
        await check_admission(db, None, None, None)
    with pytest.raises(AdmissionRejected) as no_session:
        await check_admission(db, "tok", "app", None)
    assert missing.value.reason != no_session.value.reason
    assert missing.value.reason == "Missing token or client type"


@pytest.mark.parametrize("code", list(CloseCode))
def test_rejection_carries_close_code_and_reason(code):
    err = reject(code)
    assert err.close_code == int(code)
    assert err.reason == CLOSE_REASONS[code]
    assert err.kind == "admission_rejected"
