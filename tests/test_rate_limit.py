# Copyright (C) 2024 HandsfreeClaw Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Rate limiter keying and bucket housekeeping."""

import pytest
from httpx import AsyncClient

from handsfree_relay import rate_limit

pytestmark = pytest.mark.anyio

REQUEST_CODE = "/api/v1/auth/request-code"


async def test_rotating_forwarded_for_is_ignored(client: AsyncClient, outbox):
    statuses = [
        (
            await client.post(
                REQUEST_CODE,
                json={"email": "spam@example.com"},
                headers={"X-Forwarded-For": f"203.0.113.{i}"},
            )
        ).status_code
        for i in range(6)
    ]
    assert statuses[:5] == [200] * 5
    assert statuses[5] == 429


async def test_forwarded_for_honored_from_trusted_proxy(client: AsyncClient, outbox, monkeypatch):
    monkeypatch.setattr(rate_limit.settings, "trusted_proxies", "10.0.0.1, 127.0.0.1")
    for _ in range(5):
        r = await client.post(REQUEST_CODE, json={"email": "a@example.com"}, headers={"X-Forwarded-For": "203.0.113.1"})
        assert r.status_code == 200
    r = await client.post(REQUEST_CODE, json={"email": "a@example.com"}, headers={"X-Forwarded-For": "203.0.113.1"})
    assert r.status_code == 429
    # A different forwarded client has its own bucket
    r = await client.post(
        REQUEST_CODE, json={"email": "a@example.com"}, headers={"X-Forwarded-For": "203.0.113.2, 10.0.0.1"}
    )
    assert r.status_code == 200


async def test_stale_buckets_are_dropped(client: AsyncClient, outbox, monkeypatch):
    clock = [1000.0]
    monkeypatch.setattr(rate_limit.time, "monotonic", lambda: clock[0])
    monkeypatch.setattr(rate_limit.settings, "trusted_proxies", "127.0.0.1")
    for i in range(20):
        r = await client.post(REQUEST_CODE, json={"email": "a@example.com"}, headers={"X-Forwarded-For": f"198.51.100.{i}"})
        assert r.status_code == 200
    assert len(rate_limit._buckets) == 20

    clock[0] += rate_limit.WINDOW + 1
    r = await client.post(REQUEST_CODE, json={"email": "a@example.com"}, headers={"X-Forwarded-For": "198.51.100.200"})
    assert r.status_code == 200
    assert list(rate_limit._buckets) == [("198.51.100.200", REQUEST_CODE)]
