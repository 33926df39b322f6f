# Copyright (C) 2024 HandsfreeClaw Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""In-memory rate limiting for unauthenticated endpoints (brute-force protection)."""

import time
from fastapi import Request

from handsfree_relay.config import settings
from handsfree_relay.errors import RelayError

# (client_key, endpoint) -> list of request timestamps in window
_buckets: dict[tuple[str, str], list[float]] = {}
# Window seconds; max requests per window per endpoint
WINDOW = 60
LIMITS: dict[str, int] = {
    "/api/v1/auth/request-code": 5,
    "/api/v1/auth/verify-code": 10,
    "/api/v1/pairings/register": 10,
}


class RateLimited(RelayError):
    """Too many requests from one client (429)."""

    kind = "rate_limited"
    status_code = 429

    def __init__(self) -> None:
        super().__init__("Too many requests. Please try again later.")


def _trusted_proxies() -> set[str]:
    return {p.strip() for p in settings.trusted_proxies.split(",") if p.strip()}


def _client_key(request: Request) -> str:
    """Peer address; X-Forwarded-For only when the peer is a trusted proxy."""
    host = (request.client.host if request.client else None) or "unknown"
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded and host in _trusted_proxies():
        return forwarded.split(",")[0].strip() or host
    return host


def _clean_old(bucket: list[float], now: float) -> None:
    cutoff = now - WINDOW
    while bucket and bucket[0] < cutoff:
        bucket.pop(0)


def _sweep(now: float) -> None:
    """Drop buckets with no request inside the window."""
    cutoff = now - WINDOW
    for key in [k for k, b in _buckets.items() if not b or b[-1] < cutoff]:
        del _buckets[key]


def check_rate_limit(request: Request, path: str) -> None:
    """
    Raise RateLimited if the client has exceeded the limit for this path.
    Call this at the start of the endpoint (or via a dependency).
    """
    limit = LIMITS.get(path)
    if limit is None:
        return
    now = time.monotonic()
    _sweep(now)
    key = (_client_key(request), path)
    bucket = _buckets.get(key, [])
    _clean_old(bucket, now)
    if len(bucket) >= limit:
        raise RateLimited()
    bucket.append(now)
    _buckets[key] = bucket


def reset() -> None:
    """Forget all recorded requests."""
    _buckets.clear()


async def rate_limit_auth_dep(request: Request) -> None:
    """FastAPI dependency: rate limit the endpoints in LIMITS."""
    path = request.url.path.rstrip("/")
    if path in LIMITS:
        check_rate_limit(request, path)
