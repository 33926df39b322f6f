# Copyright (C) 2024 HandsfreeClaw Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Handsfree relay server - Main FastAPI application."""

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from handsfree_relay.api.schemas import ErrorResponse
from handsfree_relay.config import settings
from handsfree_relay.database import init_db
from handsfree_relay.errors import RelayError, Unauthorized
from handsfree_relay.routers import auth, pairings, relay
from handsfree_relay.services.broker import ConnectionBroker

logger = logging.getLogger(__name__)


def _get_cors_origins() -> list[str]:
    raw = (settings.cors_origins or "*").strip()
    if raw == "*":
        return ["*"]
    return [o.strip() for o in raw.split(",") if o.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    await init_db()
    app.state.broker = ConnectionBroker()
    logger.info("Relay server ready")
    yield
    # shutdown


app = FastAPI(
    title="Handsfree Relay Server",
    description="Pairs voice apps with gateways and relays messages between them",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RelayError)
async def relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
    """Map domain errors to ``{"detail", "kind"}`` with their status code."""
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthorized) else None
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(detail=exc.message, kind=exc.kind).model_dump(),
        headers=headers,
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies and params are client errors (400), not 422."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    detail = f"{field}: {first.get('msg', 'invalid')}" if field else "Invalid request"
    return JSONResponse(
        status_code=400,
        content=ErrorResponse(detail=detail, kind="invalid_input").model_dump(),
    )


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log method, path, status, and duration for each request (no body or auth headers)."""
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000
    logger.info("%s %s %s %.1fms", request.method, request.url.path, response.status_code, duration_ms)
    return response

# API v1
app.include_router(auth.router, prefix="/api/v1")
app.include_router(pairings.router, prefix="/api/v1")
app.include_router(relay.router)


@app.get("/")
async def root():
    """API info."""
    return {
        "name": "Handsfree Relay Server",
        "version": "0.1.0",
        "api": "/api/v1",
        "relay": "/ws",
        "docs": "/api/docs",
    }


@app.get("/api/v1/health")
async def health(request: Request):
    """Health check for load balancers."""
    return {"status": "ok", "pairings": request.app.state.broker.live_count()}
