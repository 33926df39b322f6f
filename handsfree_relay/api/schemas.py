# Copyright (C) 2024 HandsfreeClaw Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Pydantic schemas for API request/response."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


# Auth
class RequestCodeRequest(BaseModel):
    email: str


class VerifyCodeRequest(BaseModel):
    email: str
    code: str


class AccountResponse(BaseModel):
    id: int
    email: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SessionResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_at: datetime
    account: AccountResponse


class MessageResponse(BaseModel):
    message: str


# Pairings
class PairingCreate(BaseModel):
    name: str | None = None


class PairingRegister(BaseModel):
    email: str
    gateway_token: str
    name: str | None = None


class PairingResponse(BaseModel):
    id: int
    gateway_token: str
    name: str | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PairingStatusResponse(BaseModel):
    token: str
    app_connected: bool
    gateway_connected: bool


class ErrorResponse(BaseModel):
    detail: str
    kind: str
