# Copyright (C) 2024 HandsfreeClaw Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Database models."""

from handsfree_relay.models.base import Base
from handsfree_relay.models.account import Account
from handsfree_relay.models.pairing import Pairing
from handsfree_relay.models.session import AuthSession
from handsfree_relay.models.verification_code import VerificationCode

__all__ = [
    "Base",
    "Account",
    "AuthSession",
    "Pairing",
    "VerificationCode",
]
