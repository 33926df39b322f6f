# Copyright (C) 2024 HandsfreeClaw Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Pairing model."""

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from handsfree_relay.models.base import Base
from handsfree_relay.models.timestamp import TimestampMixin


class Pairing(Base, TimestampMixin):
    """Gateway token owned by an account. One row per token, ever."""

    __tablename__ = "pairings"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    gateway_token: Mapped[str] = mapped_column(String(128), unique=True, nullable=False, index=True)
    account_id: Mapped[int] = mapped_column(
        ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    account: Mapped["Account"] = relationship("Account", back_populates="pairings")
