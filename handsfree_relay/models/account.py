# Copyright (C) 2024 HandsfreeClaw Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Account model."""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from handsfree_relay.models.base import Base
from handsfree_relay.models.timestamp import TimestampMixin


class Account(Base, TimestampMixin):
    """Account identified by a verified, normalized email address."""

    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)

    sessions: Mapped[list["AuthSession"]] = relationship(
        "AuthSession", back_populates="account", cascade="all, delete-orphan"
    )
    pairings: Mapped[list["Pairing"]] = relationship(
        "Pairing", back_populates="account", cascade="all, delete-orphan"
    )
