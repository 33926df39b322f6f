#!/usr/bin/env python3
# Copyright (C) 2024 HandsfreeClaw Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Register a gateway token for an email. Run: python -m handsfree_relay.scripts.register_gateway"""

import asyncio
import sys

from handsfree_relay.database import async_session_maker, init_db
from handsfree_relay.errors import InvalidInput
from handsfree_relay.services.pairings import register_pairing


async def main():
    await init_db()
    email = input("Owner email: ").strip()
    token = input("Gateway token: ").strip()
    name = input("Name (optional): ").strip() or None
    if not email or not token:
        print("Email and token required")
        sys.exit(1)

    async with async_session_maker() as session:
        try:
            pairing = await register_pairing(session, email, token, name)
        except InvalidInput as e:
            print(e.message)
            sys.exit(1)
        print(f"Pairing {pairing.id} registered to account {pairing.account_id}.")


if __name__ == "__main__":
    asyncio.run(main())
