# Copyright (C) 2024 HandsfreeClaw Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Run the relay server. Run: python -m handsfree_relay.scripts.serve"""

import uvicorn

from handsfree_relay.config import settings


def main():
    uvicorn.run(
        "handsfree_relay.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
