from __future__ import annotations

import asyncio
import base64

MiB = 1024 * 1024


def basic_auth(user: str, password: str) -> str:
    token = base64.b64encode(f"{user}:{password}".encode("utf-8")).decode("ascii")
    return f"Basic {token}"


def run(coro):
    return asyncio.run(coro)
