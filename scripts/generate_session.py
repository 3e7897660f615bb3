"""
Interactive first-time login that prints a Telethon string session.

Usage:
  python scripts/generate_session.py

Reads API_ID/API_HASH (and optionally PHONE_NUMBER/PASSWORD) from the
environment or .env, prompts for anything missing plus the code Telegram sends,
then prints the value to store in USER_STRING_SESSION.
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from RelayBackend.services.telegram_client import PromptCredentials, authenticate, build_client  # noqa: E402
from shared.config import load_relay_config  # noqa: E402
from shared.exceptions import ConfigurationError  # noqa: E402


async def _main() -> int:
    cfg = load_relay_config()
    try:
        client = build_client(cfg, "")
    except ConfigurationError as e:
        raise SystemExit(str(e))

    await client.connect()
    try:
        if not await client.is_user_authorized():
            await authenticate(client, PromptCredentials(cfg))
        print("Your session string:")
        print(client.session.save())
    finally:
        await client.disconnect()
    return 0


if __name__ == "__main__":
    raise SystemExit(asyncio.run(_main()))
