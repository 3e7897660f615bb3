"""
Telegram user-account client provider.

Builds one Telethon client per process from the configured string session and
shares a single login routine between first-time setup and normal runs. Where
the phone code / 2FA password come from is pluggable (`CredentialSupplier`).
"""

from __future__ import annotations

import asyncio
import getpass
import logging
from typing import Optional, Protocol

from telethon import TelegramClient
from telethon.errors import SessionPasswordNeededError
from telethon.sessions import StringSession

from shared.config import RelayConfig
from shared.exceptions import AuthenticationError, ConfigurationError
from shared.observability import swallow_exception

logger = logging.getLogger("botrelay.telegram")


class CredentialSupplier(Protocol):
    """Supplies the next piece of login material when Telegram asks for it."""

    async def phone_number(self) -> str: ...

    async def password(self) -> Optional[str]: ...

    async def phone_code(self) -> str: ...


class ConfiguredCredentials:
    """Non-interactive credentials for scheduled runs; the phone code can only come from config."""

    def __init__(self, cfg: RelayConfig):
        self.cfg = cfg

    async def phone_number(self) -> str:
        return (self.cfg.phone_number or "").strip()

    async def password(self) -> Optional[str]:
        return self.cfg.password or None

    async def phone_code(self) -> str:
        logger.warning("phone_code_required_run_setup")
        return (self.cfg.phone_code or "").strip()


class SetupCredentials(ConfiguredCredentials):
    """Credentials for the setup endpoint: the one-time code comes from the request."""

    def __init__(self, cfg: RelayConfig, phone_code: Optional[str]):
        super().__init__(cfg)
        self._phone_code = (phone_code or "").strip()

    async def phone_code(self) -> str:
        if not self._phone_code:
            raise AuthenticationError("Phone code is required for setup")
        return self._phone_code


class PromptCredentials(ConfiguredCredentials):
    """Terminal prompts for first-time setup from a shell."""

    async def phone_number(self) -> str:
        configured = await super().phone_number()
        if configured:
            return configured
        return (await asyncio.to_thread(input, "Phone number (international format): ")).strip()

    async def password(self) -> Optional[str]:
        configured = await super().password()
        if configured:
            return configured
        return (await asyncio.to_thread(getpass.getpass, "2FA password: ")) or None

    async def phone_code(self) -> str:
        return (await asyncio.to_thread(input, "Code sent by Telegram: ")).strip()


async def authenticate(client: TelegramClient, credentials: CredentialSupplier, *, code_requested: bool = False) -> None:
    """
    Log `client` in: request a code, sign in with it, fall back to the 2FA password.

    Pass `code_requested=True` when this same client already asked Telegram for
    a code; requesting another one would invalidate the code the user holds.
    """
    phone = await credentials.phone_number()
    if not phone:
        raise ConfigurationError("Missing phone number. Set PHONE_NUMBER in international format.")

    if not code_requested:
        await client.send_code_request(phone)
        logger.info("telegram_code_requested")
    code = await credentials.phone_code()
    try:
        await client.sign_in(phone=phone, code=code)
    except SessionPasswordNeededError:
        password = await credentials.password()
        if not password:
            raise
        await client.sign_in(password=password)
    logger.info("telegram_authentication_successful")


async def _disconnect_quietly(client: TelegramClient, *, context: str) -> None:
    try:
        await client.disconnect()
    except Exception as e:
        swallow_exception(e, context=context, extra={"module": __name__})


def build_client(cfg: RelayConfig, session_string: Optional[str] = None) -> TelegramClient:
    api_id = cfg.api_id_int
    api_hash = cfg.api_hash
    if not (api_id and api_hash):
        raise ConfigurationError("Missing API credentials. Set API_ID and API_HASH (or TELEGRAM_API_ID/TELEGRAM_API_HASH).")
    return TelegramClient(
        StringSession(session_string or ""),
        api_id,
        api_hash,
        connection_retries=int(cfg.connection_retries),
        device_model=cfg.device_model,
    )


class TelegramClientProvider:
    """Lazily builds, connects and authorizes the account client once per process."""

    def __init__(self, cfg: RelayConfig, *, credentials: Optional[CredentialSupplier] = None, client_factory=build_client):
        self.cfg = cfg
        self.credentials = credentials or ConfiguredCredentials(cfg)
        self._client_factory = client_factory
        self._client: Optional[TelegramClient] = None

    @property
    def initialized(self) -> bool:
        return self._client is not None

    async def get_client(self) -> TelegramClient:
        # Cached handles are returned as-is; a dropped connection is left to Telethon's auto-reconnect.
        if self._client is not None:
            return self._client

        logger.info("telegram_client_initializing")
        client = self._client_factory(self.cfg, self.cfg.session_string)

        try:
            if not client.is_connected():
                logger.info("telegram_connecting")
                await client.connect()

            if not await client.is_user_authorized():
                logger.warning("telegram_not_authorized_starting_login")
                await authenticate(client, self.credentials)
        except Exception:
            # Not cached, so nothing else would ever close it.
            await _disconnect_quietly(client, context="telegram_client_init_disconnect")
            raise

        self._client = client
        return client

    def reset(self) -> None:
        self._client = None

    async def disconnect(self) -> None:
        client, self._client = self._client, None
        if client is not None:
            await client.disconnect()
