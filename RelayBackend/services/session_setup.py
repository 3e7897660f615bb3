"""
One-shot session bootstrap.

Logs a fresh, empty session in with a caller-supplied code and returns the
Telethon string session for the operator to store in USER_STRING_SESSION.

Calling without a code still asks Telegram to send one and fails with
"Phone code is required for setup". The client that requested the code is kept
so the follow-up call carrying the code signs in on the same login attempt.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from telethon import TelegramClient
from telethon.errors import PhoneCodeInvalidError, PhoneNumberInvalidError, SessionPasswordNeededError

from RelayBackend.services.telegram_client import SetupCredentials, authenticate, build_client
from shared.config import RelayConfig
from shared.exceptions import AuthenticationError, ConfigurationError
from shared.observability import swallow_exception

logger = logging.getLogger("botrelay.session_setup")

_FRIENDLY_ERRORS = (
    (PhoneCodeInvalidError, "PHONE_CODE_INVALID", "Invalid phone code. Please check and try again."),
    (PhoneNumberInvalidError, "PHONE_NUMBER_INVALID", "Invalid phone number format. Use international format (+91...)"),
    (SessionPasswordNeededError, "SESSION_PASSWORD_NEEDED", "2FA password required. Set PASSWORD environment variable."),
)


def friendly_setup_error(exc: BaseException) -> str:
    """Operator-facing message for known login failures; the raw text otherwise."""
    raw = str(exc)
    code = str(getattr(exc, "message", "") or "")
    for exc_type, marker, friendly in _FRIENDLY_ERRORS:
        if isinstance(exc, exc_type) or marker in raw or marker in code:
            return friendly
    return raw


class SessionSetupService:
    def __init__(self, cfg: RelayConfig, *, client_factory: Callable[..., TelegramClient] = build_client):
        self.cfg = cfg
        self._client_factory = client_factory
        self._pending: Optional[TelegramClient] = None

    @property
    def awaiting_code(self) -> bool:
        return self._pending is not None

    def require_api_credentials(self) -> None:
        if not (self.cfg.api_id_int and self.cfg.api_hash):
            raise ConfigurationError("Please set API_ID and API_HASH environment variables")

    async def create_session(self, phone_code: Optional[str]) -> str:
        self.require_api_credentials()
        code = (phone_code or "").strip()

        reuse = self._pending is not None and bool(code)
        if reuse:
            client = self._pending
        else:
            await self._drop_pending()
            client = self._client_factory(self.cfg, "")
            await client.connect()
        self._pending = None

        logger.info("session_setup_started", extra={"reason": "code_pending" if reuse else "fresh"})
        try:
            await authenticate(client, SetupCredentials(self.cfg, code), code_requested=reuse)
        except (AuthenticationError, PhoneCodeInvalidError):
            # The code request is still valid; keep the client for the retry.
            self._pending = client
            raise
        except Exception:
            await self._disconnect(client)
            raise

        session = client.session.save()
        await self._disconnect(client)
        logger.info("session_setup_completed")
        return session

    async def _drop_pending(self) -> None:
        client, self._pending = self._pending, None
        if client is not None:
            await self._disconnect(client)

    async def _disconnect(self, client: TelegramClient) -> None:
        try:
            await client.disconnect()
        except Exception as e:
            swallow_exception(e, context="session_setup_disconnect", extra={"module": __name__})

    async def close(self) -> None:
        await self._drop_pending()
