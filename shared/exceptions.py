"""
Custom exception classes for BotRelay.

Provides specific exception types for targeted error handling in the routes.
"""

from __future__ import annotations

from typing import Optional


class RelayError(Exception):
    """Base exception for all BotRelay errors"""
    pass


class ConfigurationError(RelayError):
    """Configuration or environment variable errors"""
    pass


class AuthenticationError(RelayError):
    """Telegram login/session failures"""
    pass


class RateLimitError(RelayError):
    """Rate limit exceeded errors"""

    def __init__(self, message: str, *, wait_seconds: int) -> None:
        super().__init__(message)
        self.wait_seconds = int(wait_seconds)


class FloodWaitError(RateLimitError):
    """Telegram flood control asked us to back off"""

    def __init__(self, wait_seconds: int, cause: Optional[BaseException] = None) -> None:
        super().__init__(f"Telegram requires waiting {int(wait_seconds)} seconds", wait_seconds=wait_seconds)
        self.cause = cause
