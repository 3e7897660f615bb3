"""
Observability utilities for BotRelay.

Provides shared exception handling utilities.
"""

from __future__ import annotations

from .exception_handler import swallow_exception

__all__ = ["swallow_exception"]
