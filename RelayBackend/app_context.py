"""
Application context (dependency injection container) for RelayBackend.

Owns the process-wide state (the Telegram client handle and the last-check
timestamp) so routes receive it through `Depends(get_app_context)` instead of
reading module globals. Tests override the dependency with fakes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache

from RelayBackend.logging_setup import setup_logging
from RelayBackend.otel import setup_otel
from RelayBackend.sentry_init import setup_sentry
from RelayBackend.services.active_window import ActiveWindow
from RelayBackend.services.forwarder import ForwarderService
from RelayBackend.services.health_service import HealthService
from RelayBackend.services.rate_limiter import CheckRateLimiter
from RelayBackend.services.session_setup import SessionSetupService
from RelayBackend.services.telegram_client import TelegramClientProvider
from shared.config import RelayConfig, load_relay_config


@dataclass(frozen=True)
class AppContext:
    logger: logging.Logger
    cfg: RelayConfig
    window: ActiveWindow
    rate_limiter: CheckRateLimiter
    client_provider: TelegramClientProvider
    forwarder: ForwarderService
    session_setup: SessionSetupService
    health_service: HealthService


def build_app_context(cfg: RelayConfig) -> AppContext:
    window = ActiveWindow.from_config(cfg)
    client_provider = TelegramClientProvider(cfg)
    return AppContext(
        logger=logging.getLogger("botrelay"),
        cfg=cfg,
        window=window,
        rate_limiter=CheckRateLimiter(cfg.check_interval_seconds),
        client_provider=client_provider,
        forwarder=ForwarderService(cfg, client_provider),
        session_setup=SessionSetupService(cfg),
        health_service=HealthService(cfg, window),
    )


@lru_cache(maxsize=1)
def get_app_context() -> AppContext:
    cfg = load_relay_config()
    setup_logging(cfg=cfg)
    setup_sentry(cfg, service_name="botrelay")
    setup_otel(cfg)
    return build_app_context(cfg)
