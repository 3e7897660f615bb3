from __future__ import annotations

import logging

from shared.config import RelayConfig


logger = logging.getLogger("botrelay.sentry_init")


def setup_sentry(cfg: RelayConfig, *, service_name: str = "botrelay") -> None:
    """
    Optional Sentry error tracking hook.

    - Enable with `SENTRY_DSN`; install the `observability` extra.
    - If sentry_sdk isn't installed, this is a no-op.
    """
    dsn = str(cfg.sentry_dsn or "").strip()

    if not dsn:
        logger.info("sentry_disabled_no_dsn")
        return

    try:
        import sentry_sdk
        from sentry_sdk.integrations.fastapi import FastApiIntegration
        from sentry_sdk.integrations.logging import LoggingIntegration
    except ImportError:
        logger.info("sentry_disabled_missing_package")
        return

    environment = str(cfg.sentry_environment or cfg.app_env or "development").strip()
    release = str(cfg.sentry_release or "").strip() or None
    traces_sample_rate = float(cfg.sentry_traces_sample_rate if cfg.sentry_traces_sample_rate is not None else 0.1)

    try:
        sentry_sdk.init(
            dsn=dsn,
            environment=environment,
            release=release,
            traces_sample_rate=traces_sample_rate,
            integrations=[
                FastApiIntegration(transaction_style="url"),
                LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
            ],
            send_default_pii=False,
            attach_stacktrace=True,
            before_send=_before_send,
        )
        logger.info(
            "sentry_enabled",
            extra={"service_name": service_name, "environment": environment, "release": release or "unknown"},
        )
    except Exception:
        logger.exception("sentry_setup_failed")


_SECRET_KEYS = {"session", "session_string", "phoneCode", "phone_code", "password", "api_hash"}


def _before_send(event, hint):
    """Drop session strings and login material from request bodies before they leave the process."""
    request = event.get("request") or {}
    data = request.get("data")
    if isinstance(data, dict):
        for key in list(data.keys()):
            if key in _SECRET_KEYS:
                data[key] = "[redacted]"
    return event
