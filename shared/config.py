"""
Centralized configuration for the BotRelay service.

Goal:
- One typed source of truth for config.
- Keep the original serverless variable names working (aliases), but prefer the canonical keys.
"""

from __future__ import annotations

import re
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import AliasChoices, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


_REPO_ROOT = Path(__file__).resolve().parents[1]

_HHMM_RE = re.compile(r"^(\d{1,2}):(\d{2})$")


def _env_file_candidates(service_dir: str) -> list[Path]:
    # Order matters: service-local .env first, then repo-root .env (if any).
    return [
        _REPO_ROOT / service_dir / ".env",
        _REPO_ROOT / ".env",
    ]


def parse_hhmm(value: str) -> int:
    """Parse "HH:MM" into minutes since midnight. "24:00" is allowed and maps to 1440."""
    m = _HHMM_RE.match(str(value or "").strip())
    if not m:
        raise ValueError(f"Invalid time {value!r}; expected HH:MM")
    hour, minute = int(m.group(1)), int(m.group(2))
    if minute > 59 or hour > 24 or (hour == 24 and minute != 0):
        raise ValueError(f"Invalid time {value!r}; expected 00:00-24:00")
    return hour * 60 + minute


def _is_set(value: Optional[Any]) -> bool:
    return bool(str(value or "").strip())


class RelayConfig(BaseSettings):
    """Configuration for the relay API service (check, setup and health endpoints)."""

    model_config = SettingsConfigDict(case_sensitive=False, extra="ignore")

    # Environment
    app_env: str = Field(default="dev", validation_alias=AliasChoices("APP_ENV", "ENV"))
    app_host: str = Field(default="0.0.0.0", validation_alias=AliasChoices("APP_HOST"))
    app_port: int = Field(default=8000, validation_alias=AliasChoices("APP_PORT"))
    cors_allow_origins: str = Field(default="*", validation_alias=AliasChoices("CORS_ALLOW_ORIGINS"))

    # -------------------------
    # Telegram account
    # -------------------------
    telegram_api_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("TELEGRAM_API_ID", "TG_API_ID", "API_ID"))
    telegram_api_hash: Optional[str] = Field(default=None, validation_alias=AliasChoices("TELEGRAM_API_HASH", "TG_API_HASH", "API_HASH"))
    phone_number: Optional[str] = Field(default=None, validation_alias=AliasChoices("PHONE_NUMBER", "TELEGRAM_PHONE_NUMBER"))
    password: Optional[str] = Field(default=None, validation_alias=AliasChoices("PASSWORD", "TELEGRAM_PASSWORD"))
    phone_code: Optional[str] = Field(default=None, validation_alias=AliasChoices("PHONE_CODE"))
    session_string: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("USER_STRING_SESSION", "SESSION_STRING", "TELEGRAM_SESSION_STRING"),
    )
    connection_retries: int = Field(default=5, validation_alias=AliasChoices("TELEGRAM_CONNECTION_RETRIES"))
    device_model: str = Field(default="BotRelay", validation_alias=AliasChoices("TELEGRAM_DEVICE_MODEL"))

    # -------------------------
    # Forwarding
    # -------------------------
    target_group_chat_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("TARGET_GROUP_CHAT_ID"))
    source_peer: str = Field(default="me", validation_alias=AliasChoices("SOURCE_PEER"))
    active_start_time: str = Field(default="00:00", validation_alias=AliasChoices("ACTIVE_START_TIME"))
    active_end_time: str = Field(default="24:00", validation_alias=AliasChoices("ACTIVE_END_TIME"))
    timezone: str = Field(default="Asia/Kolkata", validation_alias=AliasChoices("TIMEZONE", "TZ_NAME"))
    check_interval_seconds: int = Field(default=300, validation_alias=AliasChoices("CHECK_INTERVAL_SECONDS"))
    message_lookback_minutes: int = Field(default=15, validation_alias=AliasChoices("MESSAGE_LOOKBACK_MINUTES"))
    max_messages_per_check: int = Field(default=10, validation_alias=AliasChoices("MAX_MESSAGES_PER_CHECK"))
    delay_between_forwards_ms: int = Field(default=1000, validation_alias=AliasChoices("DELAY_BETWEEN_FORWARDS_MS"))
    stop_at_first_old_message: bool = Field(default=False, validation_alias=AliasChoices("STOP_AT_FIRST_OLD_MESSAGE"))

    # -------------------------
    # Observability
    # -------------------------
    log_level: str = Field(default="INFO", validation_alias=AliasChoices("LOG_LEVEL"))
    log_dir: Optional[str] = Field(default=None, validation_alias=AliasChoices("LOG_DIR"))
    log_file: Optional[str] = Field(default=None, validation_alias=AliasChoices("LOG_FILE"))
    log_json: bool = Field(default=False, validation_alias=AliasChoices("LOG_JSON"))
    log_to_console: bool = Field(default=True, validation_alias=AliasChoices("LOG_TO_CONSOLE"))
    log_to_file: bool = Field(default=True, validation_alias=AliasChoices("LOG_TO_FILE"))
    log_max_bytes: int = Field(default=5_000_000, validation_alias=AliasChoices("LOG_MAX_BYTES"))
    log_backup_count: int = Field(default=5, validation_alias=AliasChoices("LOG_BACKUP_COUNT"))

    otel_enabled: bool = Field(default=False, validation_alias=AliasChoices("OTEL_ENABLED"))
    otel_exporter_otlp_endpoint: str = Field(default="http://otel-collector:4318", validation_alias=AliasChoices("OTEL_EXPORTER_OTLP_ENDPOINT"))
    otel_service_name: Optional[str] = Field(default=None, validation_alias=AliasChoices("OTEL_SERVICE_NAME"))

    sentry_dsn: Optional[str] = Field(default=None, validation_alias=AliasChoices("SENTRY_DSN"))
    sentry_environment: str = Field(default="production", validation_alias=AliasChoices("SENTRY_ENVIRONMENT"))
    sentry_release: Optional[str] = Field(default=None, validation_alias=AliasChoices("SENTRY_RELEASE"))
    sentry_traces_sample_rate: Optional[float] = Field(default=None, validation_alias=AliasChoices("SENTRY_TRACES_SAMPLE_RATE"))

    @field_validator(
        "check_interval_seconds",
        "message_lookback_minutes",
        "max_messages_per_check",
        "delay_between_forwards_ms",
        "connection_retries",
        mode="before",
    )
    @classmethod
    def _blank_numbers_use_default(cls, value: Any, info) -> Any:
        # Serverless dashboards tend to export unset numbers as "".
        if isinstance(value, str) and not value.strip():
            return cls.model_fields[info.field_name].default
        return value

    @field_validator("active_start_time", "active_end_time")
    @classmethod
    def _validate_hhmm(cls, value: str) -> str:
        parse_hhmm(value)
        return value.strip()

    @field_validator("timezone")
    @classmethod
    def _validate_timezone(cls, value: str) -> str:
        name = str(value or "").strip()
        try:
            ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone {value!r}") from e
        return name

    @model_validator(mode="after")
    def _validate_positive_knobs(self) -> "RelayConfig":
        for name in ("check_interval_seconds", "message_lookback_minutes", "max_messages_per_check", "connection_retries"):
            if int(getattr(self, name)) <= 0:
                raise ValueError(f"{name.upper()} must be a positive integer")
        if self.delay_between_forwards_ms < 0:
            raise ValueError("DELAY_BETWEEN_FORWARDS_MS must not be negative")
        return self

    @property
    def api_id_int(self) -> int:
        try:
            return int(str(self.telegram_api_id or "").strip() or 0)
        except ValueError:
            return 0

    @property
    def api_hash(self) -> str:
        return (self.telegram_api_hash or "").strip()

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    def presence_flags(self) -> dict[str, bool]:
        return {
            "api_id_set": _is_set(self.telegram_api_id),
            "api_hash_set": _is_set(self.telegram_api_hash),
            "phone_number_set": _is_set(self.phone_number),
            "target_group_set": _is_set(self.target_group_chat_id),
            "session_set": _is_set(self.session_string),
        }


@lru_cache(maxsize=4)
def _cached_relay_config(env_file_str: Optional[str]) -> RelayConfig:
    env_file = Path(env_file_str) if env_file_str else None
    candidates = [env_file] if env_file else _env_file_candidates("RelayBackend")
    existing = [p for p in candidates if p and p.exists()]
    return RelayConfig(_env_file=existing or None, _env_file_encoding="utf-8")  # type: ignore[arg-type]


def load_relay_config(*, env_file: Optional[Path] = None) -> RelayConfig:
    return _cached_relay_config(str(env_file) if env_file else None)
