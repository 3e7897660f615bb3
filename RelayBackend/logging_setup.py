import json
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Optional

from shared.config import RelayConfig, load_relay_config


_EXTRA_KEYS = (
    "request_id",
    "method",
    "path",
    "status_code",
    "latency_ms",
    "client_ip",
    "message_id",
    "reason",
    "peer",
    "wait_seconds",
    "forwarded",
    "skipped",
    # forwarder
    "limit",
    "lookback_minutes",
    # startup
    "active_hours",
    "check_interval_seconds",
    "api_id_set",
    "api_hash_set",
    "phone_number_set",
    "target_group_set",
    "session_set",
    # swallow_exception
    "context",
    "exception_type",
    "extra_module",
    # sentry / otel
    "service_name",
    "environment",
    "release",
    "endpoint",
)


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S%z"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)

        for key in _EXTRA_KEYS:
            if hasattr(record, key):
                payload[key] = getattr(record, key)

        return json.dumps(payload, ensure_ascii=False, default=str)


def log_event(logger: logging.Logger, level: int, event: str, **data: Any) -> None:
    logger.log(level, event, extra=data)


def setup_logging(service_name: str = "botrelay", cfg: Optional[RelayConfig] = None) -> None:
    """
    Configure root logging (console + rotating file) from the LOG_* settings.

    Idempotent; calling multiple times is safe. Never log session strings,
    API hashes or 2FA passwords.
    """
    root = logging.getLogger()
    if getattr(root, "_botrelay_configured", False):
        return

    cfg = cfg or load_relay_config()
    level = str(cfg.log_level or "INFO").strip().upper()

    log_dir = Path(cfg.log_dir or (Path(__file__).resolve().parent / "logs"))
    log_file = cfg.log_file or f"{service_name}.log"

    fmt = JsonFormatter() if cfg.log_json else logging.Formatter(
        fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    root.setLevel(getattr(logging, level, logging.INFO))

    for h in list(root.handlers):
        root.removeHandler(h)

    if cfg.log_to_console:
        sh = logging.StreamHandler()
        sh.setFormatter(fmt)
        root.addHandler(sh)

    if cfg.log_to_file:
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
            fh = RotatingFileHandler(
                filename=str(log_dir / log_file),
                maxBytes=int(cfg.log_max_bytes),
                backupCount=int(cfg.log_backup_count),
                encoding="utf-8",
            )
            fh.setFormatter(fmt)
            root.addHandler(fh)
        except OSError:
            # Read-only filesystems (serverless) keep console logging only.
            logging.getLogger("logging_setup").warning("Failed to enable file logging in %s", log_dir, exc_info=True)

    root._botrelay_configured = True  # type: ignore[attr-defined]
