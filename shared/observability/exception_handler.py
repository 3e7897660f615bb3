"""
Best-effort exception handling for BotRelay.

`swallow_exception` is the only sanctioned way to drop an exception: it logs the
traceback under a stable context name and bumps a Prometheus counter, so
cleanup failures (client disconnects, unparsable request bodies) stay visible.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

logger = logging.getLogger("botrelay.exceptions")

# Attribute names `logging` refuses in `extra=`; "message"/"asctime" are set later by formatters.
_RESERVED_LOG_KEYS = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime"}


def _log_fields(context: str, exc_type_name: str, extra: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    fields: Dict[str, Any] = {"context": context, "exception_type": exc_type_name}
    for key, value in (extra or {}).items():
        clashes = key in _RESERVED_LOG_KEYS or key in fields
        fields[f"extra_{key}" if clashes else key] = value
    return fields


def swallow_exception(
    exc: Exception,
    *,
    context: str,
    extra: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Log `exc` with its traceback and count it, then return normally.

    `context` doubles as the metrics label, so keep it short and stable.
    Keys in `extra` that collide with LogRecord attributes are logged as `extra_<key>`.
    """
    exc_type_name = type(exc).__name__
    logger.exception("Swallowed exception", exc_info=exc, extra=_log_fields(context, exc_type_name, extra))

    # Counting is best-effort; a broken registry must not turn cleanup into a failure.
    try:
        from RelayBackend.metrics import swallowed_exceptions_total

        swallowed_exceptions_total.labels(context=context, exception_type=exc_type_name).inc()
    except Exception:
        logger.debug("swallowed_exception_metric_failed", exc_info=True)
