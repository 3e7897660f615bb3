from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Optional

logger = logging.getLogger("botrelay.rate_limiter")


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class RateDecision:
    allowed: bool
    wait_seconds: int = 0


class CheckRateLimiter:
    """
    Minimum-interval gate for the check endpoint.

    Holds the last accepted check time in milliseconds (0 means never). The state
    lives in this object only, so each process/instance enforces its own
    interval; horizontally scaled deployments are not coordinated.

    `try_acquire` is synchronous and updates the timestamp before the caller
    awaits anything, so on a single event loop a request arriving while a check
    is still forwarding is rejected.
    """

    def __init__(self, interval_seconds: int, *, clock: Callable[[], int] = _now_ms):
        self.interval_ms = int(interval_seconds) * 1000
        self.last_check_ms = 0
        self._clock = clock

    def try_acquire(self, now_ms: Optional[int] = None) -> RateDecision:
        now = self._clock() if now_ms is None else int(now_ms)
        elapsed = now - self.last_check_ms
        if elapsed < self.interval_ms:
            wait_seconds = math.ceil((self.interval_ms - elapsed) / 1000)
            logger.info("check_rate_limited", extra={"wait_seconds": wait_seconds})
            return RateDecision(allowed=False, wait_seconds=wait_seconds)
        self.last_check_ms = now
        return RateDecision(allowed=True)
