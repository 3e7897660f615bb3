from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from shared.config import RelayConfig, parse_hhmm

MINUTES_PER_DAY = 24 * 60


def format_local_time(now: datetime, tz: ZoneInfo) -> str:
    """Render `now` as e.g. "10/19/2026, 14:03:22 IST" in `tz`."""
    local = now.astimezone(tz)
    return f"{local.strftime('%m/%d/%Y, %H:%M:%S')} {local.tzname() or tz.key}"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ActiveWindow:
    """Daily time-of-day window; `end < start` means the window wraps past midnight."""

    start: str
    end: str
    tz: ZoneInfo

    @classmethod
    def from_config(cls, cfg: RelayConfig) -> "ActiveWindow":
        return cls(start=cfg.active_start_time, end=cfg.active_end_time, tz=cfg.tz)

    @property
    def start_minutes(self) -> int:
        return parse_hhmm(self.start)

    @property
    def end_minutes(self) -> int:
        return parse_hhmm(self.end)

    @property
    def wraps_midnight(self) -> bool:
        return self.end_minutes < self.start_minutes

    @property
    def label(self) -> str:
        return f"{self.start} to {self.end} {self.tz_abbreviation()}"

    def tz_abbreviation(self, now: Optional[datetime] = None) -> str:
        return (now or _utc_now()).astimezone(self.tz).tzname() or self.tz.key

    def contains(self, minutes: int) -> bool:
        start, end = self.start_minutes, self.end_minutes
        if end < start:
            return minutes >= start or minutes <= end
        return start <= minutes <= end

    def minutes_of_day(self, now: Optional[datetime] = None) -> int:
        local = (now or _utc_now()).astimezone(self.tz)
        return local.hour * 60 + local.minute

    def is_within_active_hours(self, now: Optional[datetime] = None) -> bool:
        return self.contains(self.minutes_of_day(now))
