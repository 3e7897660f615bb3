"""
Health check service.

Reports configuration presence and the current operating window. Pure read;
never touches Telegram.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from RelayBackend.services.active_window import ActiveWindow, format_local_time
from shared.config import RelayConfig

SERVICE_NAME = "Telegram Auto Forwarder"

ENDPOINTS = {
    "health": "/health",
    "check_messages": "/check-messages",
    "setup": "/setup-session (POST)",
    "metrics": "/metrics",
}


class HealthService:
    def __init__(self, cfg: RelayConfig, window: ActiveWindow):
        self.cfg = cfg
        self.window = window

    def basic_health(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or datetime.now(timezone.utc)
        return {
            "status": "healthy",
            "service": SERVICE_NAME,
            "current_time_ist": format_local_time(now, self.cfg.tz),
            "active_hours": self.window.label,
            "currently_active": self.window.is_within_active_hours(now),
            "check_interval": f"{self.cfg.check_interval_seconds} seconds",
            "timezone": self.cfg.timezone,
            "endpoints": dict(ENDPOINTS),
            "environment": self.cfg.presence_flags(),
        }
