"""
Bot-message classifier and forwarder.

Fetches the newest messages from the source peer, keeps those inside the
lookback window whose sender is a bot account, and forwards them (by reference)
to the target group one at a time with a fixed pause between forwards.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import re
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from telethon.errors import FloodWaitError as TelethonFloodWaitError, SlowModeWaitError

from RelayBackend.logging_setup import log_event
from RelayBackend.metrics import messages_total
from RelayBackend.services.active_window import format_local_time
from RelayBackend.services.telegram_client import TelegramClientProvider
from shared.config import RelayConfig
from shared.exceptions import ConfigurationError, FloodWaitError, RateLimitError

logger = logging.getLogger("botrelay.forwarder")

PREVIEW_CHARS = 100
DEFAULT_FLOOD_WAIT_SECONDS = 60

_DIGITS_RE = re.compile(r"\d+")


class MessageOutcome(str, enum.Enum):
    FORWARDED = "forwarded"
    TOO_OLD = "too_old"
    NOT_FROM_BOT = "not_from_bot"
    NO_SENDER_INFO = "no_sender_info"
    ERROR = "error"


@dataclass
class ForwardedMessage:
    id: int
    text: str
    # `from` is a keyword; serialized under that name by to_dict().
    sender: Union[str, int]
    timestamp: int
    timestamp_ist: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "from": self.sender,
            "timestamp": self.timestamp,
            "timestamp_ist": self.timestamp_ist,
        }


@dataclass
class SkippedMessage:
    id: int
    reason: MessageOutcome
    timestamp: Optional[int] = None
    sender: Optional[Union[str, int]] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"id": self.id, "reason": self.reason.value}
        if self.timestamp is not None:
            out["timestamp"] = self.timestamp
        if self.sender is not None:
            out["from"] = self.sender
        if self.error is not None:
            out["error"] = self.error
        return out


@dataclass(frozen=True)
class ForwardSettings:
    check_interval_seconds: int
    max_messages_per_check: int
    lookback_minutes: int
    delay_between_forwards_ms: int


@dataclass
class ForwardSummary:
    settings: ForwardSettings
    forwarded_messages: List[ForwardedMessage] = field(default_factory=list)
    skipped_messages: List[SkippedMessage] = field(default_factory=list)

    @property
    def forwarded(self) -> int:
        return len(self.forwarded_messages)

    @property
    def skipped(self) -> int:
        return len(self.skipped_messages)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "forwarded": self.forwarded,
            "skipped": self.skipped,
            "messages": [m.to_dict() for m in self.forwarded_messages],
            "skipped_details": [m.to_dict() for m in self.skipped_messages],
            "settings": asdict(self.settings),
        }


def preview_text(text: Optional[str], limit: int = PREVIEW_CHARS) -> str:
    text = text or ""
    if len(text) > limit:
        return text[:limit] + "..."
    return text


def peer_ref(value: str) -> Union[int, str]:
    """Numeric chat ids ("-100123...") must reach Telethon as ints, usernames stay strings."""
    s = str(value or "").strip()
    if s.lstrip("-").isdigit():
        return int(s)
    return s


def flood_wait_seconds(exc: BaseException) -> Optional[int]:
    """Seconds Telegram asked us to wait, or None when `exc` is not flood control."""
    if isinstance(exc, RateLimitError):
        return exc.wait_seconds
    if isinstance(exc, (TelethonFloodWaitError, SlowModeWaitError)):
        return int(getattr(exc, "seconds", 0) or DEFAULT_FLOOD_WAIT_SECONDS)
    text = f"{getattr(exc, 'message', '') or ''} {exc}"
    if "FLOOD_WAIT" not in text:
        return None
    m = _DIGITS_RE.search(text)
    return int(m.group(0)) if m else DEFAULT_FLOOD_WAIT_SECONDS


def _epoch_seconds(dt: Optional[datetime]) -> Optional[int]:
    if not isinstance(dt, datetime):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp())


def _sender_label(sender: Any) -> Union[str, int]:
    return getattr(sender, "username", None) or getattr(sender, "id", None)


async def _sleep(seconds: float) -> None:
    await asyncio.sleep(seconds)


class ForwarderService:
    def __init__(
        self,
        cfg: RelayConfig,
        client_provider: TelegramClientProvider,
        *,
        sleep: Callable[[float], Awaitable[None]] = _sleep,
    ):
        self.cfg = cfg
        self.client_provider = client_provider
        self._sleep = sleep

    @property
    def settings(self) -> ForwardSettings:
        return ForwardSettings(
            check_interval_seconds=int(self.cfg.check_interval_seconds),
            max_messages_per_check=int(self.cfg.max_messages_per_check),
            lookback_minutes=int(self.cfg.message_lookback_minutes),
            delay_between_forwards_ms=int(self.cfg.delay_between_forwards_ms),
        )

    async def check_and_forward(self, now: Optional[datetime] = None) -> ForwardSummary:
        target = (self.cfg.target_group_chat_id or "").strip()
        if not target:
            raise ConfigurationError("Missing target group. Set TARGET_GROUP_CHAT_ID.")

        settings = self.settings
        client = await self.client_provider.get_client()
        logger.info("telegram_client_ready")

        now = now or datetime.now(timezone.utc)
        cutoff = now - timedelta(minutes=settings.lookback_minutes)
        source = peer_ref(self.cfg.source_peer)
        target_ref = peer_ref(target)

        log_event(
            logger,
            logging.INFO,
            "fetching_messages",
            limit=settings.max_messages_per_check,
            lookback_minutes=settings.lookback_minutes,
        )
        try:
            messages = await client.get_messages(source, limit=settings.max_messages_per_check)
        except Exception as e:
            wait = flood_wait_seconds(e)
            if wait is not None:
                raise FloodWaitError(wait, cause=e) from e
            raise
        logger.info("processing_messages count=%s", len(messages))

        summary = ForwardSummary(settings=settings)
        reached_old = False
        for message in messages:
            message_id = getattr(message, "id", None)
            try:
                date = getattr(message, "date", None)
                if reached_old or (isinstance(date, datetime) and _epoch_seconds(date) < cutoff.timestamp()):
                    summary.skipped_messages.append(
                        SkippedMessage(id=message_id, reason=MessageOutcome.TOO_OLD, timestamp=_epoch_seconds(date))
                    )
                    # Results arrive newest first, so everything after the first old one is old too.
                    reached_old = bool(self.cfg.stop_at_first_old_message)
                    continue

                from_id = getattr(message, "from_id", None)
                if from_id is None:
                    summary.skipped_messages.append(SkippedMessage(id=message_id, reason=MessageOutcome.NO_SENDER_INFO))
                    continue

                sender = await client.get_entity(from_id)
                label = _sender_label(sender)
                if not getattr(sender, "bot", False):
                    summary.skipped_messages.append(
                        SkippedMessage(id=message_id, reason=MessageOutcome.NOT_FROM_BOT, sender=label)
                    )
                    continue

                log_event(logger, logging.INFO, "forwarding_message", message_id=message_id, peer=str(label))
                await client.forward_messages(target_ref, message_id, from_peer=source)
                summary.forwarded_messages.append(
                    ForwardedMessage(
                        id=message_id,
                        text=preview_text(getattr(message, "text", None) or getattr(message, "message", None)),
                        sender=label,
                        timestamp=_epoch_seconds(date),
                        timestamp_ist=format_local_time(date, self.cfg.tz) if isinstance(date, datetime) else "",
                    )
                )
                await self._sleep(settings.delay_between_forwards_ms / 1000.0)
            except Exception as e:
                logger.exception("message_processing_failed", extra={"message_id": message_id})
                summary.skipped_messages.append(SkippedMessage(id=message_id, reason=MessageOutcome.ERROR, error=str(e)))

        if summary.forwarded:
            messages_total.labels(outcome=MessageOutcome.FORWARDED.value).inc(summary.forwarded)
        for m in summary.skipped_messages:
            messages_total.labels(outcome=m.reason.value).inc()

        log_event(logger, logging.INFO, "processing_complete", forwarded=summary.forwarded, skipped=summary.skipped)
        return summary
