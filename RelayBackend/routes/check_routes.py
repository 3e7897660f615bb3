from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, Response

from RelayBackend.app_context import AppContext, get_app_context
from RelayBackend.logging_setup import log_event
from RelayBackend.metrics import checks_total, flood_waits_total
from RelayBackend.services.active_window import format_local_time
from RelayBackend.services.forwarder import flood_wait_seconds

router = APIRouter()
logger = logging.getLogger("botrelay.check")


def _next_check(ctx: AppContext, now: datetime) -> datetime:
    return now + timedelta(seconds=int(ctx.cfg.check_interval_seconds))


@router.api_route("/check-messages", methods=["GET", "POST"])
async def check_messages(ctx: AppContext = Depends(get_app_context)) -> Any:
    now = datetime.now(timezone.utc)
    current_time = format_local_time(now, ctx.cfg.tz)
    log_event(logger, logging.INFO, "check_started", path="/check-messages")

    try:
        if not ctx.window.is_within_active_hours(now):
            logger.info("outside_active_hours window=%s", ctx.window.label)
            checks_total.labels(result="inactive").inc()
            return {
                "success": True,
                "active": False,
                "message": f"Outside active hours ({ctx.window.label}). Current time: {current_time}. No messages processed.",
                "current_time_ist": current_time,
                "active_hours": ctx.window.label,
                "next_check": _next_check(ctx, now).isoformat(),
            }

        decision = ctx.rate_limiter.try_acquire()
        if not decision.allowed:
            checks_total.labels(result="rate_limited").inc()
            return JSONResponse(
                status_code=429,
                content={
                    "error": "Rate limited",
                    "message": f"Please wait {decision.wait_seconds} seconds before checking again",
                    "wait_seconds": decision.wait_seconds,
                },
            )

        summary = await ctx.forwarder.check_and_forward(now)
    except Exception as e:
        wait = flood_wait_seconds(e)
        if wait is not None:
            log_event(logger, logging.ERROR, "flood_wait", wait_seconds=wait)
            flood_waits_total.inc()
            checks_total.labels(result="flood_wait").inc()
            return JSONResponse(
                status_code=429,
                content={
                    "error": "Telegram rate limit",
                    "message": f"Telegram requires waiting {wait} seconds",
                    "wait_seconds": wait,
                    "current_time_ist": format_local_time(datetime.now(timezone.utc), ctx.cfg.tz),
                },
            )

        logger.exception("check_failed")
        checks_total.labels(result="error").inc()
        return JSONResponse(
            status_code=500,
            content={
                "error": "Failed to process messages",
                "details": str(e),
                "current_time_ist": format_local_time(datetime.now(timezone.utc), ctx.cfg.tz),
            },
        )

    checks_total.labels(result="ok").inc()
    finished = datetime.now(timezone.utc)
    body: Dict[str, Any] = {"success": True, "active": True}
    body.update(summary.to_dict())
    body.update(
        {
            "current_time_ist": current_time,
            "active_hours": ctx.window.label,
            "next_check": _next_check(ctx, finished).isoformat(),
            "next_check_ist": format_local_time(_next_check(ctx, finished), ctx.cfg.tz),
        }
    )
    return body


@router.options("/check-messages")
def check_messages_preflight() -> Response:
    return Response(status_code=200)
