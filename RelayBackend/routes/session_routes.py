from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError

from RelayBackend.app_context import AppContext, get_app_context
from RelayBackend.models import SetupSessionRequest
from RelayBackend.services.session_setup import friendly_setup_error
from shared.exceptions import ConfigurationError
from shared.observability import swallow_exception

router = APIRouter()
logger = logging.getLogger("botrelay.setup")


async def _parse_setup_request(request: Request) -> SetupSessionRequest:
    if not (await request.body()).strip():
        return SetupSessionRequest()
    try:
        body = await request.json()
    except Exception as e:
        swallow_exception(e, context="setup_session_body_parse", extra={"module": __name__})
        body = {}
    if not isinstance(body, dict):
        body = {}
    try:
        return SetupSessionRequest.model_validate(body)
    except ValidationError as e:
        swallow_exception(e, context="setup_session_body_validate", extra={"module": __name__})
        return SetupSessionRequest()


@router.post("/setup-session")
async def setup_session(request: Request, ctx: AppContext = Depends(get_app_context)) -> Any:
    req = await _parse_setup_request(request)

    try:
        ctx.session_setup.require_api_credentials()
    except ConfigurationError as e:
        return JSONResponse(status_code=400, content={"error": "Missing API credentials", "message": str(e)})

    try:
        session = await ctx.session_setup.create_session(req.phone_code)
    except Exception as e:
        logger.exception("session_setup_failed")
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": "Session setup failed",
                "message": friendly_setup_error(e),
                "details": str(e),
            },
        )

    body: Dict[str, Any] = {
        "success": True,
        "session": session,
        "message": "Session setup completed successfully. Save this session string in USER_STRING_SESSION environment variable.",
    }
    return body


@router.options("/setup-session")
def setup_session_preflight() -> Response:
    return Response(status_code=200)
