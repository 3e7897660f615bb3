from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from RelayBackend.app_context import AppContext, get_app_context
from RelayBackend.metrics import metrics_payload

router = APIRouter()


@router.get("/metrics")
def metrics() -> Response:
    data, content_type = metrics_payload()
    return Response(content=data, media_type=content_type)


@router.get("/health")
def health(ctx: AppContext = Depends(get_app_context)) -> Dict[str, Any]:
    return ctx.health_service.basic_health()


@router.options("/health")
def health_preflight() -> Response:
    return Response(status_code=200)
