import logging
import time
import uuid
from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from RelayBackend.app_context import get_app_context
from RelayBackend.metrics import observe_request
from RelayBackend.routes.check_routes import router as check_router
from RelayBackend.routes.health_routes import router as health_router
from RelayBackend.routes.session_routes import router as session_router
from shared.config import load_relay_config


logger = logging.getLogger("botrelay")

app = FastAPI(title="BotRelay", version="0.1.0")

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


def _parse_origins(raw: str) -> list:
    raw = (raw or "*").strip()
    if raw == "*":
        return ["*"]
    return [o.strip() for o in raw.split(",") if o.strip()]


origins = _parse_origins(load_relay_config().cors_allow_origins)
if origins == ["*"]:
    # Any origin: static headers on every response, and preflights reach the OPTIONS routes (empty 200).
    _STATIC_CORS_HEADERS = CORS_HEADERS
else:
    _STATIC_CORS_HEADERS = {}
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

for _router in (health_router, check_router, session_router):
    app.include_router(_router)
    # Paths used by the original serverless deployment.
    app.include_router(_router, prefix="/api", include_in_schema=False)


@app.on_event("startup")
def _startup_log() -> None:
    ctx = get_app_context()
    logger.info(
        "startup",
        extra={
            "active_hours": ctx.window.label,
            "check_interval_seconds": ctx.cfg.check_interval_seconds,
            **ctx.cfg.presence_flags(),
        },
    )


@app.on_event("shutdown")
async def _shutdown() -> None:
    ctx = get_app_context()
    await ctx.client_provider.disconnect()
    await ctx.session_setup.close()


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    error = "Method not allowed" if exc.status_code == 405 else exc.detail
    return JSONResponse(status_code=exc.status_code, content={"error": error}, headers=getattr(exc, "headers", None))


def _request_fields(request: Request, request_id: str, status_code: int) -> Dict[str, Any]:
    return {
        "request_id": request_id,
        "method": request.method,
        "path": request.url.path,
        "status_code": status_code,
    }


@app.middleware("http")
async def access_log_middleware(request: Request, call_next):
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    started = time.perf_counter()
    status_code = 500

    try:
        response = await call_next(request)
    except Exception:
        logger.exception("http_exception", extra=_request_fields(request, request_id, status_code))
        raise
    else:
        status_code = response.status_code or 200
        response.headers["x-request-id"] = request_id
        for key, value in _STATIC_CORS_HEADERS.items():
            response.headers.setdefault(key, value)
        return response
    finally:
        latency_s = time.perf_counter() - started
        try:
            observe_request(method=request.method, path=request.url.path, status_code=status_code, latency_s=latency_s)
        except Exception:
            logger.exception("observe_request_failed")
        fields = _request_fields(request, request_id, status_code)
        fields["latency_ms"] = round(latency_s * 1000.0, 2)
        fields["client_ip"] = request.client.host if request.client else None
        logger.info("http_request", extra=fields)
