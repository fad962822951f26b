# app/main.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# --- Logging & request-id ---
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response as StarletteResponse

from app.config import settings
from app.core.logging import configure_logging, logger
from app.core.request_id import clear_request_id, new_request_id, set_request_id
from app.deps.rate_limiting import require_rate_limit_factory

from api.routers.feedback import router as feedback_router
from api.routers.feeds import router as feeds_router
from api.routers.gemini import router as gemini_router
from api.routers.proxy import router as proxy_router
from api.routers.social import router as social_router
from api.routers.summaries import router as summaries_router

configure_logging(service_name="api")

app = FastAPI(
    title="Military Message Hub - Backend",
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
)


def _cors_headers(origin: Optional[str]) -> Dict[str, str]:
    if origin and origin in settings.CORS_ALLOWED_ORIGINS:
        return {
            "Access-Control-Allow-Origin": origin,
            "Access-Control-Allow-Credentials": "true",
            "Vary": "Origin",
        }
    return {}


class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        req_id = request.headers.get("x-request-id") or new_request_id()
        set_request_id(req_id)

        logger.info("request_started", method=request.method, path=str(request.url.path))
        try:
            response: StarletteResponse = await call_next(request)
        except Exception as exc:
            logger.error("request_exception", error=str(exc.__class__.__name__))
            clear_request_id()
            raise
        logger.info("request_ended", status_code=response.status_code)
        response.headers["X-Request-Id"] = req_id
        clear_request_id()
        return response


# CORS is added first so it is the outermost middleware.
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.CORS_ALLOWED_ORIGINS),
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS", "HEAD"],
    allow_headers=["*"],
    expose_headers=["Content-Length", "X-Request-Id", "Retry-After"],
)
app.add_middleware(RequestIdMiddleware)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    origin = request.headers.get("origin")
    headers = dict(exc.headers or {})
    headers.update(_cors_headers(origin))
    # Routes that answer with a JSON envelope pass it as the detail.
    content = exc.detail if isinstance(exc.detail, dict) else {"detail": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    headers = _cors_headers(request.headers.get("origin"))
    logger.exception("unhandled_exception", exc_info=True)
    return JSONResponse(status_code=500, content={"detail": "Internal Server Error"}, headers=headers)


# --- Health endpoints ---
@app.get("/")
async def root():
    return {"ok": True, "app": "Military Message Hub", "message": "Up & running"}


@app.head("/")
async def root_head():
    return Response(status_code=200)


@app.get("/health")
async def health():
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
    }


# --- Universal preflight ---
@app.options("/{rest_of_path:path}")
async def any_preflight(rest_of_path: str) -> Response:
    return Response(status_code=204)


# --- /api ---
# Every route below shares the global per-caller limit.
api_router = APIRouter(
    prefix="/api",
    dependencies=[Depends(require_rate_limit_factory("api"))],
)
api_router.include_router(feeds_router)
api_router.include_router(proxy_router)
api_router.include_router(summaries_router)
api_router.include_router(social_router)
api_router.include_router(gemini_router)
api_router.include_router(feedback_router)

app.include_router(api_router)

logger.info(
    "routers_registered",
    routers=["feeds", "proxy", "summaries", "social", "gemini", "feedback"],
)
