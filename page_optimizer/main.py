"""FastAPI application for the page optimizer.

Routes live under /api/v1; /health, /health/db and /health/redis report
liveness. Error bodies produced here share one shape,
``{"error": str, "code": str, "request_id": str}``. Every request gets an
``X-Request-ID`` header and one completion log line whose level follows the
status code.
"""

import json
import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from page_optimizer.api.v1 import router as api_v1_router
from page_optimizer.core.config import get_settings
from page_optimizer.core.database import db_manager
from page_optimizer.core.logging import get_logger, setup_logging
from page_optimizer.core.redis import redis_manager

setup_logging()
logger = get_logger(__name__)

REDACTED_KEYS = frozenset(
    {"password", "application_password", "token", "secret", "api_key", "authorization"}
)


def redact(body: Any) -> Any:
    """Copy of a JSON body with credential values masked, at any depth."""
    if isinstance(body, dict):
        return {
            key: "****" if key.lower() in REDACTED_KEYS else redact(value)
            for key, value in body.items()
        }
    if isinstance(body, list):
        return [redact(item) for item in body]
    return body


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "unknown")


def _error(request: Request, status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": message, "code": code, "request_id": _request_id(request)},
    )


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Any) -> Any:
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        start_time = time.monotonic()

        if request.method in ("POST", "PUT", "PATCH") and logger.isEnabledFor(logging.DEBUG):
            raw = await request.body()
            try:
                logged: Any = redact(json.loads(raw)) if raw else None
            except json.JSONDecodeError:
                logged = f"<{len(raw)} bytes, not JSON>"
            logger.debug("Request body", extra={"request_id": request_id, "body": logged})

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        extra = {
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": round((time.monotonic() - start_time) * 1000, 2),
        }
        if response.status_code >= 500:
            logger.error("Request failed", extra=extra)
        elif response.status_code >= 400:
            logger.warning("Request rejected", extra=extra)
        else:
            logger.info("Request completed", extra=extra)
        return response


@asynccontextmanager
async def lifespan(app: FastAPI) -> Any:
    settings = get_settings()
    logger.info(
        "Starting page optimizer",
        extra={"version": settings.app_version, "environment": settings.environment},
    )
    db_manager.init_db()
    await redis_manager.init_redis()

    yield

    await redis_manager.close()
    await db_manager.close()
    logger.info("Page optimizer stopped")


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        message = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
            for err in exc.errors()
        )
        logger.warning(
            "Request validation failed",
            extra={"request_id": _request_id(request), "error_message": message},
        )
        return _error(request, status.HTTP_422_UNPROCESSABLE_ENTITY, "VALIDATION_ERROR", message)

    @app.exception_handler(status.HTTP_429_TOO_MANY_REQUESTS)
    async def rate_limited(request: Request, exc: Exception) -> JSONResponse:
        logger.warning(
            "Rate limit exceeded",
            extra={
                "request_id": _request_id(request),
                "path": request.url.path,
                "client_ip": request.client.host if request.client else None,
            },
        )
        return _error(
            request,
            status.HTTP_429_TOO_MANY_REQUESTS,
            "RATE_LIMIT_EXCEEDED",
            "Too many requests. Please try again later.",
        )

    @app.exception_handler(Exception)
    async def unhandled(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled exception",
            extra={
                "request_id": _request_id(request),
                "error_type": type(exc).__name__,
                "error_message": str(exc),
            },
            exc_info=True,
        )
        return _error(
            request,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "INTERNAL_ERROR",
            "An internal error occurred. Please try again later.",
        )


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url=None,
        lifespan=lifespan,
    )

    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url] if settings.frontend_url else ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    _register_error_handlers(app)

    @app.get("/health", tags=["Health"])
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/health/db", tags=["Health"])
    async def database_health() -> dict[str, str | bool]:
        healthy = await db_manager.check_connection()
        return {"status": "ok" if healthy else "error", "database": healthy}

    @app.get("/health/redis", tags=["Health"])
    async def redis_health() -> dict[str, str | bool]:
        healthy = await redis_manager.check_health()
        breaker = redis_manager.circuit_breaker
        return {
            "status": "ok" if healthy else "unavailable",
            "redis": healthy,
            "circuit_breaker": breaker.state.value if breaker else "not_initialized",
        }

    app.include_router(api_v1_router, prefix="/api/v1")
    return app


app = create_app()
