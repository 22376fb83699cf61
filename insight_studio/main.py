"""FastAPI application entry point.

Deployment Requirements:
- Binds to PORT from environment variable
- Health endpoint at /health for platform health checks
- Graceful shutdown: analysis sessions cancelled, clients closed
- All logs to stdout

Error Logging Requirements:
- Log all incoming requests with method, path, request_id
- Log request body at DEBUG level (sanitize sensitive fields)
- Log response status and timing for every request
- Return structured error responses: {"error": str, "code": str, "request_id": str, "retriable": bool}
- Log 4xx errors at WARNING, 5xx at ERROR
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

from insight_studio.api.v1 import router as api_v1_router
from insight_studio.core.config import get_settings
from insight_studio.core.database import db_manager
from insight_studio.core.errors import InsightStudioError
from insight_studio.core.logging import get_logger, setup_logging
from insight_studio.core.redis import redis_manager
from insight_studio.integrations.claude import close_claude, get_claude, init_claude
from insight_studio.integrations.s3 import close_s3, get_s3, init_s3
from insight_studio.integrations.website_fetcher import (
    close_website_fetcher,
    init_website_fetcher,
)
from insight_studio.services.analysis import AnalysisDispatcher, ClaudeAnalysisBackend
from insight_studio.services.analysis_session import (
    close_session_manager,
    init_session_manager,
)
from insight_studio.services.insight_store import (
    InsightRepository,
    close_insight_store,
    init_insight_store,
)

# Set up logging before anything else
setup_logging()
logger = get_logger(__name__)

# Sensitive fields to redact from request body logs
SENSITIVE_FIELDS = {
    "password",
    "token",
    "secret",
    "api_key",
    "apikey",
    "authorization",
}


def sanitize_body(body: Any) -> Any:
    """Redact sensitive fields from request body for logging."""
    if not isinstance(body, dict):
        return body
    sanitized: dict[str, Any] = {}
    for key, value in body.items():
        if key.lower() in SENSITIVE_FIELDS:
            sanitized[key] = "****"
        elif isinstance(value, dict):
            sanitized[key] = sanitize_body(value)
        else:
            sanitized[key] = value
    return sanitized


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware to log all incoming requests with timing and request_id."""

    async def dispatch(self, request: Request, call_next: Any) -> Any:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        start_time = time.monotonic()
        method = request.method
        path = request.url.path

        logger.info(
            "Request started",
            extra={
                "request_id": request_id,
                "method": method,
                "path": path,
                "query_params": str(request.query_params) if request.query_params else None,
            },
        )

        # Multipart bodies are skipped; only JSON is logged
        content_type = request.headers.get("content-type", "")
        if (
            method not in ("GET", "HEAD", "OPTIONS")
            and content_type.startswith("application/json")
            and logger.isEnabledFor(logging.DEBUG)
        ):
            body = await request.body()
            if body:
                try:
                    logger.debug(
                        "Request body",
                        extra={"request_id": request_id, "body": sanitize_body(json.loads(body))},
                    )
                except json.JSONDecodeError:
                    logger.debug(
                        "Request body (non-JSON)",
                        extra={"request_id": request_id, "body_length": len(body)},
                    )

        response = await call_next(request)

        duration_ms = (time.monotonic() - start_time) * 1000
        status_code = response.status_code
        response.headers["X-Request-ID"] = request_id

        log_extra = {
            "request_id": request_id,
            "method": method,
            "path": path,
            "status_code": status_code,
            "duration_ms": round(duration_ms, 2),
        }

        if status_code >= 500:
            logger.error("Request failed", extra=log_extra)
        elif status_code >= 400:
            logger.warning("Request error", extra=log_extra)
        else:
            logger.info("Request completed", extra=log_extra)

        return response


@asynccontextmanager
async def lifespan(app: FastAPI) -> Any:
    """Application lifespan manager for startup/shutdown.

    Handles:
    - Database and Redis initialization
    - Insight store, Claude, S3 and website fetcher clients
    - Analysis session manager (cancelled on shutdown)
    """
    settings = get_settings()
    logger.info(
        "Starting application",
        extra={
            "app_name": settings.app_name,
            "version": settings.app_version,
            "environment": settings.environment,
        },
    )

    try:
        db_manager.init_db()
        logger.info("Database initialized")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise

    # Redis is optional: insights fall back to an in-process store
    redis_available = await redis_manager.init_redis()
    if redis_available:
        logger.info("Redis initialized")
    else:
        logger.info("Redis not available, insights kept in process")
    store = init_insight_store(redis_manager if redis_available else None)

    claude = await init_claude()
    await init_s3()
    fetcher = await init_website_fetcher()

    dispatcher = AnalysisDispatcher(
        ClaudeAnalysisBackend(claude, fetcher),
        claude_available=claude.available,
    )
    init_session_manager(dispatcher, InsightRepository(store))

    yield

    logger.info("Shutting down application")
    await close_session_manager()
    close_insight_store()
    await close_website_fetcher()
    await close_s3()
    await close_claude()
    await redis_manager.close()
    await db_manager.close()
    logger.info("Application shutdown complete")


def _error_response(
    request: Request,
    status_code: int,
    error: str,
    code: str,
    retriable: bool = False,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": error,
            "code": code,
            "request_id": getattr(request.state, "request_id", "unknown"),
            "retriable": retriable,
        },
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    # Request logging middleware (added first, runs last)
    app.add_middleware(RequestLoggingMiddleware)

    # CORS middleware - use FRONTEND_URL when set, allow all origins otherwise
    cors_origins: list[str] = ["*"]
    if settings.frontend_url:
        cors_origins = [settings.frontend_url]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )

    @app.exception_handler(InsightStudioError)
    async def application_exception_handler(
        request: Request, exc: InsightStudioError
    ) -> JSONResponse:
        """Render application errors with their status, code and retriable flag."""
        log_extra = {
            "request_id": getattr(request.state, "request_id", "unknown"),
            "code": exc.code,
            "error_message": exc.message,
            **{f"context_{k}": v for k, v in exc.context.items()},
        }
        if exc.status_code >= 500:
            logger.error("Application error", extra=log_extra)
        else:
            logger.warning("Application error", extra=log_extra)
        return _error_response(request, exc.status_code, exc.message, exc.code, exc.retriable)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Handle validation errors with structured response."""
        errors = exc.errors()
        error_msg = "; ".join(
            f"{'.'.join(str(loc) for loc in e['loc'])}: {e['msg']}" for e in errors
        )
        logger.warning(
            "Validation error",
            extra={
                "request_id": getattr(request.state, "request_id", "unknown"),
                "error_count": len(errors),
            },
        )
        return _error_response(
            request, status.HTTP_422_UNPROCESSABLE_ENTITY, error_msg, "VALIDATION_ERROR"
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected errors with structured response."""
        logger.error(
            "Unhandled exception",
            extra={
                "request_id": getattr(request.state, "request_id", "unknown"),
                "error_type": type(exc).__name__,
                "error_message": str(exc),
            },
            exc_info=True,
        )
        return _error_response(
            request,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "An internal error occurred. Please try again later.",
            "INTERNAL_ERROR",
        )

    @app.get("/health", tags=["Health"])
    async def health_check() -> dict[str, str]:
        """Returns {"status": "ok"} if the service is running."""
        return {"status": "ok"}

    @app.get("/health/db", tags=["Health"])
    async def database_health() -> dict[str, str | bool]:
        """Check database connectivity."""
        is_healthy = await db_manager.check_connection()
        return {
            "status": "ok" if is_healthy else "error",
            "database": is_healthy,
        }

    @app.get("/health/redis", tags=["Health"])
    async def redis_health() -> dict[str, str | bool]:
        """Check Redis connectivity."""
        is_healthy = await redis_manager.check_health()
        circuit_state = (
            redis_manager.circuit_breaker.state.value
            if redis_manager.circuit_breaker
            else "not_initialized"
        )
        return {
            "status": "ok" if is_healthy else "unavailable",
            "redis": is_healthy,
            "circuit_breaker": circuit_state,
        }

    @app.get("/health/integrations", tags=["Health"])
    async def integrations_health() -> dict[str, Any]:
        """Configuration state of Claude and S3 (no network calls to Claude)."""
        claude = await get_claude()
        s3 = await get_s3()
        return {
            "claude": {
                "available": claude.available,
                "key_problem": claude.key_problem,
                "api_key_hint": claude.api_key_hint,
                "model": claude.model,
                "circuit_breaker": claude.circuit_breaker.state.value,
            },
            "s3": {
                "available": s3.available,
                "bucket": s3.bucket,
                "circuit_breaker": s3.circuit_breaker.state.value,
            },
        }

    app.include_router(api_v1_router)

    return app


# Create the application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "insight_studio.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
