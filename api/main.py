"""FastAPI application for the Star Wars resource API."""

import asyncio
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from http import HTTPStatus
from pathlib import Path
from typing import Any

import fastapi
from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

from core.config import get_settings
from core.database import (
    create_engine,
    create_session_maker,
    dispose_engine,
    init_db,
    warm_pool,
)
from core.logger import configure_logging, get_logger
from core.middleware import RequestContextMiddleware, SecurityHeadersMiddleware
from core.ratelimit import get_request_identifier, limiter
from core.wide_event import set_wide_event_fields
from routes import auth_router, health_router, resource_routers
from schemas import ErrorResponse
from services.errors import ResourceError

configure_logging()
logger = get_logger(__name__)


def error_response(
    request: Request,
    status_code: int,
    error: str,
    message: str,
    details: list[dict[str, Any]] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Uniform error body shared by every handler below."""
    set_wide_event_fields(error=error, error_message=message)
    body = ErrorResponse(
        status_code=status_code,
        error=error,
        message=message,
        timestamp=datetime.now(UTC),
        path=request.url.path,
        method=request.method,
        details=details,
    )
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json", by_alias=True, exclude_none=True),
        headers=headers,
    )


async def resource_error_handler(request: Request, exc: Exception) -> JSONResponse:
    if not isinstance(exc, ResourceError):
        return error_response(request, 500, "InternalError", "Unexpected error")
    if exc.status_code >= 500:
        logger.warning("resource.transient_error", error=str(exc))
    return error_response(request, exc.status_code, exc.error, str(exc))


async def http_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    if not isinstance(exc, StarletteHTTPException):
        return error_response(request, 500, "InternalError", "Unexpected error")
    try:
        error = HTTPStatus(exc.status_code).phrase.replace(" ", "")
    except ValueError:
        error = "HTTPError"
    return error_response(
        request,
        exc.status_code,
        error,
        str(exc.detail),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request, exc: Exception
) -> JSONResponse:
    """Handler for request validation errors."""
    if not isinstance(exc, RequestValidationError):
        return error_response(request, 500, "InternalError", "Unexpected error")

    errors = exc.errors()
    logger.warning(
        "request.validation_error",
        path=request.url.path,
        method=request.method,
        error_count=len(errors),
    )
    return error_response(
        request,
        422,
        "ValidationError",
        "Request validation failed",
        details=jsonable_encoder(errors),
    )


async def database_unavailable_handler(
    request: Request, exc: Exception
) -> JSONResponse:
    logger.warning("db.unavailable", error=str(exc))
    return error_response(
        request,
        503,
        "TransientError",
        "Database temporarily unavailable. Please retry.",
        headers={"Retry-After": "5"},
    )


async def rate_limit_exceeded_handler(
    request: Request, exc: Exception
) -> JSONResponse:
    if not isinstance(exc, RateLimitExceeded):
        return error_response(request, 500, "InternalError", "Unexpected error")
    logger.warning(
        "ratelimit.exceeded",
        identifier=get_request_identifier(request),
        limit=exc.detail,
    )
    return error_response(
        request,
        429,
        "RateLimitExceeded",
        f"Rate limit exceeded: {exc.detail}",
        headers={"Retry-After": "60"},
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last-resort handler for unhandled exceptions."""
    logger.exception(
        "unhandled.exception",
        exc_type=type(exc).__name__,
        path=request.url.path,
        method=request.method,
    )
    return error_response(
        request,
        500,
        "InternalError",
        "An unexpected error occurred. Please try again.",
    )


async def _run_alembic_migrations() -> None:
    """Run Alembic migrations in a subprocess.

    psycopg2's connection pool cleanup deadlocks inside
    asyncio.to_thread when uvloop is the event loop.  Running
    migrations as a subprocess avoids the issue entirely.
    """
    import subprocess
    import sys

    cmd = [sys.executable, "cli.py", "migrate"]
    cwd = Path(__file__).parent

    result = await asyncio.to_thread(
        lambda: subprocess.run(
            cmd, cwd=cwd, capture_output=True, text=True, timeout=120
        )
    )

    if result.returncode != 0:
        stderr = result.stderr.strip()
        logger.error("migrations.failed", stderr=stderr)
        raise RuntimeError(f"Alembic migration failed:\n{stderr}")

    logger.info("migrations.complete")


@asynccontextmanager
async def lifespan(app: fastapi.FastAPI):
    """Create DB engine at startup, dispose on shutdown."""
    settings = get_settings()
    app.state.engine = create_engine()
    app.state.session_maker = create_session_maker(app.state.engine)

    app.state.init_done = False
    app.state.init_error = None

    try:
        async with asyncio.timeout(60):
            await init_db(app.state.engine)

        if settings.run_migrations_on_startup:
            async with asyncio.timeout(120):
                await _run_alembic_migrations()

        app.state.init_done = True
        logger.info("init.complete")
    except TimeoutError:
        logger.error(
            "init.timeout",
            hint="Startup hung - check DB connectivity and migration state",
        )
        raise RuntimeError("Application startup timed out") from None
    except Exception as e:
        app.state.init_error = str(e)
        logger.error("init.failed", error=str(e), exc_info=True)
        raise

    warmup_task = asyncio.create_task(warm_pool(app.state.engine))

    try:
        yield
    finally:
        if not warmup_task.done():
            warmup_task.cancel()
        try:
            await warmup_task
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.exception("background.task.failed")

        await dispose_engine(app.state.engine)


def create_app() -> fastapi.FastAPI:
    settings = get_settings()
    docs_enabled = settings.enable_docs or settings.debug

    app = fastapi.FastAPI(
        title="Star Wars Resource API",
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs" if docs_enabled else None,
        redoc_url="/redoc" if docs_enabled else None,
        openapi_url="/openapi.json" if docs_enabled else None,
    )

    app.state.limiter = limiter
    app.add_exception_handler(ResourceError, resource_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(OperationalError, database_unavailable_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_exception_handler(Exception, global_exception_handler)

    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(SecurityHeadersMiddleware)

    if settings.allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.allowed_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
            allow_headers=["Authorization", "Content-Type"],
            expose_headers=["X-Request-Duration-Ms", "X-Request-Id"],
            max_age=600,
        )

    # Outermost, so the completion log covers every other layer
    app.add_middleware(RequestContextMiddleware)

    app.include_router(health_router)
    app.include_router(auth_router)
    for router in resource_routers:
        app.include_router(router)

    return app


app = create_app()
