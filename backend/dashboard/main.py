"""
Dashboard Backend — FastAPI Application Factory
=================================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() registers middleware, exception handlers and routers.
Who:   uvicorn (uvicorn dashboard.main:app) and the test client.

Application Architecture:
    ┌─────────────────────────────────────────────────────────┐
    │                     FastAPI App                         │
    │                                                         │
    │  Middleware Chain:                                      │
    │  ┌──────────┐ ┌──────────────────┐ ┌─────────────────┐  │
    │  │  Req ID  │→│ Upload rate limit│→│  Access log     │  │
    │  └──────────┘ └──────────────────┘ └─────────────────┘  │
    │                                                         │
    │  Routes:                                                │
    │  POST /api/users/upload        GET /api/users           │
    │  GET  /api/users/{id}/profile  GET /api/users/{id}      │
    │  GET  /health                                           │
    │                                                         │
    │  Exception Handlers:                                    │
    │  Input→400 │ Unauthorized→401 │ Forbidden→403 │         │
    │  NotFound→404 │ Storage/DB→500 │ (429 from middleware)  │
    └─────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  logging, configuration warnings, storage root creation
    Shutdown: dispose database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from dashboard import __version__
from dashboard.config import settings
from dashboard.database import dispose_engine
from dashboard.exceptions import (
    DatabaseError,
    DashboardError,
    ForbiddenError,
    InputError,
    NotFoundError,
    StorageError,
    UnauthorizedError,
)
from dashboard.middleware.logging import RequestLoggingMiddleware
from dashboard.middleware.rate_limit import UploadRateLimitMiddleware
from dashboard.middleware.request_id import RequestIDMiddleware, request_id_var
from dashboard.routes import health, users

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure the root logger once at startup.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    Output: stdout (collected by Docker)
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Third-party libraries that log every operation at INFO
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging()
    logger.info("=" * 60)
    logger.info("Dashboard backend starting up...")

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Not fatal: development runs without a signing secret
        logger.warning("Configuration warning: %s", str(e))

    storage = Path(settings.upload_storage_path)
    storage.mkdir(parents=True, exist_ok=True)
    logger.info("Upload storage root: %s", storage.resolve())
    logger.info("Profile picture access policy: %s", settings.profile_image_access.value)
    logger.info("API docs: http://%s:%d/docs", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    logger.info("Dashboard backend shutting down...")
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_body(error: str, message: str, details: Optional[dict] = None) -> dict:
    body = {"error": error, "message": message, "request_id": request_id_var.get("")}
    if details:
        body["details"] = details
    return body


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exception types to HTTP responses.

    Handler hierarchy:
        InputError              → 400
        UnauthorizedError       → 401
        ForbiddenError          → 403
        NotFoundError           → 404
        StorageError            → 500 (generic message, details logged)
        DatabaseError           → 500 (generic message, details logged)
        DashboardError (base)   → 500
        Exception (fallback)    → 500, stack trace logged

    Response bodies never contain file system paths, SQL or stack traces.
    """

    @app.exception_handler(InputError)
    async def handle_input_error(request: Request, exc: InputError):
        logger.warning("[%s] Input error: %s", request_id_var.get(""), exc.message)
        return JSONResponse(
            status_code=400,
            content=_error_body("input_error", exc.message, exc.context),
        )

    @app.exception_handler(UnauthorizedError)
    async def handle_unauthorized(request: Request, exc: UnauthorizedError):
        return JSONResponse(
            status_code=401,
            content=_error_body("unauthorized", exc.message),
        )

    @app.exception_handler(ForbiddenError)
    async def handle_forbidden(request: Request, exc: ForbiddenError):
        logger.warning("[%s] Forbidden: %s", request_id_var.get(""), exc.context)
        return JSONResponse(
            status_code=403,
            content=_error_body("forbidden", exc.message),
        )

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return JSONResponse(
            status_code=404,
            content=_error_body("not_found", exc.message),
        )

    @app.exception_handler(StorageError)
    async def handle_storage_error(request: Request, exc: StorageError):
        rid = request_id_var.get("")
        logger.error("[%s] Storage error: %s | Context: %s", rid, exc.message, exc.context)
        return JSONResponse(
            status_code=500,
            content=_error_body("server_error", "An internal error occurred. Please try again later."),
        )

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        rid = request_id_var.get("")
        logger.error("[%s] Database error: %s | Context: %s", rid, exc.message, exc.context)
        return JSONResponse(
            status_code=500,
            content=_error_body("server_error", "An internal error occurred. Please try again later."),
        )

    @app.exception_handler(DashboardError)
    async def handle_dashboard_error(request: Request, exc: DashboardError):
        rid = request_id_var.get("")
        logger.error("[%s] Application error: %s | Context: %s", rid, exc.message, exc.context)
        return JSONResponse(
            status_code=500,
            content=_error_body("server_error", exc.message),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error(
            "[%s] Unexpected error: %s",
            request_id_var.get(""),
            str(exc),
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content=_error_body(
                "internal_server_error",
                "An unexpected error occurred. Please try again or contact support.",
            ),
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    app = FastAPI(
        title="Dashboard API",
        description=(
            "User dashboard backend: profile picture upload and serving for "
            "users signed in through email one-time passwords."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Middleware executes in reverse order of addition (last added runs first)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,  # session cookie
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        UploadRateLimitMiddleware,
        max_requests=settings.upload_rate_limit_requests,
        window=settings.upload_rate_limit_window,
    )
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(users.router)
    app.include_router(health.router)

    return app


app = create_app()
