"""
FastAPI application factory for the RiverWatch API server.

Resources are opened in the lifespan in dependency order and closed in
reverse through an AsyncExitStack, so a failed startup still releases
whatever was already open.
"""

import uuid
from collections.abc import AsyncGenerator
from contextlib import AsyncExitStack, asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from riverwatch.api.health import router as health_router
from riverwatch.api.routers.auth import router as auth_router
from riverwatch.api.routers.telemetry import router as telemetry_router
from riverwatch.auth.errors import AuthFlowError
from riverwatch.auth.idp import close_identity_provider, init_identity_provider
from riverwatch.config import settings
from riverwatch.db.engine import close_db, init_db
from riverwatch.logging_config import configure_logging, get_logger
from riverwatch.sessions import close_sessions, init_sessions

API_VERSION = "0.1.0"
REQUEST_ID_HEADER = "X-Request-ID"

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    configure_logging(json_logs=settings.json_logs, log_level=settings.log_level)
    logger.info(
        "Starting RiverWatch API server",
        version=API_VERSION,
        environment=settings.environment.value,
        session_backend=settings.session.backend.value,
    )

    async with AsyncExitStack() as resources:
        await init_db()
        resources.push_async_callback(close_db)

        await init_sessions()
        resources.push_async_callback(close_sessions)

        init_identity_provider()
        resources.push_async_callback(close_identity_provider)

        yield

        logger.info("Shutting down RiverWatch API server")


def _install_request_id(app: FastAPI) -> None:
    @app.middleware("http")
    async def bind_request_id(request: Request, call_next):  # type: ignore[no-untyped-def]
        """Tag every log line of a request with one id, echoed to the client."""
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        with structlog.contextvars.bound_contextvars(request_id=request_id):
            response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


def _install_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AuthFlowError)
    async def auth_flow_error(request: Request, exc: AuthFlowError) -> JSONResponse:
        # Generic message only; provider detail was logged where it was caught
        logger.info(
            "Auth request rejected",
            path=request.url.path,
            error=type(exc).__name__,
            status_code=exc.status_code,
        )
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception) -> JSONResponse:
        logger.error("Unhandled exception", exc_info=exc, path=request.url.path)
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})


def create_application() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="RiverWatch API",
        description="River monitoring dashboard backend",
        version=API_VERSION,
        lifespan=lifespan,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
    )

    # The SPA is the only browser origin; credentials carry the session cookie
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url.rstrip("/")],
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", REQUEST_ID_HEADER],
        expose_headers=[REQUEST_ID_HEADER],
    )
    _install_request_id(app)
    _install_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(auth_router, prefix=settings.api_prefix)
    app.include_router(telemetry_router, prefix=settings.api_prefix)

    return app


app = create_application()
