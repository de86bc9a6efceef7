"""
Read-only access to the telemetry database.

The time-series store is owned by the ingestion side; this service only
queries it. Every pooled connection is opened with
``default_transaction_read_only`` and a statement timeout, so a request can
neither write nor hold a connection indefinitely. Requests get a plain
AsyncConnection: the queries are hand-written SQL with bound parameters, no
ORM session is involved.
"""

from collections.abc import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from riverwatch.config import settings
from riverwatch.logging_config import get_logger

logger = get_logger(__name__)

_engine: AsyncEngine | None = None


def _server_settings() -> dict[str, str]:
    return {
        "application_name": settings.app_name,
        "default_transaction_read_only": "on",
        "statement_timeout": str(settings.telemetry.statement_timeout_ms),
    }


async def init_db() -> None:
    """Create the engine and check the database answers."""
    global _engine  # noqa: PLW0603
    _engine = create_async_engine(
        str(settings.database_url),
        echo=settings.debug,
        pool_pre_ping=True,
        pool_size=settings.telemetry.pool_size,
        max_overflow=settings.telemetry.pool_size,
        connect_args={"server_settings": _server_settings()},
    )
    if not await ping_database():
        logger.warning("Telemetry database not reachable at startup")
    logger.info("Telemetry database engine created", pool_size=settings.telemetry.pool_size)


async def close_db() -> None:
    global _engine  # noqa: PLW0603
    if _engine is not None:
        await _engine.dispose()
        _engine = None


async def get_db() -> AsyncGenerator[AsyncConnection]:
    """FastAPI dependency yielding a pooled read-only connection."""
    if _engine is None:
        raise RuntimeError("Database not initialized — call init_db() first")
    async with _engine.connect() as conn:
        yield conn


async def ping_database() -> bool:
    """Readiness check: True if a trivial query succeeds."""
    if _engine is None:
        return False
    try:
        async with _engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        logger.error("Database ping failed", error=str(e))
        return False
    return True
