"""
Liveness and readiness probes.

/ready runs every entry of READINESS_CHECKS concurrently; the service is
ready only when all of them pass.
"""

import asyncio
from collections.abc import Awaitable, Callable

from fastapi import APIRouter, Response, status

from riverwatch.db.engine import ping_database
from riverwatch.logging_config import get_logger
from riverwatch.sessions import get_session_store

router = APIRouter(tags=["health"])
logger = get_logger(__name__)


async def ping_session_store() -> bool:
    try:
        store = get_session_store()
    except RuntimeError:
        return False
    return await store.ping()


READINESS_CHECKS: dict[str, Callable[[], Awaitable[bool]]] = {
    "database": ping_database,
    "sessions": ping_session_store,
}


@router.get("/health", status_code=status.HTTP_200_OK)
async def health() -> dict[str, str]:
    """Liveness: the process is up and serving."""
    return {"status": "healthy"}


@router.get("/ready", status_code=status.HTTP_200_OK)
async def ready(response: Response) -> dict[str, str | dict[str, str]]:
    names = list(READINESS_CHECKS)
    results = await asyncio.gather(*(READINESS_CHECKS[name]() for name in names))
    checks = {name: "healthy" if ok else "unhealthy" for name, ok in zip(names, results)}

    if not all(results):
        logger.warning("Readiness check failed", checks=checks)
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return {"status": "not ready", "checks": checks}
    return {"status": "ready", "checks": checks}
