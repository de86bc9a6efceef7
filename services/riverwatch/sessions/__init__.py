"""
Session store layer for RiverWatch.

Provides init_sessions() / close_sessions() for app lifespan and
get_session_store() / get_cookie_codec() as FastAPI dependencies.
"""

from __future__ import annotations

import secrets

from riverwatch.config import SessionBackend, settings
from riverwatch.logging_config import get_logger
from riverwatch.sessions.cookies import SessionCookieCodec
from riverwatch.sessions.protocol import SessionRecord, SessionStore, SessionStoreError

__all__ = [
    "SessionRecord",
    "SessionStore",
    "SessionStoreError",
    "close_sessions",
    "get_cookie_codec",
    "get_session_store",
    "init_sessions",
]

logger = get_logger(__name__)

# Module-level instances
_store: SessionStore | None = None
_codec: SessionCookieCodec | None = None


async def init_sessions() -> None:
    """Initialize the session backend and cookie codec based on configuration.

    Called during app startup (lifespan). The redis backend opens its own
    connection pool and fails startup if Redis does not answer.
    """
    global _store, _codec  # noqa: PLW0603
    cfg = settings.session

    secret = cfg.secret_key
    if not secret:
        if settings.is_production:
            raise RuntimeError(
                "No session secret configured (RIVERWATCH_SESSION__SECRET_KEY). "
                "Refusing to start in production."
            )
        secret = secrets.token_urlsafe(32)
        logger.warning(
            "No session secret configured; using an ephemeral one. "
            "Sessions will not survive a restart."
        )
    _codec = SessionCookieCodec(secret, cfg.ttl_seconds)

    match cfg.backend:
        case SessionBackend.MEMORY:
            from riverwatch.sessions.memory import MemorySessionStore

            _store = MemorySessionStore(ttl_seconds=cfg.ttl_seconds)
            logger.info("Session store initialized", backend="memory", ttl_hours=cfg.ttl_hours)

        case SessionBackend.REDIS:
            from riverwatch.sessions.redis_store import RedisSessionStore

            _store = await RedisSessionStore.connect(
                str(settings.redis_url), ttl_seconds=cfg.ttl_seconds
            )
            logger.info("Session store initialized", backend="redis", ttl_hours=cfg.ttl_hours)


async def close_sessions() -> None:
    """Close the session backend."""
    global _store, _codec  # noqa: PLW0603
    if _store is not None:
        await _store.close()
        _store = None
    _codec = None


def get_session_store() -> SessionStore:
    """Return the session store. Raises if not initialized."""
    if _store is None:
        raise RuntimeError("Session store not initialized — call init_sessions() first")
    return _store


def get_cookie_codec() -> SessionCookieCodec:
    """Return the session cookie codec. Raises if not initialized."""
    if _codec is None:
        raise RuntimeError("Session cookies not initialized — call init_sessions() first")
    return _codec
