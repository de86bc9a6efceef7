"""Redis-backed session store.

Each session is one JSON string under ``rw:session:{id}``. The Redis TTL is
set once at creation and preserved on every later write (KEEPTTL), giving a
fixed absolute lifetime. Writes replace the whole value in a single SET, so
concurrent readers see either the old record or the new one.
"""

import json

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from riverwatch.logging_config import get_logger
from riverwatch.sessions.protocol import SessionMutator, SessionRecord, SessionStoreError

logger = get_logger(__name__)

SESSION_PREFIX = "rw:session:"


class RedisSessionStore:
    """SessionStore backed by Redis."""

    def __init__(self, redis: aioredis.Redis, ttl_seconds: int) -> None:
        self._redis = redis
        self._ttl_seconds = ttl_seconds

    @classmethod
    async def connect(cls, url: str, ttl_seconds: int) -> "RedisSessionStore":
        """Open a connection pool to ``url`` and check it answers."""
        client = aioredis.from_url(url, decode_responses=True)
        try:
            await client.ping()
        except RedisError:
            await client.aclose()
            raise
        logger.info("Redis session store connected")
        return cls(client, ttl_seconds)

    @property
    def ttl_seconds(self) -> int:
        return self._ttl_seconds

    @staticmethod
    def _encode(record: SessionRecord) -> str:
        # Session id is the key, not part of the value
        data = record.to_dict()
        data.pop("session_id")
        return json.dumps(data)

    @staticmethod
    def _decode(session_id: str, raw: str) -> SessionRecord:
        try:
            return SessionRecord(session_id=session_id, **json.loads(raw))
        except (ValueError, TypeError) as e:
            raise SessionStoreError(f"Corrupt session record: {e}") from e

    async def create(self) -> SessionRecord:
        record = SessionRecord.new(self._ttl_seconds)
        try:
            await self._redis.set(
                SESSION_PREFIX + record.session_id,
                self._encode(record),
                ex=self._ttl_seconds,
                nx=True,
            )
        except RedisError as e:
            raise SessionStoreError(f"Failed to create session: {e}") from e
        logger.debug("Session created", backend="redis")
        return record

    async def get(self, session_id: str) -> SessionRecord | None:
        try:
            raw = await self._redis.get(SESSION_PREFIX + session_id)
        except RedisError as e:
            raise SessionStoreError(f"Failed to read session: {e}") from e
        if raw is None:
            return None
        return self._decode(session_id, raw)

    async def mutate(self, session_id: str, fn: SessionMutator) -> SessionRecord | None:
        current = await self.get(session_id)
        if current is None:
            return None

        updated = fn(current)
        if updated.session_id != session_id or updated.expires_at != current.expires_at:
            raise ValueError("Session mutators must not change id or lifetime")

        try:
            # XX: never resurrect a session destroyed since the read
            written = await self._redis.set(
                SESSION_PREFIX + session_id,
                self._encode(updated),
                keepttl=True,
                xx=True,
            )
        except RedisError as e:
            raise SessionStoreError(f"Failed to write session: {e}") from e

        if not written:
            logger.debug("Session vanished during mutate", backend="redis")
            return None
        return updated

    async def destroy(self, session_id: str) -> bool:
        try:
            deleted = await self._redis.delete(SESSION_PREFIX + session_id)
        except RedisError as e:
            raise SessionStoreError(f"Failed to destroy session: {e}") from e
        if deleted:
            logger.debug("Session destroyed", backend="redis")
        return deleted > 0

    async def ping(self) -> bool:
        try:
            return bool(await self._redis.ping())
        except RedisError as e:
            logger.error("Redis ping failed", error=str(e))
            return False

    async def close(self) -> None:
        await self._redis.aclose()
