"""
In-process session store.

Used for local development and tests. Expired records are dropped lazily
on read.
"""

from riverwatch.logging_config import get_logger
from riverwatch.sessions.protocol import SessionMutator, SessionRecord

logger = get_logger(__name__)


class MemorySessionStore:
    """SessionStore backed by a plain dict."""

    def __init__(self, ttl_seconds: int) -> None:
        self._ttl_seconds = ttl_seconds
        self._records: dict[str, SessionRecord] = {}

    @property
    def ttl_seconds(self) -> int:
        return self._ttl_seconds

    def __len__(self) -> int:
        return len(self._records)

    async def create(self) -> SessionRecord:
        record = SessionRecord.new(self._ttl_seconds)
        self._records[record.session_id] = record
        logger.debug("Session created", backend="memory")
        return record

    async def get(self, session_id: str) -> SessionRecord | None:
        record = self._records.get(session_id)
        if record is None:
            return None
        if record.is_expired():
            del self._records[session_id]
            return None
        return record

    async def mutate(self, session_id: str, fn: SessionMutator) -> SessionRecord | None:
        current = await self.get(session_id)
        if current is None:
            return None
        updated = fn(current)
        # Identity and expiry belong to the store
        if (updated.session_id, updated.created_at, updated.expires_at) != (
            current.session_id,
            current.created_at,
            current.expires_at,
        ):
            raise ValueError("Session mutators must not change id or lifetime")
        self._records[session_id] = updated
        return updated

    async def destroy(self, session_id: str) -> bool:
        existed = self._records.pop(session_id, None) is not None
        if existed:
            logger.debug("Session destroyed", backend="memory")
        return existed

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        self._records.clear()
