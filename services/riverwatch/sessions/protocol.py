"""
Session store protocol and types for RiverWatch.

Defines the SessionStore Protocol that all session backends must satisfy,
along with the SessionRecord they hold. Records are immutable; every write
replaces the whole record, so readers never observe a partial update.
"""

import secrets
from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any, Protocol, runtime_checkable


def utc_now() -> datetime:
    return datetime.now(UTC)


def generate_session_id() -> str:
    """Generate a cryptographically random, opaque session identifier."""
    return secrets.token_urlsafe(32)


# --- Data Types ---


@dataclass(frozen=True)
class SessionRecord:
    """Server-side state for one browser session."""

    session_id: str
    created_at: str  # ISO 8601
    expires_at: str  # ISO 8601

    # Pending login, single use
    auth_state: str | None = field(default=None, repr=False)
    auth_nonce: str | None = field(default=None, repr=False)

    authenticated: bool = False

    # Identity provider credentials, never sent to the browser
    access_token: str | None = field(default=None, repr=False)
    refresh_token: str | None = field(default=None, repr=False)
    id_token: str | None = field(default=None, repr=False)

    user_profile: dict[str, Any] | None = None

    @classmethod
    def new(cls, ttl_seconds: int) -> "SessionRecord":
        now = utc_now()
        return cls(
            session_id=generate_session_id(),
            created_at=now.isoformat(),
            expires_at=(now + timedelta(seconds=ttl_seconds)).isoformat(),
        )

    def is_expired(self, now: datetime | None = None) -> bool:
        try:
            expires_at = datetime.fromisoformat(self.expires_at)
        except (ValueError, TypeError):
            return True
        return (now or utc_now()) >= expires_at

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SessionRecord":
        return cls(**data)


SessionMutator = Callable[[SessionRecord], SessionRecord]


# --- Exceptions ---


class SessionStoreError(Exception):
    """Raised when the backing store cannot complete an operation."""


# --- Protocol ---


@runtime_checkable
class SessionStore(Protocol):
    """Protocol defining the session store interface.

    All methods are async. Implementations must satisfy this interface
    structurally (duck typing) — no inheritance required.
    """

    @property
    def ttl_seconds(self) -> int:
        """Absolute lifetime of a session from creation."""
        ...

    async def create(self) -> SessionRecord:
        """Create and persist an empty session record."""
        ...

    async def get(self, session_id: str) -> SessionRecord | None:
        """Return the record, or None if it does not exist or has expired."""
        ...

    async def mutate(self, session_id: str, fn: SessionMutator) -> SessionRecord | None:
        """Apply fn to the current record and persist the result.

        Expiry is never extended. Returns the new record, or None if the
        session no longer exists.
        """
        ...

    async def destroy(self, session_id: str) -> bool:
        """Delete the session. Returns True if it existed."""
        ...

    async def ping(self) -> bool:
        """Readiness check: True if the backend answers."""
        ...

    async def close(self) -> None:
        """Release any held resources."""
        ...
