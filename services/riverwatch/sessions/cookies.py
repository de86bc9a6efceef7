"""Fernet-sealed session cookies.

The browser only ever holds the session id, sealed with Fernet
(AES-128-CBC + HMAC-SHA256) under a key derived from the configured session
secret. A tampered or foreign cookie fails to open and is treated as absent.
The Fernet timestamp is checked against the session TTL, so an old cookie
stops opening at the same time the server-side record expires.
"""

import base64
import hashlib

from cryptography.fernet import Fernet, InvalidToken

from riverwatch.logging_config import get_logger

logger = get_logger(__name__)


def derive_key(secret: str) -> bytes:
    """Derive a Fernet key from an arbitrary-length secret string."""
    digest = hashlib.sha256(secret.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest)


class SessionCookieCodec:
    """Seals and opens session ids for the session cookie."""

    def __init__(self, secret: str, ttl_seconds: int) -> None:
        if not secret:
            raise ValueError("Session secret must not be empty")
        self._fernet = Fernet(derive_key(secret))
        self._ttl_seconds = ttl_seconds

    def seal(self, session_id: str) -> str:
        return self._fernet.encrypt(session_id.encode("utf-8")).decode("ascii")

    def open(self, cookie_value: str | None) -> str | None:
        """Return the session id, or None if the cookie is missing, forged or stale."""
        if not cookie_value:
            return None
        try:
            plaintext = self._fernet.decrypt(cookie_value.encode("ascii"), ttl=self._ttl_seconds)
        except (InvalidToken, UnicodeEncodeError):
            logger.debug("Rejected session cookie")
            return None
        return plaintext.decode("utf-8")
