"""Session-backed OIDC authorization-code flow.

Per-session states:

    ANONYMOUS -> PENDING(state, nonce) -> AUTHENTICATED -> REFRESHED | EXPIRED | LOGGED_OUT

Every operation takes the session id explicitly; the controller holds no
per-session state of its own. The pending ``state`` binds a login to its
callback: a callback whose state does not match the single outstanding
value is rejected before any call to the provider.
"""

import secrets
from dataclasses import dataclass, replace
from typing import Any

from riverwatch.auth.errors import (
    CsrfMismatch,
    NoRefreshToken,
    NotAuthenticated,
    RefreshFailed,
    StoreFailure,
)
from riverwatch.auth.idp import IdentityProviderClient, IdentityProviderError
from riverwatch.logging_config import get_logger
from riverwatch.sessions.protocol import (
    SessionMutator,
    SessionRecord,
    SessionStore,
    SessionStoreError,
)

logger = get_logger(__name__)


def generate_state() -> str:
    """Generate a cryptographically random state parameter."""
    return secrets.token_urlsafe(32)


def generate_nonce() -> str:
    """Generate a cryptographically random OIDC nonce."""
    return secrets.token_urlsafe(32)


@dataclass(frozen=True)
class LoginInitiation:
    """Result of starting a login."""

    session_id: str
    auth_url: str
    session_created: bool = False


@dataclass(frozen=True)
class AuthStatus:
    """What the browser may know about its own session."""

    authenticated: bool
    user_profile: dict[str, Any] | None = None

    def to_response(self) -> dict[str, Any]:
        return {"authenticated": self.authenticated, "userProfile": self.user_profile}


ANONYMOUS = AuthStatus(authenticated=False, user_profile=None)


class AuthFlowController:
    """Orchestrates login, callback, token access, refresh and logout."""

    def __init__(
        self,
        store: SessionStore,
        idp: IdentityProviderClient,
        frontend_url: str,
    ) -> None:
        self._store = store
        self._idp = idp
        self._frontend_url = frontend_url.rstrip("/")

    @property
    def success_url(self) -> str:
        return f"{self._frontend_url}/auth/success"

    @property
    def error_url(self) -> str:
        return f"{self._frontend_url}/auth/error"

    # --- Store access ---

    async def _load(self, session_id: str | None) -> SessionRecord | None:
        if not session_id:
            return None
        try:
            return await self._store.get(session_id)
        except SessionStoreError as e:
            logger.error("Session read failed", error=str(e))
            raise StoreFailure() from e

    async def _mutate(self, session_id: str, fn: SessionMutator) -> SessionRecord | None:
        try:
            return await self._store.mutate(session_id, fn)
        except SessionStoreError as e:
            logger.error("Session write failed", error=str(e))
            raise StoreFailure() from e

    # --- Operations ---

    async def initiate_login(self, session_id: str | None) -> LoginInitiation:
        """Start a login, replacing any pending state on the session.

        Creates the session if the caller has none (or it expired).
        """
        state = generate_state()
        nonce = generate_nonce()

        def set_pending(record: SessionRecord) -> SessionRecord:
            return replace(record, auth_state=state, auth_nonce=nonce)

        created = False
        updated = await self._mutate(session_id, set_pending) if session_id else None
        if updated is None:
            try:
                record = await self._store.create()
            except SessionStoreError as e:
                logger.error("Session create failed", error=str(e))
                raise StoreFailure() from e
            updated = await self._mutate(record.session_id, set_pending)
            if updated is None:
                raise StoreFailure()
            created = True

        logger.info("Login initiated", new_session=created)
        return LoginInitiation(
            session_id=updated.session_id,
            auth_url=self._idp.build_authorization_url(state=state, nonce=nonce),
            session_created=created,
        )

    async def handle_callback(
        self,
        session_id: str | None,
        code: str | None,
        state: str | None,
    ) -> str:
        """Complete a login. Returns the URL to redirect the browser to.

        Raises CsrfMismatch, without touching the session or the provider,
        when ``state`` does not match the pending state.
        """
        record = await self._load(session_id)
        pending = record.auth_state if record is not None else None

        if not state or not pending or not secrets.compare_digest(
            state.encode("utf-8"), pending.encode("utf-8")
        ):
            logger.warning(
                "Callback state mismatch",
                has_state=bool(state),
                has_pending=bool(pending),
            )
            raise CsrfMismatch()

        assert session_id is not None

        # The pending state is single use from here on
        consumed = await self._mutate(
            session_id, lambda r: replace(r, auth_state=None, auth_nonce=None)
        )
        if consumed is None:
            logger.warning("Session expired during callback")
            return self.error_url

        if not code:
            logger.warning("Callback carried no authorization code")
            return self.error_url

        try:
            tokens = await self._idp.exchange_code(code)
            profile = await self._idp.fetch_userinfo(tokens.access_token)
        except IdentityProviderError as e:
            logger.error(
                "Token exchange failed",
                operation=e.operation,
                status_code=e.status_code,
                provider_error=e.payload,
            )
            return self.error_url

        def authenticate(r: SessionRecord) -> SessionRecord:
            return replace(
                r,
                authenticated=True,
                access_token=tokens.access_token,
                refresh_token=tokens.refresh_token,
                id_token=tokens.id_token,
                user_profile=profile,
            )

        if await self._mutate(session_id, authenticate) is None:
            logger.warning("Session expired during callback")
            return self.error_url

        logger.info("Login completed", subject=profile.get("sub"))
        return self.success_url

    async def get_status(self, session_id: str | None) -> AuthStatus:
        """Report the session's authentication status. No provider calls."""
        record = await self._load(session_id)
        if record is None or not record.authenticated or record.user_profile is None:
            return ANONYMOUS
        return AuthStatus(authenticated=True, user_profile=record.user_profile)

    async def get_token(self, session_id: str | None) -> str:
        """Return the access token to the session that owns it."""
        record = await self._load(session_id)
        if record is None or not record.authenticated or not record.access_token:
            raise NotAuthenticated()
        return record.access_token

    async def refresh(self, session_id: str | None) -> None:
        """Renew the access token with the session's refresh token.

        On provider rejection the session is downgraded (authenticated=False,
        refresh token dropped) but kept.
        """
        record = await self._load(session_id)
        if record is None:
            raise NotAuthenticated()
        if not record.refresh_token:
            raise NoRefreshToken()

        assert session_id is not None

        try:
            tokens = await self._idp.refresh(record.refresh_token)
        except IdentityProviderError as e:
            logger.warning(
                "Token refresh failed",
                status_code=e.status_code,
                provider_error=e.payload,
            )
            await self._mutate(
                session_id, lambda r: replace(r, authenticated=False, refresh_token=None)
            )
            raise RefreshFailed() from e

        def apply_tokens(r: SessionRecord) -> SessionRecord:
            # Some providers reuse the refresh token and omit it from the response
            return replace(
                r,
                access_token=tokens.access_token,
                refresh_token=tokens.refresh_token or r.refresh_token,
            )

        if await self._mutate(session_id, apply_tokens) is None:
            raise NotAuthenticated()
        logger.info("Access token refreshed")

    async def logout(self, session_id: str | None) -> None:
        """Revoke at the provider (best effort) and destroy the session.

        Provider and store failures are logged only; the local logout
        always completes from the caller's point of view.
        """
        if not session_id:
            return

        try:
            record = await self._store.get(session_id)
        except SessionStoreError as e:
            logger.error("Session read failed during logout", error=str(e))
            record = None

        if record is not None and record.refresh_token:
            try:
                await self._idp.revoke_refresh_token(record.refresh_token)
            except IdentityProviderError as e:
                logger.warning(
                    "Provider logout failed",
                    status_code=e.status_code,
                    provider_error=e.payload,
                )

        try:
            await self._store.destroy(session_id)
        except SessionStoreError as e:
            logger.error("Session destroy failed", error=str(e))
            return

        logger.info("Session logged out")
