"""OIDC identity provider client.

Thin async client for a single realm of a Keycloak-style provider. Each
operation is exactly one HTTP request with no retry; any failure raises
IdentityProviderError carrying the provider's status and error payload.
ID tokens are stored opaquely and are not validated locally.
"""

from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlencode

import httpx

from riverwatch.config import OIDCConfig
from riverwatch.logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class TokenSet:
    """Tokens returned from the provider's token endpoint."""

    access_token: str = field(repr=False)
    refresh_token: str | None = field(default=None, repr=False)
    id_token: str | None = field(default=None, repr=False)
    expires_in: int | None = None


class IdentityProviderError(Exception):
    """A call to the identity provider failed or returned an error response."""

    def __init__(
        self,
        operation: str,
        status_code: int | None,
        payload: Any = None,
    ) -> None:
        self.operation = operation
        self.status_code = status_code
        self.payload = payload
        super().__init__(f"Identity provider {operation} failed (status={status_code})")


def _error_payload(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return resp.text


class IdentityProviderClient:
    """Authorization-code flow client for the configured realm."""

    def __init__(
        self,
        config: OIDCConfig,
        redirect_uri: str,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config
        self._redirect_uri = redirect_uri
        self._http = http_client or httpx.AsyncClient(timeout=config.timeout_seconds)

    @property
    def redirect_uri(self) -> str:
        return self._redirect_uri

    @property
    def authorization_endpoint(self) -> str:
        return f"{self._config.realm_url}/auth"

    @property
    def token_endpoint(self) -> str:
        return f"{self._config.realm_url}/token"

    @property
    def userinfo_endpoint(self) -> str:
        return f"{self._config.realm_url}/userinfo"

    @property
    def logout_endpoint(self) -> str:
        return f"{self._config.realm_url}/logout"

    async def aclose(self) -> None:
        await self._http.aclose()

    def build_authorization_url(self, state: str, nonce: str) -> str:
        """Build the URL the browser is sent to for login. No network call."""
        params = {
            "client_id": self._config.client_id,
            "redirect_uri": self._redirect_uri,
            "response_type": "code",
            "scope": " ".join(self._config.scopes),
            "state": state,
            "nonce": nonce,
        }
        return f"{self.authorization_endpoint}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> TokenSet:
        """Exchange an authorization code for tokens."""
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self._redirect_uri,
            "client_id": self._config.client_id,
            "client_secret": self._config.client_secret,
        }
        body = await self._post_form("code_exchange", self.token_endpoint, data)
        return self._token_set("code_exchange", body)

    async def refresh(self, refresh_token: str) -> TokenSet:
        """Trade a refresh token for a new access token."""
        data = {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "client_id": self._config.client_id,
            "client_secret": self._config.client_secret,
        }
        body = await self._post_form("refresh", self.token_endpoint, data)
        return self._token_set("refresh", body)

    async def fetch_userinfo(self, access_token: str) -> dict[str, Any]:
        """Fetch the user's profile with the access token as bearer."""
        try:
            resp = await self._http.get(
                self.userinfo_endpoint,
                headers={"Authorization": f"Bearer {access_token}"},
            )
        except httpx.HTTPError as e:
            raise IdentityProviderError("userinfo", None, str(e)) from e

        if resp.is_error:
            raise IdentityProviderError("userinfo", resp.status_code, _error_payload(resp))

        try:
            profile = resp.json()
        except ValueError as e:
            raise IdentityProviderError("userinfo", resp.status_code, resp.text) from e
        if not isinstance(profile, dict):
            raise IdentityProviderError(
                "userinfo", resp.status_code, {"error": "profile is not an object"}
            )

        logger.debug("Fetched userinfo", claims=sorted(profile.keys()))
        return profile

    async def revoke_refresh_token(self, refresh_token: str) -> None:
        """End the provider-side session bound to the refresh token."""
        data = {
            "client_id": self._config.client_id,
            "client_secret": self._config.client_secret,
            "refresh_token": refresh_token,
        }
        await self._post_form("logout", self.logout_endpoint, data, expect_json=False)

    async def _post_form(
        self,
        operation: str,
        url: str,
        data: dict[str, str],
        expect_json: bool = True,
    ) -> dict[str, Any]:
        try:
            resp = await self._http.post(url, data=data)
        except httpx.HTTPError as e:
            raise IdentityProviderError(operation, None, str(e)) from e

        if resp.is_error:
            raise IdentityProviderError(operation, resp.status_code, _error_payload(resp))

        if not expect_json or not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError as e:
            raise IdentityProviderError(operation, resp.status_code, resp.text) from e

    @staticmethod
    def _token_set(operation: str, body: dict[str, Any]) -> TokenSet:
        access_token = body.get("access_token")
        if not access_token:
            raise IdentityProviderError(operation, None, {"error": "missing access_token"})
        return TokenSet(
            access_token=access_token,
            refresh_token=body.get("refresh_token") or None,
            id_token=body.get("id_token") or None,
            expires_in=body.get("expires_in"),
        )


# --- Lifecycle ---

# Module-level client, initialized in lifespan
_client: IdentityProviderClient | None = None


def init_identity_provider() -> None:
    """Create the provider client from settings. Called during app startup."""
    global _client  # noqa: PLW0603
    from riverwatch.config import settings

    if not settings.oidc.client_secret:
        logger.warning(
            "No OIDC client secret configured (RIVERWATCH_OIDC__CLIENT_SECRET). "
            "Code exchange will fail for confidential clients."
        )
    _client = IdentityProviderClient(settings.oidc, redirect_uri=settings.oidc_redirect_uri)
    logger.info(
        "Identity provider configured",
        realm=settings.oidc.realm,
        client_id=settings.oidc.client_id,
        redirect_uri=settings.oidc_redirect_uri,
    )


async def close_identity_provider() -> None:
    global _client  # noqa: PLW0603
    if _client is not None:
        await _client.aclose()
        _client = None


def get_identity_provider() -> IdentityProviderClient:
    """Return the provider client. Raises if not initialized."""
    if _client is None:
        raise RuntimeError(
            "Identity provider not initialized — call init_identity_provider() first"
        )
    return _client
