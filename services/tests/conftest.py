"""
Top-level test configuration for RiverWatch.
"""

import os

# Ensure test-friendly defaults (must run before riverwatch.config is imported)
os.environ.setdefault("RIVERWATCH_JSON_LOGS", "false")
os.environ.setdefault("RIVERWATCH_LOG_LEVEL", "DEBUG")
os.environ.setdefault("RIVERWATCH_ENVIRONMENT", "development")
os.environ.setdefault("RIVERWATCH_FRONTEND_URL", "http://localhost:5173")
os.environ.setdefault("RIVERWATCH_SESSION__BACKEND", "memory")
os.environ.setdefault("RIVERWATCH_SESSION__SECRET_KEY", "test-session-secret")
os.environ.setdefault("RIVERWATCH_OIDC__BASE_URL", "https://sso.example.com")
os.environ.setdefault("RIVERWATCH_OIDC__REALM", "rivers")
os.environ.setdefault("RIVERWATCH_OIDC__CLIENT_ID", "dashboard")
os.environ.setdefault("RIVERWATCH_OIDC__CLIENT_SECRET", "client-secret")

from collections.abc import AsyncGenerator  # noqa: E402
from urllib.parse import parse_qs  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402

from riverwatch.auth.flow import AuthFlowController  # noqa: E402
from riverwatch.auth.idp import IdentityProviderClient  # noqa: E402
from riverwatch.config import OIDCConfig  # noqa: E402
from riverwatch.sessions.memory import MemorySessionStore  # noqa: E402

FRONTEND_URL = "http://localhost:5173"
REDIRECT_URI = f"{FRONTEND_URL}/auth/callback"
SESSION_TTL = 24 * 3600


class FakeProvider:
    """Scriptable stand-in for the identity provider's HTTP endpoints."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.token_status = 200
        self.token_body: dict = {
            "access_token": "access-1",
            "refresh_token": "refresh-1",
            "id_token": "id-1",
            "expires_in": 300,
        }
        self.refresh_status = 200
        self.refresh_body: dict = {"access_token": "access-2", "refresh_token": "refresh-2"}
        self.userinfo_status = 200
        self.userinfo_body: dict = {"sub": "user-123", "name": "Asha", "email": "asha@example.com"}
        self.userinfo_raw: str | None = None
        self.logout_status = 204

    def form(self, request: httpx.Request) -> dict[str, str]:
        return {k: v[0] for k, v in parse_qs(request.content.decode()).items()}

    def calls(self, suffix: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith(suffix)]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path.endswith("/token"):
            if self.form(request).get("grant_type") == "refresh_token":
                return httpx.Response(self.refresh_status, json=self.refresh_body)
            return httpx.Response(self.token_status, json=self.token_body)
        if path.endswith("/userinfo"):
            if self.userinfo_raw is not None:
                return httpx.Response(self.userinfo_status, text=self.userinfo_raw)
            return httpx.Response(self.userinfo_status, json=self.userinfo_body)
        if path.endswith("/logout"):
            return httpx.Response(self.logout_status)
        return httpx.Response(404, json={"error": "not_found"})


@pytest.fixture
def oidc_config() -> OIDCConfig:
    return OIDCConfig(
        base_url="https://sso.example.com",
        realm="rivers",
        client_id="dashboard",
        client_secret="client-secret",
    )


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest_asyncio.fixture
async def idp(
    oidc_config: OIDCConfig, provider: FakeProvider
) -> AsyncGenerator[IdentityProviderClient]:
    client = IdentityProviderClient(
        oidc_config,
        redirect_uri=REDIRECT_URI,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(provider.handler)),
    )
    yield client
    await client.aclose()


@pytest.fixture
def store() -> MemorySessionStore:
    return MemorySessionStore(ttl_seconds=SESSION_TTL)


@pytest.fixture
def flow(store: MemorySessionStore, idp: IdentityProviderClient) -> AuthFlowController:
    return AuthFlowController(store=store, idp=idp, frontend_url=FRONTEND_URL)
