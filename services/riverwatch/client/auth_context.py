"""Client-side auth context for dashboard frontends.

Caches the backend's view of the browser session (``authenticated``,
``loading``, ``user_profile``) and exposes ``login`` / ``logout``. Browser
navigation is injected as a callable so the same logic drives a real
browser shell, a server-rendered frontend or a test.

AuthGuard wraps a protected view: placeholder while loading, login
redirect when the session is anonymous, the view itself otherwise.
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

import httpx

from riverwatch.logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

Navigate = Callable[[str], None]
Listener = Callable[["AuthContext"], None]


class AuthContext:
    """Observable cache of the session's authentication status."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        navigate: Navigate,
        api_base: str = "/api",
    ) -> None:
        self._http = http
        self._navigate = navigate
        self._api_base = api_base.rstrip("/")
        self._listeners: list[Listener] = []
        self._mounted = False

        self.authenticated: bool = False
        self.loading: bool = True
        self.user_profile: dict[str, Any] | None = None

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener. Returns an unsubscribe function."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _update(self, **changes: Any) -> None:
        changed = False
        for name, value in changes.items():
            if getattr(self, name) != value:
                setattr(self, name, value)
                changed = True
        if changed:
            for listener in list(self._listeners):
                listener(self)

    def _url(self, path: str) -> str:
        return f"{self._api_base}{path}"

    async def mount(self) -> None:
        """Check status with the backend. Only the first call does anything."""
        if self._mounted:
            return
        self._mounted = True
        await self._check_status()

    async def _check_status(self) -> None:
        self._update(loading=True)
        try:
            resp = await self._http.get(self._url("/auth/status"))
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Auth status check failed", error=str(e))
            self._update(authenticated=False, user_profile=None, loading=False)
            return

        if data.get("authenticated"):
            self._update(authenticated=True, user_profile=data.get("userProfile"), loading=False)
        else:
            self._update(authenticated=False, user_profile=None, loading=False)

    async def login(self) -> None:
        """Navigate the browser to the provider's login page."""
        self._update(loading=True)
        try:
            resp = await self._http.get(self._url("/auth/login"))
            resp.raise_for_status()
            auth_url = resp.json()["authUrl"]
        except (httpx.HTTPError, ValueError, KeyError) as e:
            logger.error("Login initiation failed", error=str(e))
            self._update(loading=False)
            return
        self._navigate(auth_url)

    async def logout(self) -> None:
        """End the backend session, then reload the app from its root."""
        self._update(loading=True)
        try:
            resp = await self._http.post(self._url("/auth/logout"))
            resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("Logout failed", error=str(e))
            self._update(loading=False)
            return
        self._update(authenticated=False, user_profile=None, loading=False)
        self._navigate("/")


@dataclass(frozen=True)
class Placeholder:
    """Stand-in rendered while a protected view cannot be shown yet."""

    message: str = ""


LOADING = Placeholder()
REDIRECTING = Placeholder("Redirecting to login...")


class AuthGuard(Generic[T]):
    """Renders a protected view only for an authenticated session."""

    def __init__(self, context: AuthContext, view: Callable[[], T]) -> None:
        self._context = context
        self._view = view

    async def render(self) -> T | Placeholder:
        if self._context.loading:
            return LOADING
        if not self._context.authenticated:
            await self._context.login()
            return REDIRECTING
        return self._view()
