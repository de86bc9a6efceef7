"""FastAPI dependencies for session cookies and the auth flow.

The browser's only credential is the sealed session cookie. Dependencies
here open it into a session id and build the flow controller from the
injected store and provider client, so tests can override either.
"""

from fastapi import Depends, Request, Response

from riverwatch.auth.flow import AuthFlowController
from riverwatch.auth.idp import IdentityProviderClient, get_identity_provider
from riverwatch.config import settings
from riverwatch.sessions import SessionStore, get_cookie_codec, get_session_store
from riverwatch.sessions.cookies import SessionCookieCodec


def get_session_id(
    request: Request,
    codec: SessionCookieCodec = Depends(get_cookie_codec),
) -> str | None:
    """Session id from the request cookie, or None if absent or invalid."""
    return codec.open(request.cookies.get(settings.session.cookie_name))


def get_auth_flow(
    store: SessionStore = Depends(get_session_store),
    idp: IdentityProviderClient = Depends(get_identity_provider),
) -> AuthFlowController:
    return AuthFlowController(store=store, idp=idp, frontend_url=settings.frontend_url)


def set_session_cookie(response: Response, session_id: str, codec: SessionCookieCodec) -> None:
    """Attach the sealed session id to the response."""
    response.set_cookie(
        key=settings.session.cookie_name,
        value=codec.seal(session_id),
        max_age=settings.session.ttl_seconds,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite=settings.session.same_site,
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(
        key=settings.session.cookie_name,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite=settings.session.same_site,
    )
