"""Authentication router.

Session-cookie OIDC login for the dashboard SPA. The browser never sees
provider tokens except through /auth/token, which discloses the access
token only to the session that owns it.

Consumers:
    Dashboard SPA:
        GET  /auth/login     — authorization URL to navigate to
        GET  /auth/callback  — provider redirect target (via the SPA origin)
        GET  /auth/status    — auth status poll on mount
        GET  /auth/token     — bearer token for backend API calls
        POST /auth/refresh   — renew the access token
        POST /auth/logout    — end the session
"""

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel, ConfigDict, Field

from riverwatch.api.dependencies import (
    clear_session_cookie,
    get_auth_flow,
    get_session_id,
    set_session_cookie,
)
from riverwatch.auth.flow import AuthFlowController
from riverwatch.logging_config import get_logger
from riverwatch.sessions import get_cookie_codec
from riverwatch.sessions.cookies import SessionCookieCodec

router = APIRouter(prefix="/auth", tags=["auth"])
logger = get_logger(__name__)


# --- Pydantic models ---


class LoginResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    auth_url: str = Field(alias="authUrl")


class StatusResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    authenticated: bool
    user_profile: dict | None = Field(default=None, alias="userProfile")


class TokenResponse(BaseModel):
    token: str


class SuccessResponse(BaseModel):
    success: bool = True


# --- Endpoints ---


@router.get("/login", response_model=LoginResponse, response_model_by_alias=True)
async def login(
    session_id: str | None = Depends(get_session_id),
    flow: AuthFlowController = Depends(get_auth_flow),
    codec: SessionCookieCodec = Depends(get_cookie_codec),
) -> JSONResponse:
    """Start a login and return the provider authorization URL."""
    initiation = await flow.initiate_login(session_id)

    body = LoginResponse(auth_url=initiation.auth_url)
    response = JSONResponse(content=body.model_dump(by_alias=True))
    if initiation.session_id != session_id:
        set_session_cookie(response, initiation.session_id, codec)
    return response


@router.get("/callback")
async def callback(
    code: str | None = Query(None, description="Authorization code from the provider"),
    state: str | None = Query(None, description="State parameter echoed by the provider"),
    session_id: str | None = Depends(get_session_id),
    flow: AuthFlowController = Depends(get_auth_flow),
) -> RedirectResponse:
    """Handle the provider callback and redirect to the SPA."""
    redirect_url = await flow.handle_callback(session_id, code=code, state=state)
    return RedirectResponse(url=redirect_url, status_code=status.HTTP_302_FOUND)


@router.get("/status", response_model=StatusResponse, response_model_by_alias=True)
async def auth_status(
    session_id: str | None = Depends(get_session_id),
    flow: AuthFlowController = Depends(get_auth_flow),
) -> JSONResponse:
    """Report whether the current session is authenticated."""
    current = await flow.get_status(session_id)
    return JSONResponse(content=current.to_response())


@router.get("/token", response_model=TokenResponse)
async def token(
    session_id: str | None = Depends(get_session_id),
    flow: AuthFlowController = Depends(get_auth_flow),
) -> TokenResponse:
    """Return the session's access token for use as a bearer credential."""
    return TokenResponse(token=await flow.get_token(session_id))


@router.post("/refresh", response_model=SuccessResponse)
async def refresh(
    session_id: str | None = Depends(get_session_id),
    flow: AuthFlowController = Depends(get_auth_flow),
) -> SuccessResponse:
    """Renew the session's access token."""
    await flow.refresh(session_id)
    return SuccessResponse()


@router.post("/logout", response_model=SuccessResponse)
async def logout(
    session_id: str | None = Depends(get_session_id),
    flow: AuthFlowController = Depends(get_auth_flow),
) -> JSONResponse:
    """End the session. The cookie is cleared whatever the outcome."""
    try:
        await flow.logout(session_id)
    except Exception:
        logger.exception("Logout failed")
        response = JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Logout failed"},
        )
    else:
        response = JSONResponse(content=SuccessResponse().model_dump())

    clear_session_cookie(response)
    return response
