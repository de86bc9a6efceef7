"""Auth flow error taxonomy.

Each error carries the HTTP status and the generic message shown to the
browser. Provider-supplied detail is logged where the error is raised and
never placed in ``message``.
"""


class AuthFlowError(Exception):
    """Base class for errors surfaced by the auth flow controller."""

    status_code: int = 400
    message: str = "Authentication error"

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class CsrfMismatch(AuthFlowError):
    """Callback state absent or not equal to the session's pending state."""

    status_code = 400
    message = "Invalid state parameter"


class UpstreamExchangeFailure(AuthFlowError):
    """The identity provider rejected a code exchange or profile fetch."""

    status_code = 401
    message = "Authentication failed"


class NotAuthenticated(AuthFlowError):
    """No authenticated session is attached to the request."""

    status_code = 401
    message = "Not authenticated"


class NoRefreshToken(AuthFlowError):
    """Refresh requested for a session that holds no refresh token."""

    status_code = 401
    message = "No refresh token available"


class RefreshFailed(UpstreamExchangeFailure):
    """The identity provider rejected the refresh token."""

    status_code = 401
    message = "Failed to refresh token"


class StoreFailure(AuthFlowError):
    """The session store could not complete a read or destroy."""

    status_code = 500
    message = "Session store unavailable"
