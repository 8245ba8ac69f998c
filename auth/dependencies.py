"""
auth/dependencies.py -- FastAPI Depends() guards for protected routes.

RouteGuard picks an Authenticator by name from app.state.authenticators
("session" or "token") and reports failure the way its surface expects:

  session -- raises LoginRequired; the app turns it into a 302 to /login.
             Pages never answer an anonymous visitor with an error code.
  token   -- raises HTTPException with a {"message": ...} body and the
             configured status for "no token" vs "bad token".

Guards run as dependencies, so a failing guard stops the request before the
handler body executes: no item is created, changed, or deleted.

On success the principal (User for sessions, Claims for tokens) is stored on
request.state.principal and returned to the handler.

Layer rule: no imports from web/, core/, or inventory/.
  auth/dependencies.py may import from fastapi because it is part of the
  FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.authenticators import Authenticator
from auth.errors import TokenMissing
from auth.models import Claims, User


class LoginRequired(Exception):
    """Raised by the session guard; handled by redirecting to the login page."""

    def __init__(self, path: str = "/") -> None:
        self.path = path
        super().__init__(path)


class RouteGuard:
    """Configurable authentication gate.

    Usage:
        page_guard = RouteGuard("session")
        api_guard = RouteGuard("token", missing_status=403, invalid_status=401)

        @router.get("/items", dependencies=[Depends(api_guard)])
        def list_items(...): ...
    """

    def __init__(
        self,
        kind: str,
        missing_status: int = 401,
        invalid_status: int = 401,
        missing_message: str | None = None,
        invalid_message: str | None = None,
    ) -> None:
        self.kind = kind
        self.missing_status = missing_status
        self.invalid_status = invalid_status
        self.missing_message = missing_message
        self.invalid_message = invalid_message

    def __call__(self, request: Request) -> User | Claims:
        authenticator: Authenticator = request.app.state.authenticators[self.kind]
        result = authenticator.authenticate(request)
        if result.ok:
            request.state.principal = result.principal
            return result.principal

        if self.kind == "session":
            raise LoginRequired(request.url.path)

        if isinstance(result.error, TokenMissing):
            status, message = self.missing_status, self.missing_message or result.error.message
        else:
            status, message = self.invalid_status, self.invalid_message or result.error.message
        raise HTTPException(status_code=status, detail={"message": message})


# Page routes: session cookie, redirect on failure.
page_guard = RouteGuard("session")

# Item API: token from Authorization header or token cookie.
api_guard = RouteGuard(
    "token",
    missing_status=403,
    invalid_status=401,
    missing_message="Access Denied",
    invalid_message="Invalid Token",
)

# /auth/dashboard: token, with its own status codes.
dashboard_guard = RouteGuard(
    "token",
    missing_status=401,
    invalid_status=400,
    missing_message="Access denied. No token provided.",
    invalid_message="Invalid token.",
)
