"""
auth/authenticators.py -- One interface, two credential mechanisms.

The page surface and the JSON API guard the same resources with different
credentials: a server-side session cookie for pages, a signed bearer token for
the API. Both are Authenticator implementations returning an AuthResult, so
RouteGuard (auth/dependencies.py) can pick one per route by name instead of
duplicating guard logic.

  SessionAuthenticator -- principal is the User snapshot held in the session.
  TokenAuthenticator   -- principal is the verified Claims of the token.

Neither raises on a missing or bad credential; the failure travels in
AuthResult.error so the guard decides how each surface reports it.

Layer rule: no imports from api/, web/, core/, or inventory/.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from auth.errors import AuthError, TokenMissing
from auth.models import Claims, User
from auth.tokens import TokenService, extract_token


@dataclass(frozen=True)
class AuthResult:
    principal: User | Claims | None = None
    error: AuthError | None = None

    @property
    def ok(self) -> bool:
        return self.principal is not None and self.error is None


class Authenticator(ABC):
    @abstractmethod
    def authenticate(self, request) -> AuthResult:
        """Inspect the request and return who is calling, or why not."""


class SessionAuthenticator(Authenticator):
    """Authenticated iff the request's session holds a user.

    Reads request.state.session, which the session middleware attaches to
    every request.
    """

    def authenticate(self, request) -> AuthResult:
        session = getattr(request.state, "session", None)
        user = session.user if session is not None else None
        if user is None:
            return AuthResult(error=AuthError("Login required."))
        return AuthResult(principal=user)


class TokenAuthenticator(Authenticator):
    """Authenticated iff the request carries a valid, unexpired token."""

    def __init__(self, tokens: TokenService) -> None:
        self.tokens = tokens

    def authenticate(self, request) -> AuthResult:
        token = extract_token(request)
        if token is None:
            return AuthResult(error=TokenMissing())
        try:
            claims = self.tokens.verify(token)
        except AuthError as exc:
            return AuthResult(error=exc)
        return AuthResult(principal=claims)
