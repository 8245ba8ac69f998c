"""
auth/tokens.py -- Signed access tokens for the JSON API.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
       the user id (sub), email, issue time, and expiry. Nothing is stored
       server-side and there is no revocation list: a token is valid iff its
       signature matches and the current time is before exp.

  Failure signals: verify() raises TokenMissing for an absent token,
       TokenExpired for a well-signed token past its window, and TokenInvalid
       for everything else (bad signature, malformed structure, bad claims).
       TokenExpired subclasses TokenInvalid, so the HTTP surface reports one
       "Invalid token." signal while logs keep the distinction.

  Extraction: extract_token() accepts "Authorization: Bearer <token>", a bare
       token in the Authorization header, or a cookie named "token". A present
       header always wins; another scheme ("Basic ...") or an empty Bearer is
       passed on whole and fails verification as invalid, not missing.

Layer rule: no imports from api/, web/, core/, or inventory/. The secret is
injected by the caller (api/main.py lifespan) rather than read here.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from jose import ExpiredSignatureError, JWTError, jwt

from auth.errors import TokenExpired, TokenInvalid, TokenMissing
from auth.models import Claims, User

logger = logging.getLogger("stockroom.auth.tokens")

TOKEN_COOKIE = "token"

_ALGORITHM = "HS256"


class TokenService:
    """Issue and verify HS256 access tokens.

    Usage:
        tokens = TokenService(settings.secret_key, expire_seconds=3600)
        raw = tokens.issue(user)
        claims = tokens.verify(raw)   # raises TokenMissing / TokenInvalid
    """

    def __init__(self, secret_key: str, expire_seconds: int = 3600) -> None:
        self._secret_key = secret_key
        self.expire_seconds = expire_seconds

    def issue(self, user: User, now: datetime | None = None) -> str:
        """Encode a signed token for an already-authenticated user.

        now defaults to the current UTC time; passing it lets callers mint
        tokens with a known window.
        """
        if user.id is None:
            raise ValueError("Cannot issue a token for an unsaved user.")
        issued_at = now or datetime.now(timezone.utc)
        payload = {
            "sub": str(user.id),
            "email": user.email,
            "iat": issued_at,
            "exp": issued_at + timedelta(seconds=self.expire_seconds),
        }
        return jwt.encode(payload, self._secret_key, algorithm=_ALGORITHM)

    def verify(self, token: str | None) -> Claims:
        """Decode and verify a token, returning its Claims."""
        if not token:
            raise TokenMissing()
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[_ALGORITHM])
        except ExpiredSignatureError as exc:
            logger.debug("Rejected expired token")
            raise TokenExpired() from exc
        except JWTError as exc:
            logger.debug("Rejected token: %s", exc)
            raise TokenInvalid() from exc

        try:
            subject = int(payload["sub"])
            expires_at = datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc)
            issued_at = datetime.fromtimestamp(int(payload.get("iat", payload["exp"])), tz=timezone.utc)
        except (KeyError, TypeError, ValueError) as exc:
            logger.debug("Rejected token with malformed claims")
            raise TokenInvalid() from exc
        email = payload.get("email")
        return Claims(
            subject=subject,
            issued_at=issued_at,
            expires_at=expires_at,
            email=email if isinstance(email, str) else None,
        )


def extract_token(request) -> str | None:
    """Return the raw token from the Authorization header or the token cookie.

    A present Authorization header always wins over the cookie. Anything in it
    other than "Bearer <token>" (another scheme, an empty Bearer) is returned
    whole, so verification rejects it as invalid rather than missing.
    """
    auth_header = request.headers.get("Authorization", "").strip()
    if auth_header:
        scheme, _, credentials = auth_header.partition(" ")
        if scheme.lower() == "bearer" and credentials.strip():
            return credentials.strip()
        return auth_header
    return request.cookies.get(TOKEN_COOKIE) or None


def set_token_cookie(response, token: str, max_age: int, secure: bool = False) -> None:
    """Write the access token as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="lax": not sent on cross-site POST -- CSRF mitigation.
    max_age matches the token expiry so both expire together.
    """
    response.set_cookie(
        TOKEN_COOKIE,
        value=token,
        httponly=True,
        samesite="lax",
        secure=secure,
        max_age=max_age,
    )
