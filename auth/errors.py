"""
auth/errors.py -- Failure taxonomy for the authentication core.

Every error carries the HTTP status and the client-facing message it maps to,
so the handler that detects a failure can turn it into a response without a
lookup table. Messages are safe to show to clients; internal detail goes to
logs only.

Layer rule: no imports from api/, web/, core/, or inventory/.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for failures raised by the auth core."""

    status_code: int = 500
    code: str = "auth_error"
    message: str = "Authentication error."

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class ValidationFailure(AuthError):
    """Missing or malformed input. Raised before any store access."""

    status_code = 400
    code = "validation_error"
    message = "Email and password are required."


class DuplicateIdentity(AuthError):
    """Registration attempted with an email that already exists."""

    status_code = 400
    code = "duplicate_identity"
    message = "User already exists."


class NotFound(AuthError):
    """Unknown identity on login, or an unknown resource."""

    status_code = 404
    code = "not_found"
    message = "User not found."


class CredentialMismatch(AuthError):
    """Known identity, wrong password."""

    status_code = 401
    code = "credential_mismatch"
    message = "Incorrect password."


class TokenMissing(AuthError):
    """No token was presented on a token-guarded route."""

    status_code = 401
    code = "token_missing"
    message = "Access denied. No token provided."


class TokenInvalid(AuthError):
    """Signature, structure, or claim check failed."""

    status_code = 401
    code = "token_invalid"
    message = "Invalid token."


class TokenExpired(TokenInvalid):
    """Correctly signed token whose validity window has elapsed.

    Subclass of TokenInvalid: the HTTP surface reports both the same way.
    """

    code = "token_expired"


class StoreFailure(AuthError):
    """Underlying persistence error. Never retried."""

    status_code = 500
    code = "store_failure"
    message = "A storage error occurred."


class LogoutFailure(AuthError):
    """The session backend failed to destroy a session."""

    status_code = 500
    code = "logout_failure"
    message = "Logout failed."


class UnhashedPassword(ValueError):
    """A caller tried to persist a password that did not go through the hasher."""
