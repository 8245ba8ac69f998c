"""
auth/service.py -- Registration and password login, shared by both surfaces.

The page flow (web/routes.py) and the JSON flow (api/routes/auth.py) accept
credentials differently and report failures differently, but the steps in
between are the same: validate input, look up the identity, hash or verify the
password. Those steps live here and raise the typed errors from auth/errors.py.

Login deliberately reports an unknown email (NotFound) differently from a
wrong password (CredentialMismatch). Clients of this app depend on the
distinction.

Layer rule: no imports from api/, web/, core/, or inventory/.
"""

from __future__ import annotations

import logging

from auth.errors import CredentialMismatch, NotFound, ValidationFailure
from auth.models import User
from auth.passwords import PasswordHasher
from auth.store import UserStore

logger = logging.getLogger("stockroom.auth")

# bcrypt ignores everything past 72 bytes.
MAX_PASSWORD_BYTES = 72


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def register_user(
    store: UserStore,
    hasher: PasswordHasher,
    name: str | None,
    email: str | None,
    password: str | None,
) -> User:
    """Create a user with a freshly hashed password.

    Does not authenticate the new user; callers send them to login.
    Raises ValidationFailure for missing fields, DuplicateIdentity if the
    email is taken (from the store's UNIQUE constraint).
    """
    name_clean = (name or "").strip()
    email_clean = normalize_email(email)
    if not name_clean or not email_clean or not password:
        raise ValidationFailure("Name, email and password are required.")
    if "@" not in email_clean:
        raise ValidationFailure("A valid email address is required.")
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationFailure(f"Password must be at most {MAX_PASSWORD_BYTES} bytes.")

    user = store.create_user(name_clean, email_clean, hasher.hash(password))
    logger.info("Registered user id=%s", user.id)
    return user


def authenticate(store: UserStore, hasher: PasswordHasher, email: str | None, password: str | None) -> User:
    """Return the User whose email and password match.

    Raises ValidationFailure (before any lookup) if either field is missing,
    NotFound for an unknown email, CredentialMismatch for a wrong password.
    """
    email_clean = normalize_email(email)
    if not email_clean or not password:
        raise ValidationFailure("Email and password are required.")

    user = store.get_by_email(email_clean)
    if user is None:
        logger.info("Login failed: unknown email")
        raise NotFound("Email not found.")
    if not hasher.verify(password, user.password_hash):
        logger.info("Login failed: wrong password for user id=%s", user.id)
        raise CredentialMismatch("Incorrect password.")
    return user
