"""
auth/passwords.py -- bcrypt password hashing.

bcrypt is used directly rather than through passlib: passlib's wrap-bug
detection creates a password longer than 72 bytes, which bcrypt 4.x rejects.

The work factor (rounds) is injected from Settings.bcrypt_rounds. Each extra
round doubles the cost of a hash, for the attacker and for login latency alike.
Tests use rounds=4, the bcrypt minimum.

Layer rule: no imports from api/, web/, core/, or inventory/.
"""

from __future__ import annotations

import re

import bcrypt

_BCRYPT_HASH_RE = re.compile(r"^\$2[aby]\$\d{2}\$[./A-Za-z0-9]{53}$")


class PasswordHasher:
    """Salted one-way password hashing with a tunable work factor."""

    def __init__(self, rounds: int = 10) -> None:
        self.rounds = rounds

    def hash(self, plain: str) -> str:
        """Return a bcrypt hash of the plaintext password.

        bcrypt only reads the first 72 bytes (recent releases raise instead).
        auth.service rejects longer passwords before they get here.
        """
        if not plain:
            raise ValueError("Cannot hash an empty password.")
        return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, plain: str, hashed: str) -> bool:
        """Return True if the plaintext matches the hash. Malformed hashes never match."""
        if not plain or not hashed:
            return False
        try:
            return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
        except ValueError:
            return False

    @staticmethod
    def is_hash(value: str | None) -> bool:
        return bool(value) and _BCRYPT_HASH_RE.match(value) is not None
