"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container). Stores and routes do the work.
The one exception is the from_mapping/to_mapping pair on User: session data is
loaded from a backend as a plain dict, so the record is validated at the
boundary where it re-enters the process.

Layer rule: no imports from api/, web/, core/, or inventory/.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Mapping


@dataclass
class User:
    """A registered account.

    email is the login identity and is unique across the store. password_hash
    is always a bcrypt hash -- UserStore refuses anything else.
    id is None before the record is written to the database.
    """

    name: str
    email: str
    password_hash: str
    id: int | None = None
    created_at: str | None = None

    def to_mapping(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> User:
        """Rebuild a User from a session snapshot.

        Raises ValueError if a required field is missing or empty, so a
        corrupted session is treated as anonymous rather than half-authenticated.
        """
        missing = [k for k in ("id", "name", "email", "password_hash") if not data.get(k)]
        if missing:
            raise ValueError(f"Session user record missing fields: {missing}")
        return cls(
            id=int(data["id"]),
            name=str(data["name"]),
            email=str(data["email"]),
            password_hash=str(data["password_hash"]),
            created_at=data.get("created_at"),
        )


@dataclass(frozen=True)
class Claims:
    """Decoded payload of a verified access token."""

    subject: int  # user id
    issued_at: datetime
    expires_at: datetime
    email: str | None = None
