"""
auth/session.py -- Server-side sessions for the page flow.

The browser holds only an opaque session id, signed with SESSION_SECRET via
itsdangerous so a forged or truncated cookie is rejected before any backend
lookup. All session state (the logged-in User snapshot and the one-shot flash
message) lives in a SessionBackend:

  MemorySessionBackend -- dict guarded by a lock; tests and single-process runs.
  SQLSessionBackend    -- SQLAlchemy table; survives restarts and is shared by
                          every worker pointing at the same database.

SessionService is created once in the app lifespan and stored on app.state.
The session middleware calls load() before the route and commit() after it,
so route code only ever touches request.state.session.

Invariant: a session holds no user (anonymous) or exactly one User snapshot
under the "user" key. The snapshot is not re-read from UserStore and can go
stale; users are never updated or deleted, so staleness is harmless here.

Layer rule: no imports from api/, web/, core/, or inventory/.
"""

from __future__ import annotations

import json
import logging
import secrets
import threading
import time
from abc import ABC, abstractmethod
from typing import Any

from itsdangerous import BadSignature, Signer
from sqlalchemy import Column, Float, MetaData, String, Table, Text, delete, insert, select, update

from auth.models import User
from auth.store import make_engine

logger = logging.getLogger("stockroom.auth.session")

_USER_KEY = "user"
_FLASH_KEY = "message"


# ---------------------------------------------------------------------------
# Backends
# ---------------------------------------------------------------------------


class SessionBackend(ABC):
    """Key-value storage for session data, keyed by session id."""

    @abstractmethod
    def get(self, sid: str) -> dict | None:
        """Return the stored data, or None if absent or expired."""

    @abstractmethod
    def set(self, sid: str, data: dict, ttl: int) -> None: ...

    @abstractmethod
    def delete(self, sid: str) -> None: ...

    @abstractmethod
    def purge_expired(self) -> int:
        """Delete expired entries. Returns the number removed."""

    def close(self) -> None:
        return None


class MemorySessionBackend(SessionBackend):
    def __init__(self) -> None:
        self._data: dict[str, tuple[float, dict]] = {}
        self._lock = threading.Lock()

    def get(self, sid: str) -> dict | None:
        with self._lock:
            entry = self._data.get(sid)
            if entry is None:
                return None
            expires_at, data = entry
            if expires_at <= time.time():
                del self._data[sid]
                return None
            return dict(data)

    def set(self, sid: str, data: dict, ttl: int) -> None:
        with self._lock:
            self._data[sid] = (time.time() + ttl, dict(data))

    def delete(self, sid: str) -> None:
        with self._lock:
            self._data.pop(sid, None)

    def purge_expired(self) -> int:
        now = time.time()
        with self._lock:
            stale = [sid for sid, (expires_at, _) in self._data.items() if expires_at <= now]
            for sid in stale:
                del self._data[sid]
        return len(stale)

    def __len__(self) -> int:
        return len(self._data)


_metadata = MetaData()

_sessions = Table(
    "sessions",
    _metadata,
    Column("sid", String(64), primary_key=True),
    Column("data", Text, nullable=False),  # JSON object
    Column("expires_at", Float, nullable=False),  # unix timestamp
)


class SQLSessionBackend(SessionBackend):
    """Sessions stored in a SQL table. Expired rows are ignored on read and
    removed by purge_expired()."""

    def __init__(self, db_url: str) -> None:
        self.engine = make_engine(db_url)
        _metadata.create_all(self.engine)

    def get(self, sid: str) -> dict | None:
        with self.engine.connect() as conn:
            row = conn.execute(select(_sessions).where(_sessions.c.sid == sid)).fetchone()
        if row is None or row.expires_at <= time.time():
            return None
        return json.loads(row.data)

    def set(self, sid: str, data: dict, ttl: int) -> None:
        payload = json.dumps(data)
        expires_at = time.time() + ttl
        # update-then-insert rather than a dialect-specific upsert
        with self.engine.begin() as conn:
            result = conn.execute(
                update(_sessions).where(_sessions.c.sid == sid).values(data=payload, expires_at=expires_at)
            )
            if result.rowcount == 0:
                conn.execute(insert(_sessions).values(sid=sid, data=payload, expires_at=expires_at))

    def delete(self, sid: str) -> None:
        with self.engine.connect() as conn:
            conn.execute(delete(_sessions).where(_sessions.c.sid == sid))
            conn.commit()

    def purge_expired(self) -> int:
        """Delete expired rows. Returns the number removed."""
        with self.engine.connect() as conn:
            result = conn.execute(delete(_sessions).where(_sessions.c.expires_at <= time.time()))
            conn.commit()
        return result.rowcount

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Session object
# ---------------------------------------------------------------------------


class Session:
    """Per-request view of one session's data.

    Mutations mark the session modified; SessionService.commit() persists
    modified sessions and leaves untouched anonymous ones out of the backend.
    """

    def __init__(self, sid: str, data: dict[str, Any] | None = None, is_new: bool = True) -> None:
        self.sid = sid
        self.data: dict[str, Any] = data or {}
        self.is_new = is_new
        self.modified = False
        self.destroyed = False
        self.previous_sid: str | None = None

    @property
    def user(self) -> User | None:
        raw = self.data.get(_USER_KEY)
        if raw is None:
            return None
        try:
            return User.from_mapping(raw)
        except (TypeError, ValueError):
            logger.warning("Discarding malformed session user record")
            return None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    def login(self, user: User) -> None:
        self.data[_USER_KEY] = user.to_mapping()
        self.modified = True

    def flash(self, kind: str, message: str, duration: int = 2000) -> None:
        self.data[_FLASH_KEY] = {"type": kind, "message": message, "duration": duration}
        self.modified = True

    def pop_flash(self) -> dict | None:
        if _FLASH_KEY not in self.data:
            return None
        self.modified = True
        return self.data.pop(_FLASH_KEY)


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class SessionService:
    """Load, persist, and destroy sessions behind a signed cookie.

    Usage (from middleware):
        session = service.load(request.cookies.get(service.cookie_name))
        ...route runs...
        service.commit(session, response)
    """

    def __init__(
        self,
        backend: SessionBackend,
        secret: str,
        cookie_name: str = "stockroom_session",
        max_age: int = 86400,
        secure: bool = False,
    ) -> None:
        self.backend = backend
        self.cookie_name = cookie_name
        self.max_age = max_age
        self.secure = secure
        self._signer = Signer(secret, salt="stockroom.session")

    def _new_sid(self) -> str:
        return secrets.token_urlsafe(32)

    def _unsign(self, cookie_value: str | None) -> str | None:
        if not cookie_value:
            return None
        try:
            return self._signer.unsign(cookie_value).decode("utf-8")
        except BadSignature:
            logger.info("Ignoring session cookie with a bad signature")
            return None

    def load(self, cookie_value: str | None) -> Session:
        """Return the session named by the cookie, or a fresh anonymous one."""
        sid = self._unsign(cookie_value)
        if sid is not None:
            data = self.backend.get(sid)
            if data is not None:
                return Session(sid, data, is_new=False)
        return Session(self._new_sid())

    def regenerate(self, session: Session) -> None:
        """Give the session a new id, keeping its data.

        Called on login so a session id planted before authentication cannot
        be reused after it. The old id is deleted on commit.
        """
        if not session.is_new:
            session.previous_sid = session.sid
        session.sid = self._new_sid()
        session.is_new = True
        session.modified = True

    def destroy(self, session: Session) -> None:
        """Delete the session from the backend. Backend errors propagate."""
        if not session.is_new:
            self.backend.delete(session.sid)
        session.data.clear()
        session.destroyed = True

    def commit(self, session: Session, response) -> None:
        """Persist a modified session and write or clear the cookie."""
        if session.destroyed:
            response.delete_cookie(self.cookie_name)
            return
        if session.previous_sid is not None:
            self.backend.delete(session.previous_sid)
            session.previous_sid = None
        if not session.modified:
            return
        if session.is_new and not session.data:
            return
        self.backend.set(session.sid, session.data, self.max_age)
        response.set_cookie(
            self.cookie_name,
            value=self._signer.sign(session.sid).decode("utf-8"),
            httponly=True,
            samesite="lax",
            secure=self.secure,
            max_age=self.max_age,
        )
