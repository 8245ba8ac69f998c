"""
auth/store.py -- SQLAlchemy Core persistence layer for user records.

Pattern: Repository + Data Mapper (same as inventory/store.py).
UserStore is the repository; _row_to_user is the mapper. Route and service
code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  UNIQUE(email) is enforced by the database, not by a read-then-write check.
  Two concurrent registrations for the same email both pass any application
  level lookup; only the constraint guarantees exactly one insert wins. The
  loser's IntegrityError is translated into DuplicateIdentity.

  create_user() refuses a password_hash that is not a bcrypt hash. A caller
  that skipped the hasher gets UnhashedPassword instead of a plaintext row.

Layer rule: no imports from api/, web/, core/, or inventory/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.errors import DuplicateIdentity, StoreFailure, UnhashedPassword
from auth.models import User
from auth.passwords import PasswordHasher

logger = logging.getLogger("stockroom.auth.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("email", String(255), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),
    Column("created_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# Engine helpers
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def make_engine(db_url: str) -> Engine:
    """Create an engine with the SQLite settings every store needs.

    check_same_thread=False: FastAPI runs sync handlers on a thread pool, so
    pooled connections cross threads.
    """
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_wal_mode)
    return engine


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records.

    Usage:
        store = UserStore("sqlite:///stockroom.db")
        user = store.create_user("Alice", "alice@example.com", hasher.hash("secret"))
        store.get_by_email("alice@example.com")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        self.engine: Engine = make_engine(db_url)
        _metadata.create_all(self.engine)

    def create_user(self, name: str, email: str, password_hash: str) -> User:
        """Insert a new user and return it with its assigned id.

        Raises DuplicateIdentity if the email is already registered,
        UnhashedPassword if password_hash is not a bcrypt hash, and
        StoreFailure on any other database error.
        """
        if not PasswordHasher.is_hash(password_hash):
            raise UnhashedPassword("password_hash must be produced by PasswordHasher.hash()")
        created_at = _now_iso()
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _users.insert().values(
                        name=name,
                        email=email,
                        password_hash=password_hash,
                        created_at=created_at,
                    )
                )
                user_id = result.inserted_primary_key[0]
                conn.commit()
        except IntegrityError as exc:
            raise DuplicateIdentity() from exc
        except SQLAlchemyError as exc:
            logger.exception("User insert failed")
            raise StoreFailure() from exc
        return User(
            id=user_id,
            name=name,
            email=email,
            password_hash=password_hash,
            created_at=created_at,
        )

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by exact email. Returns None if not found."""
        return self._fetch_one(_users.select().where(_users.c.email == email))

    def get_by_id(self, user_id: int) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        return self._fetch_one(_users.select().where(_users.c.id == user_id))

    def has_users(self) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_users)).scalar()
        return (result or 0) > 0

    def _fetch_one(self, stmt) -> User | None:
        try:
            with self.engine.connect() as conn:
                row = conn.execute(stmt).fetchone()
        except SQLAlchemyError as exc:
            logger.exception("User lookup failed")
            raise StoreFailure() from exc
        return _row_to_user(row) if row is not None else None

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        name=row.name,
        email=row.email,
        password_hash=row.password_hash,
        created_at=row.created_at,
    )
