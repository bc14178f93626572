"""
auth/store.py -- SQLAlchemy Core persistence layer for users.

Pattern: Repository + Data Mapper (same as items/store.py).
UserStore is the repository; _row_to_user is the mapper. Service and route
code never touches SQL directly.

Contract consumed by the auth core:
  find_user_by_email(email)        -> User | None
  find_user_by_id(user_id)         -> User | None
  create_user(user)                -> User (with id and created_at filled in)
  update_user(where, **fields)     -> bool (row matched), no re-fetch
  find_users(...)                  -> list[User]
  list_users()                     -> list[User]

Every call runs in its own short transaction. update_user() is a single
UPDATE statement, so all fields passed in one call change together.

Security:
  All queries use bound parameters. Column names for update_user() and the
  where clause come from a fixed whitelist, never from raw input.

DB path: auth/shopfront_users.db unless DATABASE_URL is set.

Layer rule: no imports from api/ or items/.
"""

from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone

from sqlalchemy import BigInteger, Column, MetaData, String, Table, Text, create_engine, event, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from auth.models import User

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(32), primary_key=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("name", String(255), nullable=False, server_default=""),
    Column("password_hash", Text, nullable=False),
    Column("permissions", Text, nullable=False, server_default="[]"),  # JSON list of tags
    Column("reset_token", String(64)),
    Column("reset_token_expiry", BigInteger),  # epoch milliseconds
    Column("created_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers do not block during writes.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _is_memory_db(db_url: str) -> bool:
    return ":memory:" in db_url or "mode=memory" in db_url


def make_engine(db_url: str) -> Engine:
    """Create an engine, applying the SQLite-specific connection settings.

    In-memory databases get a StaticPool: the whole database lives in one
    connection, which every thread (including the TestClient worker pool)
    must share.
    """
    connect_args: dict = {}
    engine_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
        if _is_memory_db(db_url):
            engine_args["poolclass"] = StaticPool
    engine = create_engine(db_url, connect_args=connect_args, **engine_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_wal_mode)
    return engine


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore()
        user = store.create_user(User(email="a@b.com", password_hash=hash_password("pw"), permissions=["USER"]))
        store.find_user_by_email("a@b.com")
        store.close()
    """

    # Columns callers may write through update_user().
    _WRITABLE: set = {"name", "password_hash", "permissions", "reset_token", "reset_token_expiry"}
    # Columns callers may select on in update_user(where=...).
    _WHERE_KEYS: set = {"id", "email"}

    def __init__(self, db_url: str) -> None:
        self.engine: Engine = make_engine(db_url)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def has_users(self) -> bool:
        """Return True if at least one user record exists."""
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_users)).scalar()
        return (result or 0) > 0

    def find_user_by_email(self, email: str) -> User | None:
        """Look up a user by exact email. Callers lowercase the email first."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def find_user_by_id(self, user_id: str) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def find_users(
        self,
        *,
        reset_token: str | None = None,
        reset_token_expiry_gte: int | None = None,
    ) -> list[User]:
        """Return users matching every filter given. No filters returns everyone.

        reset_token matches exactly. reset_token_expiry_gte keeps rows whose
        expiry is at or after the given epoch-millisecond value; rows with a
        NULL expiry never match it.
        """
        query = _users.select()
        if reset_token is not None:
            query = query.where(_users.c.reset_token == reset_token)
        if reset_token_expiry_gte is not None:
            query = query.where(_users.c.reset_token_expiry >= reset_token_expiry_gte)
        with self.engine.connect() as conn:
            rows = conn.execute(query.order_by(_users.c.email)).fetchall()
        return [_row_to_user(r) for r in rows]

    def list_users(self) -> list[User]:
        """Return all users ordered by email."""
        return self.find_users()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> User:
        """Insert a new user and return it with id and created_at assigned.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        """
        user_id = uuid.uuid4().hex
        created_at = _now_iso()
        with self.engine.connect() as conn:
            conn.execute(
                _users.insert().values(
                    id=user_id,
                    email=user.email,
                    name=user.name,
                    password_hash=user.password_hash,
                    permissions=json.dumps(list(user.permissions)),
                    reset_token=user.reset_token,
                    reset_token_expiry=user.reset_token_expiry,
                    created_at=created_at,
                )
            )
            conn.commit()
        user.id = user_id
        user.created_at = created_at
        return user

    def update_user(self, where: dict, **fields) -> bool:
        """Update fields on the user selected by where ({"id": ...} or {"email": ...}).

        All fields are written by one UPDATE statement. Returns True if a row
        matched. Unknown columns raise ValueError -- fail fast rather than
        silently dropping a write.
        """
        unknown_where = set(where) - self._WHERE_KEYS
        if unknown_where or not where:
            raise ValueError(f"Unsupported where keys: {sorted(unknown_where) or 'none'}")
        unknown = set(fields) - self._WRITABLE
        if unknown:
            raise ValueError(f"Unknown user fields: {sorted(unknown)!r}")
        if not fields:
            return False
        if "permissions" in fields:
            fields["permissions"] = json.dumps(list(fields["permissions"]))

        query = _users.update().values(**fields)
        for key, value in where.items():
            query = query.where(_users.c[key] == value)
        with self.engine.connect() as conn:
            result = conn.execute(query)
            conn.commit()
        return result.rowcount > 0

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        with self.engine.connect() as conn:
            conn.execute(select(1))
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        name=row.name or "",
        password_hash=row.password_hash,
        permissions=json.loads(row.permissions or "[]"),
        reset_token=row.reset_token,
        reset_token_expiry=row.reset_token_expiry,
        created_at=row.created_at,
    )
