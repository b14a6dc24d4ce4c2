"""
auth/store.py -- SQLAlchemy Core persistence layer for identity records.

Pattern: Repository + Data Mapper.
UserStore is the repository; _row_to_user is the mapper.
The tracker, authenticator and resolver never touch SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

Construction is explicit: the FastAPI lifespan (or the CLI) builds one
UserStore from Settings and hands it to every collaborator. There is no
module-level handle and no lazy proxy -- a bad URL fails at startup.

Error mapping:
  IntegrityError on create -> DuplicateEmailError (email is UNIQUE).
  OperationalError anywhere -> StoreUnavailable (connection-level failure).
  Everything else propagates unmodified.

Schema migration notes:
  failed_attempts / locked_until are added via ALTER TABLE ADD COLUMN when a
  pre-existing users table lacks them, so older databases are upgraded on
  first startup without manual steps.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, inspect, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, OperationalError

from auth.errors import DuplicateEmailError, StoreUnavailable
from auth.models import User

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(36), primary_key=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("name", Text),
    Column("image", Text),
    Column("password_hash", Text),  # NULL for federated-only accounts
    Column("failed_attempts", Integer, nullable=False, server_default="0"),
    Column("locked_until", String(32)),  # ISO 8601 UTC; NULL = not locked
    Column("created_at", String(32), nullable=False),
)

# Columns added after the first schema version, with their DDL type.
_LATE_COLUMNS = {
    "failed_attempts": "INTEGER NOT NULL DEFAULT 0",
    "locked_until": "TEXT",
}


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _to_iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _from_iso(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User identity records.

    Usage:
        store = UserStore("sqlite:///sessionguard.db")
        user = store.create(User(email="a@x.com", name="Ann", password_hash=hash_password("secret")))
        store.update("a@x.com", failed_attempts=0, locked_until=None)
        store.close()
    """

    # Fields update() accepts. Validated before any SQL is built so callers
    # cannot smuggle in id/email/created_at changes.
    _MUTABLE_FIELDS: frozenset = frozenset({"name", "image", "password_hash", "failed_attempts", "locked_until"})

    def __init__(self, db_url: str, connect_args: dict | None = None) -> None:
        if not db_url:
            raise ValueError("UserStore requires a database URL.")
        connect_args = dict(connect_args or {})
        is_sqlite = db_url.startswith("sqlite") and "+libsql" not in db_url
        if is_sqlite:
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if is_sqlite:
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)
        self._ensure_lockout_columns()

    def _ensure_lockout_columns(self) -> None:
        """Add lockout columns to a users table created before they existed."""
        existing = {col["name"] for col in inspect(self.engine).get_columns("users")}
        missing = [name for name in _LATE_COLUMNS if name not in existing]
        if not missing:
            return
        with self.engine.connect() as conn:
            for name in missing:
                # Column names and types come from _LATE_COLUMNS, never from input.
                conn.execute(text(f"ALTER TABLE users ADD COLUMN {name} {_LATE_COLUMNS[name]}"))
            conn.commit()

    @contextmanager
    def _connect(self) -> Iterator[Connection]:
        try:
            with self.engine.connect() as conn:
                yield conn
        except OperationalError as exc:
            raise StoreUnavailable() from exc

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def find_by_email(self, email: str) -> User | None:
        """Look up a user by exact email (case-sensitive). Returns None if not found."""
        with self._connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def create(self, user: User) -> User:
        """Insert a new identity record and return it as stored.

        The id is generated here when the caller did not supply one; counters
        always start at zero. Raises DuplicateEmailError if the email exists.
        """
        user_id = user.id or str(uuid.uuid4())
        with self._connect() as conn:
            try:
                conn.execute(
                    _users.insert().values(
                        id=user_id,
                        email=user.email,
                        name=user.name,
                        image=user.image,
                        password_hash=user.password_hash,
                        failed_attempts=0,
                        locked_until=None,
                        created_at=_now_iso(),
                    )
                )
                conn.commit()
            except IntegrityError as exc:
                conn.rollback()
                raise DuplicateEmailError(user.email) from exc
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row)

    def update(self, email: str, /, **fields) -> User | None:
        """Write a partial field set to the record with this email.

        All fields go out in a single UPDATE, so the row-level atomicity of the
        database covers pairs like failed_attempts + locked_until.

        Returns the updated User, or None if no record has this email.
        Unknown field names raise ValueError.
        """
        unknown = set(fields) - self._MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown user fields: {sorted(unknown)!r}")
        if "locked_until" in fields:
            fields["locked_until"] = _to_iso(fields["locked_until"])
        with self._connect() as conn:
            if fields:
                result = conn.execute(_users.update().where(_users.c.email == email).values(**fields))
                conn.commit()
                if result.rowcount == 0:
                    return None
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def ping(self) -> bool:
        """Return True if the database answers a trivial query. Used by /health."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except OperationalError:
            return False
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
        name=row.name,
        image=row.image,
        password_hash=row.password_hash,
        failed_attempts=row.failed_attempts or 0,
        locked_until=_from_iso(row.locked_until),
        created_at=row.created_at,
    )
