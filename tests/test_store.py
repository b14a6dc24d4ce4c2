"""Unit tests for auth/store.py -- the identity store repository.

Covers:
- create()/find_by_email() round trip with generated opaque ids
- Duplicate email on create surfaces as DuplicateEmailError
- update() writes partial field sets, rejects unknown fields, returns None
  for unknown emails
- locked_until round-trips as a timezone-aware datetime
- Connection-level failures surface as StoreUnavailable
- Older users tables are upgraded with the lockout columns
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine, text

from auth.errors import DuplicateEmailError, StoreUnavailable
from auth.models import User
from auth.store import UserStore


def test_empty_url_fails_fast():
    with pytest.raises(ValueError):
        UserStore("")


class TestCreateAndFind:
    def test_round_trip(self, store):
        created = store.create(User(email="a@x.com", name="Ann", image="https://img/a.png", password_hash="h"))
        found = store.find_by_email("a@x.com")
        assert found.id == created.id
        assert (found.name, found.image, found.password_hash) == ("Ann", "https://img/a.png", "h")
        assert found.failed_attempts == 0
        assert found.locked_until is None
        assert found.created_at

    def test_ids_are_unique_and_opaque(self, store):
        a = store.create(User(email="a@x.com"))
        b = store.create(User(email="b@x.com"))
        assert a.id != b.id
        assert isinstance(a.id, str)

    def test_counters_always_start_at_zero(self, store):
        user = store.create(User(email="a@x.com", failed_attempts=3, locked_until=datetime.now(timezone.utc)))
        assert user.failed_attempts == 0
        assert user.locked_until is None

    def test_find_missing_returns_none(self, store):
        assert store.find_by_email("nobody@x.com") is None

    def test_duplicate_email(self, store):
        store.create(User(email="a@x.com"))
        with pytest.raises(DuplicateEmailError) as exc_info:
            store.create(User(email="a@x.com"))
        assert exc_info.value.email == "a@x.com"


class TestUpdate:
    def test_partial_update(self, store):
        store.create(User(email="a@x.com", name="Ann"))
        updated = store.update("a@x.com", image="https://img/a.png")
        assert updated.image == "https://img/a.png"
        assert updated.name == "Ann"

    def test_locked_until_round_trip(self, store):
        store.create(User(email="a@x.com"))
        until = datetime(2026, 3, 1, 10, 30, tzinfo=timezone.utc)
        store.update("a@x.com", failed_attempts=5, locked_until=until)
        user = store.find_by_email("a@x.com")
        assert user.failed_attempts == 5
        assert user.locked_until == until
        assert user.locked_until.tzinfo is not None

    def test_clear_lock(self, store):
        store.create(User(email="a@x.com"))
        store.update("a@x.com", failed_attempts=5, locked_until=datetime.now(timezone.utc) + timedelta(minutes=15))
        user = store.update("a@x.com", failed_attempts=0, locked_until=None)
        assert user.locked_until is None
        assert user.failed_attempts == 0

    def test_unknown_email_returns_none(self, store):
        assert store.update("nobody@x.com", name="X") is None

    @pytest.mark.parametrize("field", ["email", "id", "created_at"])
    def test_immutable_field_rejected(self, store, field):
        store.create(User(email="a@x.com"))
        with pytest.raises(ValueError, match="Unknown user fields"):
            store.update("a@x.com", **{field: "x"})
        assert store.find_by_email("a@x.com") is not None


class TestFailures:
    def test_operational_error_becomes_store_unavailable(self, store):
        with store.engine.connect() as conn:
            conn.execute(text("DROP TABLE users"))
            conn.commit()
        with pytest.raises(StoreUnavailable) as exc_info:
            store.find_by_email("a@x.com")
        assert exc_info.value.__cause__ is not None

    def test_ping(self, store):
        assert store.ping() is True


def test_upgrades_table_without_lockout_columns(tmp_path):
    db_url = f"sqlite:///{tmp_path / 'old.db'}"
    engine = create_engine(db_url)
    with engine.connect() as conn:
        conn.execute(
            text(
                "CREATE TABLE users (id VARCHAR(36) PRIMARY KEY, email VARCHAR(255) NOT NULL UNIQUE, "
                "name TEXT, image TEXT, password_hash TEXT, created_at VARCHAR(32) NOT NULL)"
            )
        )
        conn.execute(text("INSERT INTO users (id, email, created_at) VALUES ('u1', 'old@x.com', '2025-01-01')"))
        conn.commit()
    engine.dispose()

    store = UserStore(db_url)
    try:
        user = store.find_by_email("old@x.com")
        assert user.failed_attempts == 0
        assert user.locked_until is None
        assert store.update("old@x.com", failed_attempts=2).failed_attempts == 2
    finally:
        store.close()
