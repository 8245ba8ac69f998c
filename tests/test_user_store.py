"""Unit tests for auth/store.py -- the credential store.

Covers:
  - create and look up by email and id
  - duplicate email -> DuplicateIdentity, sequentially and concurrently
  - plaintext passwords are refused at the store boundary
"""

import threading

import pytest

from auth.errors import DuplicateIdentity
from auth.errors import UnhashedPassword
from auth.passwords import PasswordHasher
from auth.store import UserStore

_HASHER = PasswordHasher(rounds=4)


@pytest.fixture
def store():
    s = UserStore("sqlite:///:memory:")
    yield s
    s.close()


def test_create_and_lookup(store):
    hashed = _HASHER.hash("secret")
    user = store.create_user("Alice", "alice@example.com", hashed)
    assert user.id is not None

    by_email = store.get_by_email("alice@example.com")
    assert by_email is not None
    assert by_email.id == user.id
    assert by_email.name == "Alice"
    assert by_email.password_hash == hashed
    assert by_email.password_hash != "secret"
    assert store.get_by_id(user.id) == by_email


def test_unknown_lookups_return_none(store):
    assert store.get_by_email("nobody@example.com") is None
    assert store.get_by_id(999) is None
    assert not store.has_users()


def test_duplicate_email_rejected(store, count_users):
    store.create_user("Alice", "alice@example.com", _HASHER.hash("secret"))
    with pytest.raises(DuplicateIdentity):
        store.create_user("Alice Again", "alice@example.com", _HASHER.hash("other"))
    assert count_users(store, "alice@example.com") == 1


def test_plaintext_password_refused(store):
    with pytest.raises(UnhashedPassword):
        store.create_user("Alice", "alice@example.com", "secret")
    assert not store.has_users()


def test_concurrent_duplicate_registration_yields_one_record(tmp_path, count_users):
    """Racing inserts of the same email: the UNIQUE constraint lets one win."""
    store = UserStore(f"sqlite:///{tmp_path / 'race.db'}")
    hashed = _HASHER.hash("secret")
    barrier = threading.Barrier(4)
    outcomes: list[str] = []
    lock = threading.Lock()

    def register() -> None:
        barrier.wait()
        try:
            store.create_user("Alice", "alice@example.com", hashed)
            result = "created"
        except DuplicateIdentity:
            result = "duplicate"
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=register) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(outcomes) == ["created", "duplicate", "duplicate", "duplicate"]
    assert count_users(store, "alice@example.com") == 1
    store.close()
