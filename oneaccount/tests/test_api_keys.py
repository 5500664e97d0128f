from datetime import timedelta

import pytest

from oneaccount.core.errors import ResourceNotFoundError
from oneaccount.core.time import utcnow
from oneaccount.services.api_key_service import ApiKeyManager


@pytest.fixture()
def manager():
    return ApiKeyManager()


def test_create_returns_raw_key_once(db, user, manager):
    api_key, raw_key = manager.create(db, "ci", user.id, permissions=["read", "write", "read"])

    assert manager.get_id_from_key(raw_key) == api_key.id
    assert manager.get_value_from_key(raw_key) not in api_key.key_hash
    assert api_key.permission_names == ["read", "write"]
    assert manager.authenticate(db, raw_key).id == api_key.id


def test_key_without_expiry_never_expires(db, user, manager):
    api_key, raw_key = manager.create(db, "forever", user.id)

    assert api_key.expires_at_utc is None
    assert not api_key.is_expired()
    assert manager.is_valid(db, raw_key)


def test_expired_and_inactive_keys_are_rejected(db, user, manager):
    expired, expired_raw = manager.create(db, "old", user.id, expires_at=utcnow() - timedelta(days=1))
    assert not manager.is_valid(db, expired_raw)

    active, raw = manager.create(db, "toggle", user.id, expires_at=utcnow() + timedelta(days=1))
    manager.set_active_status(db, active.id, False)
    assert not manager.is_valid(db, raw)
    manager.set_active_status(db, active, True)
    assert manager.is_valid(db, raw)


def test_tampered_or_malformed_keys(db, user, manager):
    api_key, raw = manager.create(db, "ci", user.id)

    assert not manager.is_valid(db, f"{api_key.id}|wrong")
    assert not manager.is_valid(db, "no-separator")
    assert manager.get_id_from_key("a|b|c") is None
    assert manager.get_value_from_key("") is None


def test_update_and_soft_delete(db, user, manager):
    api_key, raw = manager.create(db, "ci", user.id, description="before")

    updated = manager.update(db, api_key.id, "deploy", "after")
    assert (updated.name, updated.description) == ("deploy", "after")

    manager.destroy(db, api_key.id)
    assert not manager.is_valid(db, raw)
    assert manager.list_keys(db) == []
    with pytest.raises(ResourceNotFoundError):
        manager.read(db, api_key.id)


def test_permission_check(db, user, manager):
    api_key, _ = manager.create(db, "ci", user.id, permissions=["users.read"])

    assert api_key.has_any_permission("users.write", "users.read")
    assert not api_key.has_any_permission("users.write")


def test_owner_filter(db, user, make_user, manager):
    other = make_user("mallory@example.com")
    mine, _ = manager.create(db, "mine", user.id)
    theirs, _ = manager.create(db, "theirs", other.id)

    assert [k.id for k in manager.list_keys(db, owner_id=user.id)] == [mine.id]
    assert {k.id for k in manager.list_keys(db)} == {mine.id, theirs.id}
    assert manager.read(db, mine.id, owner_id=user.id).id == mine.id
    with pytest.raises(ResourceNotFoundError):
        manager.read(db, theirs.id, owner_id=user.id)
