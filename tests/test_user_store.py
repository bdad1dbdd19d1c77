#!/usr/bin/env python3
"""Unit tests for the SQLite UserStore."""

from datetime import datetime, timezone

import pytest

from aegis.models import Role
from aegis.users.store import StoreError, UserStore


def _create(store, name, created_by=None):
    return store.create(name, f"{name}@example.com", "hash", created_by=created_by)


class TestUserStore:
    def test_creates_parent_directory(self, tmp_path):
        db_path = tmp_path / "nested" / "dir" / "users.db"
        s = UserStore(db_path=str(db_path))
        try:
            assert db_path.parent.exists()
        finally:
            s.close()

    def test_create_assigns_uuid_and_defaults(self, store):
        user = _create(store, "owl")
        assert len(user.id) == 36
        assert user.roles == [Role.USER]
        assert user.deleted_at is None
        assert user.created_at is not None
        assert store.get(user.id) == user

    def test_duplicate_username_or_email_rejected(self, store):
        _create(store, "owl")
        with pytest.raises(StoreError):
            store.create("owl", "other@example.com", "hash")
        with pytest.raises(StoreError):
            store.create("other", "owl@example.com", "hash")

    def test_find_first_matches_any_field(self, store):
        owl = _create(store, "owl")
        _create(store, "hawk")
        assert store.find_first(username="owl").id == owl.id
        assert store.find_first(email="owl@example.com").id == owl.id
        assert store.find_first(username="nobody", email="owl@example.com").id == owl.id
        assert store.find_first(username=None, email=None) is None

    def test_find_first_rejects_unknown_column(self, store):
        with pytest.raises(ValueError):
            store.find_first(password_hash="x")

    def test_list_page_newest_first(self, store):
        names = [f"user{i:02d}" for i in range(5)]
        for name in names:
            _create(store, name)
        page = store.list_page(offset=0, limit=3)
        assert [u.username for u in page] == ["user04", "user03", "user02"]
        page = store.list_page(offset=3, limit=3)
        assert [u.username for u in page] == ["user01", "user00"]

    def test_count_and_list_respect_soft_delete(self, store):
        owl = _create(store, "owl")
        _create(store, "hawk")
        store.set_deleted_at(owl.id, datetime.now(timezone.utc), when_deleted=False)

        assert store.count() == 1
        assert store.count(include_deleted=True) == 2
        assert [u.username for u in store.list_page(0, 10)] == ["hawk"]
        assert len(store.list_page(0, 10, include_deleted=True)) == 2

    def test_set_deleted_at_is_conditional(self, store):
        owl = _create(store, "owl")
        now = datetime.now(timezone.utc)

        disabled = store.set_deleted_at(owl.id, now, when_deleted=False)
        assert disabled.deleted_at == now
        assert store.set_deleted_at(owl.id, now, when_deleted=False) is None

        restored = store.set_deleted_at(owl.id, None, when_deleted=True)
        assert restored.deleted_at is None
        assert store.set_deleted_at(owl.id, None, when_deleted=True) is None

    def test_set_deleted_at_missing_row(self, store):
        assert store.set_deleted_at("missing", None, when_deleted=True) is None

    def test_update_fields_ignores_protected_columns(self, store):
        owl = _create(store, "owl")
        updated = store.update_fields(
            owl.id,
            {"username": "barn-owl", "roles": [Role.ADMIN], "id": "other", "deleted_at": "x", "created_by": "y"},
        )
        assert updated.id == owl.id
        assert updated.username == "barn-owl"
        assert updated.roles == [Role.ADMIN]
        assert updated.deleted_at is None
        assert updated.created_by is None
        assert updated.updated_at >= owl.updated_at

    def test_update_fields_missing_row(self, store):
        assert store.update_fields("missing", {"username": "x"}) is None

    def test_update_fields_uniqueness(self, store):
        _create(store, "owl")
        hawk = _create(store, "hawk")
        with pytest.raises(StoreError):
            store.update_fields(hawk.id, {"email": "owl@example.com"})

    def test_list_created_by_and_get_many(self, store):
        admin = _create(store, "admin")
        a = _create(store, "a", created_by=admin.id)
        b = _create(store, "b", created_by=admin.id)
        _create(store, "c")

        assert [u.id for u in store.list_created_by(admin.id)] == [b.id, a.id]
        assert [u.id for u in store.get_many([a.id, "missing", b.id, a.id])] == [a.id, b.id]
        assert store.get_many([]) == []
