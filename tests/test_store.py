"""Unit tests for auth/store.py -- UserStore repository.

Each test gets a blank in-memory database via the `store` fixture.
"""

import pytest
from sqlalchemy.exc import IntegrityError

from auth.models import ACTION_CREATE, ACTION_LOGIN, ENTITY_USER, AuditEntry, User


def _user(email="a@x.org", role="CHERCHEUR", **kw) -> User:
    return User(email=email, role=role, hashed_password="$2b$04$placeholder", **kw)


class TestUsers:
    def test_has_users_first_run(self, store):
        assert store.has_users() is False
        store.create_user(_user())
        assert store.has_users() is True

    def test_create_and_get(self, store):
        uid = store.create_user(_user(first_name="Moussa", last_name="Fall", phone="+221 77 000 00 00"))
        by_id = store.get_by_id(uid)
        by_email = store.get_by_email("a@x.org")
        assert by_id == by_email
        assert by_id.id == uid
        assert by_id.first_name == "Moussa"
        assert by_id.phone == "+221 77 000 00 00"
        assert by_id.is_active is True
        assert by_id.created_at and by_id.updated_at
        assert by_id.last_login is None

    def test_duplicate_email_raises_integrity_error(self, store):
        store.create_user(_user())
        with pytest.raises(IntegrityError):
            store.create_user(_user(role="TECHNICIEN_SUPERIEUR"))

    def test_email_lookup_is_exact(self, store):
        store.create_user(_user())
        assert store.get_by_email("A@x.org") is None
        assert store.get_by_email("missing@x.org") is None
        assert store.get_by_id(999) is None

    def test_inactive_flag_round_trips(self, store):
        uid = store.create_user(_user(is_active=False))
        assert store.get_by_id(uid).is_active is False

    def test_update_password(self, store):
        uid = store.create_user(_user())
        assert store.update_password(uid, "$2b$04$other") is True
        assert store.get_by_id(uid).hashed_password == "$2b$04$other"
        assert store.update_password(999, "$2b$04$other") is False

    def test_update_user_refreshes_updated_at(self, store):
        uid = store.create_user(_user())
        before = store.get_by_id(uid)
        assert store.update_user(uid, is_active=False, role="ASSISTANT_CHERCHEUR")
        after = store.get_by_id(uid)
        assert after.is_active is False
        assert after.role == "ASSISTANT_CHERCHEUR"
        assert after.updated_at >= before.updated_at

    def test_update_last_login(self, store):
        uid = store.create_user(_user())
        store.update_last_login(uid)
        assert store.get_by_id(uid).last_login is not None

    def test_list_supervised(self, store):
        boss = store.create_user(_user("boss@x.org"))
        store.create_user(_user("b@x.org", last_name="Sow", supervisor_id=boss))
        store.create_user(_user("c@x.org", last_name="Ba", supervisor_id=boss))
        store.create_user(_user("d@x.org"))
        supervised = store.list_supervised(boss)
        assert [u.last_name for u in supervised] == ["Ba", "Sow"]
        assert store.list_supervised(999) == []

    def test_public_view_drops_hash(self, store):
        uid = store.create_user(_user())
        public = store.get_by_id(uid).public()
        assert "hashed_password" not in public
        assert public["email"] == "a@x.org"


class TestAudit:
    def test_insert_and_list(self, store):
        rid = store.insert_audit(
            AuditEntry(
                action=ACTION_CREATE,
                entity_type=ENTITY_USER,
                entity_id=5,
                user_id=1,
                new_values={"email": "a@x.org", "role": "CHERCHEUR"},
            )
        )
        (record,) = store.list_audit(entity_type=ENTITY_USER, entity_id=5)
        assert record.id == rid
        assert record.action == ACTION_CREATE
        assert record.user_id == 1
        assert record.new_values == {"email": "a@x.org", "role": "CHERCHEUR"}
        assert record.previous_values is None
        assert record.created_at

    def test_list_filters_and_order(self, store):
        store.insert_audit(AuditEntry(action=ACTION_LOGIN, entity_type=ENTITY_USER, entity_id=1, user_id=1))
        store.insert_audit(AuditEntry(action=ACTION_CREATE, entity_type=ENTITY_USER, entity_id=2, user_id=1))
        store.insert_audit(
            AuditEntry(action=ACTION_LOGIN, entity_type=ENTITY_USER, entity_id=1, user_id=1, ip_address="10.0.0.9")
        )
        logins = store.list_audit(action=ACTION_LOGIN)
        assert [r.entity_id for r in logins] == [1, 1]
        assert logins[0].id < logins[1].id
        assert logins[1].ip_address == "10.0.0.9"
        assert store.count_audit() == 3
        assert store.list_audit(entity_type="PROJECT") == []
