# Overview: Pytest coverage for the permission store.

"""
Permission Store Tests

Verifies:
1. create() writes a pending row and rejects a second pending row for the pair
2. A new request is possible once the previous one was decided
3. grant() / revoke() are idempotent and never overwrite timestamps
4. find_current() prefers the governing record
"""

import pytest

from shopguard.errors import DuplicateRequest
from shopguard.models import MultiShopPermission
from shopguard.services import permission_store


class TestCreate:

    def test_create_pending(self, db_session, admin, shop, owner):
        permission = permission_store.create(admin.id, shop.id, owner.id)

        assert permission.id is not None
        assert permission.granted is False
        assert permission.granted_at is None
        assert permission.revoked_at is None
        assert permission.status == "pending"

    def test_second_pending_for_pair_is_rejected(self, db_session, admin, shop, owner):
        permission_store.create(admin.id, shop.id, owner.id)

        with pytest.raises(DuplicateRequest):
            permission_store.create(admin.id, shop.id, owner.id)

        assert db_session.query(MultiShopPermission).count() == 1

    def test_unique_index_rejects_duplicate_insert(self, db_session, admin, shop, owner):
        """Bypassing the pre-check still cannot produce two pending rows."""
        permission_store.create(admin.id, shop.id, owner.id)

        db_session.add(MultiShopPermission(
            multi_shop_admin_id=admin.id, shop_id=shop.id, shop_owner_id=owner.id, granted=False,
        ))
        with pytest.raises(Exception):
            db_session.commit()
        db_session.rollback()

        assert db_session.query(MultiShopPermission).count() == 1

    def test_new_request_allowed_after_denial(self, db_session, admin, shop, owner):
        first = permission_store.create(admin.id, shop.id, owner.id)
        permission_store.revoke(first.id)

        second = permission_store.create(admin.id, shop.id, owner.id)

        assert second.id != first.id
        assert db_session.query(MultiShopPermission).count() == 2


class TestGrantRevoke:

    def test_grant_sets_granted_at(self, db_session, admin, shop, owner):
        permission = permission_store.create(admin.id, shop.id, owner.id)

        assert permission_store.grant(permission.id) is True

        permission = permission_store.get(permission.id)
        assert permission.granted is True
        assert permission.granted_at is not None
        assert permission.status == "granted"

    def test_grant_is_idempotent(self, db_session, admin, shop, owner):
        permission = permission_store.create(admin.id, shop.id, owner.id)
        permission_store.grant(permission.id)
        first_granted_at = permission_store.get(permission.id).granted_at

        assert permission_store.grant(permission.id) is True
        assert permission_store.get(permission.id).granted_at == first_granted_at

    def test_grant_missing_or_revoked(self, db_session, admin, shop, owner):
        assert permission_store.grant(999999) is False

        permission = permission_store.create(admin.id, shop.id, owner.id)
        permission_store.revoke(permission.id)
        assert permission_store.grant(permission.id) is False
        assert permission_store.get(permission.id).granted is False

    def test_revoke_is_idempotent(self, db_session, admin, shop, owner):
        permission = permission_store.create(admin.id, shop.id, owner.id)
        permission_store.grant(permission.id)

        assert permission_store.revoke(permission.id) is True
        first_revoked_at = permission_store.get(permission.id).revoked_at

        assert permission_store.revoke(permission.id) is True
        assert permission_store.get(permission.id).revoked_at == first_revoked_at
        assert permission_store.get(permission.id).status == "revoked"

    def test_revoke_missing(self, db_session):
        assert permission_store.revoke(999999) is False

    def test_pending_only_grant_reports_own_transition(self, db_session, admin, shop, owner):
        permission = permission_store.create(admin.id, shop.id, owner.id)

        assert permission_store.grant(permission.id, pending_only=True) is True
        assert permission_store.grant(permission.id, pending_only=True) is False
        assert permission_store.get(permission.id).status == "granted"

    def test_pending_only_revoke_leaves_grant_alone(self, db_session, admin, shop, owner):
        permission = permission_store.create(admin.id, shop.id, owner.id)
        permission_store.grant(permission.id)

        assert permission_store.revoke(permission.id, pending_only=True) is False
        assert permission_store.get(permission.id).status == "granted"

    def test_pending_only_revoke_denies_pending(self, db_session, admin, shop, owner):
        permission = permission_store.create(admin.id, shop.id, owner.id)

        assert permission_store.revoke(permission.id, pending_only=True) is True
        assert permission_store.revoke(permission.id, pending_only=True) is False
        assert permission_store.get(permission.id).status == "denied"

    def test_denied_status_is_derived(self, db_session, admin, shop, owner):
        permission = permission_store.create(admin.id, shop.id, owner.id)
        permission_store.revoke(permission.id)

        assert permission_store.get(permission.id).status == "denied"


class TestQueries:

    def test_list_pending_for_shop_owner(self, db_session, admin, shop, second_shop, owner):
        first = permission_store.create(admin.id, shop.id, owner.id)
        second = permission_store.create(admin.id, second_shop.id, owner.id)
        permission_store.grant(second.id)

        pending = permission_store.list_pending_for_shop_owner(owner.id)

        assert [p.id for p in pending] == [first.id]

    def test_list_active_and_by_admin(self, db_session, admin, shop, second_shop, owner):
        first = permission_store.create(admin.id, shop.id, owner.id)
        second = permission_store.create(admin.id, second_shop.id, owner.id)
        permission_store.grant(first.id)

        assert [p.id for p in permission_store.list_active_for_shop_owner(owner.id)] == [first.id]
        assert {p.id for p in permission_store.list_by_multi_shop_admin(admin.id)} == {first.id, second.id}

    def test_find_current_prefers_unrevoked_grant(self, db_session, admin, shop, owner):
        denied = permission_store.create(admin.id, shop.id, owner.id)
        permission_store.revoke(denied.id)
        granted = permission_store.create(admin.id, shop.id, owner.id)
        permission_store.grant(granted.id)

        assert permission_store.find_current(admin.id, shop.id).id == granted.id

    def test_find_current_none(self, db_session, admin, shop):
        assert permission_store.find_current(admin.id, shop.id) is None
