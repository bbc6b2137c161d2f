# Overview: Pytest coverage for the request/approve/deny/revoke workflow.

"""
Permission Workflow Tests

Verifies:
1. End-to-end: request -> pending -> approve -> switch -> revoke -> context reset
2. Only the recorded shop owner can decide; failures are audited and change nothing
3. Already-decided requests conflict; duplicates conflict
4. Rate limits on requests and approvals are audited as *_rate_limited/denied
5. Owner views: enriched pending list, masked grants, owner-only audit logs
"""

import pytest

from shopguard.errors import Conflict, DuplicateRequest, Forbidden, NotFound, RateLimited, ValidationError
from shopguard.models import AuditLogEntry, MultiShopPermission
from shopguard.services import permission_store, permission_workflow_service as workflow
from shopguard.services import session_context_service

from conftest import audit_actions, last_audit, make_shop


class TestEndToEnd:

    def test_request_approve_switch_revoke(self, db_session, admin, owner, shop, admin_session):
        session, _token = admin_session

        # (a) request
        permission = workflow.request_access(77, 5)
        assert permission.granted is False
        assert permission.revoked_at is None
        assert permission.shop_owner_id == 10
        request_entry = last_audit(db_session, "permission_request")
        assert request_entry.status == "success"
        assert request_entry.user_id == 77
        assert request_entry.target_user_id == 10
        assert request_entry.target_shop_id == 5

        # (b) owner sees it
        pending = workflow.list_pending(10)
        assert len(pending) == 1
        assert pending[0]["multi_shop_admin_id"] == 77
        assert pending[0]["shop_id"] == 5
        assert pending[0]["shop_name"] == "Main Street Repairs"

        # (c) approve
        approved = workflow.approve(permission.id, acting_owner_id=10)
        assert approved.granted is True
        assert approved.granted_at is not None
        assert last_audit(db_session, "permission_grant").status == "success"

        # (d) switch
        context = session_context_service.switch_shop(admin, session, 5)
        assert context.current_shop_id == 5
        assert last_audit(db_session, "shop_switch").target_shop_id == 5

        # (e) revoke
        revoked = workflow.revoke(permission.id, acting_user_id=10)
        assert revoked.revoked_at is not None

        # (f) context is dropped on next read
        context = session_context_service.get_current_context(admin, session)
        assert context.current_shop_id is None
        assert context.mode == "dashboard"
        assert last_audit(db_session, "invalid_shop_context_reset") is not None

        assert audit_actions(db_session) == [
            "permission_request",
            "view_pending_requests",
            "permission_grant",
            "shop_switch",
            "permission_revoke",
            "access_attempt",
            "invalid_shop_context_reset",
        ]


class TestRequestAccess:

    def test_duplicate_pending_conflicts(self, db_session, admin, shop):
        workflow.request_access(admin.id, shop.id)

        with pytest.raises(DuplicateRequest):
            workflow.request_access(admin.id, shop.id)

        assert db_session.query(MultiShopPermission).count() == 1
        failed = last_audit(db_session, "permission_request_failed")
        assert failed.status == "failed"

    def test_existing_grant_conflicts(self, db_session, admin, shop):
        permission = workflow.request_access(admin.id, shop.id)
        workflow.approve(permission.id, shop.owner_id)

        with pytest.raises(Conflict):
            workflow.request_access(admin.id, shop.id)

    def test_missing_shop(self, db_session, admin):
        with pytest.raises(NotFound):
            workflow.request_access(admin.id, 4040)
        assert last_audit(db_session).action == "permission_request_failed"

    def test_requires_multi_shop_admin(self, db_session, outsider, shop):
        with pytest.raises(Forbidden):
            workflow.request_access(outsider.id, shop.id)
        assert db_session.query(MultiShopPermission).count() == 0

    def test_cannot_request_own_shop(self, db_session, shop, owner):
        owner.is_multi_shop_admin = True
        db_session.commit()

        with pytest.raises(ValidationError):
            workflow.request_access(owner.id, shop.id)

    def test_malformed_shop_id(self, db_session, admin):
        with pytest.raises(ValidationError):
            workflow.request_access(admin.id, "5")

    def test_request_rate_limited(self, db_session, admin, owner):
        shops = [
            make_shop(db_session, shop_id, f"Shop {shop_id}", owner) for shop_id in range(100, 106)
        ]
        for shop in shops[:5]:
            workflow.request_access(admin.id, shop.id)

        with pytest.raises(RateLimited):
            workflow.request_access(admin.id, shops[5].id)

        entry = last_audit(db_session)
        assert entry.action == "permission_request_rate_limited"
        assert entry.status == "denied"
        assert db_session.query(MultiShopPermission).count() == 5


class TestDecisions:

    def test_wrong_owner_cannot_approve(self, db_session, admin, shop, outsider):
        permission = workflow.request_access(admin.id, shop.id)

        with pytest.raises(Forbidden):
            workflow.approve(permission.id, acting_owner_id=outsider.id)

        permission = permission_store.get(permission.id)
        assert permission.granted is False
        assert permission.revoked_at is None

        failed = last_audit(db_session)
        assert failed.action == "permission_approve_failed"
        assert failed.status == "failed"
        assert failed.user_id == outsider.id

    def test_approve_missing(self, db_session, owner):
        with pytest.raises(NotFound):
            workflow.approve(987654, owner.id)
        assert last_audit(db_session).action == "permission_approve_failed"

    def test_approve_twice_conflicts(self, db_session, admin, shop, owner):
        permission = workflow.request_access(admin.id, shop.id)
        first = workflow.approve(permission.id, owner.id)
        granted_at = first.granted_at

        with pytest.raises(Conflict):
            workflow.approve(permission.id, owner.id)

        assert permission_store.get(permission.id).granted_at == granted_at

    def test_deny_pending(self, db_session, admin, shop, owner):
        permission = workflow.request_access(admin.id, shop.id)

        denied = workflow.deny(permission.id, owner.id, reason="Not this quarter")

        assert denied.granted is False
        assert denied.revoked_at is not None
        assert denied.status == "denied"
        entry = last_audit(db_session, "permission_deny")
        assert entry.reason == "Not this quarter"
        assert entry.target_user_id == admin.id

    def test_deny_after_grant_conflicts(self, db_session, admin, shop, owner):
        permission = workflow.request_access(admin.id, shop.id)
        workflow.approve(permission.id, owner.id)

        with pytest.raises(Conflict):
            workflow.deny(permission.id, owner.id)
        assert last_audit(db_session).action == "permission_deny_failed"

    def test_deny_loses_race_to_concurrent_approve(self, db_session, admin, shop, owner, monkeypatch):
        permission = workflow.request_access(admin.id, shop.id)
        store_revoke = permission_store.revoke

        def approved_meanwhile(permission_id, **kwargs):
            permission_store.grant(permission_id)
            return store_revoke(permission_id, **kwargs)

        monkeypatch.setattr(permission_store, "revoke", approved_meanwhile)

        with pytest.raises(Conflict):
            workflow.deny(permission.id, owner.id)

        stored = permission_store.get(permission.id)
        assert stored.status == "granted"
        assert stored.revoked_at is None
        assert last_audit(db_session).action == "permission_deny_failed"
        assert last_audit(db_session, "permission_deny") is None

    def test_approve_loses_race_to_concurrent_approve(self, db_session, admin, shop, owner, monkeypatch):
        permission = workflow.request_access(admin.id, shop.id)
        store_grant = permission_store.grant

        def approved_meanwhile(permission_id, **kwargs):
            store_grant(permission_id)
            return store_grant(permission_id, **kwargs)

        monkeypatch.setattr(permission_store, "grant", approved_meanwhile)

        with pytest.raises(Conflict):
            workflow.approve(permission.id, owner.id)

        assert permission_store.get(permission.id).status == "granted"
        assert last_audit(db_session).action == "permission_approve_failed"
        assert last_audit(db_session, "permission_grant") is None

    def test_wrong_owner_cannot_deny(self, db_session, admin, shop, other_owner):
        permission = workflow.request_access(admin.id, shop.id)

        with pytest.raises(Forbidden):
            workflow.deny(permission.id, other_owner.id)
        assert permission_store.get(permission.id).is_pending

    def test_approve_rate_limited(self, db_session, admin, owner):
        for _ in range(10):
            with pytest.raises(NotFound):
                workflow.approve(555555, owner.id)

        with pytest.raises(RateLimited):
            workflow.approve(555555, owner.id)

        entry = last_audit(db_session)
        assert entry.action == "permission_approve_rate_limited"
        assert entry.status == "denied"


class TestRevoke:

    def test_admin_can_revoke_own_permission(self, db_session, admin, shop, owner):
        permission = workflow.request_access(admin.id, shop.id)
        workflow.approve(permission.id, owner.id)

        revoked = workflow.revoke(permission.id, admin.id)

        assert revoked.status == "revoked"
        entry = last_audit(db_session, "permission_revoke")
        assert entry.user_id == admin.id
        assert entry.target_user_id == owner.id

    def test_revoke_is_idempotent(self, db_session, admin, shop, owner):
        permission = workflow.request_access(admin.id, shop.id)
        workflow.approve(permission.id, owner.id)
        first = workflow.revoke(permission.id, owner.id).revoked_at

        again = workflow.revoke(permission.id, owner.id)

        assert again.revoked_at == first
        assert audit_actions(db_session).count("permission_revoke") == 1

    def test_stranger_cannot_revoke(self, db_session, admin, shop, outsider):
        permission = workflow.request_access(admin.id, shop.id)

        with pytest.raises(Forbidden):
            workflow.revoke(permission.id, outsider.id)
        assert last_audit(db_session).action == "permission_revoke_failed"


class TestOwnerViews:

    def test_list_pending_only_own_shops(self, db_session, admin, shop, foreign_shop, owner):
        workflow.request_access(admin.id, shop.id)
        workflow.request_access(admin.id, foreign_shop.id)

        pending = workflow.list_pending(owner.id)

        assert [p["shop_id"] for p in pending] == [shop.id]
        assert pending[0]["multi_shop_admin_name"] == admin.username
        assert last_audit(db_session).action == "view_pending_requests"

    def test_list_granted_masks_email(self, db_session, admin, shop, owner):
        permission = workflow.request_access(admin.id, shop.id)
        workflow.approve(permission.id, owner.id)

        granted = workflow.list_granted(owner.id)

        assert len(granted) == 1
        assert granted[0]["admin_email_hint"] == "adm***@example.com"
        assert granted[0]["shop_name"] == shop.name

    def test_list_for_admin(self, db_session, admin, shop, second_shop):
        workflow.request_access(admin.id, shop.id)
        workflow.request_access(admin.id, second_shop.id)

        views = workflow.list_for_admin(admin.id)

        assert {v["shop_id"] for v in views} == {shop.id, second_shop.id}
        assert all(v["status"] == "pending" for v in views)
        assert all("shop_owner_id" not in v for v in views)

    def test_shop_audit_logs_owner_only(self, db_session, admin, shop, owner, other_owner):
        workflow.request_access(admin.id, shop.id)

        entries = workflow.shop_audit_logs(owner.id, shop.id)
        assert [e["action"] for e in entries] == ["permission_request"]

        with pytest.raises(Forbidden):
            workflow.shop_audit_logs(other_owner.id, shop.id)
        denied = last_audit(db_session)
        assert denied.action == "access_attempt"
        assert denied.user_id == other_owner.id

    @pytest.mark.parametrize("shop_id", [0, -3, "5", True])
    def test_shop_audit_logs_invalid_shop_id(self, db_session, owner, shop_id):
        with pytest.raises(ValidationError):
            workflow.shop_audit_logs(owner.id, shop_id)

        entry = last_audit(db_session)
        assert entry.action == "access_attempt"
        assert entry.status == "failed"
        assert entry.user_id == owner.id

    def test_shop_audit_logs_redact_foreign_shops(self, db_session, admin, shop, foreign_shop, owner, admin_session):
        session, _token = admin_session
        for target in (shop, foreign_shop):
            permission = workflow.request_access(admin.id, target.id)
            workflow.approve(permission.id, target.owner_id)

        session_context_service.switch_shop(admin, session, foreign_shop.id)
        session_context_service.switch_shop(admin, session, shop.id)

        entries = workflow.shop_audit_logs(owner.id, shop.id)
        switch = next(e for e in entries if e["action"] == "shop_switch")

        assert switch["target_shop_id"] == shop.id
        assert switch["shop_id"] is None
        assert all(foreign_shop.id not in (e["shop_id"], e["target_shop_id"]) for e in entries)
        assert db_session.query(AuditLogEntry).filter_by(action="view_audit_logs").count() == 1
