"""
Permission Store: durable grant/revoke records between a multi-shop admin and a shop

WHY: The single writer of multi_shop_permissions. Only the permission
workflow (state transitions) and the validation service (reads) use it.

CONCURRENCY:
- create() relies on the partial unique index on pending (admin, shop) pairs.
  Two concurrent requests race on INSERT; the loser gets IntegrityError and
  is reported as DuplicateRequest. No second row is ever created.
- grant() and revoke() are conditional UPDATEs, so a retried call is a no-op
  instead of overwriting granted_at / revoked_at.
- With pending_only=True they report whether THIS call moved the record out
  of pending. Approve and deny use it so that of two racing decisions exactly
  one wins and the other sees a Conflict.
"""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..errors import DuplicateRequest
from ..extensions import db
from ..models import MultiShopPermission
from shopguard.time_utils import utcnow


def _pending_query(multi_shop_admin_id: int, shop_id: int):
    return db.session.query(MultiShopPermission).filter(
        MultiShopPermission.multi_shop_admin_id == multi_shop_admin_id,
        MultiShopPermission.shop_id == shop_id,
        MultiShopPermission.granted.is_(False),
        MultiShopPermission.revoked_at.is_(None),
    )


def create(multi_shop_admin_id: int, shop_id: int, shop_owner_id: int) -> MultiShopPermission:
    """
    Create a pending permission.

    Raises DuplicateRequest if a pending record already exists for the pair.
    """
    if _pending_query(multi_shop_admin_id, shop_id).first() is not None:
        raise DuplicateRequest()

    permission = MultiShopPermission(
        multi_shop_admin_id=multi_shop_admin_id,
        shop_id=shop_id,
        shop_owner_id=shop_owner_id,
        granted=False,
        granted_at=None,
        revoked_at=None,
        created_at=utcnow(),
    )
    db.session.add(permission)
    try:
        db.session.commit()
    except IntegrityError:
        # Lost the race against a concurrent request for the same pair
        db.session.rollback()
        raise DuplicateRequest()

    return permission


def get(permission_id: int) -> MultiShopPermission | None:
    return db.session.get(MultiShopPermission, permission_id)


def grant(permission_id: int, *, pending_only: bool = False) -> bool:
    """
    Mark a permission granted (granted=True, granted_at=now).

    Returns False if the record does not exist or is revoked. Granting an
    already-granted record returns True and keeps the original granted_at,
    unless pending_only is set: then only the call that performed the
    transition returns True.
    """
    updated = (
        db.session.query(MultiShopPermission)
        .filter(
            MultiShopPermission.id == permission_id,
            MultiShopPermission.granted.is_(False),
            MultiShopPermission.revoked_at.is_(None),
        )
        .update({"granted": True, "granted_at": utcnow()}, synchronize_session=False)
    )
    db.session.commit()

    permission = get(permission_id)
    if permission is not None:
        db.session.refresh(permission)

    if updated:
        return True
    if pending_only:
        return False
    return bool(permission and permission.granted and permission.revoked_at is None)


def revoke(permission_id: int, *, pending_only: bool = False) -> bool:
    """
    Set revoked_at=now.

    Idempotent: revoking an already-revoked record is a no-op returning True.
    Returns False only if the record does not exist.

    With pending_only (denial), only a pending record is touched and the
    return value says whether this call denied it. A record granted or
    revoked in the meantime is left alone and False is returned.
    """
    query = db.session.query(MultiShopPermission).filter(
        MultiShopPermission.id == permission_id,
        MultiShopPermission.revoked_at.is_(None),
    )
    if pending_only:
        query = query.filter(MultiShopPermission.granted.is_(False))
    updated = query.update({"revoked_at": utcnow()}, synchronize_session=False)
    db.session.commit()

    permission = get(permission_id)
    if permission is not None:
        db.session.refresh(permission)

    if updated:
        return True
    if pending_only:
        return False
    return permission is not None


def list_by_multi_shop_admin(multi_shop_admin_id: int) -> list[MultiShopPermission]:
    return (
        db.session.query(MultiShopPermission)
        .filter_by(multi_shop_admin_id=multi_shop_admin_id)
        .order_by(MultiShopPermission.created_at.desc(), MultiShopPermission.id.desc())
        .all()
    )


def list_pending_for_shop_owner(shop_owner_id: int) -> list[MultiShopPermission]:
    """Only granted=False, revoked_at=NULL rows, oldest first."""
    return (
        db.session.query(MultiShopPermission)
        .filter(
            MultiShopPermission.shop_owner_id == shop_owner_id,
            MultiShopPermission.granted.is_(False),
            MultiShopPermission.revoked_at.is_(None),
        )
        .order_by(MultiShopPermission.created_at.asc(), MultiShopPermission.id.asc())
        .all()
    )


def list_active_for_shop_owner(shop_owner_id: int) -> list[MultiShopPermission]:
    """Granted and not revoked rows for the owner's shops."""
    return (
        db.session.query(MultiShopPermission)
        .filter(
            MultiShopPermission.shop_owner_id == shop_owner_id,
            MultiShopPermission.granted.is_(True),
            MultiShopPermission.revoked_at.is_(None),
        )
        .order_by(MultiShopPermission.granted_at.desc(), MultiShopPermission.id.desc())
        .all()
    )


def find_current(multi_shop_admin_id: int, shop_id: int) -> MultiShopPermission | None:
    """
    The record that currently governs (admin, shop).

    Preference: unrevoked before revoked, granted before pending, newest first.
    The returned row is NOT guaranteed valid; callers re-check its fields.
    """
    return (
        db.session.query(MultiShopPermission)
        .filter(
            MultiShopPermission.multi_shop_admin_id == multi_shop_admin_id,
            MultiShopPermission.shop_id == shop_id,
        )
        .order_by(
            MultiShopPermission.revoked_at.is_(None).desc(),
            MultiShopPermission.granted.desc(),
            MultiShopPermission.id.desc(),
        )
        .first()
    )
