from __future__ import annotations

from ..extensions import db
from shopguard.time_utils import as_naive_utc, to_utc_z, utcnow


PERMISSION_STATUS_PENDING = "pending"
PERMISSION_STATUS_GRANTED = "granted"
PERMISSION_STATUS_DENIED = "denied"
PERMISSION_STATUS_REVOKED = "revoked"


class MultiShopPermission(db.Model):
    """
    Shop owner consent for a multi-shop admin to access one shop.

    LIFECYCLE:
    - pending:  granted=False, revoked_at=NULL (created by a request)
    - granted:  granted=True, granted_at set, revoked_at=NULL (owner approved)
    - denied:   revoked_at set, granted_at never set (owner denied)
    - revoked:  revoked_at set after a grant (owner or admin revoked)

    Denial and revocation share the same storage mutation; only granted_at
    tells them apart. status is derived, never stored.

    INVARIANT: at most one pending row per (multi_shop_admin_id, shop_id).
    Enforced by the partial unique index below so concurrent inserts cannot
    both succeed.

    shop_owner_id is a snapshot of Shop.owner_id at request time. It is not
    re-derived if the shop changes hands.

    IMMUTABLE HISTORY: rows are never deleted.
    """
    __tablename__ = "multi_shop_permissions"
    __table_args__ = (
        db.Index(
            "uq_multi_shop_permissions_pending_pair",
            "multi_shop_admin_id",
            "shop_id",
            unique=True,
            sqlite_where=db.text("granted = 0 AND revoked_at IS NULL"),
            postgresql_where=db.text("granted = false AND revoked_at IS NULL"),
        ),
        db.Index("ix_multi_shop_permissions_admin_shop", "multi_shop_admin_id", "shop_id"),
        db.Index("ix_multi_shop_permissions_owner", "shop_owner_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    multi_shop_admin_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    shop_owner_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    granted = db.Column(db.Boolean, nullable=False, default=False)
    granted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    multi_shop_admin = db.relationship("User", foreign_keys=[multi_shop_admin_id])
    shop_owner = db.relationship("User", foreign_keys=[shop_owner_id])
    shop = db.relationship("Shop", backref=db.backref("multi_shop_permissions", lazy=True))

    @property
    def is_pending(self) -> bool:
        return not self.granted and self.revoked_at is None

    @property
    def status(self) -> str:
        if self.revoked_at is not None:
            return PERMISSION_STATUS_REVOKED if self.granted_at is not None else PERMISSION_STATUS_DENIED
        if self.granted:
            return PERMISSION_STATUS_GRANTED
        return PERMISSION_STATUS_PENDING

    def is_currently_valid(self, now=None) -> bool:
        """granted AND not revoked AND granted_at <= now."""
        now = now or utcnow()
        granted_at = as_naive_utc(self.granted_at)
        return (
            self.granted is True
            and self.revoked_at is None
            and granted_at is not None
            and granted_at <= now
        )

    def __repr__(self) -> str:
        return (
            f"<MultiShopPermission id={self.id} admin={self.multi_shop_admin_id} "
            f"shop={self.shop_id} status={self.status}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "multi_shop_admin_id": self.multi_shop_admin_id,
            "shop_id": self.shop_id,
            "shop_owner_id": self.shop_owner_id,
            "granted": self.granted,
            "granted_at": to_utc_z(self.granted_at),
            "revoked_at": to_utc_z(self.revoked_at),
            "created_at": to_utc_z(self.created_at),
            "status": self.status,
        }
