from __future__ import annotations

from ..extensions import db
from shopguard.time_utils import to_utc_z

class Shop(db.Model):
    """
    Tenant root: every repair shop is owned by exactly one user.

    WHY: Shop data never crosses tenant boundaries unless the owner has
    granted a multi-shop admin access (see MultiShopPermission).

    READ-ONLY here: shops are created by the host application's tenant
    directory; the permission subsystem only resolves owners.
    """
    __tablename__ = "shops"
    __table_args__ = (
        db.Index("ix_shops_owner_id", "owner_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )

    owner = db.relationship("User", backref=db.backref("owned_shops", lazy=True))

    def __repr__(self) -> str:
        return f"<Shop id={self.id} name={self.name!r} owner_id={self.owner_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "owner_id": self.owner_id,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
