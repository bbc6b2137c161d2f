from __future__ import annotations

from ..extensions import db
from shopguard.time_utils import to_utc_z

class User(db.Model):
    """
    Authenticated principal (read-only to the permission subsystem).

    WHY: Every action must be attributable. Role flags come from the identity
    subsystem; this service only reads them.

    ROLES:
    - is_superadmin: platform operator, may seed access requests in bulk
    - is_multi_shop_admin: may request and (once granted) view other owners' shops
    - plain users own zero or more shops (Shop.owner_id)
    """
    __tablename__ = "users"
    __table_args__ = (
        db.UniqueConstraint("username", name="uq_users_username"),
        db.UniqueConstraint("email", name="uq_users_email"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    username = db.Column(db.String(64), nullable=False, index=True)
    email = db.Column(db.String(255), nullable=False)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    is_superadmin = db.Column(db.Boolean, nullable=False, default=False)
    is_multi_shop_admin = db.Column(db.Boolean, nullable=False, default=False, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    @property
    def owns_shop_id(self) -> int | None:
        """Primary owned shop, if any (lowest id when a user owns several)."""
        shops = sorted(self.owned_shops, key=lambda shop: shop.id)
        return shops[0].id if shops else None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "is_active": self.is_active,
            "is_superadmin": self.is_superadmin,
            "is_multi_shop_admin": self.is_multi_shop_admin,
            "owns_shop_id": self.owns_shop_id,
            "created_at": to_utc_z(self.created_at),
        }


class SessionToken(db.Model):
    """
    Session token carrying the temporary shop context of a multi-shop admin.

    WHY: Stateless auth tokens with timeout and revocation support.
    Tokens are cryptographically secure random strings (32 bytes = 64 hex chars).

    SHOP CONTEXT: current_shop_id / previous_shop_id / shop_switched_at belong
    to exactly one session. They are never trusted on read: the session
    context service revalidates the permission behind current_shop_id every
    time it is returned, and clears all three columns when that fails.

    SECURITY NOTES:
    - Tokens stored hashed in database (SHA-256)
    - 24-hour absolute timeout
    - 2-hour idle timeout
    - Revocable on logout or suspicious activity (clears shop context)
    """
    __tablename__ = "session_tokens"
    __table_args__ = (
        db.Index("ix_session_tokens_user_active", "user_id", "is_revoked"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    # Token hash (never store plaintext tokens!)
    token_hash = db.Column(db.String(255), nullable=False, unique=True, index=True)

    # Session metadata
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    # Revocation support
    is_revoked = db.Column(db.Boolean, nullable=False, default=False, index=True)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    revoked_reason = db.Column(db.String(255), nullable=True)

    # Client information (for security monitoring)
    user_agent = db.Column(db.String(512), nullable=True)
    ip_address = db.Column(db.String(45), nullable=True)  # IPv6 max length

    # Temporary "viewing as shop X" context (no FK: a deleted shop must not block session cleanup)
    current_shop_id = db.Column(db.Integer, nullable=True)
    previous_shop_id = db.Column(db.Integer, nullable=True)
    shop_switched_at = db.Column(db.DateTime(timezone=True), nullable=True)

    user = db.relationship("User", backref=db.backref("session_tokens", lazy=True))

    def clear_shop_context(self) -> None:
        self.current_shop_id = None
        self.previous_shop_id = None
        self.shop_switched_at = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
            "last_used_at": to_utc_z(self.last_used_at),
            "expires_at": to_utc_z(self.expires_at),
            "is_revoked": self.is_revoked,
            "revoked_at": to_utc_z(self.revoked_at) if self.revoked_at else None,
            "current_shop_id": self.current_shop_id,
        }
