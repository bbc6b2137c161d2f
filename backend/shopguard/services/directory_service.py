"""
Directory Service: principal and shop lookups

WHY: The permission subsystem never owns users or shops. It reads them
through this narrow interface so the identity and tenant subsystems can change
storage without touching authorization code.

USAGE:
    from shopguard.services.directory_service import get_shop, get_shop_owner

    owner = get_shop_owner(shop_id)   # None when the shop or owner is missing
"""

from __future__ import annotations

from ..extensions import db
from ..models import Shop, User


def get_principal(user_id: int) -> User | None:
    """Load a principal by id. Inactive principals are returned; callers decide."""
    if user_id is None:
        return None
    return db.session.get(User, user_id)


def get_shop(shop_id: int) -> Shop | None:
    if shop_id is None:
        return None
    return db.session.get(Shop, shop_id)


def get_shop_owner(shop_id: int) -> User | None:
    """
    Resolve the current owner of a shop.

    Returns None if the shop does not exist, is inactive, or its owner row
    is missing.
    """
    shop = get_shop(shop_id)
    if not shop or not shop.is_active:
        return None
    return db.session.get(User, shop.owner_id)


def get_shops(shop_ids: list[int]) -> dict[int, Shop]:
    """Batch lookup; missing ids are simply absent from the result."""
    if not shop_ids:
        return {}
    shops = db.session.query(Shop).filter(Shop.id.in_(shop_ids)).all()
    return {shop.id: shop for shop in shops}


def get_principals(user_ids: list[int]) -> dict[int, User]:
    if not user_ids:
        return {}
    users = db.session.query(User).filter(User.id.in_(user_ids)).all()
    return {user.id: user for user in users}


def owns_shop(user_id: int, shop_id: int) -> bool:
    shop = get_shop(shop_id)
    return bool(shop and shop.owner_id == user_id)
