"""
Model factories for creating valid test data.

Every factory produces a valid, insertable SQLAlchemy model instance.
Override any field via kwargs.

Usage:
    store = StoreFactory.create(name="Custom")
    product = ProductFactory.create(store_id=store.id, price=Decimal("10"))
    await persist(db_session, store, product)
"""

import contextlib
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional

from jose import jwt
from libs.auth.dependencies import get_current_user, get_optional_user
from libs.auth.models import AuthUser
from libs.common.config import get_settings

OWNER_ID = "owner-0001"
OTHER_ID = "other-0002"

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _uuid() -> uuid.UUID:
    return uuid.uuid4()


def _short() -> str:
    return uuid.uuid4().hex[:8]


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _next_week() -> datetime:
    return datetime.now(timezone.utc) + timedelta(days=7)


async def persist(db, *instances):
    """Add and commit instances so request sessions can see them."""
    db.add_all(instances)
    await db.commit()
    return instances[0] if len(instances) == 1 else instances


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


def make_user(
    user_id: str = OWNER_ID, role: str = "authenticated", email: Optional[str] = None
) -> AuthUser:
    return AuthUser(user_id=user_id, email=email or f"{user_id}@example.com", role=role)


def make_token(user_id: str = OWNER_ID, role: str = "authenticated") -> str:
    """Sign a bearer token the way the auth provider would."""
    settings = get_settings()
    return jwt.encode(
        {"sub": user_id, "email": f"{user_id}@example.com", "role": role},
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )


@contextlib.contextmanager
def override_auth(target_app, user: Optional[AuthUser]):
    """Act as ``user`` (or as an anonymous guest when None) inside the block."""
    previous = dict(target_app.dependency_overrides)
    if user is None:
        target_app.dependency_overrides.pop(get_current_user, None)
        target_app.dependency_overrides[get_optional_user] = lambda: None
    else:
        target_app.dependency_overrides[get_current_user] = lambda: user
        target_app.dependency_overrides[get_optional_user] = lambda: user
    try:
        yield user
    finally:
        target_app.dependency_overrides.clear()
        target_app.dependency_overrides.update(previous)


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------


class StoreFactory:
    @staticmethod
    def create(**overrides):
        from services.storefront_service.models import Store

        suffix = _short()
        defaults = {
            "id": _uuid(),
            "owner_id": OWNER_ID,
            "name": f"Test Store {suffix}",
            "slug": f"test-store-{suffix}",
            "currency": "USD",
            "is_active": True,
        }
        defaults.update(overrides)
        return Store(**defaults)


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


class CategoryFactory:
    @staticmethod
    def create(store_id, **overrides):
        from services.storefront_service.models import Category

        suffix = _short()
        defaults = {
            "id": _uuid(),
            "store_id": store_id,
            "name": f"Category {suffix}",
            "slug": f"category-{suffix}",
            "is_active": True,
        }
        defaults.update(overrides)
        return Category(**defaults)


class ProductFactory:
    @staticmethod
    def create(store_id, **overrides):
        from services.storefront_service.models import Product

        suffix = _short()
        defaults = {
            "id": _uuid(),
            "store_id": store_id,
            "name": f"Product {suffix}",
            "slug": f"product-{suffix}",
            "price": Decimal("100.00"),
            "inventory": 10,
            "weight": Decimal("1.00"),
            "is_active": True,
            "is_featured": False,
        }
        defaults.update(overrides)
        return Product(**defaults)


class ProductImageFactory:
    @staticmethod
    def create(product_id, **overrides):
        from services.storefront_service.models import ProductImage

        defaults = {
            "id": _uuid(),
            "product_id": product_id,
            "url": f"https://cdn.example.com/{_short()}.jpg",
            "position": 0,
        }
        defaults.update(overrides)
        return ProductImage(**defaults)


class CollectionFactory:
    @staticmethod
    def create(store_id, **overrides):
        from services.storefront_service.models import Collection

        suffix = _short()
        defaults = {
            "id": _uuid(),
            "store_id": store_id,
            "name": f"Collection {suffix}",
            "slug": f"collection-{suffix}",
            "is_active": True,
        }
        defaults.update(overrides)
        return Collection(**defaults)


class ProductCollectionFactory:
    @staticmethod
    def create(product_id, collection_id, **overrides):
        from services.storefront_service.models import ProductCollection

        defaults = {"product_id": product_id, "collection_id": collection_id}
        defaults.update(overrides)
        return ProductCollection(**defaults)


# ---------------------------------------------------------------------------
# Discounts
# ---------------------------------------------------------------------------


class DiscountFactory:
    @staticmethod
    def create(store_id, **overrides):
        from services.storefront_service.models import Discount

        defaults = {
            "id": _uuid(),
            "store_id": store_id,
            "name": f"Sale {_short()}",
            "percentage": Decimal("10.00"),
            "end_date": _next_week(),
            "is_active": True,
        }
        defaults.update(overrides)
        return Discount(**defaults)


class ProductDiscountFactory:
    @staticmethod
    def create(discount_id, product_id):
        from services.storefront_service.models import ProductDiscount

        return ProductDiscount(discount_id=discount_id, product_id=product_id)


class CollectionDiscountFactory:
    @staticmethod
    def create(discount_id, collection_id):
        from services.storefront_service.models import CollectionDiscount

        return CollectionDiscount(discount_id=discount_id, collection_id=collection_id)


# ---------------------------------------------------------------------------
# Shipping
# ---------------------------------------------------------------------------


class ShippingZoneFactory:
    @staticmethod
    def create(store_id, **overrides):
        from services.storefront_service.models import ShippingZone

        defaults = {
            "id": _uuid(),
            "store_id": store_id,
            "name": f"Zone {_short()}",
            "countries": [],
            "states": [],
            "postal_codes": [],
            "is_active": True,
        }
        defaults.update(overrides)
        return ShippingZone(**defaults)


class ShippingRateFactory:
    @staticmethod
    def create(zone_id, **overrides):
        from services.storefront_service.models import ShippingRate, ShippingRateType

        defaults = {
            "id": _uuid(),
            "zone_id": zone_id,
            "name": f"Standard {_short()}",
            "type": ShippingRateType.FLAT_RATE,
            "price": Decimal("5.00"),
            "is_active": True,
        }
        defaults.update(overrides)
        return ShippingRate(**defaults)


class ShippingMethodFactory:
    @staticmethod
    def create(store_id, **overrides):
        from services.storefront_service.models import ShippingMethod

        defaults = {
            "id": _uuid(),
            "store_id": store_id,
            "name": "Express",
            "carrier": "Servientrega",
            "code": "SERVIENTREGA_EXPRESS",
            "tracking_url_template": "https://track.example.com/?n={tracking_number}",
            "is_active": True,
        }
        defaults.update(overrides)
        return ShippingMethod(**defaults)


# ---------------------------------------------------------------------------
# Carts
# ---------------------------------------------------------------------------


class CartFactory:
    @staticmethod
    def create(store_id, **overrides):
        from services.storefront_service.models import Cart, CartStatus

        defaults = {
            "id": _uuid(),
            "store_id": store_id,
            "session_id": f"session-{_short()}",
            "status": CartStatus.ACTIVE,
        }
        defaults.update(overrides)
        return Cart(**defaults)


class CartItemFactory:
    @staticmethod
    def create(cart_id, product_id, **overrides):
        from services.storefront_service.models import CartItem

        defaults = {
            "id": _uuid(),
            "cart_id": cart_id,
            "product_id": product_id,
            "quantity": 1,
        }
        defaults.update(overrides)
        return CartItem(**defaults)
