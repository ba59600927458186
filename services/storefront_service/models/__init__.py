"""Storefront Service models package."""

from services.storefront_service.models.catalog import (
    Category,
    CategoryImage,
    Collection,
    Product,
    ProductCollection,
    ProductImage,
)
from services.storefront_service.models.commerce import Cart, CartItem
from services.storefront_service.models.discounts import (
    CollectionDiscount,
    Discount,
    ProductDiscount,
)
from services.storefront_service.models.enums import (
    AuditEntityType,
    CartStatus,
    ProductSort,
    ShippingRateType,
)
from services.storefront_service.models.shipping import (
    ShippingMethod,
    ShippingRate,
    ShippingZone,
)
from services.storefront_service.models.store import Store, StoreAuditLog

__all__ = [
    "AuditEntityType",
    "Cart",
    "CartItem",
    "CartStatus",
    "Category",
    "CategoryImage",
    "Collection",
    "CollectionDiscount",
    "Discount",
    "Product",
    "ProductCollection",
    "ProductDiscount",
    "ProductImage",
    "ProductSort",
    "ShippingMethod",
    "ShippingRate",
    "ShippingRateType",
    "ShippingZone",
    "Store",
    "StoreAuditLog",
]
