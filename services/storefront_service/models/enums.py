"""Enum definitions for storefront service models."""

import enum


def enum_values(enum_cls):
    """Return persistent DB values for SAEnum mappings."""
    return [member.value for member in enum_cls]


class CartStatus(str, enum.Enum):
    ACTIVE = "active"
    CONVERTED = "converted"
    ABANDONED = "abandoned"


class ShippingRateType(str, enum.Enum):
    FLAT_RATE = "flat_rate"
    WEIGHT_BASED = "weight_based"
    PRICE_BASED = "price_based"
    FREE = "free"


class ProductSort(str, enum.Enum):
    NEWEST = "newest"
    PRICE_ASC = "price-asc"
    PRICE_DESC = "price-desc"
    NAME = "name"


class AuditEntityType(str, enum.Enum):
    STORE = "store"
    CATEGORY = "category"
    PRODUCT = "product"
    COLLECTION = "collection"
    DISCOUNT = "discount"
    SHIPPING_ZONE = "shipping_zone"
    SHIPPING_RATE = "shipping_rate"
    SHIPPING_METHOD = "shipping_method"
