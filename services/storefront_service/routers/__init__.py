"""Storefront service routers package."""

from services.storefront_service.routers.admin_catalog import (
    router as admin_catalog_router,
)
from services.storefront_service.routers.admin_discounts import (
    router as admin_discounts_router,
)
from services.storefront_service.routers.admin_shipping import (
    router as admin_shipping_router,
)
from services.storefront_service.routers.cart import router as cart_router
from services.storefront_service.routers.catalog import router as catalog_router
from services.storefront_service.routers.stores import router as stores_router

__all__ = [
    "admin_catalog_router",
    "admin_discounts_router",
    "admin_shipping_router",
    "cart_router",
    "catalog_router",
    "stores_router",
]
