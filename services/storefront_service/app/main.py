"""FastAPI application for the Storefront Service."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from libs.common.config import get_settings
from libs.common.middleware import add_observability_middleware
from services.storefront_service.routers import (
    admin_catalog_router,
    admin_discounts_router,
    admin_shipping_router,
    cart_router,
    catalog_router,
    stores_router,
)

ADMIN_PREFIX = "/stores/{slug}/admin"


def create_app() -> FastAPI:
    """Create and configure the Storefront Service FastAPI app."""
    settings = get_settings()
    app = FastAPI(
        title="Storefront Service",
        version="0.1.0",
        description="Multi-store e-commerce: catalog, discounts, cart and shipping.",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Structured logging + request tracing
    add_observability_middleware(app)

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": "storefront"}

    # Public routes (store directory, storefront, cart)
    app.include_router(stores_router)
    app.include_router(catalog_router)
    app.include_router(cart_router)

    # Store admin routes (owner or platform admin)
    app.include_router(admin_catalog_router, prefix=ADMIN_PREFIX)
    app.include_router(admin_discounts_router, prefix=ADMIN_PREFIX)
    app.include_router(admin_shipping_router, prefix=ADMIN_PREFIX)

    return app


app = create_app()
