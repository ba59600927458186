"""Seed script for storefront demo data.

For every store, creates the Colombian shipping setup (three zones grouped by
department, their carrier rates and the carrier methods used for tracking)
and a sample catalog (categories, collections, products and images). Stores
that already have shipping zones or categories are left alone, so the script
can be re-run safely.

Usage:
    python -m services.storefront_service.seed_store_data
"""

import asyncio
from decimal import Decimal

from libs.db.config import AsyncSessionLocal
from services.storefront_service.models import (
    Category,
    Collection,
    Product,
    ProductCollection,
    ProductImage,
    ShippingMethod,
    ShippingRate,
    ShippingRateType,
    ShippingZone,
    Store,
)
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

# =============================================================================
# SHIPPING
# =============================================================================


def _weight_rate(name, description, price, max_weight, days):
    return {
        "name": name,
        "description": description,
        "type": ShippingRateType.WEIGHT_BASED,
        "price": Decimal(price),
        "min_weight": Decimal("0"),
        "max_weight": Decimal(max_weight),
        "estimated_days": days,
    }


def _price_rate(name, description, price, min_price, max_price, days):
    return {
        "name": name,
        "description": description,
        "type": ShippingRateType.PRICE_BASED,
        "price": Decimal(price),
        "min_price": Decimal(min_price),
        "max_price": Decimal(max_price),
        "estimated_days": days,
    }


# Zones by department: major cities, intermediate cities (+20%), other cities (+50%)
COLOMBIAN_ZONES = [
    {
        "name": "Colombia - Ciudades Principales",
        "states": ["Cundinamarca", "Antioquia", "Valle del Cauca", "Atlántico"],
        "rates": [
            _weight_rate("Envia - Terrestre", "Ground parcels up to 8 kg", "8000", "8", 3),
            _weight_rate("Envia - Aéreo Express", "Air parcels up to 80 kg", "25000", "80", 1),
            _price_rate(
                "Envia - Con Recaudo", "Cash on delivery", "12000", "10000", "500000", 3
            ),
            _weight_rate("Servientrega - Nacional", "Standard national service", "9000", "50", 2),
            {
                "name": "Servientrega - Hoy Mismo",
                "description": "Same-day delivery in major cities",
                "type": ShippingRateType.FLAT_RATE,
                "price": Decimal("35000"),
                "estimated_days": 0,
            },
            _price_rate(
                "Servientrega - Contra Entrega",
                "Cash on delivery",
                "15000",
                "20000",
                "1000000",
                3,
            ),
            _weight_rate("Coordinadora - Estándar", "Standard national shipping", "10000", "70", 3),
            _weight_rate("Coordinadora - Express", "Express service", "18000", "70", 1),
            _weight_rate("Interrapidisimo - Nacional", "Standard national service", "8500", "50", 2),
            _weight_rate("Interrapidisimo - Súper Inter", "Express national service", "16000", "50", 1),
        ],
    },
    {
        "name": "Colombia - Ciudades Intermedias",
        "states": [
            "Bolívar",
            "Norte de Santander",
            "Risaralda",
            "Santander",
            "Magdalena",
            "Tolima",
        ],
        "rates": [
            _weight_rate("Envia - Terrestre", "Ground parcels to intermediate cities", "9600", "8", 4),
            _weight_rate("Servientrega - Nacional", "Intermediate cities", "10800", "50", 3),
            _weight_rate("Coordinadora - Estándar", "Intermediate cities", "12000", "70", 4),
            _weight_rate("Interrapidisimo - Nacional", "Intermediate cities", "10200", "50", 3),
        ],
    },
    {
        "name": "Colombia - Otras Ciudades",
        "states": ["Meta", "Caldas", "Cesar"],
        "rates": [
            _weight_rate("Envia - Terrestre", "Ground parcels to other cities", "12000", "8", 5),
            _weight_rate("Servientrega - Nacional", "Other cities", "13500", "50", 4),
            _weight_rate("Coordinadora - Estándar", "Other cities", "15000", "70", 5),
            _weight_rate("Interrapidisimo - Nacional", "Other cities", "12750", "50", 4),
        ],
    },
]

CARRIER_METHODS = [
    {
        "name": "Envia",
        "carrier": "Envia",
        "code": "ENVIA",
        "tracking_url_template": "https://envia.co/tracking?guia={tracking_number}",
    },
    {
        "name": "Servientrega",
        "carrier": "Servientrega",
        "code": "SERVIENTREGA",
        "tracking_url_template": "https://servientrega.com/rastro?tracking={tracking_number}",
    },
    {
        "name": "Coordinadora",
        "carrier": "Coordinadora Mercantil S.A.",
        "code": "COORDINADORA",
        "tracking_url_template": "https://coordinadora.com/seguimiento/?guia={tracking_number}",
    },
    {
        "name": "Interrapidisimo",
        "carrier": "Interrapidisimo S.A.",
        "code": "INTERRAPIDISIMO",
        "tracking_url_template": "https://interrapidisimo.com/tracking?numero={tracking_number}",
    },
]


async def seed_shipping(db: AsyncSession, store: Store) -> dict[str, int]:
    """Create the Colombian zones, rates and carrier methods for one store.

    Returns the number of rows created per kind; all zero when the store
    already has shipping zones.
    """
    existing = await db.execute(
        select(func.count(ShippingZone.id)).where(ShippingZone.store_id == store.id)
    )
    if existing.scalar_one():
        return {"zones": 0, "rates": 0, "methods": 0}

    rate_count = 0
    for definition in COLOMBIAN_ZONES:
        zone = ShippingZone(
            store_id=store.id,
            name=definition["name"],
            countries=["CO"],
            states=list(definition["states"]),
            postal_codes=[],
        )
        db.add(zone)
        await db.flush()

        for rate in definition["rates"]:
            db.add(ShippingRate(zone_id=zone.id, **rate))
            rate_count += 1

    for method in CARRIER_METHODS:
        db.add(ShippingMethod(store_id=store.id, **method))

    await db.flush()
    return {
        "zones": len(COLOMBIAN_ZONES),
        "rates": rate_count,
        "methods": len(CARRIER_METHODS),
    }


# =============================================================================
# CATALOG
# =============================================================================

CATEGORIES = [
    ("Electronics", "electronics", "Latest electronic gadgets and devices"),
    ("Clothing", "clothing", "Fashion and apparel for all occasions"),
    ("Books", "books", "Books for learning and entertainment"),
    ("Home & Garden", "home-garden", "Everything for your home and garden"),
]

COLLECTIONS = [
    ("Summer Sale", "summer-sale", "Hot deals for the summer season"),
    ("New Arrivals", "new-arrivals", "Latest products in our store"),
    ("Best Sellers", "best-sellers", "Our most popular products"),
]

PRODUCTS = [
    {
        "name": "Wireless Bluetooth Headphones",
        "slug": "wireless-bluetooth-headphones",
        "short_description": "Premium wireless headphones with noise cancellation",
        "price": Decimal("99.99"),
        "compare_at_price": Decimal("129.99"),
        "sku": "WBH-001",
        "inventory": 50,
        "weight": Decimal("0.40"),
        "category": "electronics",
        "is_featured": True,
        "images": ["headphones-1.jpg", "headphones-2.jpg"],
        "collections": ["best-sellers"],
    },
    {
        "name": "Cotton T-Shirt",
        "slug": "cotton-t-shirt",
        "short_description": "100% organic cotton t-shirt",
        "price": Decimal("24.99"),
        "compare_at_price": Decimal("34.99"),
        "sku": "CTS-001",
        "inventory": 100,
        "weight": Decimal("0.20"),
        "category": "clothing",
        "is_featured": True,
        "images": ["tshirt-1.jpg", "tshirt-2.jpg"],
        "collections": ["summer-sale", "best-sellers"],
    },
    {
        "name": "JavaScript: The Definitive Guide",
        "slug": "javascript-definitive-guide",
        "short_description": "Complete JavaScript programming guide",
        "price": Decimal("39.99"),
        "compare_at_price": Decimal("49.99"),
        "sku": "JSG-001",
        "inventory": 25,
        "weight": Decimal("1.20"),
        "category": "books",
        "is_featured": False,
        "images": ["js-book-1.jpg"],
        "collections": [],
    },
    {
        "name": "Smart Home Security Camera",
        "slug": "smart-home-security-camera",
        "short_description": "WiFi security camera with mobile app",
        "price": Decimal("149.99"),
        "compare_at_price": Decimal("199.99"),
        "sku": "HSC-001",
        "inventory": 30,
        "weight": Decimal("0.60"),
        "category": "electronics",
        "is_featured": True,
        "images": ["camera-1.jpg"],
        "collections": ["new-arrivals"],
    },
    {
        "name": "Ceramic Plant Pot Set",
        "slug": "ceramic-plant-pot-set",
        "short_description": "Set of 3 ceramic plant pots",
        "price": Decimal("34.99"),
        "compare_at_price": Decimal("44.99"),
        "sku": "CPP-001",
        "inventory": 40,
        "weight": Decimal("3.50"),
        "category": "home-garden",
        "is_featured": False,
        "images": ["pots-1.jpg"],
        "collections": ["new-arrivals"],
    },
    {
        "name": "Denim Jacket",
        "slug": "denim-jacket",
        "short_description": "Classic premium denim jacket",
        "price": Decimal("79.99"),
        "compare_at_price": Decimal("99.99"),
        "sku": "DJ-001",
        "inventory": 35,
        "weight": Decimal("0.90"),
        "category": "clothing",
        "is_featured": True,
        "images": ["jacket-1.jpg", "jacket-2.jpg"],
        "collections": ["summer-sale", "best-sellers"],
    },
]


async def seed_catalog(db: AsyncSession, store: Store) -> dict[str, int]:
    """Create sample categories, collections and products for one store.

    Skipped (all counts zero) when the store already has categories.
    """
    existing = await db.execute(
        select(func.count(Category.id)).where(Category.store_id == store.id)
    )
    if existing.scalar_one():
        return {"categories": 0, "collections": 0, "products": 0}

    categories = {
        slug: Category(
            store_id=store.id,
            name=name,
            slug=slug,
            description=description,
            image_url=f"/categories/{slug}.jpg",
        )
        for name, slug, description in CATEGORIES
    }
    collections = {
        slug: Collection(
            store_id=store.id,
            name=name,
            slug=slug,
            description=description,
            image_url=f"/collections/{slug}.jpg",
        )
        for name, slug, description in COLLECTIONS
    }
    db.add_all([*categories.values(), *collections.values()])
    await db.flush()

    for data in PRODUCTS:
        fields = {
            k: v for k, v in data.items() if k not in ("category", "images", "collections")
        }
        product = Product(
            store_id=store.id,
            category_id=categories[data["category"]].id,
            description=data["short_description"],
            **fields,
        )
        db.add(product)
        await db.flush()

        for position, filename in enumerate(data["images"]):
            db.add(
                ProductImage(
                    product_id=product.id,
                    url=f"/products/{filename}",
                    alt_text=product.name,
                    position=position,
                )
            )
        for slug in data["collections"]:
            db.add(
                ProductCollection(
                    product_id=product.id, collection_id=collections[slug].id
                )
            )

    await db.flush()
    return {
        "categories": len(categories),
        "collections": len(collections),
        "products": len(PRODUCTS),
    }


async def seed_store_data():
    async with AsyncSessionLocal() as db:
        print("Seeding storefront data...")

        result = await db.execute(select(Store).order_by(Store.created_at))
        stores = result.scalars().all()
        if not stores:
            print("No stores found. Create a store first.")
            return

        for store in stores:
            shipping = await seed_shipping(db, store)
            catalog = await seed_catalog(db, store)
            await db.commit()

            print("=" * 60)
            print(f"Store: {store.name} ({store.slug})")
            print(
                f"  Shipping zones: {shipping['zones']}, rates: {shipping['rates']}, "
                f"methods: {shipping['methods']}"
            )
            print(
                f"  Categories: {catalog['categories']}, collections: "
                f"{catalog['collections']}, products: {catalog['products']}"
            )

        print("=" * 60)
        print("Storefront data seeded successfully!")


if __name__ == "__main__":
    asyncio.run(seed_store_data())
