"""Discount stacking and lookup of the discounts that reach each product."""

import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, Mapping, Optional, Sequence

from libs.common.currency import ZERO, quantize_money, to_decimal
from libs.common.datetime_utils import ensure_utc, utc_now
from libs.common.logging import get_logger
from services.storefront_service.models import (
    CollectionDiscount,
    Discount,
    Product,
    ProductCollection,
    ProductDiscount,
)
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

HUNDRED = Decimal("100")


@dataclass(frozen=True)
class AppliedDiscount:
    """A discount that contributed to a product's final price."""

    id: uuid.UUID
    name: str
    percentage: Decimal


@dataclass
class PricedProduct:
    """A product with every applicable discount stacked onto its price."""

    product: Product
    original_price: Decimal
    final_price: Decimal
    savings: Decimal
    discount_percentage: Decimal
    applied_discounts: list[AppliedDiscount] = field(default_factory=list)

    @property
    def has_discount(self) -> bool:
        return bool(self.applied_discounts)


def stack_percentages(price, percentages: Iterable) -> Decimal:
    """Compound percentage discounts: ``price * prod(1 - p/100)``.

    Rounded to cents once, at the end, and never below zero.
    """
    amount = to_decimal(price)
    for percentage in percentages:
        amount = amount * (1 - to_decimal(percentage) / HUNDRED)
    return max(quantize_money(amount), ZERO)


def price_with_discounts(
    product: Product, discounts: Optional[Sequence[Discount]] = None
) -> PricedProduct:
    """Price a single product through discount stacking."""
    original = quantize_money(product.price)

    # One discount can reach a product both directly and via a collection
    unique: dict[uuid.UUID, Discount] = {}
    for discount in discounts or []:
        unique.setdefault(discount.id, discount)

    applied = sorted(
        (
            AppliedDiscount(id=d.id, name=d.name, percentage=to_decimal(d.percentage))
            for d in unique.values()
        ),
        key=lambda d: d.percentage,
        reverse=True,
    )
    if not applied:
        return PricedProduct(
            product=product,
            original_price=original,
            final_price=original,
            savings=ZERO,
            discount_percentage=ZERO,
        )

    final = stack_percentages(original, (d.percentage for d in applied))
    savings = original - final
    effective = (
        quantize_money(savings / original * HUNDRED) if original > ZERO else ZERO
    )
    return PricedProduct(
        product=product,
        original_price=original,
        final_price=final,
        savings=savings,
        discount_percentage=effective,
        applied_discounts=applied,
    )


def apply_discounts_to_products(
    products: Sequence[Product],
    discounts_by_product: Mapping[uuid.UUID, Sequence[Discount]],
) -> list[PricedProduct]:
    """Apply every discount reaching each product, keeping input order.

    Products without an entry in ``discounts_by_product`` keep their price.
    """
    return [
        price_with_discounts(product, discounts_by_product.get(product.id))
        for product in products
    ]


def is_expired(discount: Discount, now=None) -> bool:
    """Past its end date."""
    now = now or utc_now()
    return ensure_utc(discount.end_date) < now


async def get_active_discounts_for_products(
    db: AsyncSession,
    store_id: uuid.UUID,
    product_ids: Sequence[uuid.UUID],
) -> dict[uuid.UUID, list[Discount]]:
    """Return live discounts per product, reached directly or through collections."""
    if not product_ids:
        return {}

    now = utc_now()
    live = (
        Discount.store_id == store_id,
        Discount.is_active.is_(True),
        Discount.end_date >= now,
    )

    direct = await db.execute(
        select(ProductDiscount.product_id, Discount)
        .join(Discount, Discount.id == ProductDiscount.discount_id)
        .where(ProductDiscount.product_id.in_(product_ids), *live)
    )
    via_collection = await db.execute(
        select(ProductCollection.product_id, Discount)
        .join(
            CollectionDiscount,
            CollectionDiscount.collection_id == ProductCollection.collection_id,
        )
        .join(Discount, Discount.id == CollectionDiscount.discount_id)
        .where(ProductCollection.product_id.in_(product_ids), *live)
    )

    discounts_by_product: dict[uuid.UUID, list[Discount]] = {}
    seen: set[tuple[uuid.UUID, uuid.UUID]] = set()
    for product_id, discount in [*direct.all(), *via_collection.all()]:
        if (product_id, discount.id) in seen:
            continue
        seen.add((product_id, discount.id))
        discounts_by_product.setdefault(product_id, []).append(discount)

    return discounts_by_product


async def price_products(
    db: AsyncSession, store_id: uuid.UUID, products: Sequence[Product]
) -> list[PricedProduct]:
    """Look up live discounts and stack them onto each product's price."""
    discounts = await get_active_discounts_for_products(
        db, store_id, [p.id for p in products]
    )
    if discounts:
        logger.debug(
            "Stacking discounts on %d of %d products", len(discounts), len(products)
        )
    return apply_discounts_to_products(products, discounts)
