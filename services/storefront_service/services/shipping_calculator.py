"""Cart shipping: rate eligibility, cost calculation, zone matching and selection.

Rate types
----------
- ``free``: always eligible, costs 0.
- ``flat_rate``: always eligible, costs ``price``.
- ``weight_based``: eligible when ``min_weight <= cart weight <= max_weight``.
- ``price_based``: eligible when ``min_price <= cart subtotal <= max_price``.

Missing lower bounds count as 0, missing upper bounds are unbounded. Line
weights that are unknown count as 0 kg. Costs sent by clients are never
trusted: the selected rate is always re-evaluated against the cart.
"""

import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional, Protocol, Sequence

from fastapi import HTTPException, status
from libs.common.currency import ZERO, quantize_money, to_decimal
from libs.common.logging import get_logger
from services.storefront_service.models import (
    Cart,
    CartItem,
    ShippingRate,
    ShippingRateType,
    ShippingZone,
)
from services.storefront_service.schemas import ShippingAddress
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

logger = get_logger(__name__)


class ShippableLine(Protocol):
    unit_price: Decimal
    quantity: int
    weight: Optional[Decimal]


@dataclass
class ShippingCalculation:
    """Outcome of evaluating one rate against a cart."""

    rate: ShippingRate
    cost: Decimal
    is_eligible: bool
    reason: Optional[str] = None


@dataclass
class ZoneShippingOptions:
    zone: ShippingZone
    options: list[ShippingCalculation] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Pure calculations
# ---------------------------------------------------------------------------


def cart_subtotal(items: Sequence[ShippableLine]) -> Decimal:
    return quantize_money(
        sum((to_decimal(i.unit_price) * i.quantity for i in items), ZERO)
    )


def cart_weight(items: Sequence[ShippableLine]) -> Decimal:
    return sum((to_decimal(i.weight) * i.quantity for i in items), ZERO)


def _within(value: Decimal, lower, upper) -> bool:
    lower = to_decimal(lower)
    if value < lower:
        return False
    return upper is None or value <= to_decimal(upper)


def calculate_shipping_cost(
    rate: ShippingRate, items: Sequence[ShippableLine]
) -> ShippingCalculation:
    """Evaluate a rate against cart lines. Never raises for ineligible rates."""
    rate_type = rate.type

    if rate_type == ShippingRateType.FREE:
        return ShippingCalculation(rate=rate, cost=ZERO, is_eligible=True)

    if rate_type == ShippingRateType.FLAT_RATE:
        return ShippingCalculation(
            rate=rate, cost=quantize_money(rate.price), is_eligible=True
        )

    if rate_type == ShippingRateType.WEIGHT_BASED:
        weight = cart_weight(items)
        if not _within(weight, rate.min_weight, rate.max_weight):
            return ShippingCalculation(
                rate=rate,
                cost=ZERO,
                is_eligible=False,
                reason=f"Cart weight {weight} kg is outside this rate's range",
            )
        return ShippingCalculation(
            rate=rate, cost=quantize_money(rate.price), is_eligible=True
        )

    if rate_type == ShippingRateType.PRICE_BASED:
        subtotal = cart_subtotal(items)
        if not _within(subtotal, rate.min_price, rate.max_price):
            return ShippingCalculation(
                rate=rate,
                cost=ZERO,
                is_eligible=False,
                reason=f"Cart subtotal {subtotal} is outside this rate's range",
            )
        return ShippingCalculation(
            rate=rate, cost=quantize_money(rate.price), is_eligible=True
        )

    return ShippingCalculation(
        rate=rate,
        cost=ZERO,
        is_eligible=False,
        reason=f"Unknown rate type: {rate_type}",
    )


def calculate_shipping_for_rates(
    rates: Sequence[ShippingRate], items: Sequence[ShippableLine]
) -> list[ShippingCalculation]:
    """Eligible rates only, cheapest first."""
    results = [calculate_shipping_cost(rate, items) for rate in rates]
    eligible = [r for r in results if r.is_eligible]
    return sorted(eligible, key=lambda r: r.cost)


def find_cheapest_shipping_rate(
    rates: Sequence[ShippingRate], items: Sequence[ShippableLine]
) -> Optional[ShippingCalculation]:
    eligible = calculate_shipping_for_rates(rates, items)
    return eligible[0] if eligible else None


def calculate_cart_total_with_shipping(subtotal, shipping_cost=None) -> Decimal:
    return quantize_money(to_decimal(subtotal) + to_decimal(shipping_cost))


# ---------------------------------------------------------------------------
# Zone matching
# ---------------------------------------------------------------------------


def _postal_code_matches(postal_code: str, patterns: Sequence[str]) -> bool:
    code = postal_code.strip().upper()
    for pattern in patterns:
        pattern = pattern.strip().upper()
        if pattern.endswith("*"):
            if code.startswith(pattern[:-1]):
                return True
        elif code == pattern:
            return True
    return False


def zone_matches_address(
    zone: ShippingZone, address: Optional[ShippingAddress]
) -> bool:
    """Check whether an address falls inside a zone.

    Each non-empty zone list constrains the matching address field; an
    address field that is not provided is not checked.
    """
    if address is None or address.is_empty():
        return True

    countries = zone.countries or []
    if countries and address.country:
        if address.country.strip().lower() not in {c.lower() for c in countries}:
            return False

    states = zone.states or []
    if states and address.state:
        if address.state.strip().lower() not in {s.lower() for s in states}:
            return False

    postal_codes = zone.postal_codes or []
    if postal_codes and address.postal_code:
        if not _postal_code_matches(address.postal_code, postal_codes):
            return False

    return True


# ---------------------------------------------------------------------------
# Cart shipping selection
# ---------------------------------------------------------------------------


async def get_matching_zones(
    db: AsyncSession, store_id: uuid.UUID, address: Optional[ShippingAddress]
) -> list[ShippingZone]:
    """Active store zones covering the address, with their rates loaded."""
    result = await db.execute(
        select(ShippingZone)
        .where(ShippingZone.store_id == store_id, ShippingZone.is_active.is_(True))
        .options(selectinload(ShippingZone.rates))
        .order_by(ShippingZone.name)
    )
    zones = result.scalars().all()
    return [zone for zone in zones if zone_matches_address(zone, address)]


async def get_available_shipping_options(
    db: AsyncSession,
    store_id: uuid.UUID,
    items: Sequence[ShippableLine],
    address: Optional[ShippingAddress] = None,
) -> list[ZoneShippingOptions]:
    """Eligible rates per matching zone; zones with no eligible rate are omitted."""
    zones = await get_matching_zones(db, store_id, address)

    available = []
    for zone in zones:
        active_rates = [rate for rate in zone.rates if rate.is_active]
        options = calculate_shipping_for_rates(active_rates, items)
        if options:
            available.append(ZoneShippingOptions(zone=zone, options=options))
    return available


CLEARED_SHIPPING = {
    "shipping_rate_id": None,
    "shipping_cost": None,
    "shipping_address": None,
    "shipping_city": None,
    "shipping_state": None,
    "shipping_country": None,
    "shipping_postal_code": None,
}


def clear_cart_shipping(cart: Cart) -> None:
    for column, value in CLEARED_SHIPPING.items():
        setattr(cart, column, value)


async def release_carts_for_rate(db: AsyncSession, rate_id: uuid.UUID) -> None:
    """Clear the selection of carts that picked a rate being changed or removed."""
    await db.execute(
        update(Cart)
        .where(Cart.shipping_rate_id == rate_id)
        .values(**CLEARED_SHIPPING)
    )


async def release_carts_for_product(db: AsyncSession, product_id: uuid.UUID) -> None:
    """Clear the selection of carts holding a product that changed or is going away.

    Must run before the product is deleted, while its cart lines still exist.
    """
    holding = select(CartItem.cart_id).where(CartItem.product_id == product_id)
    await db.execute(
        update(Cart)
        .where(Cart.shipping_rate_id.is_not(None), Cart.id.in_(holding))
        .values(**CLEARED_SHIPPING)
    )


async def select_cart_shipping(
    db: AsyncSession,
    store_id: uuid.UUID,
    cart: Cart,
    items: Sequence[ShippableLine],
    rate_id: uuid.UUID,
    address: Optional[ShippingAddress] = None,
) -> ShippingCalculation:
    """Validate a rate for the cart and store it with a server-computed cost."""
    if not items:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Cart is empty"
        )

    zones = await get_matching_zones(db, store_id, address)
    rate = next(
        (r for zone in zones for r in zone.rates if r.id == rate_id and r.is_active),
        None,
    )
    if rate is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Shipping rate is not available for this address",
        )

    calculation = calculate_shipping_cost(rate, items)
    if not calculation.is_eligible:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=calculation.reason or "Shipping rate is not eligible for this cart",
        )

    address = address or ShippingAddress()
    cart.shipping_rate_id = rate.id
    cart.shipping_cost = calculation.cost
    cart.shipping_address = address.address
    cart.shipping_city = address.city
    cart.shipping_state = address.state
    cart.shipping_country = address.country
    cart.shipping_postal_code = address.postal_code

    logger.info(
        "Cart %s shipping set to rate %s (%s)",
        cart.id,
        rate.id,
        calculation.cost,
        extra={"extra_fields": {"cart_id": str(cart.id), "store_id": str(store_id)}},
    )
    return calculation
