"""Storefront cart router: cart lines, shipping selection and carrier quotes."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from libs.auth.dependencies import get_optional_user
from libs.auth.models import AuthUser
from libs.common.config import get_settings
from libs.db.session import get_async_db
from services.storefront_service.models import Cart, Store
from services.storefront_service.routers._helpers import get_active_store
from services.storefront_service.routers.catalog import storefront_product
from services.storefront_service.schemas import (
    CarrierQuoteResponse,
    CarrierQuotesResponse,
    CartCountResponse,
    CartItemCreate,
    CartItemResponse,
    CartItemUpdate,
    CartResponse,
    SelectedShipping,
    ShippingAddress,
    ShippingOptionsResponse,
    ShippingRateOption,
    ShippingSelectionRequest,
    ShippingZoneOptions,
    StorefrontProduct,
)
from services.storefront_service.services import cart_ops
from services.storefront_service.services.carrier_rates import (
    CITIES,
    DEFAULT_DESTINATION_CITY,
    DEFAULT_ORIGIN_CITY,
    CarrierRate,
    calculate_carrier_rates,
    get_cheapest_carrier_rate,
    get_city_zone,
    shipping_weight,
)
from services.storefront_service.services.discounts import price_products
from services.storefront_service.services.shipping_calculator import (
    ShippingCalculation,
    clear_cart_shipping,
    get_available_shipping_options,
    select_cart_shipping,
)
from sqlalchemy.ext.asyncio import AsyncSession

settings = get_settings()

router = APIRouter(tags=["cart"])


# ============================================================================
# CART HELPERS
# ============================================================================


async def get_shopper_cart(
    store: Store = Depends(get_active_store),
    current_user: Optional[AuthUser] = Depends(get_optional_user),
    session_id: Optional[str] = Header(None, alias=settings.CART_SESSION_HEADER),
    db: AsyncSession = Depends(get_async_db),
) -> Cart:
    """Resolve the shopper's active cart from the bearer token or cart session."""
    return await cart_ops.get_or_create_cart(db, store, current_user, session_id)


def cart_response(summary: cart_ops.CartSummary) -> CartResponse:
    cart = summary.cart

    shipping = None
    if cart.shipping_rate_id:
        shipping = SelectedShipping(
            rate_id=cart.shipping_rate_id,
            rate_name=summary.shipping_rate.name if summary.shipping_rate else None,
            cost=summary.shipping_cost,
            address=ShippingAddress(
                address=cart.shipping_address,
                city=cart.shipping_city,
                state=cart.shipping_state,
                country=cart.shipping_country,
                postal_code=cart.shipping_postal_code,
            ),
        )

    return CartResponse(
        id=cart.id,
        store_id=cart.store_id,
        status=cart.status,
        items=[
            CartItemResponse(
                id=line.item.id,
                product_id=line.product.id,
                product_name=line.product.name,
                product_slug=line.product.slug,
                image_url=line.image_url,
                quantity=line.quantity,
                unit_price=line.original_price,
                discounted_unit_price=line.unit_price,
                line_total=line.line_total,
                weight=line.weight,
                inventory=line.product.inventory,
            )
            for line in summary.lines
        ],
        item_count=summary.item_count,
        subtotal=summary.subtotal,
        total_weight=summary.total_weight,
        shipping=shipping,
        shipping_cost=summary.shipping_cost,
        total=summary.total,
        created_at=cart.created_at,
        updated_at=cart.updated_at,
    )


async def _commit_and_respond(db: AsyncSession, cart: Cart) -> CartResponse:
    summary = await cart_ops.build_cart_summary(db, cart)
    await db.commit()
    return cart_response(summary)


def _rate_option(calculation: ShippingCalculation) -> ShippingRateOption:
    rate = calculation.rate
    return ShippingRateOption(
        rate_id=rate.id,
        name=rate.name,
        description=rate.description,
        type=rate.type,
        cost=calculation.cost,
        estimated_days=rate.estimated_days,
    )


def _carrier_quote(rate: CarrierRate) -> CarrierQuoteResponse:
    return CarrierQuoteResponse(
        id=rate.id,
        company=rate.company,
        company_name=rate.company_name,
        service_code=rate.service_code,
        service_name=rate.service_name,
        price=rate.price,
        formatted_price=rate.formatted_price,
        estimated_days=rate.estimated_days,
        estimated_delivery=rate.estimated_delivery,
        cash_on_delivery=rate.cash_on_delivery,
        tracking_url=rate.tracking_url,
        restrictions=rate.restrictions,
    )


def _city_name(code: str) -> str:
    city = CITIES.get(code)
    return city.name if city else code


# ============================================================================
# CART ENDPOINTS
# ============================================================================


@router.get("/stores/{slug}/cart", response_model=CartResponse)
async def get_cart(
    cart: Cart = Depends(get_shopper_cart),
    db: AsyncSession = Depends(get_async_db),
):
    """Get the current cart, creating it (or merging a guest cart) as needed."""
    return await _commit_and_respond(db, cart)


@router.post("/stores/{slug}/cart/items", response_model=CartResponse)
async def add_to_cart(
    item_in: CartItemCreate,
    cart: Cart = Depends(get_shopper_cart),
    db: AsyncSession = Depends(get_async_db),
):
    """Add a product to the cart, summing quantities for existing lines."""
    await cart_ops.add_to_cart(db, cart, item_in.product_id, item_in.quantity)
    return await _commit_and_respond(db, cart)


@router.patch("/stores/{slug}/cart/items/{item_id}", response_model=CartResponse)
async def update_cart_item(
    item_id: uuid.UUID,
    item_in: CartItemUpdate,
    cart: Cart = Depends(get_shopper_cart),
    db: AsyncSession = Depends(get_async_db),
):
    """Change a line's quantity. Quantity 0 removes the line."""
    await cart_ops.update_cart_item(db, cart, item_id, item_in.quantity)
    return await _commit_and_respond(db, cart)


@router.delete("/stores/{slug}/cart/items/{item_id}", response_model=CartResponse)
async def remove_cart_item(
    item_id: uuid.UUID,
    cart: Cart = Depends(get_shopper_cart),
    db: AsyncSession = Depends(get_async_db),
):
    """Remove a line from the cart."""
    await cart_ops.remove_cart_item(db, cart, item_id)
    return await _commit_and_respond(db, cart)


@router.delete("/stores/{slug}/cart", response_model=CartResponse)
async def clear_cart(
    cart: Cart = Depends(get_shopper_cart),
    db: AsyncSession = Depends(get_async_db),
):
    """Remove every line and the shipping selection."""
    await cart_ops.clear_cart(db, cart)
    return await _commit_and_respond(db, cart)


@router.get("/stores/{slug}/cart/count", response_model=CartCountResponse)
async def get_cart_count(
    cart: Cart = Depends(get_shopper_cart),
    db: AsyncSession = Depends(get_async_db),
):
    """Total quantity across cart lines."""
    count = await cart_ops.get_cart_item_count(db, cart)
    await db.commit()
    return CartCountResponse(count=count)


@router.get(
    "/stores/{slug}/cart/recommendations", response_model=list[StorefrontProduct]
)
async def get_recommendations(
    limit: int = Query(settings.RECOMMENDED_PRODUCTS_LIMIT, ge=1, le=20),
    store: Store = Depends(get_active_store),
    cart: Cart = Depends(get_shopper_cart),
    db: AsyncSession = Depends(get_async_db),
):
    """Products to suggest next to the cart."""
    products = await cart_ops.get_recommended_products(db, cart, limit=limit)
    priced = await price_products(db, store.id, products)
    await db.commit()
    return [storefront_product(p) for p in priced]


# ============================================================================
# SHIPPING
# ============================================================================


@router.get(
    "/stores/{slug}/cart/shipping-options", response_model=ShippingOptionsResponse
)
async def get_shipping_options(
    address: Optional[str] = None,
    city: Optional[str] = None,
    state: Optional[str] = None,
    country: Optional[str] = None,
    postal_code: Optional[str] = None,
    store: Store = Depends(get_active_store),
    cart: Cart = Depends(get_shopper_cart),
    db: AsyncSession = Depends(get_async_db),
):
    """Eligible shipping rates per matching zone for the current cart."""
    destination = ShippingAddress(
        address=address,
        city=city,
        state=state,
        country=country,
        postal_code=postal_code,
    )
    summary = await cart_ops.build_cart_summary(db, cart)
    available = await get_available_shipping_options(
        db, store.id, summary.lines, None if destination.is_empty() else destination
    )
    await db.commit()

    zones = [
        ShippingZoneOptions(
            zone_id=entry.zone.id,
            zone_name=entry.zone.name,
            rates=[_rate_option(c) for c in entry.options],
        )
        for entry in available
    ]
    calculations = [c for entry in available for c in entry.options]
    cheapest = min(calculations, key=lambda c: c.cost) if calculations else None

    return ShippingOptionsResponse(
        subtotal=summary.subtotal,
        total_weight=summary.total_weight,
        zones=zones,
        cheapest=_rate_option(cheapest) if cheapest else None,
    )


@router.put("/stores/{slug}/cart/shipping", response_model=CartResponse)
async def select_shipping(
    selection: ShippingSelectionRequest,
    store: Store = Depends(get_active_store),
    cart: Cart = Depends(get_shopper_cart),
    db: AsyncSession = Depends(get_async_db),
):
    """Select a shipping rate. The cost is computed here, never taken from input."""
    lines = await cart_ops.load_cart_lines(db, cart)
    address = None if selection.address.is_empty() else selection.address
    await select_cart_shipping(db, store.id, cart, lines, selection.rate_id, address)
    await db.flush()
    return await _commit_and_respond(db, cart)


@router.delete("/stores/{slug}/cart/shipping", response_model=CartResponse)
async def clear_shipping(
    cart: Cart = Depends(get_shopper_cart),
    db: AsyncSession = Depends(get_async_db),
):
    """Drop the selected shipping rate."""
    clear_cart_shipping(cart)
    await db.flush()
    return await _commit_and_respond(db, cart)


@router.get(
    "/stores/{slug}/cart/carrier-quotes", response_model=CarrierQuotesResponse
)
async def get_carrier_quotes(
    destination: str = Query(DEFAULT_DESTINATION_CITY, min_length=3, max_length=3),
    origin: str = Query(DEFAULT_ORIGIN_CITY, min_length=3, max_length=3),
    cash_on_delivery: bool = False,
    cart: Cart = Depends(get_shopper_cart),
    db: AsyncSession = Depends(get_async_db),
):
    """Quote national carrier services for the cart (city codes such as BOG, MDE)."""
    summary = await cart_ops.build_cart_summary(db, cart)
    await db.commit()
    if not summary.lines:
        raise HTTPException(status_code=400, detail="Cart is empty")

    origin = origin.upper()
    destination = destination.upper()
    rates = calculate_carrier_rates(
        summary.lines,
        origin=origin,
        destination=destination,
        declared_value=summary.subtotal,
        cash_on_delivery=cash_on_delivery,
    )
    cheapest = get_cheapest_carrier_rate(rates)

    return CarrierQuotesResponse(
        origin_city=_city_name(origin),
        destination_city=_city_name(destination),
        destination_zone=get_city_zone(destination),
        total_weight=shipping_weight(summary.lines),
        declared_value=summary.subtotal,
        quotes=[_carrier_quote(rate) for rate in rates],
        cheapest=_carrier_quote(cheapest) if cheapest else None,
    )
