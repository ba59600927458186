"""Cart operations: ownership, line management, totals and recommendations."""

import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from fastapi import HTTPException, status
from libs.auth.models import AuthUser
from libs.common.currency import ZERO, quantize_money
from libs.common.logging import get_logger
from services.storefront_service.models import (
    Cart,
    CartItem,
    CartStatus,
    Product,
    ShippingRate,
    Store,
)
from services.storefront_service.services.discounts import price_products
from services.storefront_service.services.shipping_calculator import (
    calculate_cart_total_with_shipping,
    cart_subtotal,
    cart_weight,
    clear_cart_shipping,
)
from sqlalchemy import case, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

logger = get_logger(__name__)


@dataclass
class CartLine:
    """A cart item priced through discount stacking."""

    item: CartItem
    product: Product
    quantity: int
    original_price: Decimal
    unit_price: Decimal  # after discounts

    @property
    def weight(self) -> Optional[Decimal]:
        return self.product.weight

    @property
    def line_total(self) -> Decimal:
        return quantize_money(self.unit_price * self.quantity)

    @property
    def image_url(self) -> Optional[str]:
        return self.product.images[0].url if self.product.images else None


@dataclass
class CartSummary:
    cart: Cart
    lines: list[CartLine] = field(default_factory=list)
    subtotal: Decimal = ZERO
    item_count: int = 0
    total_weight: Decimal = ZERO
    shipping_cost: Decimal = ZERO
    shipping_rate: Optional[ShippingRate] = None
    total: Decimal = ZERO


# ============================================================================
# CART OWNERSHIP
# ============================================================================


async def _find_active_cart(
    db: AsyncSession,
    store_id: uuid.UUID,
    *,
    user_id: Optional[str] = None,
    session_id: Optional[str] = None,
) -> Optional[Cart]:
    query = select(Cart).where(
        Cart.store_id == store_id, Cart.status == CartStatus.ACTIVE
    )
    if user_id is not None:
        query = query.where(Cart.user_id == user_id)
    else:
        # Guest carts only
        query = query.where(Cart.session_id == session_id, Cart.user_id.is_(None))

    result = await db.execute(
        query.order_by(Cart.created_at.desc()).options(selectinload(Cart.items))
    )
    return result.scalars().first()


async def merge_guest_cart(db: AsyncSession, guest_cart: Cart, member_cart: Cart):
    """Move guest lines into the member cart, summing quantities.

    Merged quantities are capped at the product's inventory; lines for
    products that are gone, inactive or out of stock are dropped.
    """
    product_ids = [item.product_id for item in guest_cart.items]
    result = await db.execute(select(Product).where(Product.id.in_(product_ids)))
    products = {product.id: product for product in result.scalars().all()}

    member_items = {item.product_id: item for item in member_cart.items}
    for guest_item in guest_cart.items:
        product = products.get(guest_item.product_id)
        if product is None or not product.is_active:
            continue

        existing = member_items.get(guest_item.product_id)
        wanted = guest_item.quantity + (existing.quantity if existing else 0)
        quantity = min(wanted, product.inventory)
        if quantity < wanted:
            logger.info(
                "Capped merged quantity of product %s at %s",
                product.id,
                quantity,
                extra={"extra_fields": {"cart_id": str(member_cart.id)}},
            )

        if existing:
            # Never shrink a line the member already had
            existing.quantity = max(quantity, existing.quantity)
        elif quantity > 0:
            new_item = CartItem(
                cart_id=member_cart.id,
                product_id=guest_item.product_id,
                quantity=quantity,
            )
            db.add(new_item)
            member_items[guest_item.product_id] = new_item

    guest_cart.status = CartStatus.ABANDONED
    clear_cart_shipping(member_cart)
    logger.info(
        "Merged guest cart %s into member cart %s", guest_cart.id, member_cart.id
    )


async def get_or_create_cart(
    db: AsyncSession,
    store: Store,
    user: Optional[AuthUser],
    session_id: Optional[str] = None,
) -> Cart:
    """Get the shopper's active cart in this store, creating it on first use.

    If the user is authenticated AND a session id is provided, the guest
    cart's items are merged into the member's cart and the guest cart is
    abandoned.
    """
    if user:
        member_cart = await _find_active_cart(db, store.id, user_id=user.user_id)

        guest_cart = None
        if session_id:
            guest_cart = await _find_active_cart(db, store.id, session_id=session_id)

        if member_cart is None:
            member_cart = Cart(store_id=store.id, user_id=user.user_id, items=[])
            db.add(member_cart)
            await db.flush()

        if guest_cart and guest_cart.items:
            await merge_guest_cart(db, guest_cart, member_cart)
            await db.flush()
        elif guest_cart:
            guest_cart.status = CartStatus.ABANDONED
            await db.flush()

        return member_cart

    if session_id:
        cart = await _find_active_cart(db, store.id, session_id=session_id)
        if cart:
            return cart

        cart = Cart(store_id=store.id, session_id=session_id, items=[])
        db.add(cart)
        await db.flush()
        return cart

    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail="Sign in or send a cart session id",
    )


# ============================================================================
# CART CONTENTS
# ============================================================================


async def load_cart_lines(db: AsyncSession, cart: Cart) -> list[CartLine]:
    result = await db.execute(
        select(CartItem)
        .where(CartItem.cart_id == cart.id)
        .options(selectinload(CartItem.product).selectinload(Product.images))
        .order_by(CartItem.created_at)
        .execution_options(populate_existing=True)
    )
    items = result.scalars().all()
    if not items:
        return []

    priced = await price_products(db, cart.store_id, [item.product for item in items])
    return [
        CartLine(
            item=item,
            product=item.product,
            quantity=item.quantity,
            original_price=p.original_price,
            unit_price=p.final_price,
        )
        for item, p in zip(items, priced)
    ]


async def build_cart_summary(db: AsyncSession, cart: Cart) -> CartSummary:
    """Lines, discounted subtotal, weight, selected shipping and grand total."""
    lines = await load_cart_lines(db, cart)
    subtotal = cart_subtotal(lines)

    shipping_rate = None
    shipping_cost = ZERO
    if cart.shipping_rate_id:
        shipping_rate = await db.get(ShippingRate, cart.shipping_rate_id)
        shipping_cost = quantize_money(cart.shipping_cost or ZERO)

    return CartSummary(
        cart=cart,
        lines=lines,
        subtotal=subtotal,
        item_count=sum(line.quantity for line in lines),
        total_weight=cart_weight(lines),
        shipping_cost=shipping_cost,
        shipping_rate=shipping_rate,
        total=calculate_cart_total_with_shipping(subtotal, shipping_cost),
    )


def _ensure_stock(product: Product, quantity: int) -> None:
    if product.inventory < quantity:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Only {product.inventory} available",
        )


async def add_to_cart(
    db: AsyncSession, cart: Cart, product_id: uuid.UUID, quantity: int
) -> CartItem:
    product = await db.get(Product, product_id)
    if not product or product.store_id != cart.store_id:
        raise HTTPException(status_code=404, detail="Product not found")
    if not product.is_active:
        raise HTTPException(status_code=400, detail="Product is not available")

    result = await db.execute(
        select(CartItem).where(
            CartItem.cart_id == cart.id, CartItem.product_id == product_id
        )
    )
    existing = result.scalar_one_or_none()

    new_quantity = quantity + (existing.quantity if existing else 0)
    _ensure_stock(product, new_quantity)

    if existing:
        existing.quantity = new_quantity
        item = existing
    else:
        item = CartItem(cart_id=cart.id, product_id=product_id, quantity=quantity)
        db.add(item)

    clear_cart_shipping(cart)
    await db.flush()
    return item


async def _get_cart_item(
    db: AsyncSession, cart: Cart, item_id: uuid.UUID
) -> CartItem:
    result = await db.execute(
        select(CartItem)
        .where(CartItem.id == item_id, CartItem.cart_id == cart.id)
        .options(selectinload(CartItem.product))
    )
    item = result.scalar_one_or_none()
    if not item:
        raise HTTPException(status_code=404, detail="Cart item not found")
    return item


async def update_cart_item(
    db: AsyncSession, cart: Cart, item_id: uuid.UUID, quantity: int
) -> Optional[CartItem]:
    """Set a line's quantity; 0 removes the line."""
    item = await _get_cart_item(db, cart, item_id)

    if quantity <= 0:
        await db.delete(item)
        clear_cart_shipping(cart)
        await db.flush()
        return None

    _ensure_stock(item.product, quantity)
    item.quantity = quantity
    clear_cart_shipping(cart)
    await db.flush()
    return item


async def remove_cart_item(db: AsyncSession, cart: Cart, item_id: uuid.UUID) -> None:
    item = await _get_cart_item(db, cart, item_id)
    await db.delete(item)
    clear_cart_shipping(cart)
    await db.flush()


async def clear_cart(db: AsyncSession, cart: Cart) -> None:
    await db.execute(delete(CartItem).where(CartItem.cart_id == cart.id))
    clear_cart_shipping(cart)
    await db.flush()


async def get_cart_item_count(db: AsyncSession, cart: Cart) -> int:
    result = await db.execute(
        select(func.coalesce(func.sum(CartItem.quantity), 0)).where(
            CartItem.cart_id == cart.id
        )
    )
    return int(result.scalar() or 0)


# ============================================================================
# RECOMMENDATIONS
# ============================================================================


async def get_recommended_products(
    db: AsyncSession, cart: Cart, limit: int = 4
) -> list[Product]:
    """Active store products not in the cart.

    Products sharing a category with cart lines come first, then featured,
    then newest.
    """
    result = await db.execute(
        select(CartItem.product_id, Product.category_id)
        .join(Product, Product.id == CartItem.product_id)
        .where(CartItem.cart_id == cart.id)
    )
    rows = result.all()
    in_cart = {product_id for product_id, _ in rows}
    categories = {category_id for _, category_id in rows if category_id}

    query = (
        select(Product)
        .where(Product.store_id == cart.store_id, Product.is_active.is_(True))
        .options(selectinload(Product.images))
    )
    if in_cart:
        query = query.where(Product.id.not_in(list(in_cart)))

    ordering = []
    if categories:
        ordering.append(
            case((Product.category_id.in_(list(categories)), 0), else_=1)
        )
    ordering += [Product.is_featured.desc(), Product.created_at.desc()]

    result = await db.execute(query.order_by(*ordering).limit(limit))
    return list(result.scalars().all())
