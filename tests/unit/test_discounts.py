"""Unit tests for discount stacking and live-discount lookup."""

import uuid
from datetime import timedelta
from decimal import Decimal
from types import SimpleNamespace

import pytest
from libs.common.datetime_utils import utc_now
from services.storefront_service.services.discounts import (
    apply_discounts_to_products,
    get_active_discounts_for_products,
    is_expired,
    price_products,
    price_with_discounts,
    stack_percentages,
)
from tests.factories import (
    CollectionDiscountFactory,
    CollectionFactory,
    DiscountFactory,
    ProductCollectionFactory,
    ProductDiscountFactory,
    ProductFactory,
    StoreFactory,
    persist,
)


def _product(price="100.00"):
    return SimpleNamespace(id=uuid.uuid4(), price=Decimal(price))


def _discount(percentage, name=None):
    return SimpleNamespace(
        id=uuid.uuid4(), name=name or f"{percentage}% off", percentage=Decimal(percentage)
    )


# ---------------------------------------------------------------------------
# Stacking
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_stack_percentages_compounds():
    assert stack_percentages(Decimal("100"), [Decimal("20"), Decimal("10")]) == (
        Decimal("72.00")
    )


@pytest.mark.unit
def test_stack_percentages_rounds_half_up_once():
    # 19.99 * 0.85 = 16.9915
    assert stack_percentages(Decimal("19.99"), [Decimal("15")]) == Decimal("16.99")
    # 10 * 0.5 * 0.5 * 0.5 = 1.25
    assert stack_percentages(Decimal("10"), [50, 50, 50]) == Decimal("1.25")


@pytest.mark.unit
def test_full_discount_never_goes_negative():
    assert stack_percentages(Decimal("10"), [Decimal("100")]) == Decimal("0.00")


@pytest.mark.unit
def test_price_without_discounts_is_unchanged():
    priced = price_with_discounts(_product("49.99"), [])

    assert priced.final_price == Decimal("49.99")
    assert priced.savings == Decimal("0")
    assert priced.discount_percentage == Decimal("0")
    assert not priced.has_discount


@pytest.mark.unit
def test_price_with_discounts_reports_savings_and_order():
    small, big = _discount("10"), _discount("20")

    priced = price_with_discounts(_product("100.00"), [small, big])

    assert priced.original_price == Decimal("100.00")
    assert priced.final_price == Decimal("72.00")
    assert priced.savings == Decimal("28.00")
    assert priced.discount_percentage == Decimal("28.00")
    assert [d.id for d in priced.applied_discounts] == [big.id, small.id]


@pytest.mark.unit
def test_same_discount_counts_once():
    discount = _discount("25")

    priced = price_with_discounts(_product("80.00"), [discount, discount])

    assert priced.final_price == Decimal("60.00")
    assert len(priced.applied_discounts) == 1


@pytest.mark.unit
def test_apply_discounts_to_products_keeps_order():
    first, second = _product("10.00"), _product("20.00")
    discounts = {second.id: [_discount("50")]}

    priced = apply_discounts_to_products([first, second], discounts)

    assert [p.product for p in priced] == [first, second]
    assert priced[0].final_price == Decimal("10.00")
    assert priced[1].final_price == Decimal("10.00")


@pytest.mark.unit
def test_is_expired_handles_naive_datetimes():
    now = utc_now()
    past = SimpleNamespace(end_date=(now - timedelta(minutes=1)).replace(tzinfo=None))
    future = SimpleNamespace(end_date=now + timedelta(days=1))

    assert is_expired(past, now)
    assert not is_expired(future, now)


# ---------------------------------------------------------------------------
# Live discount lookup
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_discounts_reach_products_directly_and_via_collections(db_session):
    store = await persist(db_session, StoreFactory.create())
    direct_product = ProductFactory.create(store.id)
    collected_product = ProductFactory.create(store.id)
    plain_product = ProductFactory.create(store.id)
    collection = CollectionFactory.create(store.id)
    await persist(
        db_session, direct_product, collected_product, plain_product, collection
    )

    product_sale = DiscountFactory.create(store.id, percentage=Decimal("20"))
    collection_sale = DiscountFactory.create(store.id, percentage=Decimal("10"))
    await persist(db_session, product_sale, collection_sale)
    await persist(
        db_session,
        ProductCollectionFactory.create(direct_product.id, collection.id),
        ProductCollectionFactory.create(collected_product.id, collection.id),
        ProductDiscountFactory.create(product_sale.id, direct_product.id),
        CollectionDiscountFactory.create(collection_sale.id, collection.id),
    )

    discounts = await get_active_discounts_for_products(
        db_session,
        store.id,
        [direct_product.id, collected_product.id, plain_product.id],
    )

    assert {d.id for d in discounts[direct_product.id]} == {
        product_sale.id,
        collection_sale.id,
    }
    assert [d.id for d in discounts[collected_product.id]] == [collection_sale.id]
    assert plain_product.id not in discounts

    priced = await price_products(db_session, store.id, [direct_product])
    assert priced[0].final_price == Decimal("72.00")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_expired_and_inactive_discounts_are_ignored(db_session):
    store = await persist(db_session, StoreFactory.create())
    product = await persist(db_session, ProductFactory.create(store.id))

    expired = DiscountFactory.create(
        store.id, end_date=utc_now() - timedelta(hours=1)
    )
    inactive = DiscountFactory.create(store.id, is_active=False)
    await persist(db_session, expired, inactive)
    await persist(
        db_session,
        ProductDiscountFactory.create(expired.id, product.id),
        ProductDiscountFactory.create(inactive.id, product.id),
    )

    discounts = await get_active_discounts_for_products(
        db_session, store.id, [product.id]
    )

    assert discounts == {}


@pytest.mark.asyncio
@pytest.mark.unit
async def test_no_products_means_no_queries(db_session):
    assert await get_active_discounts_for_products(db_session, uuid.uuid4(), []) == {}
