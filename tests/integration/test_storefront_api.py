"""Integration tests for the public storefront catalog."""

from datetime import timedelta
from decimal import Decimal

import pytest
from libs.common.datetime_utils import utc_now
from tests.factories import (
    CategoryFactory,
    CollectionDiscountFactory,
    CollectionFactory,
    DiscountFactory,
    ProductCollectionFactory,
    ProductDiscountFactory,
    ProductFactory,
    ProductImageFactory,
    StoreFactory,
    persist,
)


def _shop(store, path: str = "") -> str:
    return f"/stores/{store.slug}{path}"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_products_are_priced_with_stacked_discounts(client, db_session):
    store = await persist(db_session, StoreFactory.create())
    product = await persist(
        db_session, ProductFactory.create(store.id, price=Decimal("100.00"))
    )
    collection = await persist(db_session, CollectionFactory.create(store.id))
    await persist(db_session, ProductCollectionFactory.create(product.id, collection.id))
    direct = DiscountFactory.create(store.id, name="Direct", percentage=Decimal("20"))
    via_collection = DiscountFactory.create(
        store.id, name="Collection", percentage=Decimal("10")
    )
    await persist(db_session, direct, via_collection)
    await persist(
        db_session,
        ProductDiscountFactory.create(direct.id, product.id),
        CollectionDiscountFactory.create(via_collection.id, collection.id),
    )

    response = await client.get(_shop(store, "/products"))

    assert response.status_code == 200
    item = response.json()["items"][0]
    assert Decimal(item["price"]) == Decimal("100.00")
    assert Decimal(item["final_price"]) == Decimal("72.00")
    assert Decimal(item["savings"]) == Decimal("28.00")
    assert [d["name"] for d in item["applied_discounts"]] == ["Direct", "Collection"]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_expired_discount_does_not_apply(client, db_session):
    store = await persist(db_session, StoreFactory.create())
    product = await persist(db_session, ProductFactory.create(store.id))
    expired = await persist(
        db_session,
        DiscountFactory.create(store.id, end_date=utc_now() - timedelta(minutes=5)),
    )
    await persist(db_session, ProductDiscountFactory.create(expired.id, product.id))

    response = await client.get(_shop(store, f"/products/{product.slug}"))

    data = response.json()
    assert Decimal(data["final_price"]) == Decimal(data["price"])
    assert data["applied_discounts"] == []


@pytest.mark.asyncio
@pytest.mark.integration
async def test_inactive_products_and_stores_are_hidden(client, db_session):
    store = await persist(db_session, StoreFactory.create())
    closed = await persist(db_session, StoreFactory.create(is_active=False))
    visible = ProductFactory.create(store.id, name="Visible")
    hidden = ProductFactory.create(store.id, name="Hidden", is_active=False)
    await persist(db_session, visible, hidden)

    listing = (await client.get(_shop(store, "/products"))).json()
    assert [p["name"] for p in listing["items"]] == ["Visible"]
    assert (await client.get(_shop(store, f"/products/{hidden.slug}"))).status_code == 404
    assert (await client.get(_shop(closed, "/products"))).status_code == 404


@pytest.mark.asyncio
@pytest.mark.integration
async def test_product_filters(client, db_session):
    store = await persist(db_session, StoreFactory.create())
    teas = await persist(db_session, CategoryFactory.create(store.id, slug="teas"))
    gifts = await persist(db_session, CollectionFactory.create(store.id, slug="gifts"))
    green = ProductFactory.create(
        store.id, name="Green Tea", category_id=teas.id, is_featured=True
    )
    mug = ProductFactory.create(store.id, name="Mug", short_description="Holds tea")
    beans = ProductFactory.create(store.id, name="Beans")
    await persist(db_session, green, mug, beans)
    await persist(db_session, ProductCollectionFactory.create(mug.id, gifts.id))

    async def names(**params):
        response = await client.get(
            _shop(store, "/products"), params={"sort": "name", **params}
        )
        return [p["name"] for p in response.json()["items"]]

    assert await names(search="tea") == ["Green Tea", "Mug"]
    assert await names(category="teas") == ["Green Tea"]
    assert await names(collection="gifts") == ["Mug"]
    assert await names(featured="true") == ["Green Tea"]
    assert await names(category="missing") == []


@pytest.mark.asyncio
@pytest.mark.integration
async def test_product_sorting_and_pagination(client, db_session):
    store = await persist(db_session, StoreFactory.create())
    now = utc_now()
    await persist(
        db_session,
        ProductFactory.create(
            store.id, name="Cheap", price=Decimal("5"), created_at=now - timedelta(days=2)
        ),
        ProductFactory.create(
            store.id, name="Pricey", price=Decimal("50"), created_at=now - timedelta(days=1)
        ),
        ProductFactory.create(store.id, name="Middle", price=Decimal("20"), created_at=now),
    )

    async def names(**params):
        response = await client.get(_shop(store, "/products"), params=params)
        return [p["name"] for p in response.json()["items"]]

    assert await names() == ["Middle", "Pricey", "Cheap"]
    assert await names(sort="price-asc") == ["Cheap", "Middle", "Pricey"]
    assert await names(sort="price-desc") == ["Pricey", "Middle", "Cheap"]

    page = (
        await client.get(
            _shop(store, "/products"), params={"sort": "name", "page": 2, "page_size": 2}
        )
    ).json()
    assert [p["name"] for p in page["items"]] == ["Pricey"]
    assert page["total"] == 3
    assert page["total_pages"] == 2


@pytest.mark.asyncio
@pytest.mark.integration
async def test_featured_products(client, db_session):
    store = await persist(db_session, StoreFactory.create())
    now = utc_now()
    await persist(
        db_session,
        ProductFactory.create(
            store.id, name="Old star", is_featured=True, created_at=now - timedelta(days=1)
        ),
        ProductFactory.create(store.id, name="New star", is_featured=True, created_at=now),
        ProductFactory.create(store.id, name="Regular"),
    )

    response = await client.get(_shop(store, "/products/featured"), params={"limit": 5})

    assert [p["name"] for p in response.json()] == ["New star", "Old star"]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_product_detail_hides_inactive_relations(client, db_session):
    store = await persist(db_session, StoreFactory.create())
    category = await persist(db_session, CategoryFactory.create(store.id, is_active=False))
    shown = CollectionFactory.create(store.id, name="Shown")
    retired = CollectionFactory.create(store.id, name="Retired", is_active=False)
    await persist(db_session, shown, retired)
    product = await persist(
        db_session,
        ProductFactory.create(store.id, category_id=category.id, inventory=0, sku="P-1"),
    )
    await persist(
        db_session,
        ProductImageFactory.create(product.id, url="https://img.test/front.jpg"),
        ProductCollectionFactory.create(product.id, shown.id),
        ProductCollectionFactory.create(product.id, retired.id),
    )

    response = await client.get(_shop(store, f"/products/{product.slug}"))

    assert response.status_code == 200
    data = response.json()
    assert data["category"] is None
    assert [c["name"] for c in data["collections"]] == ["Shown"]
    assert data["image_url"] == "https://img.test/front.jpg"
    assert data["in_stock"] is False
    assert data["sku"] == "P-1"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_categories(client, db_session):
    store = await persist(db_session, StoreFactory.create())
    active = CategoryFactory.create(store.id, name="Coffee", slug="coffee")
    inactive = CategoryFactory.create(store.id, name="Retired", slug="retired", is_active=False)
    await persist(db_session, active, inactive)
    await persist(
        db_session,
        ProductFactory.create(store.id, name="Espresso", category_id=active.id),
        ProductFactory.create(
            store.id, name="Hidden", category_id=active.id, is_active=False
        ),
    )

    listed = (await client.get(_shop(store, "/categories"))).json()
    assert [c["slug"] for c in listed] == ["coffee"]

    detail = (await client.get(_shop(store, "/categories/coffee"))).json()
    assert [p["name"] for p in detail["products"]] == ["Espresso"]

    assert (await client.get(_shop(store, "/categories/retired"))).status_code == 404


@pytest.mark.asyncio
@pytest.mark.integration
async def test_collections(client, db_session):
    store = await persist(db_session, StoreFactory.create())
    collection = await persist(
        db_session, CollectionFactory.create(store.id, name="Gifts", slug="gifts")
    )
    await persist(db_session, CollectionFactory.create(store.id, is_active=False))
    active = ProductFactory.create(store.id, name="Gift box")
    hidden = ProductFactory.create(store.id, name="Old box", is_active=False)
    await persist(db_session, active, hidden)
    await persist(
        db_session,
        ProductCollectionFactory.create(active.id, collection.id),
        ProductCollectionFactory.create(hidden.id, collection.id),
    )

    listed = (await client.get(_shop(store, "/collections"))).json()
    assert [c["slug"] for c in listed] == ["gifts"]

    detail = (await client.get(_shop(store, "/collections/gifts"))).json()
    assert detail["product_count"] == 1
    assert [p["name"] for p in detail["products"]] == ["Gift box"]

    assert (await client.get(_shop(store, "/collections/nope"))).status_code == 404
