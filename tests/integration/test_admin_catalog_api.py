"""Integration tests for the store admin catalog endpoints."""

from decimal import Decimal

import pytest
from tests.factories import (
    CategoryFactory,
    CollectionFactory,
    ProductCollectionFactory,
    ProductFactory,
    StoreFactory,
    persist,
)


def _admin(store, path: str) -> str:
    return f"/stores/{store.slug}/admin{path}"


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_create_category_generates_unique_slug(client, db_session):
    store = await persist(db_session, StoreFactory.create())

    first = await client.post(_admin(store, "/categories"), json={"name": "Hot Drinks"})
    second = await client.post(_admin(store, "/categories"), json={"name": "Hot Drinks"})

    assert first.status_code == 201, first.text
    assert first.json()["slug"] == "hot-drinks"
    assert second.json()["slug"] == "hot-drinks-1"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_explicit_category_slug_conflict(client, db_session):
    store = await persist(db_session, StoreFactory.create())
    await persist(db_session, CategoryFactory.create(store.id, slug="shoes"))

    response = await client.post(
        _admin(store, "/categories"), json={"name": "Footwear", "slug": "Shoes"}
    )

    assert response.status_code == 409


@pytest.mark.asyncio
@pytest.mark.integration
async def test_same_slug_allowed_in_another_store(client, db_session):
    store = await persist(db_session, StoreFactory.create())
    other = await persist(db_session, StoreFactory.create())
    await persist(db_session, CategoryFactory.create(other.id, slug="shoes"))

    response = await client.post(
        _admin(store, "/categories"), json={"name": "Shoes", "slug": "shoes"}
    )

    assert response.status_code == 201
    assert response.json()["slug"] == "shoes"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_category_cannot_be_its_own_parent(client, db_session):
    store = await persist(db_session, StoreFactory.create())
    parent = await persist(db_session, CategoryFactory.create(store.id))
    child = await persist(db_session, CategoryFactory.create(store.id, parent_id=parent.id))

    own = await client.patch(
        _admin(store, f"/categories/{parent.id}"), json={"parent_id": str(parent.id)}
    )
    cycle = await client.patch(
        _admin(store, f"/categories/{parent.id}"), json={"parent_id": str(child.id)}
    )

    assert own.status_code == 400
    assert cycle.status_code == 400


@pytest.mark.asyncio
@pytest.mark.integration
async def test_list_categories_includes_inactive(client, db_session):
    store = await persist(db_session, StoreFactory.create())
    await persist(
        db_session,
        CategoryFactory.create(store.id, name="Alpha"),
        CategoryFactory.create(store.id, name="Beta", is_active=False),
    )

    response = await client.get(_admin(store, "/categories"))

    data = response.json()
    assert data["total"] == 2
    assert [c["name"] for c in data["items"]] == ["Alpha", "Beta"]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_delete_category_detaches_products(client, db_session):
    store = await persist(db_session, StoreFactory.create())
    category = await persist(db_session, CategoryFactory.create(store.id))
    product = await persist(
        db_session, ProductFactory.create(store.id, category_id=category.id)
    )

    response = await client.delete(_admin(store, f"/categories/{category.id}"))
    assert response.status_code == 204

    detail = await client.get(_admin(store, f"/products/{product.id}"))
    assert detail.status_code == 200
    assert detail.json()["category_id"] is None


@pytest.mark.asyncio
@pytest.mark.integration
async def test_category_images_keep_one_main(client, db_session):
    store = await persist(db_session, StoreFactory.create())
    category = await persist(db_session, CategoryFactory.create(store.id))
    base = _admin(store, f"/categories/{category.id}/images")

    first = (await client.post(base, json={"url": "https://img.test/1.jpg"})).json()
    second = (await client.post(base, json={"url": "https://img.test/2.jpg"})).json()
    assert first["is_main"] is True
    assert second["is_main"] is False
    assert second["position"] == 1

    images = (await client.post(f"{base}/{second['id']}/main")).json()
    assert {i["id"]: i["is_main"] for i in images} == {
        first["id"]: False,
        second["id"]: True,
    }
    category_data = (await client.get(_admin(store, f"/categories/{category.id}"))).json()
    assert category_data["image_url"] == "https://img.test/2.jpg"

    assert (await client.delete(f"{base}/{second['id']}")).status_code == 204
    remaining = (await client.get(base)).json()
    assert [(i["id"], i["is_main"]) for i in remaining] == [(first["id"], True)]


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_create_product_with_category(client, db_session):
    store = await persist(db_session, StoreFactory.create())
    category = await persist(db_session, CategoryFactory.create(store.id))

    response = await client.post(
        _admin(store, "/products"),
        json={
            "name": "Arabica Beans 500g",
            "price": "24.50",
            "sku": " BEAN-500 ",
            "inventory": 12,
            "weight": "0.50",
            "category_id": str(category.id),
        },
    )

    assert response.status_code == 201, response.text
    data = response.json()
    assert data["slug"] == "arabica-beans-500g"
    assert data["sku"] == "BEAN-500"
    assert Decimal(data["price"]) == Decimal("24.50")
    assert data["category"]["id"] == str(category.id)
    assert data["images"] == []


@pytest.mark.asyncio
@pytest.mark.integration
async def test_product_sku_is_unique_per_store(client, db_session):
    store = await persist(db_session, StoreFactory.create())
    await persist(db_session, ProductFactory.create(store.id, sku="SKU-1"))

    response = await client.post(
        _admin(store, "/products"), json={"name": "Copy", "price": "1.00", "sku": "SKU-1"}
    )

    assert response.status_code == 409


@pytest.mark.asyncio
@pytest.mark.integration
async def test_featured_product_slug_is_reserved(client, db_session):
    store = await persist(db_session, StoreFactory.create())

    generated = await client.post(
        _admin(store, "/products"), json={"name": "Featured", "price": "5.00"}
    )
    explicit = await client.post(
        _admin(store, "/products"),
        json={"name": "Star", "price": "5.00", "slug": "featured"},
    )

    assert generated.status_code == 201, generated.text
    assert generated.json()["slug"] == "featured-1"
    assert explicit.status_code == 400
    storefront = await client.get(f"/stores/{store.slug}/products/featured-1")
    assert storefront.json()["name"] == "Featured"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_product_rejects_foreign_category(client, db_session):
    store = await persist(db_session, StoreFactory.create())
    other = await persist(db_session, StoreFactory.create())
    foreign = await persist(db_session, CategoryFactory.create(other.id))

    response = await client.post(
        _admin(store, "/products"),
        json={"name": "Mug", "price": "9.00", "category_id": str(foreign.id)},
    )

    assert response.status_code == 400


@pytest.mark.asyncio
@pytest.mark.integration
async def test_update_product_keeps_slug_on_rename(client, db_session):
    store = await persist(db_session, StoreFactory.create())
    product = await persist(db_session, ProductFactory.create(store.id, slug="mug"))

    response = await client.patch(
        _admin(store, f"/products/{product.id}"),
        json={"name": "Big Mug", "price": "12.00", "inventory": None},
    )

    assert response.status_code == 200, response.text
    data = response.json()
    assert data["name"] == "Big Mug"
    assert data["slug"] == "mug"
    assert data["inventory"] == product.inventory


@pytest.mark.asyncio
@pytest.mark.integration
async def test_list_products_filters(client, db_session):
    store = await persist(db_session, StoreFactory.create())
    await persist(
        db_session,
        ProductFactory.create(store.id, name="Green Tea", sku="TEA-1"),
        ProductFactory.create(store.id, name="Black Tea", is_active=False),
        ProductFactory.create(store.id, name="Espresso"),
    )

    tea = (await client.get(_admin(store, "/products"), params={"search": "tea"})).json()
    inactive = (
        await client.get(_admin(store, "/products"), params={"is_active": "false"})
    ).json()

    assert tea["total"] == 2
    assert [p["name"] for p in inactive["items"]] == ["Black Tea"]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_product_images_append_in_order(client, db_session):
    store = await persist(db_session, StoreFactory.create())
    product = await persist(db_session, ProductFactory.create(store.id))
    base = _admin(store, f"/products/{product.id}/images")

    await client.post(base, json={"url": "https://img.test/a.jpg"})
    await client.post(base, json={"url": "https://img.test/b.jpg"})

    images = (await client.get(base)).json()
    assert [(i["url"], i["position"]) for i in images] == [
        ("https://img.test/a.jpg", 0),
        ("https://img.test/b.jpg", 1),
    ]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_delete_product(client, db_session):
    store = await persist(db_session, StoreFactory.create())
    product = await persist(db_session, ProductFactory.create(store.id))

    response = await client.delete(_admin(store, f"/products/{product.id}"))

    assert response.status_code == 204
    assert (await client.get(_admin(store, f"/products/{product.id}"))).status_code == 404


# ---------------------------------------------------------------------------
# Collections
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_collection_membership(client, db_session):
    store = await persist(db_session, StoreFactory.create())
    collection = await persist(db_session, CollectionFactory.create(store.id))
    inside = ProductFactory.create(store.id, name="Inside")
    outside = ProductFactory.create(store.id, name="Outside")
    await persist(db_session, inside, outside)
    base = _admin(store, f"/collections/{collection.id}/products")

    added = await client.post(base, json={"product_id": str(inside.id)})
    assert added.status_code == 201, added.text
    assert added.json()["product_count"] == 1

    duplicate = await client.post(base, json={"product_id": str(inside.id)})
    assert duplicate.status_code == 400

    products = (await client.get(base)).json()
    available = (
        await client.get(_admin(store, f"/collections/{collection.id}/available-products"))
    ).json()
    assert [p["id"] for p in products] == [str(inside.id)]
    assert [p["id"] for p in available] == [str(outside.id)]

    assert (await client.delete(f"{base}/{inside.id}")).status_code == 204
    assert (await client.delete(f"{base}/{inside.id}")).status_code == 404


@pytest.mark.asyncio
@pytest.mark.integration
async def test_list_collections_with_counts(client, db_session):
    store = await persist(db_session, StoreFactory.create())
    collection = await persist(db_session, CollectionFactory.create(store.id))
    first, second = ProductFactory.create(store.id), ProductFactory.create(store.id)
    await persist(db_session, first, second)
    await persist(
        db_session,
        ProductCollectionFactory.create(first.id, collection.id),
        ProductCollectionFactory.create(second.id, collection.id),
    )

    response = await client.get(_admin(store, "/collections"))

    data = response.json()
    assert data["total"] == 1
    assert data["items"][0]["product_count"] == 2


@pytest.mark.asyncio
@pytest.mark.integration
async def test_delete_collection_keeps_products(client, db_session):
    store = await persist(db_session, StoreFactory.create())
    collection = await persist(db_session, CollectionFactory.create(store.id))
    product = await persist(db_session, ProductFactory.create(store.id))
    await persist(db_session, ProductCollectionFactory.create(product.id, collection.id))

    response = await client.delete(_admin(store, f"/collections/{collection.id}"))

    assert response.status_code == 204
    detail = await client.get(_admin(store, f"/products/{product.id}"))
    assert detail.status_code == 200
    assert detail.json()["collections"] == []
