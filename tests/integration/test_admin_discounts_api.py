"""Integration tests for the store admin discount endpoints."""

from datetime import timedelta
from decimal import Decimal

import pytest
from libs.common.datetime_utils import utc_now
from tests.factories import (
    CollectionDiscountFactory,
    CollectionFactory,
    DiscountFactory,
    ProductDiscountFactory,
    ProductFactory,
    StoreFactory,
    persist,
)


def _admin(store, path: str) -> str:
    return f"/stores/{store.slug}/admin{path}"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_create_discount(client, db_session):
    store = await persist(db_session, StoreFactory.create())
    end_date = (utc_now() + timedelta(days=3)).isoformat()

    response = await client.post(
        _admin(store, "/discounts"),
        json={"name": "Spring Sale", "percentage": "15", "end_date": end_date},
    )

    assert response.status_code == 201, response.text
    data = response.json()
    assert Decimal(data["percentage"]) == Decimal("15")
    assert data["is_expired"] is False
    assert data["product_count"] == 0


@pytest.mark.asyncio
@pytest.mark.integration
async def test_discount_end_date_must_be_in_future(client, db_session):
    store = await persist(db_session, StoreFactory.create())
    discount = await persist(db_session, DiscountFactory.create(store.id))
    past = (utc_now() - timedelta(hours=1)).isoformat()

    created = await client.post(
        _admin(store, "/discounts"),
        json={"name": "Too late", "percentage": "10", "end_date": past},
    )
    updated = await client.patch(
        _admin(store, f"/discounts/{discount.id}"), json={"end_date": past}
    )

    assert created.status_code == 400
    assert updated.status_code == 400


@pytest.mark.asyncio
@pytest.mark.integration
@pytest.mark.parametrize("percentage", ["0", "100.01", "-5"])
async def test_discount_percentage_bounds(client, db_session, percentage):
    store = await persist(db_session, StoreFactory.create())

    response = await client.post(
        _admin(store, "/discounts"),
        json={
            "name": "Bad",
            "percentage": percentage,
            "end_date": (utc_now() + timedelta(days=1)).isoformat(),
        },
    )

    assert response.status_code == 422


@pytest.mark.asyncio
@pytest.mark.integration
async def test_list_discounts_hides_expired_by_default(client, db_session):
    store = await persist(db_session, StoreFactory.create())
    live = DiscountFactory.create(store.id, name="Live")
    expired = DiscountFactory.create(
        store.id, name="Old", end_date=utc_now() - timedelta(days=1)
    )
    await persist(db_session, live, expired)

    default = (await client.get(_admin(store, "/discounts"))).json()
    everything = (
        await client.get(_admin(store, "/discounts"), params={"include_expired": "true"})
    ).json()

    assert [d["name"] for d in default["items"]] == ["Live"]
    assert default["total_count"] == 1
    assert default["has_more"] is False
    assert {d["name"]: d["is_expired"] for d in everything["items"]} == {
        "Live": False,
        "Old": True,
    }


@pytest.mark.asyncio
@pytest.mark.integration
async def test_list_discounts_pagination(client, db_session):
    store = await persist(db_session, StoreFactory.create())
    await persist(db_session, *[DiscountFactory.create(store.id) for _ in range(3)])

    response = await client.get(
        _admin(store, "/discounts"), params={"page": 1, "page_size": 2}
    )

    data = response.json()
    assert len(data["items"]) == 2
    assert data["total_pages"] == 2
    assert data["has_more"] is True


@pytest.mark.asyncio
@pytest.mark.integration
async def test_assign_discount_to_products(client, db_session):
    store = await persist(db_session, StoreFactory.create())
    discount = await persist(db_session, DiscountFactory.create(store.id))
    assigned = ProductFactory.create(store.id, name="Assigned")
    other = ProductFactory.create(store.id, name="Other")
    await persist(db_session, assigned, other)
    base = _admin(store, f"/discounts/{discount.id}/products")

    response = await client.post(base, json={"product_id": str(assigned.id)})
    assert response.status_code == 201, response.text
    assert response.json()["product_count"] == 1

    duplicate = await client.post(base, json={"product_id": str(assigned.id)})
    assert duplicate.status_code == 400

    products = (await client.get(base)).json()
    available = (
        await client.get(_admin(store, f"/discounts/{discount.id}/available-products"))
    ).json()
    assert [p["id"] for p in products] == [str(assigned.id)]
    assert [p["id"] for p in available] == [str(other.id)]

    assert (await client.delete(f"{base}/{assigned.id}")).status_code == 204
    assert (await client.delete(f"{base}/{assigned.id}")).status_code == 404


@pytest.mark.asyncio
@pytest.mark.integration
async def test_assign_discount_rejects_foreign_product(client, db_session):
    store = await persist(db_session, StoreFactory.create())
    other_store = await persist(db_session, StoreFactory.create())
    discount = await persist(db_session, DiscountFactory.create(store.id))
    foreign = await persist(db_session, ProductFactory.create(other_store.id))

    response = await client.post(
        _admin(store, f"/discounts/{discount.id}/products"),
        json={"product_id": str(foreign.id)},
    )

    assert response.status_code == 404


@pytest.mark.asyncio
@pytest.mark.integration
async def test_assign_discount_to_collections(client, db_session):
    store = await persist(db_session, StoreFactory.create())
    discount = await persist(db_session, DiscountFactory.create(store.id))
    collection = await persist(db_session, CollectionFactory.create(store.id))
    base = _admin(store, f"/discounts/{discount.id}/collections")

    response = await client.post(base, json={"collection_id": str(collection.id)})
    assert response.status_code == 201, response.text
    assert response.json()["collection_count"] == 1

    duplicate = await client.post(base, json={"collection_id": str(collection.id)})
    assert duplicate.status_code == 400

    listed = (await client.get(base)).json()
    assert [c["id"] for c in listed] == [str(collection.id)]

    assert (await client.delete(f"{base}/{collection.id}")).status_code == 204


@pytest.mark.asyncio
@pytest.mark.integration
async def test_delete_discount_removes_assignments(client, db_session):
    store = await persist(db_session, StoreFactory.create())
    discount = await persist(db_session, DiscountFactory.create(store.id))
    product = await persist(db_session, ProductFactory.create(store.id))
    collection = await persist(db_session, CollectionFactory.create(store.id))
    await persist(
        db_session,
        ProductDiscountFactory.create(discount.id, product.id),
        CollectionDiscountFactory.create(discount.id, collection.id),
    )

    response = await client.delete(_admin(store, f"/discounts/{discount.id}"))

    assert response.status_code == 204
    assert (
        await client.get(_admin(store, f"/discounts/{discount.id}"))
    ).status_code == 404
    storefront = (await client.get(f"/stores/{store.slug}/products/{product.slug}")).json()
    assert Decimal(storefront["final_price"]) == Decimal(storefront["price"])
