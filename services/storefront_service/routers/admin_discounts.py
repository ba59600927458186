"""Store admin discount router: discounts and their product/collection targets."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.common.config import get_settings
from libs.common.datetime_utils import ensure_utc, utc_now
from libs.db.session import get_async_db
from services.storefront_service.models import (
    AuditEntityType,
    Collection,
    CollectionDiscount,
    Discount,
    Product,
    ProductDiscount,
    Store,
)
from services.storefront_service.routers._helpers import (
    count_rows,
    get_managed_store,
    get_store_entity_or_404,
    log_audit,
    snapshot,
    total_pages,
)
from services.storefront_service.schemas import (
    DiscountCollectionAdd,
    DiscountCreate,
    DiscountListResponse,
    DiscountProductAdd,
    DiscountResponse,
    DiscountTargetCollection,
    DiscountTargetProduct,
    DiscountUpdate,
)
from services.storefront_service.services.discounts import is_expired
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

settings = get_settings()

router = APIRouter(tags=["store-admin"])

DISCOUNT_AUDIT_FIELDS = ("name", "percentage", "end_date", "is_active")


async def _get_discount(
    db: AsyncSession, store: Store, discount_id: uuid.UUID
) -> Discount:
    return await get_store_entity_or_404(
        db, Discount, store.id, discount_id, "Discount"
    )


def _ensure_future(end_date) -> None:
    if ensure_utc(end_date) <= utc_now():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="End date must be in the future",
        )


async def _target_counts(
    db: AsyncSession, discount_ids: list[uuid.UUID]
) -> tuple[dict[uuid.UUID, int], dict[uuid.UUID, int]]:
    if not discount_ids:
        return {}, {}

    products = await db.execute(
        select(ProductDiscount.discount_id, func.count(ProductDiscount.id))
        .where(ProductDiscount.discount_id.in_(discount_ids))
        .group_by(ProductDiscount.discount_id)
    )
    collections = await db.execute(
        select(CollectionDiscount.discount_id, func.count(CollectionDiscount.id))
        .where(CollectionDiscount.discount_id.in_(discount_ids))
        .group_by(CollectionDiscount.discount_id)
    )
    return dict(products.all()), dict(collections.all())


async def discount_response(db: AsyncSession, discount: Discount) -> DiscountResponse:
    product_counts, collection_counts = await _target_counts(db, [discount.id])
    response = DiscountResponse.model_validate(discount)
    response.is_expired = is_expired(discount)
    response.product_count = product_counts.get(discount.id, 0)
    response.collection_count = collection_counts.get(discount.id, 0)
    return response


# ============================================================================
# DISCOUNTS
# ============================================================================


@router.get("/discounts", response_model=DiscountListResponse)
async def list_discounts(
    search: Optional[str] = None,
    include_expired: bool = False,
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=100),
    store: Store = Depends(get_managed_store),
    db: AsyncSession = Depends(get_async_db),
):
    """List discounts with target counts. Expired ones are hidden by default."""
    query = select(Discount).where(Discount.store_id == store.id)
    if search:
        query = query.where(Discount.name.ilike(f"%{search}%"))
    if not include_expired:
        query = query.where(Discount.end_date >= utc_now())

    total = await count_rows(db, query)

    query = query.order_by(Discount.created_at.desc())
    query = query.offset((page - 1) * page_size).limit(page_size)
    result = await db.execute(query)
    discounts = result.scalars().all()

    product_counts, collection_counts = await _target_counts(
        db, [d.id for d in discounts]
    )
    now = utc_now()
    items = []
    for discount in discounts:
        item = DiscountResponse.model_validate(discount)
        item.is_expired = is_expired(discount, now)
        item.product_count = product_counts.get(discount.id, 0)
        item.collection_count = collection_counts.get(discount.id, 0)
        items.append(item)

    pages = total_pages(total, page_size)
    return DiscountListResponse(
        items=items,
        page=page,
        page_size=page_size,
        total_pages=pages,
        total_count=total,
        has_more=page < pages,
    )


@router.post(
    "/discounts", response_model=DiscountResponse, status_code=status.HTTP_201_CREATED
)
async def create_discount(
    discount_in: DiscountCreate,
    store: Store = Depends(get_managed_store),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Create a discount. The end date must be in the future."""
    _ensure_future(discount_in.end_date)

    data = discount_in.model_dump()
    data["end_date"] = ensure_utc(data["end_date"])
    discount = Discount(store_id=store.id, **data)
    db.add(discount)
    await db.flush()

    await log_audit(
        db,
        store.id,
        AuditEntityType.DISCOUNT,
        discount.id,
        "created",
        current_user.user_id,
        new_value=snapshot(discount, DISCOUNT_AUDIT_FIELDS),
    )
    await db.commit()
    return await discount_response(db, discount)


@router.get("/discounts/{discount_id}", response_model=DiscountResponse)
async def get_discount(
    discount_id: uuid.UUID,
    store: Store = Depends(get_managed_store),
    db: AsyncSession = Depends(get_async_db),
):
    """Get a discount with its target counts."""
    discount = await _get_discount(db, store, discount_id)
    return await discount_response(db, discount)


@router.patch("/discounts/{discount_id}", response_model=DiscountResponse)
async def update_discount(
    discount_id: uuid.UUID,
    discount_in: DiscountUpdate,
    store: Store = Depends(get_managed_store),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Update a discount. A new end date must be in the future."""
    discount = await _get_discount(db, store, discount_id)
    old_value = snapshot(discount, DISCOUNT_AUDIT_FIELDS)

    update_data = discount_in.model_dump(exclude_unset=True)
    if update_data.get("end_date") is not None:
        _ensure_future(update_data["end_date"])
        update_data["end_date"] = ensure_utc(update_data["end_date"])

    for field, value in update_data.items():
        if value is None and field != "description":
            continue
        setattr(discount, field, value)

    await log_audit(
        db,
        store.id,
        AuditEntityType.DISCOUNT,
        discount.id,
        "updated",
        current_user.user_id,
        old_value=old_value,
        new_value=snapshot(discount, DISCOUNT_AUDIT_FIELDS),
    )
    await db.commit()
    return await discount_response(db, discount)


@router.delete("/discounts/{discount_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_discount(
    discount_id: uuid.UUID,
    store: Store = Depends(get_managed_store),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Delete a discount and its product/collection assignments."""
    discount = await _get_discount(db, store, discount_id)
    await log_audit(
        db,
        store.id,
        AuditEntityType.DISCOUNT,
        discount.id,
        "deleted",
        current_user.user_id,
        old_value=snapshot(discount, DISCOUNT_AUDIT_FIELDS),
    )
    await db.delete(discount)
    await db.commit()
    return None


# ============================================================================
# PRODUCT ASSIGNMENTS
# ============================================================================


@router.get(
    "/discounts/{discount_id}/products", response_model=list[DiscountTargetProduct]
)
async def list_discount_products(
    discount_id: uuid.UUID,
    store: Store = Depends(get_managed_store),
    db: AsyncSession = Depends(get_async_db),
):
    """Products the discount is assigned to directly."""
    discount = await _get_discount(db, store, discount_id)
    result = await db.execute(
        select(Product)
        .join(ProductDiscount, ProductDiscount.product_id == Product.id)
        .where(ProductDiscount.discount_id == discount.id)
        .order_by(Product.name)
    )
    return result.scalars().all()


@router.get(
    "/discounts/{discount_id}/available-products",
    response_model=list[DiscountTargetProduct],
)
async def list_available_discount_products(
    discount_id: uuid.UUID,
    search: Optional[str] = None,
    store: Store = Depends(get_managed_store),
    db: AsyncSession = Depends(get_async_db),
):
    """Store products the discount is not yet assigned to."""
    discount = await _get_discount(db, store, discount_id)
    assigned = select(ProductDiscount.product_id).where(
        ProductDiscount.discount_id == discount.id
    )
    query = select(Product).where(
        Product.store_id == store.id, Product.id.not_in(assigned)
    )
    if search:
        query = query.where(Product.name.ilike(f"%{search}%"))
    result = await db.execute(query.order_by(Product.name))
    return result.scalars().all()


@router.post(
    "/discounts/{discount_id}/products",
    response_model=DiscountResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_discount_product(
    discount_id: uuid.UUID,
    item_in: DiscountProductAdd,
    store: Store = Depends(get_managed_store),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Assign the discount to a product."""
    discount = await _get_discount(db, store, discount_id)
    product = await get_store_entity_or_404(
        db, Product, store.id, item_in.product_id, "Product"
    )

    existing = await db.execute(
        select(ProductDiscount.id).where(
            ProductDiscount.discount_id == discount.id,
            ProductDiscount.product_id == product.id,
        )
    )
    if existing.first() is not None:
        raise HTTPException(
            status_code=400, detail="Discount is already applied to this product"
        )

    db.add(ProductDiscount(discount_id=discount.id, product_id=product.id))
    await log_audit(
        db,
        store.id,
        AuditEntityType.DISCOUNT,
        discount.id,
        "product_added",
        current_user.user_id,
        new_value={"product_id": product.id},
    )
    await db.commit()
    return await discount_response(db, discount)


@router.delete(
    "/discounts/{discount_id}/products/{product_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def remove_discount_product(
    discount_id: uuid.UUID,
    product_id: uuid.UUID,
    store: Store = Depends(get_managed_store),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Remove the discount from a product."""
    discount = await _get_discount(db, store, discount_id)
    result = await db.execute(
        select(ProductDiscount).where(
            ProductDiscount.discount_id == discount.id,
            ProductDiscount.product_id == product_id,
        )
    )
    link = result.scalar_one_or_none()
    if not link:
        raise HTTPException(
            status_code=404, detail="Discount is not applied to this product"
        )

    await db.delete(link)
    await log_audit(
        db,
        store.id,
        AuditEntityType.DISCOUNT,
        discount.id,
        "product_removed",
        current_user.user_id,
        old_value={"product_id": product_id},
    )
    await db.commit()
    return None


# ============================================================================
# COLLECTION ASSIGNMENTS
# ============================================================================


@router.get(
    "/discounts/{discount_id}/collections",
    response_model=list[DiscountTargetCollection],
)
async def list_discount_collections(
    discount_id: uuid.UUID,
    store: Store = Depends(get_managed_store),
    db: AsyncSession = Depends(get_async_db),
):
    """Collections the discount is assigned to."""
    discount = await _get_discount(db, store, discount_id)
    result = await db.execute(
        select(Collection)
        .join(CollectionDiscount, CollectionDiscount.collection_id == Collection.id)
        .where(CollectionDiscount.discount_id == discount.id)
        .order_by(Collection.name)
    )
    return result.scalars().all()


@router.get(
    "/discounts/{discount_id}/available-collections",
    response_model=list[DiscountTargetCollection],
)
async def list_available_discount_collections(
    discount_id: uuid.UUID,
    store: Store = Depends(get_managed_store),
    db: AsyncSession = Depends(get_async_db),
):
    """Store collections the discount is not yet assigned to."""
    discount = await _get_discount(db, store, discount_id)
    assigned = select(CollectionDiscount.collection_id).where(
        CollectionDiscount.discount_id == discount.id
    )
    result = await db.execute(
        select(Collection)
        .where(Collection.store_id == store.id, Collection.id.not_in(assigned))
        .order_by(Collection.name)
    )
    return result.scalars().all()


@router.post(
    "/discounts/{discount_id}/collections",
    response_model=DiscountResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_discount_collection(
    discount_id: uuid.UUID,
    item_in: DiscountCollectionAdd,
    store: Store = Depends(get_managed_store),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Assign the discount to every product of a collection."""
    discount = await _get_discount(db, store, discount_id)
    collection = await get_store_entity_or_404(
        db, Collection, store.id, item_in.collection_id, "Collection"
    )

    existing = await db.execute(
        select(CollectionDiscount.id).where(
            CollectionDiscount.discount_id == discount.id,
            CollectionDiscount.collection_id == collection.id,
        )
    )
    if existing.first() is not None:
        raise HTTPException(
            status_code=400, detail="Discount is already applied to this collection"
        )

    db.add(CollectionDiscount(discount_id=discount.id, collection_id=collection.id))
    await log_audit(
        db,
        store.id,
        AuditEntityType.DISCOUNT,
        discount.id,
        "collection_added",
        current_user.user_id,
        new_value={"collection_id": collection.id},
    )
    await db.commit()
    return await discount_response(db, discount)


@router.delete(
    "/discounts/{discount_id}/collections/{collection_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def remove_discount_collection(
    discount_id: uuid.UUID,
    collection_id: uuid.UUID,
    store: Store = Depends(get_managed_store),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Remove the discount from a collection."""
    discount = await _get_discount(db, store, discount_id)
    result = await db.execute(
        select(CollectionDiscount).where(
            CollectionDiscount.discount_id == discount.id,
            CollectionDiscount.collection_id == collection_id,
        )
    )
    link = result.scalar_one_or_none()
    if not link:
        raise HTTPException(
            status_code=404, detail="Discount is not applied to this collection"
        )

    await db.delete(link)
    await log_audit(
        db,
        store.id,
        AuditEntityType.DISCOUNT,
        discount.id,
        "collection_removed",
        current_user.user_id,
        old_value={"collection_id": collection_id},
    )
    await db.commit()
    return None
