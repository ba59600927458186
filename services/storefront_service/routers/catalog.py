"""Public storefront catalog router.

Only active stores, categories, collections and products are served, and
every product is priced through discount stacking.
"""

from typing import Optional, Sequence

from fastapi import APIRouter, Depends, HTTPException, Query
from libs.common.config import get_settings
from libs.db.session import get_async_db
from services.storefront_service.models import (
    Category,
    Collection,
    Product,
    ProductCollection,
    ProductSort,
    Store,
)
from services.storefront_service.routers._helpers import (
    count_rows,
    get_active_store,
    total_pages,
)
from services.storefront_service.schemas import (
    AppliedDiscountResponse,
    CategoryImageResponse,
    CategoryResponse,
    CollectionResponse,
    CollectionSummary,
    ProductImageResponse,
    StorefrontCategoryDetail,
    StorefrontCollectionDetail,
    StorefrontProduct,
    StorefrontProductDetail,
    StorefrontProductList,
)
from services.storefront_service.services.discounts import (
    PricedProduct,
    price_products,
)
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

settings = get_settings()

router = APIRouter(tags=["storefront"])

SORT_ORDER = {
    ProductSort.NEWEST: (Product.created_at.desc(), Product.name),
    ProductSort.PRICE_ASC: (Product.price.asc(), Product.name),
    ProductSort.PRICE_DESC: (Product.price.desc(), Product.name),
    ProductSort.NAME: (Product.name.asc(),),
}


def storefront_product(priced: PricedProduct) -> StorefrontProduct:
    product = priced.product
    return StorefrontProduct(
        id=product.id,
        name=product.name,
        slug=product.slug,
        short_description=product.short_description,
        category_id=product.category_id,
        image_url=product.images[0].url if product.images else None,
        price=priced.original_price,
        compare_at_price=product.compare_at_price,
        final_price=priced.final_price,
        savings=priced.savings,
        discount_percentage=priced.discount_percentage,
        applied_discounts=[
            AppliedDiscountResponse.model_validate(d)
            for d in priced.applied_discounts
        ],
        inventory=product.inventory,
        in_stock=product.inventory > 0,
        weight=product.weight,
        is_featured=product.is_featured,
        created_at=product.created_at,
    )


async def _priced_cards(
    db: AsyncSession, store: Store, products: Sequence[Product]
) -> list[StorefrontProduct]:
    priced = await price_products(db, store.id, products)
    return [storefront_product(p) for p in priced]


def _active_products(store: Store):
    return (
        select(Product)
        .where(Product.store_id == store.id, Product.is_active.is_(True))
        .options(selectinload(Product.images))
    )


# ============================================================================
# CATEGORIES
# ============================================================================


@router.get("/stores/{slug}/categories", response_model=list[CategoryResponse])
async def list_categories(
    store: Store = Depends(get_active_store),
    db: AsyncSession = Depends(get_async_db),
):
    """List active categories."""
    result = await db.execute(
        select(Category)
        .where(Category.store_id == store.id, Category.is_active.is_(True))
        .order_by(Category.name)
    )
    return result.scalars().all()


@router.get(
    "/stores/{slug}/categories/{category_slug}",
    response_model=StorefrontCategoryDetail,
)
async def get_category(
    category_slug: str,
    store: Store = Depends(get_active_store),
    db: AsyncSession = Depends(get_async_db),
):
    """Get a category with its images and active products."""
    result = await db.execute(
        select(Category)
        .where(
            Category.store_id == store.id,
            Category.slug == category_slug,
            Category.is_active.is_(True),
        )
        .options(selectinload(Category.images))
    )
    category = result.scalar_one_or_none()
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")

    result = await db.execute(
        _active_products(store)
        .where(Product.category_id == category.id)
        .order_by(Product.name)
    )
    products = await _priced_cards(db, store, result.scalars().all())

    return StorefrontCategoryDetail(
        **CategoryResponse.model_validate(category).model_dump(),
        images=[CategoryImageResponse.model_validate(i) for i in category.images],
        products=products,
    )


# ============================================================================
# PRODUCTS
# ============================================================================


@router.get("/stores/{slug}/products", response_model=StorefrontProductList)
async def list_products(
    search: Optional[str] = None,
    category: Optional[str] = Query(None, description="Category slug"),
    collection: Optional[str] = Query(None, description="Collection slug"),
    featured: Optional[bool] = None,
    sort: ProductSort = ProductSort.NEWEST,
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=100),
    store: Store = Depends(get_active_store),
    db: AsyncSession = Depends(get_async_db),
):
    """Browse active products with filters, sorting and pagination."""
    query = _active_products(store)

    if search:
        search_term = f"%{search}%"
        query = query.where(
            Product.name.ilike(search_term)
            | Product.short_description.ilike(search_term)
            | Product.description.ilike(search_term)
        )
    if category:
        query = query.where(
            Product.category_id.in_(
                select(Category.id).where(
                    Category.store_id == store.id,
                    Category.slug == category,
                    Category.is_active.is_(True),
                )
            )
        )
    if collection:
        query = query.where(
            Product.id.in_(
                select(ProductCollection.product_id)
                .join(Collection, Collection.id == ProductCollection.collection_id)
                .where(
                    Collection.store_id == store.id,
                    Collection.slug == collection,
                    Collection.is_active.is_(True),
                )
            )
        )
    if featured is not None:
        query = query.where(Product.is_featured.is_(featured))

    total = await count_rows(db, query)

    query = query.order_by(*SORT_ORDER[sort])
    query = query.offset((page - 1) * page_size).limit(page_size)
    result = await db.execute(query)

    return StorefrontProductList(
        items=await _priced_cards(db, store, result.scalars().all()),
        total=total,
        page=page,
        page_size=page_size,
        total_pages=total_pages(total, page_size),
    )


@router.get(
    "/stores/{slug}/products/featured", response_model=list[StorefrontProduct]
)
async def list_featured_products(
    limit: int = Query(8, ge=1, le=50),
    store: Store = Depends(get_active_store),
    db: AsyncSession = Depends(get_async_db),
):
    """Featured products, newest first."""
    result = await db.execute(
        _active_products(store)
        .where(Product.is_featured.is_(True))
        .order_by(Product.created_at.desc())
        .limit(limit)
    )
    return await _priced_cards(db, store, result.scalars().all())


@router.get(
    "/stores/{slug}/products/{product_slug}", response_model=StorefrontProductDetail
)
async def get_product(
    product_slug: str,
    store: Store = Depends(get_active_store),
    db: AsyncSession = Depends(get_async_db),
):
    """Product page: priced product with images, category and collections."""
    result = await db.execute(
        _active_products(store)
        .where(Product.slug == product_slug)
        .options(
            selectinload(Product.category),
            selectinload(Product.product_collections).selectinload(
                ProductCollection.collection
            ),
        )
    )
    product = result.scalar_one_or_none()
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")

    (priced,) = await price_products(db, store.id, [product])
    category = product.category
    if category and not category.is_active:
        category = None

    return StorefrontProductDetail(
        **storefront_product(priced).model_dump(),
        description=product.description,
        sku=product.sku,
        images=[ProductImageResponse.model_validate(i) for i in product.images],
        category=CategoryResponse.model_validate(category) if category else None,
        collections=[
            CollectionSummary.model_validate(pc.collection)
            for pc in product.product_collections
            if pc.collection.is_active
        ],
    )


# ============================================================================
# COLLECTIONS
# ============================================================================


@router.get("/stores/{slug}/collections", response_model=list[CollectionResponse])
async def list_collections(
    store: Store = Depends(get_active_store),
    db: AsyncSession = Depends(get_async_db),
):
    """List active collections."""
    result = await db.execute(
        select(Collection)
        .where(Collection.store_id == store.id, Collection.is_active.is_(True))
        .order_by(Collection.name)
    )
    return result.scalars().all()


@router.get(
    "/stores/{slug}/collections/{collection_slug}",
    response_model=StorefrontCollectionDetail,
)
async def get_collection(
    collection_slug: str,
    store: Store = Depends(get_active_store),
    db: AsyncSession = Depends(get_async_db),
):
    """Get a collection with its active products."""
    result = await db.execute(
        select(Collection).where(
            Collection.store_id == store.id,
            Collection.slug == collection_slug,
            Collection.is_active.is_(True),
        )
    )
    collection = result.scalar_one_or_none()
    if not collection:
        raise HTTPException(status_code=404, detail="Collection not found")

    result = await db.execute(
        _active_products(store)
        .join(ProductCollection, ProductCollection.product_id == Product.id)
        .where(ProductCollection.collection_id == collection.id)
        .order_by(Product.name)
    )
    products = await _priced_cards(db, store, result.scalars().all())

    response = StorefrontCollectionDetail(
        **CollectionResponse.model_validate(collection).model_dump(),
        products=products,
    )
    response.product_count = len(products)
    return response
