"""Store admin catalog router: categories, products, images and collections."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.common.config import get_settings
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from services.storefront_service.models import (
    AuditEntityType,
    Category,
    CategoryImage,
    Collection,
    Product,
    ProductCollection,
    ProductImage,
    Store,
)
from services.storefront_service.routers._helpers import (
    count_rows,
    get_managed_store,
    get_store_entity_or_404,
    log_audit,
    resolve_slug,
    snapshot,
    total_pages,
)
from services.storefront_service.schemas import (
    CategoryCreate,
    CategoryImageCreate,
    CategoryImageResponse,
    CategoryImageUpdate,
    CategoryListResponse,
    CategoryResponse,
    CategoryUpdate,
    CollectionCreate,
    CollectionListResponse,
    CollectionProductAdd,
    CollectionResponse,
    CollectionSummary,
    CollectionUpdate,
    ProductCreate,
    ProductDetail,
    ProductImageCreate,
    ProductImageResponse,
    ProductImageUpdate,
    ProductListResponse,
    ProductResponse,
    ProductUpdate,
)
from services.storefront_service.services.shipping_calculator import (
    release_carts_for_product,
)
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

settings = get_settings()
logger = get_logger(__name__)

router = APIRouter(tags=["store-admin"])

CATEGORY_AUDIT_FIELDS = ("name", "slug", "parent_id", "is_active")
PRODUCT_AUDIT_FIELDS = (
    "name",
    "slug",
    "sku",
    "price",
    "compare_at_price",
    "inventory",
    "category_id",
    "is_active",
    "is_featured",
)
COLLECTION_AUDIT_FIELDS = ("name", "slug", "is_active")
# Changes that can alter the cost or eligibility of a selected shipping rate
SHIPPING_SENSITIVE_FIELDS = ("price", "weight", "is_active")


# ============================================================================
# CATEGORIES
# ============================================================================


async def _validate_parent(
    db: AsyncSession,
    store: Store,
    parent_id: Optional[uuid.UUID],
    category_id: Optional[uuid.UUID] = None,
) -> None:
    if parent_id is None:
        return
    if category_id is not None and parent_id == category_id:
        raise HTTPException(
            status_code=400, detail="A category cannot be its own parent"
        )

    parent = await db.get(Category, parent_id)
    if not parent or parent.store_id != store.id:
        raise HTTPException(status_code=400, detail="Parent category not found")

    # Walk up the tree so a category never ends up under its own descendant
    ancestor = parent
    while category_id is not None and ancestor.parent_id is not None:
        if ancestor.parent_id == category_id:
            raise HTTPException(
                status_code=400,
                detail="A category cannot be moved under its own subcategory",
            )
        ancestor = await db.get(Category, ancestor.parent_id)
        if ancestor is None:
            break


@router.get("/categories", response_model=CategoryListResponse)
async def list_categories(
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.ADMIN_PAGE_SIZE, ge=1, le=100),
    store: Store = Depends(get_managed_store),
    db: AsyncSession = Depends(get_async_db),
):
    """List store categories, including inactive ones."""
    query = select(Category).where(Category.store_id == store.id)
    if search:
        query = query.where(Category.name.ilike(f"%{search}%"))

    total = await count_rows(db, query)

    query = query.order_by(Category.name)
    query = query.offset((page - 1) * page_size).limit(page_size)
    result = await db.execute(query)

    return CategoryListResponse(
        items=[CategoryResponse.model_validate(c) for c in result.scalars().all()],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=total_pages(total, page_size),
    )


@router.post(
    "/categories",
    response_model=CategoryResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_category(
    category_in: CategoryCreate,
    store: Store = Depends(get_managed_store),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Create a category; the slug is generated from the name when omitted."""
    await _validate_parent(db, store, category_in.parent_id)

    data = category_in.model_dump(exclude={"slug"})
    category = Category(
        store_id=store.id,
        slug=await resolve_slug(
            db, Category, store.id, category_in.name, category_in.slug
        ),
        **data,
    )
    db.add(category)
    await db.flush()

    await log_audit(
        db,
        store.id,
        AuditEntityType.CATEGORY,
        category.id,
        "created",
        current_user.user_id,
        new_value=snapshot(category, CATEGORY_AUDIT_FIELDS),
    )
    await db.commit()
    return category


@router.get("/categories/{category_id}", response_model=CategoryResponse)
async def get_category(
    category_id: uuid.UUID,
    store: Store = Depends(get_managed_store),
    db: AsyncSession = Depends(get_async_db),
):
    """Get a category."""
    return await get_store_entity_or_404(
        db, Category, store.id, category_id, "Category"
    )


@router.patch("/categories/{category_id}", response_model=CategoryResponse)
async def update_category(
    category_id: uuid.UUID,
    category_in: CategoryUpdate,
    store: Store = Depends(get_managed_store),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Update a category."""
    category = await get_store_entity_or_404(
        db, Category, store.id, category_id, "Category"
    )
    old_value = snapshot(category, CATEGORY_AUDIT_FIELDS)

    update_data = category_in.model_dump(exclude_unset=True)
    if "parent_id" in update_data:
        await _validate_parent(db, store, update_data["parent_id"], category.id)

    requested_slug = update_data.pop("slug", None)
    if requested_slug and requested_slug != category.slug:
        category.slug = await resolve_slug(
            db,
            Category,
            store.id,
            category.name,
            requested_slug,
            exclude_id=category.id,
        )

    for field, value in update_data.items():
        if value is None and field in ("name", "is_active"):
            continue
        setattr(category, field, value)

    await log_audit(
        db,
        store.id,
        AuditEntityType.CATEGORY,
        category.id,
        "updated",
        current_user.user_id,
        old_value=old_value,
        new_value=snapshot(category, CATEGORY_AUDIT_FIELDS),
    )
    await db.commit()
    return category


@router.delete("/categories/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_category(
    category_id: uuid.UUID,
    store: Store = Depends(get_managed_store),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Delete a category. Its products and subcategories are detached."""
    category = await get_store_entity_or_404(
        db, Category, store.id, category_id, "Category"
    )

    await db.execute(
        update(Product)
        .where(Product.category_id == category.id)
        .values(category_id=None)
    )
    await db.execute(
        update(Category)
        .where(Category.parent_id == category.id)
        .values(parent_id=None)
    )

    await log_audit(
        db,
        store.id,
        AuditEntityType.CATEGORY,
        category.id,
        "deleted",
        current_user.user_id,
        old_value=snapshot(category, CATEGORY_AUDIT_FIELDS),
    )
    await db.delete(category)
    await db.commit()
    return None


# ============================================================================
# CATEGORY IMAGES
# ============================================================================


async def _category_images(db: AsyncSession, category_id: uuid.UUID):
    result = await db.execute(
        select(CategoryImage)
        .where(CategoryImage.category_id == category_id)
        .order_by(CategoryImage.position, CategoryImage.created_at)
    )
    return list(result.scalars().all())


async def _get_category_image(
    db: AsyncSession, category: Category, image_id: uuid.UUID
) -> CategoryImage:
    image = await db.get(CategoryImage, image_id)
    if not image or image.category_id != category.id:
        raise HTTPException(status_code=404, detail="Image not found")
    return image


def _set_main_image(
    category: Category, images: list[CategoryImage], main: CategoryImage
) -> None:
    for image in images:
        image.is_main = image.id == main.id
    main.is_main = True
    category.image_url = main.url


@router.get(
    "/categories/{category_id}/images",
    response_model=list[CategoryImageResponse],
)
async def list_category_images(
    category_id: uuid.UUID,
    store: Store = Depends(get_managed_store),
    db: AsyncSession = Depends(get_async_db),
):
    """List category images ordered by position."""
    await get_store_entity_or_404(db, Category, store.id, category_id, "Category")
    return await _category_images(db, category_id)


@router.post(
    "/categories/{category_id}/images",
    response_model=CategoryImageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_category_image(
    category_id: uuid.UUID,
    image_in: CategoryImageCreate,
    store: Store = Depends(get_managed_store),
    db: AsyncSession = Depends(get_async_db),
):
    """Add an image. The first image of a category becomes its main image."""
    category = await get_store_entity_or_404(
        db, Category, store.id, category_id, "Category"
    )
    images = await _category_images(db, category.id)

    position = image_in.position
    if position is None:
        position = max((i.position for i in images), default=-1) + 1

    image = CategoryImage(
        category_id=category.id,
        url=image_in.url,
        alt_text=image_in.alt_text,
        position=position,
        is_main=False,
    )
    db.add(image)
    await db.flush()

    if image_in.is_main or not images:
        _set_main_image(category, images, image)

    await db.commit()
    return image


@router.patch(
    "/categories/{category_id}/images/{image_id}",
    response_model=CategoryImageResponse,
)
async def update_category_image(
    category_id: uuid.UUID,
    image_id: uuid.UUID,
    image_in: CategoryImageUpdate,
    store: Store = Depends(get_managed_store),
    db: AsyncSession = Depends(get_async_db),
):
    """Update an image's url, alt text or position."""
    category = await get_store_entity_or_404(
        db, Category, store.id, category_id, "Category"
    )
    image = await _get_category_image(db, category, image_id)

    for field, value in image_in.model_dump(exclude_unset=True).items():
        if value is None and field in ("url", "position"):
            continue
        setattr(image, field, value)

    if image.is_main:
        category.image_url = image.url

    await db.commit()
    return image


@router.delete(
    "/categories/{category_id}/images/{image_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_category_image(
    category_id: uuid.UUID,
    image_id: uuid.UUID,
    store: Store = Depends(get_managed_store),
    db: AsyncSession = Depends(get_async_db),
):
    """Delete an image. Removing the main image promotes the next one."""
    category = await get_store_entity_or_404(
        db, Category, store.id, category_id, "Category"
    )
    image = await _get_category_image(db, category, image_id)
    was_main = image.is_main

    await db.delete(image)
    await db.flush()

    if was_main:
        remaining = await _category_images(db, category.id)
        if remaining:
            _set_main_image(category, remaining, remaining[0])
        else:
            category.image_url = None

    await db.commit()
    return None


@router.post(
    "/categories/{category_id}/images/{image_id}/main",
    response_model=list[CategoryImageResponse],
)
async def set_main_category_image(
    category_id: uuid.UUID,
    image_id: uuid.UUID,
    store: Store = Depends(get_managed_store),
    db: AsyncSession = Depends(get_async_db),
):
    """Make one image the category's main image."""
    category = await get_store_entity_or_404(
        db, Category, store.id, category_id, "Category"
    )
    image = await _get_category_image(db, category, image_id)
    images = await _category_images(db, category.id)

    _set_main_image(category, images, image)
    await db.commit()
    return images


# ============================================================================
# PRODUCTS
# ============================================================================


async def _validate_category(
    db: AsyncSession, store: Store, category_id: Optional[uuid.UUID]
) -> None:
    if category_id is None:
        return
    category = await db.get(Category, category_id)
    if not category or category.store_id != store.id:
        raise HTTPException(status_code=400, detail="Category not found in this store")


async def _ensure_unique_sku(
    db: AsyncSession,
    store: Store,
    sku: Optional[str],
    exclude_id: Optional[uuid.UUID] = None,
) -> None:
    if not sku:
        return
    query = select(Product.id).where(Product.store_id == store.id, Product.sku == sku)
    if exclude_id is not None:
        query = query.where(Product.id != exclude_id)
    result = await db.execute(query)
    if result.first() is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"SKU '{sku}' is already in use in this store",
        )


async def _load_product_detail(
    db: AsyncSession, store: Store, product_id: uuid.UUID
) -> Product:
    result = await db.execute(
        select(Product)
        .where(Product.id == product_id, Product.store_id == store.id)
        .options(
            selectinload(Product.images),
            selectinload(Product.category),
            selectinload(Product.product_collections).selectinload(
                ProductCollection.collection
            ),
        )
        .execution_options(populate_existing=True)
    )
    product = result.scalar_one_or_none()
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


def product_detail(product: Product) -> ProductDetail:
    return ProductDetail(
        **ProductResponse.model_validate(product).model_dump(),
        images=[ProductImageResponse.model_validate(i) for i in product.images],
        category=(
            CategoryResponse.model_validate(product.category)
            if product.category
            else None
        ),
        collections=[
            CollectionSummary.model_validate(pc.collection)
            for pc in product.product_collections
        ],
    )


@router.get("/products", response_model=ProductListResponse)
async def list_products(
    search: Optional[str] = None,
    category_id: Optional[uuid.UUID] = None,
    is_active: Optional[bool] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.ADMIN_PAGE_SIZE, ge=1, le=100),
    store: Store = Depends(get_managed_store),
    db: AsyncSession = Depends(get_async_db),
):
    """List store products (including inactive ones)."""
    query = select(Product).where(Product.store_id == store.id)

    if search:
        search_term = f"%{search}%"
        query = query.where(
            Product.name.ilike(search_term) | Product.sku.ilike(search_term)
        )
    if category_id:
        query = query.where(Product.category_id == category_id)
    if is_active is not None:
        query = query.where(Product.is_active.is_(is_active))

    total = await count_rows(db, query)

    query = query.order_by(Product.created_at.desc())
    query = query.offset((page - 1) * page_size).limit(page_size)
    result = await db.execute(query)

    return ProductListResponse(
        items=[ProductResponse.model_validate(p) for p in result.scalars().all()],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=total_pages(total, page_size),
    )


@router.post(
    "/products", response_model=ProductDetail, status_code=status.HTTP_201_CREATED
)
async def create_product(
    product_in: ProductCreate,
    store: Store = Depends(get_managed_store),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Create a product."""
    await _validate_category(db, store, product_in.category_id)
    sku = (product_in.sku or "").strip() or None
    await _ensure_unique_sku(db, store, sku)

    data = product_in.model_dump(exclude={"slug", "sku"})
    product = Product(
        store_id=store.id,
        slug=await resolve_slug(db, Product, store.id, product_in.name, product_in.slug),
        sku=sku,
        **data,
    )
    db.add(product)
    await db.flush()

    await log_audit(
        db,
        store.id,
        AuditEntityType.PRODUCT,
        product.id,
        "created",
        current_user.user_id,
        new_value=snapshot(product, PRODUCT_AUDIT_FIELDS),
    )
    await db.commit()

    return product_detail(await _load_product_detail(db, store, product.id))


@router.get("/products/{product_id}", response_model=ProductDetail)
async def get_product(
    product_id: uuid.UUID,
    store: Store = Depends(get_managed_store),
    db: AsyncSession = Depends(get_async_db),
):
    """Get product detail with images and collections."""
    return product_detail(await _load_product_detail(db, store, product_id))


@router.patch("/products/{product_id}", response_model=ProductDetail)
async def update_product(
    product_id: uuid.UUID,
    product_in: ProductUpdate,
    store: Store = Depends(get_managed_store),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Update a product. The slug only changes when one is sent."""
    product = await get_store_entity_or_404(
        db, Product, store.id, product_id, "Product"
    )
    old_value = snapshot(product, PRODUCT_AUDIT_FIELDS)
    old_shipping = snapshot(product, SHIPPING_SENSITIVE_FIELDS)

    update_data = product_in.model_dump(exclude_unset=True)
    if "category_id" in update_data:
        await _validate_category(db, store, update_data["category_id"])
    if "sku" in update_data:
        update_data["sku"] = (update_data["sku"] or "").strip() or None
        await _ensure_unique_sku(db, store, update_data["sku"], exclude_id=product.id)

    requested_slug = update_data.pop("slug", None)
    if requested_slug and requested_slug != product.slug:
        product.slug = await resolve_slug(
            db, Product, store.id, product.name, requested_slug, exclude_id=product.id
        )

    for field, value in update_data.items():
        if value is None and field in (
            "name",
            "price",
            "inventory",
            "is_active",
            "is_featured",
        ):
            continue
        setattr(product, field, value)

    if any(
        getattr(product, field) != old_shipping[field]
        for field in SHIPPING_SENSITIVE_FIELDS
    ):
        await release_carts_for_product(db, product.id)

    await log_audit(
        db,
        store.id,
        AuditEntityType.PRODUCT,
        product.id,
        "updated",
        current_user.user_id,
        old_value=old_value,
        new_value=snapshot(product, PRODUCT_AUDIT_FIELDS),
    )
    await db.commit()

    return product_detail(await _load_product_detail(db, store, product.id))


@router.delete("/products/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_product(
    product_id: uuid.UUID,
    store: Store = Depends(get_managed_store),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Delete a product with its images and collection memberships."""
    product = await get_store_entity_or_404(
        db, Product, store.id, product_id, "Product"
    )
    await log_audit(
        db,
        store.id,
        AuditEntityType.PRODUCT,
        product.id,
        "deleted",
        current_user.user_id,
        old_value=snapshot(product, PRODUCT_AUDIT_FIELDS),
    )
    await release_carts_for_product(db, product.id)
    await db.delete(product)
    await db.commit()
    return None


# ============================================================================
# PRODUCT IMAGES
# ============================================================================


async def _get_product_image(
    db: AsyncSession, product: Product, image_id: uuid.UUID
) -> ProductImage:
    image = await db.get(ProductImage, image_id)
    if not image or image.product_id != product.id:
        raise HTTPException(status_code=404, detail="Image not found")
    return image


@router.get(
    "/products/{product_id}/images", response_model=list[ProductImageResponse]
)
async def list_product_images(
    product_id: uuid.UUID,
    store: Store = Depends(get_managed_store),
    db: AsyncSession = Depends(get_async_db),
):
    """List product images ordered by position."""
    await get_store_entity_or_404(db, Product, store.id, product_id, "Product")
    result = await db.execute(
        select(ProductImage)
        .where(ProductImage.product_id == product_id)
        .order_by(ProductImage.position, ProductImage.created_at)
    )
    return result.scalars().all()


@router.post(
    "/products/{product_id}/images",
    response_model=ProductImageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_product_image(
    product_id: uuid.UUID,
    image_in: ProductImageCreate,
    store: Store = Depends(get_managed_store),
    db: AsyncSession = Depends(get_async_db),
):
    """Add a product image (appended after existing ones by default)."""
    product = await get_store_entity_or_404(
        db, Product, store.id, product_id, "Product"
    )

    position = image_in.position
    if position is None:
        result = await db.execute(
            select(func.max(ProductImage.position)).where(
                ProductImage.product_id == product.id
            )
        )
        current_max = result.scalar()
        position = 0 if current_max is None else current_max + 1

    image = ProductImage(
        product_id=product.id,
        url=image_in.url,
        alt_text=image_in.alt_text,
        position=position,
    )
    db.add(image)
    await db.commit()
    return image


@router.patch(
    "/products/{product_id}/images/{image_id}", response_model=ProductImageResponse
)
async def update_product_image(
    product_id: uuid.UUID,
    image_id: uuid.UUID,
    image_in: ProductImageUpdate,
    store: Store = Depends(get_managed_store),
    db: AsyncSession = Depends(get_async_db),
):
    """Update a product image."""
    product = await get_store_entity_or_404(
        db, Product, store.id, product_id, "Product"
    )
    image = await _get_product_image(db, product, image_id)

    for field, value in image_in.model_dump(exclude_unset=True).items():
        if value is None and field in ("url", "position"):
            continue
        setattr(image, field, value)

    await db.commit()
    return image


@router.delete(
    "/products/{product_id}/images/{image_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_product_image(
    product_id: uuid.UUID,
    image_id: uuid.UUID,
    store: Store = Depends(get_managed_store),
    db: AsyncSession = Depends(get_async_db),
):
    """Delete a product image."""
    product = await get_store_entity_or_404(
        db, Product, store.id, product_id, "Product"
    )
    image = await _get_product_image(db, product, image_id)
    await db.delete(image)
    await db.commit()
    return None


# ============================================================================
# COLLECTIONS
# ============================================================================


async def _collection_product_counts(
    db: AsyncSession, collection_ids: list[uuid.UUID]
) -> dict[uuid.UUID, int]:
    if not collection_ids:
        return {}
    result = await db.execute(
        select(ProductCollection.collection_id, func.count(ProductCollection.id))
        .where(ProductCollection.collection_id.in_(collection_ids))
        .group_by(ProductCollection.collection_id)
    )
    return {collection_id: count for collection_id, count in result.all()}


async def collection_response(
    db: AsyncSession, collection: Collection
) -> CollectionResponse:
    counts = await _collection_product_counts(db, [collection.id])
    response = CollectionResponse.model_validate(collection)
    response.product_count = counts.get(collection.id, 0)
    return response


@router.get("/collections", response_model=CollectionListResponse)
async def list_collections(
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.ADMIN_PAGE_SIZE, ge=1, le=100),
    store: Store = Depends(get_managed_store),
    db: AsyncSession = Depends(get_async_db),
):
    """List store collections with product counts."""
    query = select(Collection).where(Collection.store_id == store.id)
    if search:
        query = query.where(Collection.name.ilike(f"%{search}%"))

    total = await count_rows(db, query)

    query = query.order_by(Collection.name)
    query = query.offset((page - 1) * page_size).limit(page_size)
    result = await db.execute(query)
    collections = result.scalars().all()

    counts = await _collection_product_counts(db, [c.id for c in collections])
    items = []
    for collection in collections:
        item = CollectionResponse.model_validate(collection)
        item.product_count = counts.get(collection.id, 0)
        items.append(item)

    return CollectionListResponse(
        items=items,
        total=total,
        page=page,
        page_size=page_size,
        total_pages=total_pages(total, page_size),
    )


@router.post(
    "/collections",
    response_model=CollectionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_collection(
    collection_in: CollectionCreate,
    store: Store = Depends(get_managed_store),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Create a collection."""
    collection = Collection(
        store_id=store.id,
        slug=await resolve_slug(
            db, Collection, store.id, collection_in.name, collection_in.slug
        ),
        **collection_in.model_dump(exclude={"slug"}),
    )
    db.add(collection)
    await db.flush()

    await log_audit(
        db,
        store.id,
        AuditEntityType.COLLECTION,
        collection.id,
        "created",
        current_user.user_id,
        new_value=snapshot(collection, COLLECTION_AUDIT_FIELDS),
    )
    await db.commit()
    return await collection_response(db, collection)


@router.get("/collections/{collection_id}", response_model=CollectionResponse)
async def get_collection(
    collection_id: uuid.UUID,
    store: Store = Depends(get_managed_store),
    db: AsyncSession = Depends(get_async_db),
):
    """Get a collection."""
    collection = await get_store_entity_or_404(
        db, Collection, store.id, collection_id, "Collection"
    )
    return await collection_response(db, collection)


@router.patch("/collections/{collection_id}", response_model=CollectionResponse)
async def update_collection(
    collection_id: uuid.UUID,
    collection_in: CollectionUpdate,
    store: Store = Depends(get_managed_store),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Update a collection."""
    collection = await get_store_entity_or_404(
        db, Collection, store.id, collection_id, "Collection"
    )
    old_value = snapshot(collection, COLLECTION_AUDIT_FIELDS)

    update_data = collection_in.model_dump(exclude_unset=True)
    requested_slug = update_data.pop("slug", None)
    if requested_slug and requested_slug != collection.slug:
        collection.slug = await resolve_slug(
            db,
            Collection,
            store.id,
            collection.name,
            requested_slug,
            exclude_id=collection.id,
        )

    for field, value in update_data.items():
        if value is None and field in ("name", "is_active"):
            continue
        setattr(collection, field, value)

    await log_audit(
        db,
        store.id,
        AuditEntityType.COLLECTION,
        collection.id,
        "updated",
        current_user.user_id,
        old_value=old_value,
        new_value=snapshot(collection, COLLECTION_AUDIT_FIELDS),
    )
    await db.commit()
    return await collection_response(db, collection)


@router.delete(
    "/collections/{collection_id}", status_code=status.HTTP_204_NO_CONTENT
)
async def delete_collection(
    collection_id: uuid.UUID,
    store: Store = Depends(get_managed_store),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Delete a collection. Its products are kept."""
    collection = await get_store_entity_or_404(
        db, Collection, store.id, collection_id, "Collection"
    )
    await log_audit(
        db,
        store.id,
        AuditEntityType.COLLECTION,
        collection.id,
        "deleted",
        current_user.user_id,
        old_value=snapshot(collection, COLLECTION_AUDIT_FIELDS),
    )
    await db.delete(collection)
    await db.commit()
    return None


@router.get(
    "/collections/{collection_id}/products", response_model=list[ProductResponse]
)
async def list_collection_products(
    collection_id: uuid.UUID,
    store: Store = Depends(get_managed_store),
    db: AsyncSession = Depends(get_async_db),
):
    """Products in a collection."""
    await get_store_entity_or_404(
        db, Collection, store.id, collection_id, "Collection"
    )
    result = await db.execute(
        select(Product)
        .join(ProductCollection, ProductCollection.product_id == Product.id)
        .where(ProductCollection.collection_id == collection_id)
        .order_by(ProductCollection.created_at)
    )
    return result.scalars().all()


@router.get(
    "/collections/{collection_id}/available-products",
    response_model=list[ProductResponse],
)
async def list_available_collection_products(
    collection_id: uuid.UUID,
    search: Optional[str] = None,
    store: Store = Depends(get_managed_store),
    db: AsyncSession = Depends(get_async_db),
):
    """Store products that are not yet in the collection."""
    await get_store_entity_or_404(
        db, Collection, store.id, collection_id, "Collection"
    )
    in_collection = select(ProductCollection.product_id).where(
        ProductCollection.collection_id == collection_id
    )
    query = select(Product).where(
        Product.store_id == store.id, Product.id.not_in(in_collection)
    )
    if search:
        query = query.where(Product.name.ilike(f"%{search}%"))

    result = await db.execute(query.order_by(Product.name))
    return result.scalars().all()


@router.post(
    "/collections/{collection_id}/products",
    response_model=CollectionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_collection_product(
    collection_id: uuid.UUID,
    item_in: CollectionProductAdd,
    store: Store = Depends(get_managed_store),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Add a product to a collection."""
    collection = await get_store_entity_or_404(
        db, Collection, store.id, collection_id, "Collection"
    )
    product = await get_store_entity_or_404(
        db, Product, store.id, item_in.product_id, "Product"
    )

    existing = await db.execute(
        select(ProductCollection.id).where(
            ProductCollection.collection_id == collection.id,
            ProductCollection.product_id == product.id,
        )
    )
    if existing.first() is not None:
        raise HTTPException(
            status_code=400, detail="Product is already in this collection"
        )

    db.add(ProductCollection(collection_id=collection.id, product_id=product.id))
    await log_audit(
        db,
        store.id,
        AuditEntityType.COLLECTION,
        collection.id,
        "product_added",
        current_user.user_id,
        new_value={"product_id": product.id},
    )
    await db.commit()
    return await collection_response(db, collection)


@router.delete(
    "/collections/{collection_id}/products/{product_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def remove_collection_product(
    collection_id: uuid.UUID,
    product_id: uuid.UUID,
    store: Store = Depends(get_managed_store),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Remove a product from a collection."""
    collection = await get_store_entity_or_404(
        db, Collection, store.id, collection_id, "Collection"
    )
    result = await db.execute(
        select(ProductCollection).where(
            ProductCollection.collection_id == collection.id,
            ProductCollection.product_id == product_id,
        )
    )
    link = result.scalar_one_or_none()
    if not link:
        raise HTTPException(status_code=404, detail="Product is not in this collection")

    await db.delete(link)
    await log_audit(
        db,
        store.id,
        AuditEntityType.COLLECTION,
        collection.id,
        "product_removed",
        current_user.user_id,
        old_value={"product_id": product_id},
    )
    await db.commit()
    return None
