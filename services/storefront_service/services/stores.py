"""Store (tenant) operations."""

import uuid
from typing import Optional

from fastapi import HTTPException, status
from libs.auth.dependencies import is_platform_admin
from libs.auth.models import AuthUser
from libs.common.logging import get_logger
from libs.common.text_utils import slugify, unique_slug
from services.storefront_service.models import Store
from services.storefront_service.schemas import StoreCreate, StoreUpdate
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

STORE_SLUG_MAX_LENGTH = 100


async def generate_store_slug(
    db: AsyncSession, name: str, exclude_id: Optional[uuid.UUID] = None
) -> str:
    """Slug from the store name, suffixed with -1, -2, ... until unused."""
    base = slugify(name, STORE_SLUG_MAX_LENGTH) or "store"

    async def exists(candidate: str) -> bool:
        query = select(Store.id).where(Store.slug == candidate)
        if exclude_id is not None:
            query = query.where(Store.id != exclude_id)
        result = await db.execute(query)
        return result.first() is not None

    return await unique_slug(base, exists)


async def get_store_by_slug(db: AsyncSession, slug: str) -> Optional[Store]:
    result = await db.execute(select(Store).where(Store.slug == slug))
    return result.scalar_one_or_none()


async def list_stores_by_owner(db: AsyncSession, owner_id: str) -> list[Store]:
    result = await db.execute(
        select(Store).where(Store.owner_id == owner_id).order_by(Store.created_at)
    )
    return list(result.scalars().all())


async def list_active_stores(db: AsyncSession) -> list[Store]:
    result = await db.execute(
        select(Store).where(Store.is_active.is_(True)).order_by(Store.name)
    )
    return list(result.scalars().all())


def can_manage_store(store: Store, user: AuthUser) -> bool:
    return store.owner_id == user.user_id or is_platform_admin(user)


def ensure_can_manage(store: Store, user: AuthUser) -> None:
    if not can_manage_store(store, user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You do not have permission to manage this store",
        )


async def create_store(db: AsyncSession, owner: AuthUser, data: StoreCreate) -> Store:
    store = Store(
        owner_id=owner.user_id,
        slug=await generate_store_slug(db, data.name),
        **data.model_dump(),
    )
    db.add(store)
    await db.flush()
    logger.info(
        "Store created: %s",
        store.slug,
        extra={"extra_fields": {"store_id": str(store.id), "owner_id": owner.user_id}},
    )
    return store


async def update_store(
    db: AsyncSession, store: Store, user: AuthUser, data: StoreUpdate
) -> Store:
    ensure_can_manage(store, user)

    update_data = data.model_dump(exclude_unset=True)
    # Explicit nulls are meaningless for required columns
    for required in ("name", "currency", "is_active"):
        if update_data.get(required, ...) is None:
            update_data.pop(required)

    new_name = update_data.get("name")
    if new_name and new_name != store.name:
        store.slug = await generate_store_slug(db, new_name, exclude_id=store.id)

    for field_name, value in update_data.items():
        setattr(store, field_name, value)

    await db.flush()
    return store


async def delete_store(db: AsyncSession, store: Store, user: AuthUser) -> None:
    ensure_can_manage(store, user)
    await db.delete(store)
    await db.flush()
    logger.info(
        "Store deleted: %s",
        store.slug,
        extra={"extra_fields": {"store_id": str(store.id), "user_id": user.user_id}},
    )
