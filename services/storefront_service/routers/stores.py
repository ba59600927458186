"""Store router: public directory and owner store management."""

from fastapi import APIRouter, Depends, status
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.storefront_service.models import AuditEntityType, Store
from services.storefront_service.routers._helpers import (
    get_active_store,
    get_store_or_404,
    log_audit,
    snapshot,
)
from services.storefront_service.schemas import (
    StoreCreate,
    StoreResponse,
    StoreUpdate,
)
from services.storefront_service.services import stores as store_ops
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["stores"])

AUDITED_FIELDS = ("name", "slug", "email", "domain", "currency", "is_active")


@router.get("/stores", response_model=list[StoreResponse])
async def list_stores(db: AsyncSession = Depends(get_async_db)):
    """Public store directory (active stores only)."""
    return await store_ops.list_active_stores(db)


@router.get("/me/stores", response_model=list[StoreResponse])
async def list_my_stores(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Stores owned by the current user, including inactive ones."""
    return await store_ops.list_stores_by_owner(db, current_user.user_id)


@router.post(
    "/stores", response_model=StoreResponse, status_code=status.HTTP_201_CREATED
)
async def create_store(
    store_in: StoreCreate,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Create a store owned by the current user."""
    store = await store_ops.create_store(db, current_user, store_in)
    await log_audit(
        db,
        store.id,
        AuditEntityType.STORE,
        store.id,
        "created",
        current_user.user_id,
        new_value=snapshot(store, AUDITED_FIELDS),
    )
    await db.commit()
    return store


@router.get("/stores/{slug}", response_model=StoreResponse)
async def get_store(store: Store = Depends(get_active_store)):
    """Get an active store by slug."""
    return store


@router.patch("/stores/{slug}", response_model=StoreResponse)
async def update_store(
    slug: str,
    store_in: StoreUpdate,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Update a store. Renaming regenerates the slug."""
    store = await get_store_or_404(db, slug)
    old_value = snapshot(store, AUDITED_FIELDS)

    store = await store_ops.update_store(db, store, current_user, store_in)
    await log_audit(
        db,
        store.id,
        AuditEntityType.STORE,
        store.id,
        "updated",
        current_user.user_id,
        old_value=old_value,
        new_value=snapshot(store, AUDITED_FIELDS),
    )
    await db.commit()
    return store


@router.delete("/stores/{slug}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_store(
    slug: str,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Delete a store and all of its tenant data."""
    store = await get_store_or_404(db, slug)
    await store_ops.delete_store(db, store, current_user)
    await db.commit()
    return None
