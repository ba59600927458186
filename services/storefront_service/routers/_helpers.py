"""Shared helper functions and dependencies for storefront routers."""

import uuid
from typing import Iterable, Optional

from fastapi import Depends, HTTPException, status
from fastapi.encoders import jsonable_encoder
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.common.text_utils import slugify, unique_slug
from libs.db.session import get_async_db
from services.storefront_service.models import AuditEntityType, Store, StoreAuditLog
from services.storefront_service.services.stores import (
    ensure_can_manage,
    get_store_by_slug,
)
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession


async def log_audit(
    db: AsyncSession,
    store_id: uuid.UUID,
    entity_type: AuditEntityType,
    entity_id: uuid.UUID,
    action: str,
    performed_by: str,
    old_value: Optional[dict] = None,
    new_value: Optional[dict] = None,
    notes: Optional[str] = None,
):
    """Log an audit event."""
    audit_log = StoreAuditLog(
        store_id=store_id,
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        old_value=jsonable_encoder(old_value) if old_value else None,
        new_value=jsonable_encoder(new_value) if new_value else None,
        performed_by=performed_by,
        notes=notes,
    )
    db.add(audit_log)


def snapshot(obj, fields: Iterable[str]) -> dict:
    """Capture selected attributes for audit old/new values."""
    return {name: getattr(obj, name) for name in fields}


async def get_store_or_404(db: AsyncSession, slug: str) -> Store:
    store = await get_store_by_slug(db, slug)
    if not store:
        raise HTTPException(status_code=404, detail="Store not found")
    return store


async def get_active_store(
    slug: str, db: AsyncSession = Depends(get_async_db)
) -> Store:
    """Storefront routes only serve active stores."""
    store = await get_store_or_404(db, slug)
    if not store.is_active:
        raise HTTPException(status_code=404, detail="Store not found")
    return store


async def get_managed_store(
    slug: str,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
) -> Store:
    """Store admin routes require the owner or a platform admin."""
    store = await get_store_or_404(db, slug)
    ensure_can_manage(store, current_user)
    return store


async def count_rows(db: AsyncSession, query) -> int:
    result = await db.execute(select(func.count()).select_from(query.subquery()))
    return result.scalar() or 0


def total_pages(total: int, page_size: int) -> int:
    return (total + page_size - 1) // page_size


# Slugs shadowed by fixed storefront routes (/products/featured)
RESERVED_SLUGS = {"products": frozenset({"featured"})}


async def resolve_slug(
    db: AsyncSession,
    model,
    store_id: uuid.UUID,
    name: str,
    requested: Optional[str] = None,
    exclude_id: Optional[uuid.UUID] = None,
) -> str:
    """Pick a per-store slug for a catalog entity.

    An explicit slug must be free (409 otherwise); a generated one gets a
    numeric suffix until it is. Reserved slugs are never handed out.
    """
    reserved = RESERVED_SLUGS.get(model.__tablename__, frozenset())

    async def exists(candidate: str) -> bool:
        if candidate in reserved:
            return True
        query = select(model.id).where(
            model.store_id == store_id, model.slug == candidate
        )
        if exclude_id is not None:
            query = query.where(model.id != exclude_id)
        result = await db.execute(query)
        return result.first() is not None

    if requested:
        slug = slugify(requested)
        if not slug:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid slug"
            )
        if slug in reserved:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Slug '{slug}' is reserved",
            )
        if await exists(slug):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Slug '{slug}' is already in use in this store",
            )
        return slug

    return await unique_slug(slugify(name) or "item", exists)


async def get_store_entity_or_404(
    db: AsyncSession, model, store_id: uuid.UUID, entity_id: uuid.UUID, label: str
):
    entity = await db.get(model, entity_id)
    if not entity or entity.store_id != store_id:
        raise HTTPException(status_code=404, detail=f"{label} not found")
    return entity
