"""Store admin shipping router: zones, rates and carrier methods."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.common.currency import ZERO, to_decimal
from libs.db.session import get_async_db
from services.storefront_service.models import (
    AuditEntityType,
    ShippingMethod,
    ShippingRate,
    ShippingRateType,
    ShippingZone,
    Store,
)
from services.storefront_service.routers._helpers import (
    get_managed_store,
    get_store_entity_or_404,
    log_audit,
    snapshot,
)
from services.storefront_service.schemas import (
    ShippingMethodCreate,
    ShippingMethodResponse,
    ShippingMethodUpdate,
    ShippingRateCreate,
    ShippingRateResponse,
    ShippingRateUpdate,
    ShippingZoneCreate,
    ShippingZoneDetail,
    ShippingZoneResponse,
    ShippingZoneUpdate,
)
from services.storefront_service.services.shipping_calculator import (
    release_carts_for_rate,
)
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

router = APIRouter(tags=["store-admin"])

ZONE_LIST_FIELDS = ("countries", "states", "postal_codes")
ZONE_AUDIT_FIELDS = ("name", *ZONE_LIST_FIELDS, "is_active")
RATE_AUDIT_FIELDS = (
    "name",
    "type",
    "price",
    "min_weight",
    "max_weight",
    "min_price",
    "max_price",
    "is_active",
)
METHOD_AUDIT_FIELDS = ("name", "carrier", "code", "is_active")

RATE_FIELDS = (
    "name",
    "description",
    "type",
    "price",
    "min_weight",
    "max_weight",
    "min_price",
    "max_price",
    "estimated_days",
    "is_active",
)


def validate_rate_config(values: dict) -> Optional[str]:
    """Return an error message when a rate's fields don't fit its type."""
    rate_type = values.get("type")

    if rate_type == ShippingRateType.FLAT_RATE:
        if values.get("price") is None:
            return "Flat rate shipping requires a price"

    elif rate_type == ShippingRateType.WEIGHT_BASED:
        if values.get("min_weight") is None or values.get("max_weight") is None:
            return "Weight-based shipping requires minimum and maximum weight"
        if values.get("price") is None:
            return "Weight-based shipping requires a price"

    elif rate_type == ShippingRateType.PRICE_BASED:
        if values.get("min_price") is None or values.get("max_price") is None:
            return "Price-based shipping requires minimum and maximum order value"
        if values.get("price") is None:
            return "Price-based shipping requires a price"

    elif rate_type != ShippingRateType.FREE:
        return f"Unknown shipping rate type: {rate_type}"

    for low, high, label in (
        ("min_weight", "max_weight", "weight"),
        ("min_price", "max_price", "order value"),
    ):
        if values.get(low) is not None and values.get(high) is not None:
            if to_decimal(values[low]) > to_decimal(values[high]):
                return f"Minimum {label} cannot exceed maximum {label}"

    return None


def _check_rate(values: dict) -> None:
    error = validate_rate_config(values)
    if error:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=error)


async def _get_zone(
    db: AsyncSession, store: Store, zone_id: uuid.UUID, with_rates: bool = False
) -> ShippingZone:
    query = select(ShippingZone).where(
        ShippingZone.id == zone_id, ShippingZone.store_id == store.id
    )
    if with_rates:
        query = query.options(selectinload(ShippingZone.rates)).execution_options(
            populate_existing=True
        )
    result = await db.execute(query)
    zone = result.scalar_one_or_none()
    if not zone:
        raise HTTPException(status_code=404, detail="Shipping zone not found")
    return zone


async def _get_rate(
    db: AsyncSession, store: Store, rate_id: uuid.UUID
) -> ShippingRate:
    result = await db.execute(
        select(ShippingRate)
        .join(ShippingZone, ShippingZone.id == ShippingRate.zone_id)
        .where(ShippingRate.id == rate_id, ShippingZone.store_id == store.id)
    )
    rate = result.scalar_one_or_none()
    if not rate:
        raise HTTPException(status_code=404, detail="Shipping rate not found")
    return rate


async def _rate_counts(
    db: AsyncSession, zone_ids: list[uuid.UUID]
) -> dict[uuid.UUID, int]:
    if not zone_ids:
        return {}
    result = await db.execute(
        select(ShippingRate.zone_id, func.count(ShippingRate.id))
        .where(ShippingRate.zone_id.in_(zone_ids))
        .group_by(ShippingRate.zone_id)
    )
    return dict(result.all())


# ============================================================================
# ZONES
# ============================================================================


@router.get("/shipping/zones", response_model=list[ShippingZoneResponse])
async def list_zones(
    store: Store = Depends(get_managed_store),
    db: AsyncSession = Depends(get_async_db),
):
    """List shipping zones with their rate counts."""
    result = await db.execute(
        select(ShippingZone)
        .where(ShippingZone.store_id == store.id)
        .order_by(ShippingZone.name)
    )
    zones = result.scalars().all()
    counts = await _rate_counts(db, [z.id for z in zones])

    items = []
    for zone in zones:
        item = ShippingZoneResponse.model_validate(zone)
        item.rate_count = counts.get(zone.id, 0)
        items.append(item)
    return items


@router.post(
    "/shipping/zones",
    response_model=ShippingZoneResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_zone(
    zone_in: ShippingZoneCreate,
    store: Store = Depends(get_managed_store),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Create a shipping zone. Empty lists do not restrict the zone."""
    zone = ShippingZone(store_id=store.id, **zone_in.model_dump())
    db.add(zone)
    await db.flush()

    await log_audit(
        db,
        store.id,
        AuditEntityType.SHIPPING_ZONE,
        zone.id,
        "created",
        current_user.user_id,
        new_value=snapshot(zone, ZONE_AUDIT_FIELDS),
    )
    await db.commit()
    return zone


@router.get("/shipping/zones/{zone_id}", response_model=ShippingZoneDetail)
async def get_zone(
    zone_id: uuid.UUID,
    store: Store = Depends(get_managed_store),
    db: AsyncSession = Depends(get_async_db),
):
    """Get a zone with its rates."""
    zone = await _get_zone(db, store, zone_id, with_rates=True)
    detail = ShippingZoneDetail.model_validate(zone)
    detail.rate_count = len(zone.rates)
    return detail


@router.patch("/shipping/zones/{zone_id}", response_model=ShippingZoneResponse)
async def update_zone(
    zone_id: uuid.UUID,
    zone_in: ShippingZoneUpdate,
    store: Store = Depends(get_managed_store),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Update a shipping zone."""
    zone = await _get_zone(db, store, zone_id)
    old_value = snapshot(zone, ZONE_AUDIT_FIELDS)

    for field, value in zone_in.model_dump(exclude_unset=True).items():
        if value is None and field in ZONE_LIST_FIELDS:
            value = []
        elif value is None:
            continue
        setattr(zone, field, value)

    await log_audit(
        db,
        store.id,
        AuditEntityType.SHIPPING_ZONE,
        zone.id,
        "updated",
        current_user.user_id,
        old_value=old_value,
        new_value=snapshot(zone, ZONE_AUDIT_FIELDS),
    )
    await db.commit()

    response = ShippingZoneResponse.model_validate(zone)
    response.rate_count = (await _rate_counts(db, [zone.id])).get(zone.id, 0)
    return response


@router.delete("/shipping/zones/{zone_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_zone(
    zone_id: uuid.UUID,
    store: Store = Depends(get_managed_store),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Delete a zone. Zones that still have rates cannot be deleted."""
    zone = await _get_zone(db, store, zone_id)

    rate_count = (await _rate_counts(db, [zone.id])).get(zone.id, 0)
    if rate_count:
        raise HTTPException(
            status_code=400,
            detail=f"Cannot delete a zone with {rate_count} shipping rate(s). "
            "Delete its rates first.",
        )

    await log_audit(
        db,
        store.id,
        AuditEntityType.SHIPPING_ZONE,
        zone.id,
        "deleted",
        current_user.user_id,
        old_value=snapshot(zone, ZONE_AUDIT_FIELDS),
    )
    await db.delete(zone)
    await db.commit()
    return None


# ============================================================================
# RATES
# ============================================================================


@router.get("/shipping/rates", response_model=list[ShippingRateResponse])
async def list_rates(
    zone_id: Optional[uuid.UUID] = None,
    store: Store = Depends(get_managed_store),
    db: AsyncSession = Depends(get_async_db),
):
    """List the store's shipping rates, optionally for a single zone."""
    query = (
        select(ShippingRate)
        .join(ShippingZone, ShippingZone.id == ShippingRate.zone_id)
        .where(ShippingZone.store_id == store.id)
    )
    if zone_id:
        query = query.where(ShippingRate.zone_id == zone_id)
    result = await db.execute(query.order_by(ShippingRate.price, ShippingRate.name))
    return result.scalars().all()


@router.post(
    "/shipping/rates",
    response_model=ShippingRateResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_rate(
    rate_in: ShippingRateCreate,
    store: Store = Depends(get_managed_store),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Create a rate. Required fields depend on the rate type."""
    zone = await _get_zone(db, store, rate_in.zone_id)

    values = rate_in.model_dump(exclude={"zone_id"})
    _check_rate(values)
    if values["type"] == ShippingRateType.FREE or values.get("price") is None:
        values["price"] = ZERO

    rate = ShippingRate(zone_id=zone.id, **values)
    db.add(rate)
    await db.flush()

    await log_audit(
        db,
        store.id,
        AuditEntityType.SHIPPING_RATE,
        rate.id,
        "created",
        current_user.user_id,
        new_value=snapshot(rate, RATE_AUDIT_FIELDS),
    )
    await db.commit()
    return rate


@router.get("/shipping/rates/{rate_id}", response_model=ShippingRateResponse)
async def get_rate(
    rate_id: uuid.UUID,
    store: Store = Depends(get_managed_store),
    db: AsyncSession = Depends(get_async_db),
):
    """Get a shipping rate."""
    return await _get_rate(db, store, rate_id)


@router.patch("/shipping/rates/{rate_id}", response_model=ShippingRateResponse)
async def update_rate(
    rate_id: uuid.UUID,
    rate_in: ShippingRateUpdate,
    store: Store = Depends(get_managed_store),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Update a rate. The merged rate (current values + changes) is validated."""
    rate = await _get_rate(db, store, rate_id)
    old_value = snapshot(rate, RATE_AUDIT_FIELDS)

    changes = {
        field: value
        for field, value in rate_in.model_dump(exclude_unset=True).items()
        if value is not None or field not in ("name", "type", "is_active")
    }

    merged = {field: getattr(rate, field) for field in RATE_FIELDS}
    merged.update(changes)
    _check_rate(merged)
    if merged["type"] == ShippingRateType.FREE:
        changes["price"] = ZERO

    for field, value in changes.items():
        setattr(rate, field, value)

    # Carts priced with the old settings must pick their shipping again
    await release_carts_for_rate(db, rate.id)

    await log_audit(
        db,
        store.id,
        AuditEntityType.SHIPPING_RATE,
        rate.id,
        "updated",
        current_user.user_id,
        old_value=old_value,
        new_value=snapshot(rate, RATE_AUDIT_FIELDS),
    )
    await db.commit()
    return rate


@router.delete("/shipping/rates/{rate_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_rate(
    rate_id: uuid.UUID,
    store: Store = Depends(get_managed_store),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Delete a shipping rate."""
    rate = await _get_rate(db, store, rate_id)
    await release_carts_for_rate(db, rate.id)

    await log_audit(
        db,
        store.id,
        AuditEntityType.SHIPPING_RATE,
        rate.id,
        "deleted",
        current_user.user_id,
        old_value=snapshot(rate, RATE_AUDIT_FIELDS),
    )
    await db.delete(rate)
    await db.commit()
    return None


# ============================================================================
# METHODS
# ============================================================================


@router.get("/shipping/methods", response_model=list[ShippingMethodResponse])
async def list_methods(
    store: Store = Depends(get_managed_store),
    db: AsyncSession = Depends(get_async_db),
):
    """List carrier shipping methods."""
    result = await db.execute(
        select(ShippingMethod)
        .where(ShippingMethod.store_id == store.id)
        .order_by(ShippingMethod.carrier, ShippingMethod.name)
    )
    return result.scalars().all()


@router.post(
    "/shipping/methods",
    response_model=ShippingMethodResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_method(
    method_in: ShippingMethodCreate,
    store: Store = Depends(get_managed_store),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Create a carrier shipping method."""
    method = ShippingMethod(store_id=store.id, **method_in.model_dump())
    db.add(method)
    await db.flush()

    await log_audit(
        db,
        store.id,
        AuditEntityType.SHIPPING_METHOD,
        method.id,
        "created",
        current_user.user_id,
        new_value=snapshot(method, METHOD_AUDIT_FIELDS),
    )
    await db.commit()
    return method


@router.get("/shipping/methods/{method_id}", response_model=ShippingMethodResponse)
async def get_method(
    method_id: uuid.UUID,
    store: Store = Depends(get_managed_store),
    db: AsyncSession = Depends(get_async_db),
):
    """Get a carrier shipping method."""
    return await get_store_entity_or_404(
        db, ShippingMethod, store.id, method_id, "Shipping method"
    )


@router.patch("/shipping/methods/{method_id}", response_model=ShippingMethodResponse)
async def update_method(
    method_id: uuid.UUID,
    method_in: ShippingMethodUpdate,
    store: Store = Depends(get_managed_store),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Update a carrier shipping method."""
    method = await get_store_entity_or_404(
        db, ShippingMethod, store.id, method_id, "Shipping method"
    )
    old_value = snapshot(method, METHOD_AUDIT_FIELDS)

    for field, value in method_in.model_dump(exclude_unset=True).items():
        if value is None and field in ("name", "carrier", "is_active"):
            continue
        setattr(method, field, value)

    await log_audit(
        db,
        store.id,
        AuditEntityType.SHIPPING_METHOD,
        method.id,
        "updated",
        current_user.user_id,
        old_value=old_value,
        new_value=snapshot(method, METHOD_AUDIT_FIELDS),
    )
    await db.commit()
    return method


@router.delete(
    "/shipping/methods/{method_id}", status_code=status.HTTP_204_NO_CONTENT
)
async def delete_method(
    method_id: uuid.UUID,
    store: Store = Depends(get_managed_store),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Delete a carrier shipping method."""
    method = await get_store_entity_or_404(
        db, ShippingMethod, store.id, method_id, "Shipping method"
    )
    await log_audit(
        db,
        store.id,
        AuditEntityType.SHIPPING_METHOD,
        method.id,
        "deleted",
        current_user.user_id,
        old_value=snapshot(method, METHOD_AUDIT_FIELDS),
    )
    await db.delete(method)
    await db.commit()
    return None
