"""Shipping configuration models: zones, rates and carrier methods."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base, JSONType
from services.storefront_service.models.enums import ShippingRateType, enum_values
from sqlalchemy import Boolean, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

TRACKING_NUMBER_PLACEHOLDER = "{tracking_number}"


class ShippingZone(Base):
    """Geographic area a set of rates applies to.

    Empty ``countries``/``states``/``postal_codes`` lists do not constrain
    the zone, so a zone with all three empty ships everywhere.
    """

    __tablename__ = "shipping_zones"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    store_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("stores.id", ondelete="CASCADE"), index=True, nullable=False
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    countries: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)
    states: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)
    postal_codes: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)

    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default="true"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    # Relationships
    store = relationship("Store", back_populates="shipping_zones")
    rates = relationship(
        "ShippingRate",
        back_populates="zone",
        order_by="ShippingRate.price",
        passive_deletes=True,
    )

    def __repr__(self):
        return f"<ShippingZone {self.name}>"


class ShippingRate(Base):
    """Priced shipping option inside a zone."""

    __tablename__ = "shipping_rates"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    zone_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("shipping_zones.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    type: Mapped[ShippingRateType] = mapped_column(
        SAEnum(
            ShippingRateType,
            values_callable=enum_values,
            name="shipping_rate_type_enum",
        ),
        nullable=False,
    )
    price: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), default=Decimal("0"), nullable=False
    )

    # Eligibility bounds (kilograms / store currency)
    min_weight: Mapped[Optional[Decimal]] = mapped_column(Numeric(8, 2), nullable=True)
    max_weight: Mapped[Optional[Decimal]] = mapped_column(Numeric(8, 2), nullable=True)
    min_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    max_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)

    estimated_days: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default="true"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    zone = relationship("ShippingZone", back_populates="rates")

    def __repr__(self):
        return f"<ShippingRate {self.name} ({self.type})>"


class ShippingMethod(Base):
    """Carrier service a store ships with (e.g., 'Servientrega Express')."""

    __tablename__ = "shipping_methods"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    store_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("stores.id", ondelete="CASCADE"), index=True, nullable=False
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    carrier: Mapped[str] = mapped_column(String(100), nullable=False)
    code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    tracking_url_template: Mapped[Optional[str]] = mapped_column(
        String(512), nullable=True
    )  # e.g., "https://carrier.example/track?n={tracking_number}"

    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default="true"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    store = relationship("Store", back_populates="shipping_methods")

    def tracking_url(self, tracking_number: str) -> Optional[str]:
        if not self.tracking_url_template:
            return None
        return self.tracking_url_template.replace(
            TRACKING_NUMBER_PLACEHOLDER, tracking_number
        )

    def __repr__(self):
        return f"<ShippingMethod {self.carrier}:{self.name}>"
