"""Discount models: time-bounded percentage markdowns and their targets."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship


class Discount(Base):
    """Percentage discount applied to products directly or through collections."""

    __tablename__ = "discounts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    store_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("stores.id", ondelete="CASCADE"), index=True, nullable=False
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default="true"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        CheckConstraint(
            "percentage > 0 AND percentage <= 100", name="valid_discount_percentage"
        ),
    )

    # Relationships
    store = relationship("Store", back_populates="discounts")
    product_discounts = relationship(
        "ProductDiscount",
        back_populates="discount",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    collection_discounts = relationship(
        "CollectionDiscount",
        back_populates="discount",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self):
        return f"<Discount {self.name} {self.percentage}%>"


class ProductDiscount(Base):
    """Discount assigned directly to a product."""

    __tablename__ = "product_discounts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    discount_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("discounts.id", ondelete="CASCADE"), nullable=False
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )

    __table_args__ = (
        UniqueConstraint("discount_id", "product_id", name="uq_product_discount"),
    )

    discount = relationship("Discount", back_populates="product_discounts")
    product = relationship("Product", back_populates="product_discounts")


class CollectionDiscount(Base):
    """Discount assigned to every product of a collection."""

    __tablename__ = "collection_discounts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    discount_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("discounts.id", ondelete="CASCADE"), nullable=False
    )
    collection_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("collections.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )

    __table_args__ = (
        UniqueConstraint(
            "discount_id", "collection_id", name="uq_collection_discount"
        ),
    )

    discount = relationship("Discount", back_populates="collection_discounts")
    collection = relationship("Collection", back_populates="collection_discounts")
