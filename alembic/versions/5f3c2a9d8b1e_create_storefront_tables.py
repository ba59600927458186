"""create_storefront_tables

Revision ID: 5f3c2a9d8b1e
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "5f3c2a9d8b1e"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")

AUDIT_ENTITY_TYPES = (
    "store",
    "category",
    "product",
    "collection",
    "discount",
    "shipping_zone",
    "shipping_rate",
    "shipping_method",
)


def _timestamps(updated: bool = True) -> list[sa.Column]:
    columns = [sa.Column("created_at", sa.DateTime(timezone=True), nullable=True)]
    if updated:
        columns.append(sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True))
    return columns


def _is_active() -> sa.Column:
    return sa.Column("is_active", sa.Boolean(), server_default="true", nullable=True)


def _store_fk() -> sa.Column:
    return sa.Column(
        "store_id",
        sa.Uuid(),
        sa.ForeignKey("stores.id", ondelete="CASCADE"),
        nullable=False,
    )


def upgrade() -> None:
    """Upgrade schema - Create stores, catalog, discount, shipping and cart tables."""

    # Stores
    op.create_table(
        "stores",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("owner_id", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("slug", sa.String(length=120), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("phone", sa.String(length=50), nullable=True),
        sa.Column("domain", sa.String(length=255), nullable=True),
        sa.Column("logo_url", sa.String(length=512), nullable=True),
        sa.Column("currency", sa.String(length=3), server_default="USD", nullable=False),
        _is_active(),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("slug"),
    )
    op.create_index("ix_stores_owner_id", "stores", ["owner_id"])

    op.create_table(
        "store_audit_logs",
        sa.Column("id", sa.Uuid(), nullable=False),
        _store_fk(),
        sa.Column(
            "entity_type",
            sa.Enum(*AUDIT_ENTITY_TYPES, name="store_audit_entity_type_enum"),
            nullable=False,
        ),
        sa.Column("entity_id", sa.Uuid(), nullable=False),
        sa.Column("action", sa.String(length=50), nullable=False),
        sa.Column("old_value", JSON_TYPE, nullable=True),
        sa.Column("new_value", JSON_TYPE, nullable=True),
        sa.Column("performed_by", sa.String(length=255), nullable=False),
        sa.Column("performed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_store_audit_logs_entity", "store_audit_logs", ["entity_type", "entity_id"]
    )
    op.create_index(
        "ix_store_audit_logs_store_performed_at",
        "store_audit_logs",
        ["store_id", "performed_at"],
    )

    # Catalog
    op.create_table(
        "categories",
        sa.Column("id", sa.Uuid(), nullable=False),
        _store_fk(),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("slug", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("image_url", sa.String(length=512), nullable=True),
        sa.Column(
            "parent_id",
            sa.Uuid(),
            sa.ForeignKey("categories.id", ondelete="SET NULL"),
            nullable=True,
        ),
        _is_active(),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("store_id", "slug", name="uq_categories_store_slug"),
    )
    op.create_index("ix_categories_store_id", "categories", ["store_id"])

    op.create_table(
        "category_images",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column(
            "category_id",
            sa.Uuid(),
            sa.ForeignKey("categories.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("url", sa.String(length=512), nullable=False),
        sa.Column("alt_text", sa.String(length=255), nullable=True),
        sa.Column("position", sa.Integer(), server_default="0", nullable=True),
        sa.Column("is_main", sa.Boolean(), server_default="false", nullable=True),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_category_images_category_id", "category_images", ["category_id"]
    )

    op.create_table(
        "collections",
        sa.Column("id", sa.Uuid(), nullable=False),
        _store_fk(),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("slug", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("image_url", sa.String(length=512), nullable=True),
        _is_active(),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("store_id", "slug", name="uq_collections_store_slug"),
    )
    op.create_index("ix_collections_store_id", "collections", ["store_id"])

    op.create_table(
        "products",
        sa.Column("id", sa.Uuid(), nullable=False),
        _store_fk(),
        sa.Column(
            "category_id",
            sa.Uuid(),
            sa.ForeignKey("categories.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("slug", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("short_description", sa.String(length=500), nullable=True),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("compare_at_price", sa.Numeric(10, 2), nullable=True),
        sa.Column("sku", sa.String(length=100), nullable=True),
        sa.Column("inventory", sa.Integer(), server_default="0", nullable=False),
        sa.Column("weight", sa.Numeric(8, 2), nullable=True),
        _is_active(),
        sa.Column("is_featured", sa.Boolean(), server_default="false", nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("store_id", "slug", name="uq_products_store_slug"),
        sa.UniqueConstraint("store_id", "sku", name="uq_products_store_sku"),
        sa.CheckConstraint("inventory >= 0", name="non_negative_inventory"),
        sa.CheckConstraint("price >= 0", name="non_negative_price"),
    )
    op.create_index("ix_products_store_id", "products", ["store_id"])

    op.create_table(
        "product_images",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column(
            "product_id",
            sa.Uuid(),
            sa.ForeignKey("products.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("url", sa.String(length=512), nullable=False),
        sa.Column("alt_text", sa.String(length=255), nullable=True),
        sa.Column("position", sa.Integer(), server_default="0", nullable=True),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_product_images_product_id", "product_images", ["product_id"])

    op.create_table(
        "product_collections",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column(
            "product_id",
            sa.Uuid(),
            sa.ForeignKey("products.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "collection_id",
            sa.Uuid(),
            sa.ForeignKey("collections.id", ondelete="CASCADE"),
            nullable=False,
        ),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("product_id", "collection_id", name="uq_product_collection"),
    )

    # Discounts
    op.create_table(
        "discounts",
        sa.Column("id", sa.Uuid(), nullable=False),
        _store_fk(),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("percentage", sa.Numeric(5, 2), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=False),
        _is_active(),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "percentage > 0 AND percentage <= 100", name="valid_discount_percentage"
        ),
    )
    op.create_index("ix_discounts_store_id", "discounts", ["store_id"])

    op.create_table(
        "product_discounts",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column(
            "discount_id",
            sa.Uuid(),
            sa.ForeignKey("discounts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "product_id",
            sa.Uuid(),
            sa.ForeignKey("products.id", ondelete="CASCADE"),
            nullable=False,
        ),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("discount_id", "product_id", name="uq_product_discount"),
    )

    op.create_table(
        "collection_discounts",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column(
            "discount_id",
            sa.Uuid(),
            sa.ForeignKey("discounts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "collection_id",
            sa.Uuid(),
            sa.ForeignKey("collections.id", ondelete="CASCADE"),
            nullable=False,
        ),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "discount_id", "collection_id", name="uq_collection_discount"
        ),
    )

    # Shipping
    op.create_table(
        "shipping_zones",
        sa.Column("id", sa.Uuid(), nullable=False),
        _store_fk(),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("countries", JSON_TYPE, nullable=False),
        sa.Column("states", JSON_TYPE, nullable=False),
        sa.Column("postal_codes", JSON_TYPE, nullable=False),
        _is_active(),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_shipping_zones_store_id", "shipping_zones", ["store_id"])

    op.create_table(
        "shipping_rates",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column(
            "zone_id",
            sa.Uuid(),
            sa.ForeignKey("shipping_zones.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "type",
            sa.Enum(
                "flat_rate",
                "weight_based",
                "price_based",
                "free",
                name="shipping_rate_type_enum",
            ),
            nullable=False,
        ),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("min_weight", sa.Numeric(8, 2), nullable=True),
        sa.Column("max_weight", sa.Numeric(8, 2), nullable=True),
        sa.Column("min_price", sa.Numeric(10, 2), nullable=True),
        sa.Column("max_price", sa.Numeric(10, 2), nullable=True),
        sa.Column("estimated_days", sa.Integer(), nullable=True),
        _is_active(),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_shipping_rates_zone_id", "shipping_rates", ["zone_id"])

    op.create_table(
        "shipping_methods",
        sa.Column("id", sa.Uuid(), nullable=False),
        _store_fk(),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("carrier", sa.String(length=100), nullable=False),
        sa.Column("code", sa.String(length=50), nullable=True),
        sa.Column("tracking_url_template", sa.String(length=512), nullable=True),
        _is_active(),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_shipping_methods_store_id", "shipping_methods", ["store_id"])

    # Carts
    op.create_table(
        "carts",
        sa.Column("id", sa.Uuid(), nullable=False),
        _store_fk(),
        sa.Column("user_id", sa.String(length=255), nullable=True),
        sa.Column("session_id", sa.String(length=255), nullable=True),
        sa.Column(
            "status",
            sa.Enum("active", "converted", "abandoned", name="cart_status_enum"),
            server_default="active",
            nullable=True,
        ),
        sa.Column(
            "shipping_rate_id",
            sa.Uuid(),
            sa.ForeignKey("shipping_rates.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("shipping_cost", sa.Numeric(10, 2), nullable=True),
        sa.Column("shipping_address", sa.String(length=255), nullable=True),
        sa.Column("shipping_city", sa.String(length=100), nullable=True),
        sa.Column("shipping_state", sa.String(length=100), nullable=True),
        sa.Column("shipping_country", sa.String(length=100), nullable=True),
        sa.Column("shipping_postal_code", sa.String(length=20), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "user_id IS NOT NULL OR session_id IS NOT NULL", name="cart_has_owner"
        ),
    )
    op.create_index("ix_carts_store_id", "carts", ["store_id"])
    op.create_index("ix_carts_user_id", "carts", ["user_id"])
    op.create_index("ix_carts_session_id", "carts", ["session_id"])

    op.create_table(
        "cart_items",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column(
            "cart_id",
            sa.Uuid(),
            sa.ForeignKey("carts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "product_id",
            sa.Uuid(),
            sa.ForeignKey("products.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("quantity", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("cart_id", "product_id", name="uq_cart_item_product"),
        sa.CheckConstraint("quantity > 0", name="positive_quantity"),
    )


def downgrade() -> None:
    """Downgrade schema - Drop storefront tables."""

    op.drop_table("cart_items")
    op.drop_index("ix_carts_session_id", table_name="carts")
    op.drop_index("ix_carts_user_id", table_name="carts")
    op.drop_index("ix_carts_store_id", table_name="carts")
    op.drop_table("carts")

    op.drop_index("ix_shipping_methods_store_id", table_name="shipping_methods")
    op.drop_table("shipping_methods")
    op.drop_index("ix_shipping_rates_zone_id", table_name="shipping_rates")
    op.drop_table("shipping_rates")
    op.drop_index("ix_shipping_zones_store_id", table_name="shipping_zones")
    op.drop_table("shipping_zones")

    op.drop_table("collection_discounts")
    op.drop_table("product_discounts")
    op.drop_index("ix_discounts_store_id", table_name="discounts")
    op.drop_table("discounts")

    op.drop_table("product_collections")
    op.drop_index("ix_product_images_product_id", table_name="product_images")
    op.drop_table("product_images")
    op.drop_index("ix_products_store_id", table_name="products")
    op.drop_table("products")
    op.drop_index("ix_collections_store_id", table_name="collections")
    op.drop_table("collections")
    op.drop_index("ix_category_images_category_id", table_name="category_images")
    op.drop_table("category_images")
    op.drop_index("ix_categories_store_id", table_name="categories")
    op.drop_table("categories")

    op.drop_index(
        "ix_store_audit_logs_store_performed_at", table_name="store_audit_logs"
    )
    op.drop_index("ix_store_audit_logs_entity", table_name="store_audit_logs")
    op.drop_table("store_audit_logs")
    op.drop_index("ix_stores_owner_id", table_name="stores")
    op.drop_table("stores")

    # PostgreSQL keeps named enum types after their tables are dropped
    bind = op.get_bind()
    if bind.dialect.name != "postgresql":
        return
    for enum_name in (
        "cart_status_enum",
        "shipping_rate_type_enum",
        "store_audit_entity_type_enum",
    ):
        sa.Enum(name=enum_name).drop(bind, checkfirst=True)
