"""Pydantic schemas for storefront service."""

import re
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from libs.common.config import get_settings
from pydantic import BaseModel, ConfigDict, Field, field_validator
from services.storefront_service.models import CartStatus, ShippingRateType

settings = get_settings()

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
DOMAIN_PATTERN = re.compile(
    r"^(?=.{1,253}$)([a-zA-Z0-9]([a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?\.)+[a-zA-Z]{2,63}$"
)


def _clean_optional(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _check_store_name(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    value = value.strip()
    if len(value) < 2:
        raise ValueError("Store name must be at least 2 characters")
    return value


def _check_email(value: Optional[str]) -> Optional[str]:
    value = _clean_optional(value)
    if value and not EMAIL_PATTERN.match(value):
        raise ValueError("Invalid email address")
    return value


def _check_domain(value: Optional[str]) -> Optional[str]:
    value = _clean_optional(value)
    if value and not DOMAIN_PATTERN.match(value):
        raise ValueError("Invalid domain")
    return value.lower() if value else value


def _clean_list(value: Optional[list[str]]) -> Optional[list[str]]:
    if value is None:
        return value
    return [entry.strip() for entry in value if entry and entry.strip()]


# ============================================================================
# STORE SCHEMAS
# ============================================================================


class StoreBase(BaseModel):
    name: str = Field(..., max_length=100)
    description: Optional[str] = None
    email: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    domain: Optional[str] = Field(None, max_length=255)
    logo_url: Optional[str] = Field(None, max_length=512)
    currency: str = Field(settings.DEFAULT_CURRENCY, min_length=3, max_length=3)

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        return _check_store_name(value)

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: Optional[str]) -> Optional[str]:
        return _check_email(value)

    @field_validator("domain")
    @classmethod
    def validate_domain(cls, value: Optional[str]) -> Optional[str]:
        return _check_domain(value)

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, value: str) -> str:
        return value.upper()


class StoreCreate(StoreBase):
    pass


class StoreUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None
    email: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    domain: Optional[str] = Field(None, max_length=255)
    logo_url: Optional[str] = Field(None, max_length=512)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    is_active: Optional[bool] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: Optional[str]) -> Optional[str]:
        return _check_store_name(value)

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: Optional[str]) -> Optional[str]:
        return _check_email(value)

    @field_validator("domain")
    @classmethod
    def validate_domain(cls, value: Optional[str]) -> Optional[str]:
        return _check_domain(value)

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, value: Optional[str]) -> Optional[str]:
        return value.upper() if value else value


class StoreResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    owner_id: str
    name: str
    slug: str
    description: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    domain: Optional[str] = None
    logo_url: Optional[str] = None
    currency: str
    is_active: bool
    created_at: datetime
    updated_at: datetime


# ============================================================================
# CATEGORY SCHEMAS
# ============================================================================


class CategoryBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    image_url: Optional[str] = Field(None, max_length=512)
    parent_id: Optional[uuid.UUID] = None
    is_active: bool = True


class CategoryCreate(CategoryBase):
    slug: Optional[str] = Field(None, max_length=100)  # generated from name


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    slug: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None
    image_url: Optional[str] = Field(None, max_length=512)
    parent_id: Optional[uuid.UUID] = None
    is_active: Optional[bool] = None


class CategoryResponse(CategoryBase):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    store_id: uuid.UUID
    slug: str
    created_at: datetime
    updated_at: datetime


class CategoryListResponse(BaseModel):
    """Paginated category list."""

    items: list[CategoryResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


class CategoryImageCreate(BaseModel):
    url: str = Field(..., max_length=512)
    alt_text: Optional[str] = Field(None, max_length=255)
    position: Optional[int] = Field(None, ge=0)  # appended when omitted
    is_main: bool = False


class CategoryImageUpdate(BaseModel):
    url: Optional[str] = Field(None, max_length=512)
    alt_text: Optional[str] = Field(None, max_length=255)
    position: Optional[int] = Field(None, ge=0)


class CategoryImageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    category_id: uuid.UUID
    url: str
    alt_text: Optional[str] = None
    position: int
    is_main: bool
    created_at: datetime


# ============================================================================
# PRODUCT SCHEMAS
# ============================================================================


class ProductBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    category_id: Optional[uuid.UUID] = None
    description: Optional[str] = None
    short_description: Optional[str] = Field(None, max_length=500)
    price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    compare_at_price: Optional[Decimal] = Field(
        None, ge=0, max_digits=10, decimal_places=2
    )
    sku: Optional[str] = Field(None, max_length=100)
    inventory: int = Field(0, ge=0)
    weight: Optional[Decimal] = Field(None, ge=0, max_digits=8, decimal_places=2)
    is_active: bool = True
    is_featured: bool = False


class ProductCreate(ProductBase):
    slug: Optional[str] = Field(None, max_length=255)  # generated from name


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    slug: Optional[str] = Field(None, max_length=255)
    category_id: Optional[uuid.UUID] = None
    description: Optional[str] = None
    short_description: Optional[str] = Field(None, max_length=500)
    price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    compare_at_price: Optional[Decimal] = Field(
        None, ge=0, max_digits=10, decimal_places=2
    )
    sku: Optional[str] = Field(None, max_length=100)
    inventory: Optional[int] = Field(None, ge=0)
    weight: Optional[Decimal] = Field(None, ge=0, max_digits=8, decimal_places=2)
    is_active: Optional[bool] = None
    is_featured: Optional[bool] = None


class ProductImageCreate(BaseModel):
    url: str = Field(..., max_length=512)
    alt_text: Optional[str] = Field(None, max_length=255)
    position: Optional[int] = Field(None, ge=0)  # appended when omitted


class ProductImageUpdate(BaseModel):
    url: Optional[str] = Field(None, max_length=512)
    alt_text: Optional[str] = Field(None, max_length=255)
    position: Optional[int] = Field(None, ge=0)


class ProductImageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    product_id: uuid.UUID
    url: str
    alt_text: Optional[str] = None
    position: int
    created_at: datetime


class ProductResponse(ProductBase):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    store_id: uuid.UUID
    slug: str
    created_at: datetime
    updated_at: datetime


class CollectionSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    slug: str


class ProductDetail(ProductResponse):
    """Admin product view with images and collections."""

    images: list[ProductImageResponse] = []
    category: Optional[CategoryResponse] = None
    collections: list[CollectionSummary] = []


class ProductListResponse(BaseModel):
    """Paginated product list."""

    items: list[ProductResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


# ============================================================================
# COLLECTION SCHEMAS
# ============================================================================


class CollectionBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    image_url: Optional[str] = Field(None, max_length=512)
    is_active: bool = True


class CollectionCreate(CollectionBase):
    slug: Optional[str] = Field(None, max_length=100)  # generated from name


class CollectionUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    slug: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None
    image_url: Optional[str] = Field(None, max_length=512)
    is_active: Optional[bool] = None


class CollectionResponse(CollectionBase):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    store_id: uuid.UUID
    slug: str
    product_count: int = 0
    created_at: datetime
    updated_at: datetime


class CollectionListResponse(BaseModel):
    """Paginated collection list."""

    items: list[CollectionResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


class CollectionProductAdd(BaseModel):
    product_id: uuid.UUID


# ============================================================================
# DISCOUNT SCHEMAS
# ============================================================================


class DiscountBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    percentage: Decimal = Field(..., gt=0, le=100, max_digits=5, decimal_places=2)
    end_date: datetime
    is_active: bool = True


class DiscountCreate(DiscountBase):
    pass


class DiscountUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    percentage: Optional[Decimal] = Field(
        None, gt=0, le=100, max_digits=5, decimal_places=2
    )
    end_date: Optional[datetime] = None
    is_active: Optional[bool] = None


class DiscountResponse(DiscountBase):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    store_id: uuid.UUID
    is_expired: bool = False
    product_count: int = 0
    collection_count: int = 0
    created_at: datetime
    updated_at: datetime


class DiscountListResponse(BaseModel):
    """Paginated discount list."""

    items: list[DiscountResponse]
    page: int
    page_size: int
    total_pages: int
    total_count: int
    has_more: bool


class DiscountProductAdd(BaseModel):
    product_id: uuid.UUID


class DiscountCollectionAdd(BaseModel):
    collection_id: uuid.UUID


class DiscountTargetProduct(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    slug: str
    price: Decimal
    sku: Optional[str] = None


class DiscountTargetCollection(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    slug: str


# ============================================================================
# STOREFRONT (PRICED) SCHEMAS
# ============================================================================


class AppliedDiscountResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    percentage: Decimal


class StorefrontProduct(BaseModel):
    """Product card priced through discount stacking."""

    id: uuid.UUID
    name: str
    slug: str
    short_description: Optional[str] = None
    category_id: Optional[uuid.UUID] = None
    image_url: Optional[str] = None
    price: Decimal
    compare_at_price: Optional[Decimal] = None
    final_price: Decimal
    savings: Decimal
    discount_percentage: Decimal
    applied_discounts: list[AppliedDiscountResponse] = []
    inventory: int
    in_stock: bool
    weight: Optional[Decimal] = None
    is_featured: bool
    created_at: datetime


class StorefrontProductDetail(StorefrontProduct):
    description: Optional[str] = None
    sku: Optional[str] = None
    images: list[ProductImageResponse] = []
    category: Optional[CategoryResponse] = None
    collections: list[CollectionSummary] = []


class StorefrontProductList(BaseModel):
    """Paginated storefront product list."""

    items: list[StorefrontProduct]
    total: int
    page: int
    page_size: int
    total_pages: int


class StorefrontCategoryDetail(CategoryResponse):
    images: list[CategoryImageResponse] = []
    products: list[StorefrontProduct] = []


class StorefrontCollectionDetail(CollectionResponse):
    products: list[StorefrontProduct] = []


# ============================================================================
# SHIPPING SCHEMAS
# ============================================================================


class ShippingZoneBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    countries: list[str] = Field(default_factory=list)
    states: list[str] = Field(default_factory=list)
    postal_codes: list[str] = Field(default_factory=list)
    is_active: bool = True

    @field_validator("countries", "states", "postal_codes")
    @classmethod
    def strip_entries(cls, value: list[str]) -> list[str]:
        return _clean_list(value)


class ShippingZoneCreate(ShippingZoneBase):
    pass


class ShippingZoneUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    countries: Optional[list[str]] = None
    states: Optional[list[str]] = None
    postal_codes: Optional[list[str]] = None
    is_active: Optional[bool] = None

    @field_validator("countries", "states", "postal_codes")
    @classmethod
    def strip_entries(cls, value: Optional[list[str]]) -> Optional[list[str]]:
        return _clean_list(value)


class ShippingRateFields(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    type: Optional[ShippingRateType] = None
    price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    min_weight: Optional[Decimal] = Field(None, ge=0, max_digits=8, decimal_places=2)
    max_weight: Optional[Decimal] = Field(None, ge=0, max_digits=8, decimal_places=2)
    min_price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    max_price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    estimated_days: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None


class ShippingRateCreate(ShippingRateFields):
    zone_id: uuid.UUID
    name: str = Field(..., min_length=1, max_length=100)
    type: ShippingRateType
    is_active: bool = True


class ShippingRateUpdate(ShippingRateFields):
    pass


class ShippingRateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    zone_id: uuid.UUID
    name: str
    description: Optional[str] = None
    type: ShippingRateType
    price: Decimal
    min_weight: Optional[Decimal] = None
    max_weight: Optional[Decimal] = None
    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None
    estimated_days: Optional[int] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime


class ShippingZoneResponse(ShippingZoneBase):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    store_id: uuid.UUID
    rate_count: int = 0
    created_at: datetime
    updated_at: datetime


class ShippingZoneDetail(ShippingZoneResponse):
    rates: list[ShippingRateResponse] = []


class ShippingMethodBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    carrier: str = Field(..., min_length=1, max_length=100)
    code: Optional[str] = Field(None, max_length=50)
    tracking_url_template: Optional[str] = Field(None, max_length=512)
    is_active: bool = True


class ShippingMethodCreate(ShippingMethodBase):
    pass


class ShippingMethodUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    carrier: Optional[str] = Field(None, min_length=1, max_length=100)
    code: Optional[str] = Field(None, max_length=50)
    tracking_url_template: Optional[str] = Field(None, max_length=512)
    is_active: Optional[bool] = None


class ShippingMethodResponse(ShippingMethodBase):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    store_id: uuid.UUID
    created_at: datetime
    updated_at: datetime


# ============================================================================
# CART SCHEMAS
# ============================================================================


class CartItemCreate(BaseModel):
    product_id: uuid.UUID
    quantity: int = Field(1, ge=1)


class CartItemUpdate(BaseModel):
    quantity: int = Field(..., ge=0)  # 0 removes the line


class CartItemResponse(BaseModel):
    id: uuid.UUID
    product_id: uuid.UUID
    product_name: str
    product_slug: str
    image_url: Optional[str] = None
    quantity: int
    unit_price: Decimal
    discounted_unit_price: Decimal
    line_total: Decimal
    weight: Optional[Decimal] = None
    inventory: int


class ShippingAddress(BaseModel):
    address: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    country: Optional[str] = Field(None, max_length=100)
    postal_code: Optional[str] = Field(None, max_length=20)

    def is_empty(self) -> bool:
        return not any(
            [self.address, self.city, self.state, self.country, self.postal_code]
        )


class SelectedShipping(BaseModel):
    rate_id: uuid.UUID
    rate_name: Optional[str] = None
    cost: Decimal
    address: ShippingAddress


class CartResponse(BaseModel):
    id: uuid.UUID
    store_id: uuid.UUID
    status: CartStatus
    items: list[CartItemResponse]
    item_count: int
    subtotal: Decimal
    total_weight: Decimal
    shipping: Optional[SelectedShipping] = None
    shipping_cost: Decimal
    total: Decimal
    created_at: datetime
    updated_at: datetime


class CartCountResponse(BaseModel):
    count: int


class ShippingSelectionRequest(BaseModel):
    rate_id: uuid.UUID
    address: ShippingAddress = Field(default_factory=ShippingAddress)


class ShippingRateOption(BaseModel):
    rate_id: uuid.UUID
    name: str
    description: Optional[str] = None
    type: ShippingRateType
    cost: Decimal
    estimated_days: Optional[int] = None


class ShippingZoneOptions(BaseModel):
    zone_id: uuid.UUID
    zone_name: str
    rates: list[ShippingRateOption]


class ShippingOptionsResponse(BaseModel):
    subtotal: Decimal
    total_weight: Decimal
    zones: list[ShippingZoneOptions]
    cheapest: Optional[ShippingRateOption] = None


# ============================================================================
# CARRIER QUOTE SCHEMAS
# ============================================================================


class CarrierQuoteResponse(BaseModel):
    id: str
    company: str
    company_name: str
    service_code: str
    service_name: str
    price: Decimal
    formatted_price: str
    estimated_days: int
    estimated_delivery: str
    cash_on_delivery: bool
    tracking_url: Optional[str] = None
    restrictions: list[str] = []


class CarrierQuotesResponse(BaseModel):
    origin_city: str
    destination_city: str
    destination_zone: str
    total_weight: Decimal
    declared_value: Decimal
    quotes: list[CarrierQuoteResponse]
    cheapest: Optional[CarrierQuoteResponse] = None
