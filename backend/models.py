"""
Pydantic models for request/response validation.
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class ApiBase(BaseModel):
    """Shared base — allows construction by Python name or camelCase alias."""
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


# ── Checkout ────────────────────────────────────────────────────────

class CartItem(ApiBase):
    product_id: int = Field(..., gt=0, alias="productId")
    quantity: int = Field(..., ge=1, le=99)
    size: Optional[str] = Field(default=None, max_length=20)
    color: Optional[str] = Field(default=None, max_length=50)


class BuyerContact(ApiBase):
    email: EmailStr
    name: Optional[str] = Field(default=None, max_length=255)
    phone: Optional[str] = Field(default=None, max_length=20)


class ShippingDetails(ApiBase):
    full_name: str = Field(..., alias="fullName", min_length=1, max_length=255)
    address_line: str = Field(..., alias="addressLine", min_length=1, max_length=255)
    city: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=1, max_length=100)
    zip_code: str = Field(..., alias="zipCode", min_length=1, max_length=20)
    country: str = Field("BR", max_length=100)


class CheckoutRequest(ApiBase):
    items: List[CartItem] = Field(..., min_length=1)
    buyer: BuyerContact
    shipping: ShippingDetails


class CheckoutResponse(ApiBase):
    external_reference: str = Field(..., alias="externalReference")
    preference_id: str = Field(..., alias="preferenceId")
    order_id: int = Field(..., alias="orderId")
    total_amount: str = Field(..., alias="totalAmount")
    currency: str


# ── Webhook ─────────────────────────────────────────────────────────

class WebhookData(ApiBase):
    id: str | int


class WebhookNotification(ApiBase):
    """Mercado Pago notification body; only `type` and `data.id` are trusted."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    type: Optional[str] = None
    action: Optional[str] = None
    data: Optional[WebhookData] = None


# ── Catalog ─────────────────────────────────────────────────────────

class ProductCreateRequest(ApiBase):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=5000)
    brand: Optional[str] = Field(default=None, max_length=100)
    gender: str = Field("Unisex", pattern="^(Men|Women|Kids|Unisex)$")
    price: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    old_price: Optional[Decimal] = Field(default=None, alias="oldPrice", gt=0, max_digits=10, decimal_places=2)
    image_url: Optional[str] = Field(default=None, alias="imageUrl", max_length=500)
    sizes: List[str] = Field(default_factory=list)
    stock: int = Field(0, ge=0)
    visible: bool = True


class ProductUpdateRequest(ApiBase):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=5000)
    brand: Optional[str] = Field(default=None, max_length=100)
    price: Optional[Decimal] = Field(default=None, gt=0, max_digits=10, decimal_places=2)
    old_price: Optional[Decimal] = Field(default=None, alias="oldPrice", gt=0, max_digits=10, decimal_places=2)
    image_url: Optional[str] = Field(default=None, alias="imageUrl", max_length=500)
    sizes: Optional[List[str]] = None
    stock: Optional[int] = Field(default=None, ge=0)
    visible: Optional[bool] = None


# ── Site config ─────────────────────────────────────────────────────

_COLOR = r"^#[0-9A-Fa-f]{3,8}$"


class SiteConfigUpdateRequest(ApiBase):
    site_name: Optional[str] = Field(default=None, alias="siteName", min_length=1, max_length=100)
    primary_color: Optional[str] = Field(default=None, alias="primaryColor", pattern=_COLOR)
    secondary_color: Optional[str] = Field(default=None, alias="secondaryColor", pattern=_COLOR)
    bg_light: Optional[str] = Field(default=None, alias="bgLight", pattern=_COLOR)
    bg_dark: Optional[str] = Field(default=None, alias="bgDark", pattern=_COLOR)
    expected_version: Optional[int] = Field(default=None, alias="expectedVersion", ge=0)


# ── Marketing ───────────────────────────────────────────────────────

class BannerCreateRequest(ApiBase):
    image_url: str = Field(..., alias="imageUrl", min_length=1, max_length=500)
    link_url: Optional[str] = Field(default=None, alias="linkUrl", max_length=500)
    title: Optional[str] = Field(default=None, max_length=255)


class CouponCreateRequest(ApiBase):
    code: str = Field(..., min_length=1, max_length=50)
    discount_percent: int = Field(..., alias="discountPercent", gt=0, le=100)
    expiration_date: Optional[datetime] = Field(default=None, alias="expirationDate")


class CouponValidateRequest(ApiBase):
    code: str = Field(..., min_length=1, max_length=50)


# ── Simulation ──────────────────────────────────────────────────────

class SimulatePaymentRequest(ApiBase):
    external_reference: str = Field(..., alias="externalReference", min_length=1, max_length=64)
    status: str = Field("approved", pattern="^(approved|rejected|cancelled|pending|in_process)$")
    payment_id: Optional[str] = Field(default=None, alias="paymentId", max_length=64)
