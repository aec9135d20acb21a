"""Pydantic request/response schemas for the Storefront API.

These are external contracts, kept separate from the internal Protean
commands. Money is always integer minor units (paise).
"""

from datetime import datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class AddressSchema(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    line1: str = Field(min_length=1, max_length=255)
    line2: str | None = None
    city: str = Field(min_length=1, max_length=100)
    state: str = Field(min_length=1, max_length=100)
    postal_code: str = Field(min_length=1, max_length=10)
    country: str = "India"
    phone: str | None = None


class CartItemSchema(BaseModel):
    product_id: str
    quantity: int = Field(ge=1)


class CouponCartItemSchema(BaseModel):
    product_id: str
    category: str = ""


# ---------------------------------------------------------------------------
# Order Request Schemas
# ---------------------------------------------------------------------------
class PlaceOrderRequest(BaseModel):
    items: list[CartItemSchema] = Field(min_length=1)
    shipping_address: AddressSchema
    billing_address: AddressSchema | None = None
    coupon_code: str | None = None
    gift_wrap: bool = False
    payment_method: str = "razorpay"

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "items": [{"product_id": "prod-001", "quantity": 2}],
                    "shipping_address": {
                        "name": "Asha Rao",
                        "line1": "12 Marine Drive",
                        "city": "Mumbai",
                        "state": "Maharashtra",
                        "postal_code": "400020",
                    },
                    "coupon_code": "WELCOME10",
                    "gift_wrap": False,
                }
            ]
        }
    }


class VerifyPaymentRequest(BaseModel):
    gateway_order_id: str
    gateway_payment_id: str
    signature: str


class CancelOrderRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=500)


class RefundOrderRequest(BaseModel):
    amount: int = Field(gt=0)
    reason: str = Field(min_length=1, max_length=500)


class UpdateStatusRequest(BaseModel):
    status: str
    note: str | None = Field(default=None, max_length=1000)
    tracking_number: str | None = None
    carrier: str | None = None


class BulkStatusRequest(BaseModel):
    order_ids: list[str] = Field(min_length=1)
    status: str
    note: str | None = Field(default=None, max_length=1000)


class AddNoteRequest(BaseModel):
    text: str = Field(min_length=1, max_length=1000)
    internal: bool = False


# ---------------------------------------------------------------------------
# Coupon and product Request Schemas
# ---------------------------------------------------------------------------
class DefineCouponRequest(BaseModel):
    code: str = Field(min_length=1, max_length=50)
    discount_type: str
    value: int
    description: str | None = None
    min_order_value: int = 0
    max_discount: int | None = None
    starts_at: datetime | None = None
    expires_at: datetime | None = None
    usage_limit: int | None = None
    first_time_only: bool = False
    allowed_users: list[str] = []
    excluded_users: list[str] = []
    applicable_categories: list[str] = []
    applicable_products: list[str] = []


class ValidateCouponRequest(BaseModel):
    coupon_code: str
    order_amount: int = Field(gt=0)
    items: list[CouponCartItemSchema] = []


class StockProductRequest(BaseModel):
    name: str
    price: int = Field(ge=0)
    available: int = Field(ge=0)
    sku: str = ""
    category: str = ""
    is_active: bool = True


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class PlacedOrderResponse(BaseModel):
    order_id: str
    status: str
    grand_total: int
    currency: str
    payment_intent_id: str


class OrderStatusResponse(BaseModel):
    order_id: str
    status: str
    refund_id: str | None = None
    duplicate: bool = False


class BulkItemResponse(BaseModel):
    order_id: str
    result: str
    error_code: str | None = None
    message: str | None = None


class BulkStatusResponse(BaseModel):
    updated: int
    unchanged: int
    failed: int
    results: list[BulkItemResponse]


class CouponPreviewResponse(BaseModel):
    code: str
    discount_type: str
    discount_amount: int
    savings_percentage: float
    final_amount: int


class CodeResponse(BaseModel):
    code: str
