"""Coupon aggregate.

Coupons are keyed by their upper-cased code. Administrators define them;
only ``CouponUsage`` changes the usage counter afterwards. List-valued
restrictions are held as JSON text, the same way order payloads are.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Integer, String, Text

from storefront.domain import storefront


class DiscountType(Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


_LIST_FIELDS = (
    "allowed_users",
    "excluded_users",
    "applicable_categories",
    "applicable_products",
)


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


def _as_utc(value):
    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value


@storefront.aggregate
class Coupon:
    code = String(required=True, max_length=50)
    description = String(max_length=255)
    discount_type = String(required=True, choices=DiscountType)
    value = Integer(required=True, min_value=0)  # percent, or minor units when fixed
    min_order_value = Integer(default=0, min_value=0)
    max_discount = Integer(min_value=0)
    starts_at = DateTime()
    expires_at = DateTime()
    is_active = Boolean(default=True)
    usage_count = Integer(default=0, min_value=0)
    usage_limit = Integer(min_value=1)
    first_time_only = Boolean(default=False)
    allowed_users = Text(default="[]")
    excluded_users = Text(default="[]")
    applicable_categories = Text(default="[]")
    applicable_products = Text(default="[]")
    created_by = String(max_length=100)
    created_at = DateTime()

    @invariant.post
    def value_must_fit_discount_type(self):
        if self.discount_type == DiscountType.PERCENTAGE.value and not 0 <= self.value <= 100:
            raise ValidationError({"value": ["Percentage discount must be between 0 and 100"]})
        if self.discount_type == DiscountType.FIXED.value and self.value <= 0:
            raise ValidationError({"value": ["Fixed discount must be greater than 0"]})

    @invariant.post
    def validity_window_must_be_ordered(self):
        if self.starts_at and self.expires_at and _as_utc(self.starts_at) > _as_utc(self.expires_at):
            raise ValidationError({"expires_at": ["Expiry must be after the start date"]})

    @classmethod
    def define(cls, code, discount_type, value, created_by=None, **terms):
        code = normalize_code(code)
        if not code:
            raise ValidationError({"code": ["Coupon code is required"]})
        for name in _LIST_FIELDS:
            if name in terms and not isinstance(terms[name], str):
                terms[name] = json.dumps(list(terms[name] or []))
        return cls(
            id=code,
            code=code,
            discount_type=discount_type,
            value=value,
            created_by=created_by,
            created_at=datetime.now(UTC),
            **terms,
        )

    def restriction(self, name: str) -> list:
        """Decode one of the JSON list restrictions."""
        raw = getattr(self, name)
        return json.loads(raw) if raw else []

    @property
    def starts(self):
        return _as_utc(self.starts_at)

    @property
    def expires(self):
        return _as_utc(self.expires_at)


def coupon_to_document(coupon: Coupon, redeemed_orders=None) -> dict:
    document = {
        "code": coupon.code,
        "description": coupon.description,
        "discount_type": coupon.discount_type,
        "value": coupon.value,
        "min_order_value": coupon.min_order_value or 0,
        "max_discount": coupon.max_discount,
        "starts_at": coupon.starts.isoformat() if coupon.starts else None,
        "expires_at": coupon.expires.isoformat() if coupon.expires else None,
        "is_active": coupon.is_active,
        "usage_count": coupon.usage_count or 0,
        "usage_limit": coupon.usage_limit,
        "first_time_only": coupon.first_time_only,
        "created_by": coupon.created_by,
        "created_at": _as_utc(coupon.created_at).isoformat() if coupon.created_at else None,
        "redeemed_orders": list(redeemed_orders or []),
    }
    for name in _LIST_FIELDS:
        document[name] = coupon.restriction(name)
    return document


def coupon_from_document(document: dict) -> Coupon:
    return Coupon(
        id=document["code"],
        code=document["code"],
        description=document.get("description"),
        discount_type=document["discount_type"],
        value=document["value"],
        min_order_value=document.get("min_order_value") or 0,
        max_discount=document.get("max_discount"),
        starts_at=_as_utc(document.get("starts_at")),
        expires_at=_as_utc(document.get("expires_at")),
        is_active=document.get("is_active", True),
        usage_count=document.get("usage_count") or 0,
        usage_limit=document.get("usage_limit"),
        first_time_only=document.get("first_time_only", False),
        created_by=document.get("created_by"),
        created_at=_as_utc(document.get("created_at")),
        **{name: json.dumps(document.get(name) or []) for name in _LIST_FIELDS},
    )
