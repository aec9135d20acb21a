"""Coupon definition: command and handler."""

import json

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Identifier, Integer, String, Text

from storefront.coupon.coupon import Coupon, coupon_to_document, normalize_code
from storefront.domain import storefront
from storefront.store import get_store

COUPONS = "coupons"


@storefront.command(part_of="Coupon")
class DefineCoupon:
    code = String(required=True, max_length=50)
    description = String(max_length=255)
    discount_type = String(required=True, max_length=20)
    value = Integer(required=True)
    min_order_value = Integer(default=0)
    max_discount = Integer()
    starts_at = DateTime()
    expires_at = DateTime()
    usage_limit = Integer()
    first_time_only = Boolean(default=False)
    allowed_users = Text()  # JSON: list of user ids
    excluded_users = Text()
    applicable_categories = Text()
    applicable_products = Text()
    created_by = Identifier()


@storefront.command_handler(part_of=Coupon)
class DefineCouponHandler:
    @handle(DefineCoupon)
    def define_coupon(self, command):
        store = get_store()
        code = normalize_code(command.code)
        if store.get(COUPONS, code) is not None:
            raise ValidationError({"code": [f"Coupon {code} already exists"]})

        restrictions = {
            name: json.loads(getattr(command, name))
            for name in ("allowed_users", "excluded_users", "applicable_categories", "applicable_products")
            if getattr(command, name)
        }
        coupon = Coupon.define(
            code,
            command.discount_type,
            command.value,
            created_by=str(command.created_by) if command.created_by else None,
            description=command.description,
            min_order_value=command.min_order_value or 0,
            max_discount=command.max_discount,
            starts_at=command.starts_at,
            expires_at=command.expires_at,
            usage_limit=command.usage_limit,
            first_time_only=bool(command.first_time_only),
            **restrictions,
        )
        store.set(COUPONS, coupon.code, coupon_to_document(coupon))
        return coupon.code
