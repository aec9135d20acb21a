"""Coupon validation.

``evaluate`` runs the eligibility checks in a fixed order and stops at the
first failure, so a customer always sees the same reason for the same
cart. ``CouponValidator`` gathers the facts it needs from the store.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime

import structlog

from storefront.coupon.coupon import Coupon, DiscountType, coupon_from_document, normalize_code
from storefront.shared.money import percentage_of

logger = structlog.get_logger(__name__)

COUPONS = "coupons"
ORDERS = "orders"


@dataclass(frozen=True)
class CartItem:
    product_id: str
    category: str = ""


@dataclass(frozen=True)
class CouponContext:
    """Everything ``evaluate`` needs to know about the redemption attempt."""

    user_id: str | None
    order_amount: int
    items: tuple = ()
    now: datetime = field(default_factory=lambda: datetime.now(UTC))
    prior_orders: int = 0
    used_before: bool = False


@dataclass(frozen=True)
class CouponVerdict:
    valid: bool
    discount_amount: int = 0
    reason: str | None = None
    message: str | None = None
    coupon: Coupon | None = None

    @classmethod
    def reject(cls, reason: str, message: str, coupon: Coupon | None = None) -> "CouponVerdict":
        return cls(valid=False, reason=reason, message=message, coupon=coupon)


def compute_discount(coupon: Coupon, order_amount: int) -> int:
    """Discount for ``order_amount``, always within ``[0, order_amount]``."""
    if coupon.discount_type == DiscountType.PERCENTAGE.value:
        discount = percentage_of(order_amount, coupon.value)
        if coupon.max_discount is not None:
            discount = min(discount, coupon.max_discount)
    else:
        discount = min(coupon.value, order_amount)
    return max(0, min(discount, order_amount))


def evaluate(coupon: Coupon | None, context: CouponContext) -> CouponVerdict:
    if coupon is None:
        return CouponVerdict.reject("not_found", "Coupon code does not exist")
    if not coupon.is_active:
        return CouponVerdict.reject("inactive", "Coupon is no longer active", coupon)

    now = context.now if context.now.tzinfo else context.now.replace(tzinfo=UTC)
    if coupon.starts and now < coupon.starts:
        return CouponVerdict.reject("not_started", "Coupon is not valid yet", coupon)
    if coupon.expires and now > coupon.expires:
        return CouponVerdict.reject("expired", "Coupon has expired", coupon)

    if coupon.usage_limit is not None and (coupon.usage_count or 0) >= coupon.usage_limit:
        return CouponVerdict.reject("usage_limit_reached", "Coupon usage limit reached", coupon)

    if context.order_amount < (coupon.min_order_value or 0):
        return CouponVerdict.reject(
            "min_order_not_met",
            f"Minimum order value of {coupon.min_order_value} required",
            coupon,
        )

    if context.user_id in coupon.restriction("excluded_users"):
        return CouponVerdict.reject("user_excluded", "Coupon is not available for this account", coupon)
    allowed = coupon.restriction("allowed_users")
    if allowed and context.user_id not in allowed:
        return CouponVerdict.reject("user_not_eligible", "Coupon is not available for this account", coupon)
    if coupon.first_time_only and context.prior_orders > 0:
        return CouponVerdict.reject("first_order_only", "Coupon is valid on the first order only", coupon)

    if context.used_before:
        return CouponVerdict.reject("already_used", "Coupon has already been used on an earlier order", coupon)

    categories = coupon.restriction("applicable_categories")
    products = coupon.restriction("applicable_products")
    if categories or products:
        applies = any(item.category in categories or item.product_id in products for item in context.items)
        if not applies:
            return CouponVerdict.reject(
                "not_applicable_to_cart", "Coupon does not apply to any item in the cart", coupon
            )

    return CouponVerdict(valid=True, discount_amount=compute_discount(coupon, context.order_amount), coupon=coupon)


class CouponValidator:
    """Loads a coupon and the customer's order history, then evaluates."""

    def __init__(self, store, clock=None):
        self.store = store
        self.clock = clock or (lambda: datetime.now(UTC))

    def load(self, code: str) -> Coupon | None:
        code = normalize_code(code)
        if not code:
            return None
        document = self.store.get(COUPONS, code)
        return coupon_from_document(document) if document else None

    def _history(self, user_id: str | None, code: str) -> tuple[int, bool]:
        if not user_id:
            return 0, False
        orders = self.store.query(
            ORDERS,
            [("user_id", "==", user_id), ("status", "!=", "cancelled")],
        )
        used = any((order.get("coupon") or {}).get("code") == code for order in orders)
        return len(orders), used

    def validate(self, code: str, user_id: str | None, order_amount: int, items=()) -> CouponVerdict:
        coupon = self.load(code)
        prior_orders, used_before = self._history(user_id, coupon.code) if coupon else (0, False)
        context = CouponContext(
            user_id=user_id,
            order_amount=order_amount,
            items=tuple(CartItem(product_id=item.product_id, category=item.category or "") for item in items),
            now=self.clock(),
            prior_orders=prior_orders,
            used_before=used_before,
        )
        verdict = evaluate(coupon, context)
        if not verdict.valid:
            logger.info(
                "coupon_rejected",
                code=normalize_code(code),
                user_id=user_id,
                reason=verdict.reason,
            )
        return verdict
