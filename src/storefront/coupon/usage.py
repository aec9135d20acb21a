"""Coupon usage accounting.

A coupon's usage counter moves once per order. The order id is appended to
``redeemed_orders`` in the same atomic update, and the update only applies
while that id is absent, so retries are no-ops.
"""

import structlog

from storefront.coupon.coupon import normalize_code
from storefront.store.port import ArrayAppend, ConditionFailed, DocumentNotFound, Increment, NotContains

logger = structlog.get_logger(__name__)

COUPONS = "coupons"


class CouponUsage:
    def __init__(self, store):
        self.store = store

    def redeem(self, code: str, order_id: str) -> bool:
        """Count ``order_id`` against the coupon. Returns False when already counted."""
        code = normalize_code(code)
        try:
            self.store.update(
                COUPONS,
                code,
                {"usage_count": Increment(1), "redeemed_orders": ArrayAppend(order_id)},
                expect={"redeemed_orders": NotContains(order_id)},
            )
        except ConditionFailed:
            logger.debug("coupon_already_redeemed", code=code, order_id=order_id)
            return False
        except DocumentNotFound:
            logger.warning("coupon_missing_at_redemption", code=code, order_id=order_id)
            return False
        logger.info("coupon_redeemed", code=code, order_id=order_id)
        return True
