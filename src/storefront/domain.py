"""Storefront bounded context: order lifecycle and payment reconciliation.

Prices orders, applies coupons, reserves inventory, confirms payments
captured by the gateway and drives orders through their status lifecycle,
reversing inventory and coupon effects on cancellation or refund.
"""

import structlog
from protean.domain import Domain

storefront = Domain(name="storefront")

logger = structlog.get_logger(__name__)
