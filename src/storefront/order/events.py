"""Domain events for the Order aggregate.

Operations return these as an explicit list; they are handed to the
notifier only after the order state has been written.
"""

from protean.fields import DateTime, Identifier, Integer, String, Text

from storefront.domain import storefront


@storefront.event(part_of="Order")
class OrderPlaced:
    """A pending order was created with stock held and a payment intent open."""

    __version__ = 1

    order_id = Identifier(required=True)
    user_id = Identifier(required=True)
    items = Text(required=True)  # JSON: list of {product_id, quantity, unit_price}
    grand_total = Integer(required=True)
    currency = String(max_length=3, default="INR")
    coupon_code = String(max_length=50)
    payment_intent_id = String(max_length=100)
    placed_at = DateTime(required=True)


@storefront.event(part_of="Order")
class PaymentVerified:
    """The gateway confirmed a captured payment matching the order total."""

    __version__ = 1

    order_id = Identifier(required=True)
    payment_id = String(required=True, max_length=100)
    intent_id = String(max_length=100)
    amount = Integer(required=True)
    method = String(max_length=30)
    verified_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderStatusChanged:
    __version__ = 1

    order_id = Identifier(required=True)
    user_id = Identifier()
    previous_status = String(required=True, max_length=20)
    new_status = String(required=True, max_length=20)
    actor = String(max_length=100)
    note = String(max_length=1000)
    tracking_number = String(max_length=100)
    changed_at = DateTime(required=True)


@storefront.event(part_of="Order")
class RefundRecorded:
    """A refund was recorded for settlement by the payment back-office."""

    __version__ = 1

    order_id = Identifier(required=True)
    refund_id = String(required=True, max_length=50)
    amount = Integer(required=True)
    refund_type = String(required=True, max_length=10)
    reason = String(max_length=500)
    recorded_at = DateTime(required=True)
