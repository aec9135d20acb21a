"""Order aggregate.

State machine:
    pending -> confirmed -> processing -> shipped -> delivered -> refunded
    cancelled is reachable from pending, confirmed and processing.

Orders are created in ``pending`` and are never deleted; ``cancelled`` and
``refunded`` are terminal. Status changes go through
``storefront.order.state_machine.OrderStateMachine``, which writes the new
status and its history entry in one guarded update.
"""

from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from protean.fields import Boolean, DateTime, HasMany, Identifier, Integer, String, ValueObject

from storefront.domain import storefront
from storefront.errors import IllegalTransitionError
from storefront.inventory.ledger import StockLine
from storefront.pricing.calculator import PriceBreakdown, TaxSplit


class OrderStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


# State machine transition map
VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: {OrderStatus.REFUNDED},
    OrderStatus.CANCELLED: set(),  # Terminal
    OrderStatus.REFUNDED: set(),  # Terminal
}

# Entering these returns the order's stock to inventory
RELEASING_STATES = {OrderStatus.CANCELLED, OrderStatus.REFUNDED}


class PaymentStatus(Enum):
    PENDING = "pending"
    CREATED = "created"
    CAPTURED = "captured"


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@storefront.value_object(part_of="Order")
class Address:
    """Delivery or billing address, snapshotted when the order is placed."""

    name = String(required=True, max_length=100)
    line1 = String(required=True, max_length=255)
    line2 = String(max_length=255)
    city = String(required=True, max_length=100)
    state = String(required=True, max_length=100)
    postal_code = String(required=True, max_length=10)
    country = String(max_length=100, default="India")
    phone = String(max_length=20)


@storefront.value_object(part_of="Order")
class CouponReference:
    code = String(required=True, max_length=50)
    discount_amount = Integer(required=True, min_value=0)


@storefront.value_object(part_of="Order")
class PaymentRecord:
    """Gateway-side view of the order's payment.

    ``verified_payment_id`` is written once, when the captured payment is
    reconciled; afterwards verification is a no-op.
    """

    method = String(max_length=30, default="razorpay")
    intent_id = String(max_length=100)
    status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    verified_payment_id = String(max_length=100)
    verified_amount = Integer(min_value=0)
    captured_at = DateTime()


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@storefront.entity(part_of="Order")
class OrderItem:
    product_id = Identifier(required=True)
    name = String(max_length=255)
    sku = String(max_length=50)
    category = String(max_length=100)
    unit_price = Integer(required=True, min_value=0)
    quantity = Integer(required=True, min_value=1)
    subtotal = Integer(required=True, min_value=0)


@storefront.entity(part_of="Order")
class StatusEntry:
    status = String(required=True, choices=OrderStatus)
    at = DateTime(required=True)
    actor = String(max_length=100)
    note = String(max_length=1000)


@storefront.entity(part_of="Order")
class OrderNote:
    text = String(required=True, max_length=1000)
    actor = String(max_length=100)
    at = DateTime(required=True)
    internal = Boolean(default=False)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@storefront.aggregate
class Order:
    user_id = Identifier(required=True)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    items = HasMany(OrderItem)
    pricing = ValueObject(PriceBreakdown)
    tax_split = ValueObject(TaxSplit)
    coupon = ValueObject(CouponReference)
    shipping_address = ValueObject(Address)
    billing_address = ValueObject(Address)
    payment = ValueObject(PaymentRecord)
    history = HasMany(StatusEntry)
    notes = HasMany(OrderNote)
    gift_wrap = Boolean(default=False)
    tracking_number = String(max_length=100)
    carrier = String(max_length=100)
    shipment_reference = String(max_length=100)
    refund_reference = String(max_length=50)
    estimated_delivery = DateTime()
    inventory_released = Boolean(default=False)
    stock_returned = Boolean(default=False)
    sale_finalized = Boolean(default=False)
    sale_counted = Boolean(default=False)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def place(
        cls,
        order_id,
        user_id,
        lines,
        pricing,
        shipping_address,
        billing_address=None,
        coupon=None,
        gift_wrap=False,
        payment_method="razorpay",
        shipment_reference=None,
        estimated_delivery=None,
        tax_split=None,
        actor="system",
    ):
        """Build a new pending order from priced lines."""
        now = datetime.now(UTC)
        order = cls(
            id=order_id,
            user_id=user_id,
            status=OrderStatus.PENDING.value,
            pricing=pricing,
            tax_split=tax_split,
            coupon=coupon,
            shipping_address=shipping_address,
            billing_address=billing_address or shipping_address,
            payment=PaymentRecord(method=payment_method),
            gift_wrap=gift_wrap,
            shipment_reference=shipment_reference,
            estimated_delivery=estimated_delivery,
            created_at=now,
            updated_at=now,
        )
        for line in lines:
            order.add_items(
                OrderItem(
                    id=str(uuid4()),
                    product_id=line.product_id,
                    name=line.name,
                    sku=line.sku,
                    category=line.category,
                    unit_price=line.unit_price,
                    quantity=line.quantity,
                    subtotal=line.unit_price * line.quantity,
                )
            )
        order.add_history(
            StatusEntry(id=str(uuid4()), status=OrderStatus.PENDING.value, at=now, actor=actor, note="Order placed")
        )
        return order

    # -------------------------------------------------------------------
    # State transition helpers
    # -------------------------------------------------------------------
    def can_transition_to(self, target: OrderStatus) -> bool:
        return target in VALID_TRANSITIONS.get(OrderStatus(self.status), set())

    def assert_can_transition(self, target: OrderStatus) -> None:
        """Raise IllegalTransitionError unless ``target`` is allowed next."""
        if not self.can_transition_to(target):
            raise IllegalTransitionError(self.status, target.value)

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def is_owned_by(self, user_id) -> bool:
        return str(self.user_id) == str(user_id)

    @property
    def payment_verified(self) -> bool:
        return bool(self.payment and self.payment.verified_payment_id)

    @property
    def stock_lines(self) -> tuple:
        return tuple(StockLine(product_id=str(item.product_id), quantity=item.quantity) for item in self.items)
