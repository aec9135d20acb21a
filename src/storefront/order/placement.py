"""Order placement: command and handler."""

import json

from protean import handle
from protean.fields import Boolean, Identifier, String, Text

from storefront.domain import storefront
from storefront.notification import dispatch_events
from storefront.order.orchestrator import CartLine, OrderRequest, build_orchestrator
from storefront.order.order import Order


def _decode(value):
    return json.loads(value) if isinstance(value, str) else value


@storefront.command(part_of="Order")
class PlaceOrder:
    user_id = Identifier(required=True)
    items = Text(required=True)  # JSON: list of {product_id, quantity}
    shipping_address = Text(required=True)  # JSON: address dict
    billing_address = Text()  # JSON: address dict, defaults to shipping
    coupon_code = String(max_length=50)
    gift_wrap = Boolean(default=False)
    payment_method = String(max_length=30, default="razorpay")


@storefront.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        lines = tuple(
            CartLine(product_id=str(item["product_id"]), quantity=int(item["quantity"]))
            for item in _decode(command.items)
        )
        orchestrator = build_orchestrator()
        outcome = orchestrator.create_order(
            OrderRequest(
                user_id=str(command.user_id),
                lines=lines,
                shipping_address=_decode(command.shipping_address),
                billing_address=_decode(command.billing_address) if command.billing_address else None,
                coupon_code=command.coupon_code,
                gift_wrap=bool(command.gift_wrap),
                payment_method=command.payment_method or "razorpay",
            )
        )
        dispatch_events(outcome.events, orchestrator.store)
        return outcome
