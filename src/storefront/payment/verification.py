"""Payment verification: command and handler.

Sent when the customer's browser (or the gateway webhook) reports a
completed payment. Safe to send more than once.
"""

from protean import handle
from protean.fields import Identifier, String

from storefront.domain import storefront
from storefront.notification import dispatch_events
from storefront.order.orchestrator import build_orchestrator
from storefront.order.order import Order


@storefront.command(part_of="Order")
class VerifyPayment:
    order_id = Identifier(required=True)
    gateway_order_id = String(required=True, max_length=100)
    gateway_payment_id = String(required=True, max_length=100)
    signature = String(required=True, max_length=256)


@storefront.command_handler(part_of=Order)
class VerifyPaymentHandler:
    @handle(VerifyPayment)
    def verify_payment(self, command):
        orchestrator = build_orchestrator()
        outcome = orchestrator.confirm_payment(
            str(command.order_id),
            command.gateway_order_id,
            command.gateway_payment_id,
            command.signature,
        )
        dispatch_events(outcome.events, orchestrator.store)
        return outcome
