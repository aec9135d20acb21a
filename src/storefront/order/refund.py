"""Order refunds: command and handler."""

from protean import handle
from protean.fields import Identifier, Integer, String

from storefront.domain import storefront
from storefront.notification import dispatch_events
from storefront.order.orchestrator import build_orchestrator
from storefront.order.order import Order
from storefront.shared.actor import Actor


@storefront.command(part_of="Order")
class RefundOrder:
    order_id = Identifier(required=True)
    amount = Integer(required=True)  # minor units
    reason = String(required=True, max_length=500)
    actor_id = Identifier(required=True)
    actor_role = String(max_length=20, default="customer")


@storefront.command_handler(part_of=Order)
class RefundOrderHandler:
    @handle(RefundOrder)
    def refund_order(self, command):
        orchestrator = build_orchestrator()
        outcome = orchestrator.refund_order(
            str(command.order_id),
            command.amount,
            command.reason,
            Actor(user_id=str(command.actor_id), role=command.actor_role or "customer"),
        )
        dispatch_events(outcome.events, orchestrator.store)
        return outcome
