"""Order cancellation: command and handler."""

from protean import handle
from protean.fields import Identifier, String

from storefront.domain import storefront
from storefront.notification import dispatch_events
from storefront.order.orchestrator import build_orchestrator
from storefront.order.order import Order
from storefront.shared.actor import Actor


@storefront.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    actor_role = String(max_length=20, default="customer")
    reason = String(max_length=500)


@storefront.command_handler(part_of=Order)
class CancelOrderHandler:
    @handle(CancelOrder)
    def cancel_order(self, command):
        orchestrator = build_orchestrator()
        outcome = orchestrator.cancel_order(
            str(command.order_id),
            Actor(user_id=str(command.actor_id), role=command.actor_role or "customer"),
            command.reason,
        )
        dispatch_events(outcome.events, orchestrator.store)
        return outcome
