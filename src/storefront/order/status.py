"""Staff status updates, single and bulk: commands and handlers."""

import json

from protean import handle
from protean.fields import Identifier, String, Text

from storefront.domain import storefront
from storefront.notification import dispatch_events
from storefront.order.orchestrator import build_orchestrator
from storefront.order.order import Order
from storefront.shared.actor import Actor


@storefront.command(part_of="Order")
class UpdateOrderStatus:
    order_id = Identifier(required=True)
    status = String(required=True, max_length=20)
    actor_id = Identifier(required=True)
    actor_role = String(max_length=20, default="customer")
    note = String(max_length=1000)
    tracking_number = String(max_length=100)
    carrier = String(max_length=100)


@storefront.command(part_of="Order")
class BulkUpdateOrderStatus:
    order_ids = Text(required=True)  # JSON: list of order ids
    status = String(required=True, max_length=20)
    actor_id = Identifier(required=True)
    actor_role = String(max_length=20, default="customer")
    note = String(max_length=1000)


@storefront.command_handler(part_of=Order)
class OrderStatusHandler:
    @handle(UpdateOrderStatus)
    def update_status(self, command):
        orchestrator = build_orchestrator()
        outcome = orchestrator.update_status(
            str(command.order_id),
            command.status,
            Actor(user_id=str(command.actor_id), role=command.actor_role or "customer"),
            note=command.note,
            tracking_number=command.tracking_number,
            carrier=command.carrier,
        )
        dispatch_events(outcome.events, orchestrator.store)
        return outcome

    @handle(BulkUpdateOrderStatus)
    def bulk_update_status(self, command):
        order_ids = json.loads(command.order_ids) if isinstance(command.order_ids, str) else command.order_ids
        orchestrator = build_orchestrator()
        outcome = orchestrator.bulk_update_status(
            order_ids,
            command.status,
            Actor(user_id=str(command.actor_id), role=command.actor_role or "customer"),
            note=command.note,
        )
        dispatch_events(outcome.events, orchestrator.store)
        return outcome
