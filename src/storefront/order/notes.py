"""Order notes: command and handler."""

from protean import handle
from protean.fields import Boolean, Identifier, String

from storefront.domain import storefront
from storefront.order.orchestrator import build_orchestrator
from storefront.order.order import Order
from storefront.shared.actor import Actor


@storefront.command(part_of="Order")
class AddOrderNote:
    order_id = Identifier(required=True)
    text = String(required=True, max_length=1000)
    internal = Boolean(default=False)
    actor_id = Identifier(required=True)
    actor_role = String(max_length=20, default="customer")


@storefront.command_handler(part_of=Order)
class AddOrderNoteHandler:
    @handle(AddOrderNote)
    def add_note(self, command):
        return build_orchestrator().add_note(
            str(command.order_id),
            command.text,
            Actor(user_id=str(command.actor_id), role=command.actor_role or "customer"),
            internal=bool(command.internal),
        )
