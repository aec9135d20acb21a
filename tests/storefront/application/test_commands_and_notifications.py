"""Commands processed through the domain, and the notifications they send."""

import json

import pytest
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain
from storefront.notification import dispatch_events, set_notifier
from storefront.notification.adapters import LoggingNotifier
from storefront.notification.port import Notifier
from storefront.order.cancellation import CancelOrder
from storefront.order.notes import AddOrderNote
from storefront.order.placement import PlaceOrder
from storefront.order.refund import RefundOrder
from storefront.order.status import BulkUpdateOrderStatus, UpdateOrderStatus
from storefront.payment.reconciler import sign_payment
from storefront.payment.verification import VerifyPayment


@pytest.fixture
def wired(store, gateway, carrier, notifier, catalogue):
    """Adapters registered so handlers build the same orchestrator the tests inspect."""
    return store


def _place(address, user_id="cust-001", items=(("p1", 2),)):
    return current_domain.process(
        PlaceOrder(
            user_id=user_id,
            items=json.dumps([{"product_id": pid, "quantity": qty} for pid, qty in items]),
            shipping_address=json.dumps(address),
        ),
        asynchronous=False,
    )


def _verify(gateway, order, settings):
    intent_id = order.payment.intent_id
    payment_id = gateway.capture(intent_id)
    return current_domain.process(
        VerifyPayment(
            order_id=str(order.id),
            gateway_order_id=intent_id,
            gateway_payment_id=payment_id,
            signature=sign_payment(settings.payment_signing_secret, intent_id, payment_id),
        ),
        asynchronous=False,
    )


class TestPlaceOrderCommand:
    def test_places_order_and_notifies(self, wired, notifier, address):
        outcome = _place(address)

        assert outcome.success, outcome.error
        assert outcome.order.pricing.grand_total == 118000
        assert notifier.names() == ["OrderPlaced"]
        assert notifier.sent[0]["status"] == "pending"

    def test_failed_placement_sends_nothing(self, wired, notifier, address):
        outcome = _place(address, items=(("p2", 99),))
        assert outcome.error.code == "insufficient_stock"
        assert notifier.sent == []

    def test_user_is_required(self, wired, address):
        with pytest.raises(ValidationError):
            PlaceOrder(items="[]", shipping_address=json.dumps(address))


class TestLifecycleCommands:
    def test_payment_then_fulfilment(self, wired, notifier, gateway, settings, address):
        order = _place(address).order

        verified = _verify(gateway, order, settings)
        assert verified.order.status == "confirmed"

        for status in ("processing", "shipped", "delivered"):
            outcome = current_domain.process(
                UpdateOrderStatus(
                    order_id=str(order.id),
                    status=status,
                    actor_id="staff-001",
                    actor_role="staff",
                    tracking_number="AWB42" if status == "shipped" else None,
                ),
                asynchronous=False,
            )
            assert outcome.success, outcome.error

        refunded = current_domain.process(
            RefundOrder(
                order_id=str(order.id), amount=118000, reason="Returned", actor_id="staff-001", actor_role="staff"
            ),
            asynchronous=False,
        )

        assert refunded.order.status == "refunded"
        assert notifier.names() == [
            "OrderPlaced",
            "PaymentVerified",
            "OrderStatusChanged",
            "OrderStatusChanged",
            "OrderStatusChanged",
            "OrderStatusChanged",
            "OrderStatusChanged",
            "RefundRecorded",
        ]

    def test_repeated_payment_callback_notifies_once(self, wired, notifier, gateway, settings, address):
        order = _place(address).order
        intent_id = order.payment.intent_id
        payment_id = gateway.capture(intent_id)
        command = VerifyPayment(
            order_id=str(order.id),
            gateway_order_id=intent_id,
            gateway_payment_id=payment_id,
            signature=sign_payment(settings.payment_signing_secret, intent_id, payment_id),
        )

        current_domain.process(command, asynchronous=False)
        second = current_domain.process(command, asynchronous=False)

        assert second.duplicate is True
        assert notifier.names().count("PaymentVerified") == 1

    def test_cancel_command(self, wired, store, address):
        order = _place(address).order

        outcome = current_domain.process(
            CancelOrder(order_id=str(order.id), actor_id="cust-001", reason="Ordered twice"),
            asynchronous=False,
        )

        assert outcome.order.status == "cancelled"
        assert store.get("products", "p1")["available"] == 10

    def test_bulk_command(self, wired, address):
        first = _place(address).order
        second = _place(address, items=(("p2", 1),)).order

        outcome = current_domain.process(
            BulkUpdateOrderStatus(
                order_ids=json.dumps([str(first.id), str(second.id)]),
                status="confirmed",
                actor_id="staff-001",
                actor_role="staff",
            ),
            asynchronous=False,
        )

        assert outcome.count("updated") == 2

    def test_note_command(self, wired, address):
        order = _place(address).order

        outcome = current_domain.process(
            AddOrderNote(order_id=str(order.id), text="Leave at reception", actor_id="cust-001"),
            asynchronous=False,
        )

        assert [note.text for note in outcome.order.notes] == ["Leave at reception"]


class TestDispatch:
    def test_notifier_failure_does_not_affect_order(self, wired, notifier, address):
        notifier.configure(should_succeed=False)

        outcome = _place(address)

        assert outcome.success
        assert wired.get("orders", str(outcome.order.id))["status"] == "pending"

    def test_counts_delivered_events(self, wired, notifier, address):
        outcome = _place(address)
        notifier.sent.clear()

        assert dispatch_events(outcome.events, wired, notifier) == 1
        notifier.configure(should_succeed=False)
        assert dispatch_events(outcome.events, wired, notifier) == 0

    def test_logging_notifier_delivers_every_event(self, wired, address):
        set_notifier(LoggingNotifier())

        outcome = _place(address)

        assert outcome.success
        assert dispatch_events(outcome.events, wired) == 1

    def test_unexpected_notifier_error_is_swallowed(self, wired, address):
        class Broken(Notifier):
            def notify(self, event, order):
                raise RuntimeError("smtp down")

        outcome = _place(address)

        assert dispatch_events(outcome.events, wired, Broken()) == 0
