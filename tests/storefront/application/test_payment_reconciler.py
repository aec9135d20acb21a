"""Payment callbacks reconciled through the orchestrator."""

import pytest
from storefront.order.documents import load_order
from storefront.order.events import OrderStatusChanged, PaymentVerified
from storefront.payment.reconciler import sign_payment, signature_matches

SECRET = "test-secret"


@pytest.fixture
def order(catalogue, place):
    outcome = place([("p1", 2)])
    assert outcome.success, outcome.error
    return outcome.order


def _failed_logs(store):
    return store.query("payment_logs", [("status", "==", "failed")])


class TestSignature:
    def test_signature_is_hex_hmac_of_order_and_payment(self):
        signature = sign_payment(SECRET, "order_1", "pay_1")
        assert len(signature) == 64
        assert signature_matches(SECRET, "order_1", "pay_1", signature)

    def test_signature_is_bound_to_both_ids(self):
        signature = sign_payment(SECRET, "order_1", "pay_1")
        assert not signature_matches(SECRET, "order_1", "pay_2", signature)
        assert not signature_matches("other-secret", "order_1", "pay_1", signature)
        assert not signature_matches(SECRET, "order_1", "pay_1", None)


class TestVerifiedPayment:
    def test_confirms_order_and_finalizes_sale(self, store, order, pay):
        outcome = pay(order)

        assert outcome.success, outcome.error
        assert outcome.duplicate is False
        assert outcome.order.status == "confirmed"
        assert outcome.order.payment.verified_amount == 118000
        assert outcome.order.payment.status == "captured"

        product = store.get("products", "p1")
        assert (product["available"], product["reserved"], product["units_sold"]) == (8, 0, 2)

    def test_emits_payment_verified_then_status_changed(self, order, pay):
        outcome = pay(order)

        payment_event, status_event = outcome.events
        assert isinstance(payment_event, PaymentVerified)
        assert payment_event.amount == 118000
        assert isinstance(status_event, OrderStatusChanged)
        assert (status_event.previous_status, status_event.new_status) == ("pending", "confirmed")
        assert status_event.actor == "system:system"

    def test_records_verified_attempt(self, store, order, pay):
        pay(order)
        [entry] = store.query("payment_logs", [("order_id", "==", str(order.id))])
        assert entry["status"] == "verified"
        assert entry["amount"] == 118000


class TestRepeatedCallback:
    def test_second_callback_is_a_no_op(self, store, orchestrator, gateway, catalogue, place, define_coupon):
        define_coupon("SAVE200", "fixed", 20000)
        placed = place([("p1", 2)], coupon_code="SAVE200").order
        intent_id = placed.payment.intent_id
        payment_id = gateway.capture(intent_id)
        signature = sign_payment(SECRET, intent_id, payment_id)

        first = orchestrator.confirm_payment(str(placed.id), intent_id, payment_id, signature)
        second = orchestrator.confirm_payment(str(placed.id), intent_id, payment_id, signature)

        assert first.success and second.success
        assert second.duplicate is True
        assert second.events == ()
        assert second.order.status == "confirmed"
        assert store.get("coupons", "SAVE200")["usage_count"] == 1
        assert store.get("products", "p1")["units_sold"] == 2
        assert len(load_order(store, str(placed.id)).history) == 2

    def test_different_payment_for_paid_order_is_refused(self, orchestrator, gateway, order, pay):
        pay(order)
        intent_id = order.payment.intent_id
        second_payment = gateway.capture(intent_id)

        outcome = orchestrator.confirm_payment(
            str(order.id), intent_id, second_payment, sign_payment(SECRET, intent_id, second_payment)
        )

        assert not outcome.success
        assert outcome.error.code == "validation_error"


class TestRejectedPayment:
    def test_bad_signature(self, store, order, pay):
        outcome = pay(order, signature="0" * 64)

        assert outcome.error.code == "signature_invalid"
        assert load_order(store, str(order.id)).status == "pending"
        [entry] = _failed_logs(store)
        assert entry["error_code"] == "signature_invalid"

    def test_amount_short_by_one_paisa(self, store, order, pay):
        outcome = pay(order, amount=117999)

        assert outcome.error.code == "amount_mismatch"
        assert load_order(store, str(order.id)).status == "pending"
        assert store.get("products", "p1")["reserved"] == 2

    def test_payment_not_captured(self, store, orchestrator, gateway, order):
        intent_id = order.payment.intent_id
        payment_id = gateway.capture(intent_id, status="authorized")

        outcome = orchestrator.confirm_payment(
            str(order.id), intent_id, payment_id, sign_payment(SECRET, intent_id, payment_id)
        )

        assert outcome.error.code == "payment_not_captured"
        assert load_order(store, str(order.id)).status == "pending"

    def test_payment_for_another_order(self, store, orchestrator, gateway, order, place):
        other = place([("p2", 1)]).order
        intent_id = other.payment.intent_id
        payment_id = gateway.capture(intent_id)

        outcome = orchestrator.confirm_payment(
            str(order.id), intent_id, payment_id, sign_payment(SECRET, intent_id, payment_id)
        )

        assert outcome.error.code == "validation_error"
        assert load_order(store, str(order.id)).status == "pending"
        assert len(_failed_logs(store)) == 1

    def test_payment_for_cancelled_order(self, store, orchestrator, order, pay, customer):
        assert orchestrator.cancel_order(str(order.id), customer).success

        outcome = pay(order)

        assert outcome.error.code == "illegal_transition"
        assert load_order(store, str(order.id)).status == "cancelled"
        assert store.get("products", "p1")["available"] == 10

    def test_gateway_timeout_is_retryable(self, store, orchestrator, gateway, order, settings):
        intent_id = order.payment.intent_id
        payment_id = gateway.capture(intent_id)
        gateway.configure(failure="timeout")

        outcome = orchestrator.confirm_payment(
            str(order.id), intent_id, payment_id, sign_payment(settings.payment_signing_secret, intent_id, payment_id)
        )

        assert outcome.error.code == "upstream_unavailable"
        assert outcome.error.retryable is True
        assert load_order(store, str(order.id)).status == "pending"


def _counters(store):
    product = store.get("products", "p1")
    return product["available"], product["reserved"], product["units_sold"]


class TestInterruptedCallback:
    @pytest.fixture
    def callback(self, orchestrator, gateway):
        """Capture once and return a callable that delivers the same callback."""

        def _callback(order):
            intent_id = order.payment.intent_id
            payment_id = gateway.capture(intent_id)
            signature = sign_payment(SECRET, intent_id, payment_id)
            return lambda: orchestrator.confirm_payment(str(order.id), intent_id, payment_id, signature)

        return _callback

    def test_coupon_write_failure_is_finished_on_retry(
        self, store, catalogue, place, define_coupon, fail_writes, callback
    ):
        define_coupon("SAVE200", "fixed", 20000)
        placed = place([("p1", 2)], coupon_code="SAVE200").order
        deliver = callback(placed)
        fail_writes("coupons")

        first = deliver()

        assert first.error.code == "temporarily_unavailable"
        assert load_order(store, str(placed.id)).status == "confirmed"
        # The sale is counted before the coupon is touched
        assert _counters(store) == (8, 0, 2)

        second = deliver()

        assert second.success
        assert second.duplicate is False
        assert [type(event) for event in second.events] == [PaymentVerified]
        assert store.get("coupons", "SAVE200")["usage_count"] == 1
        assert _counters(store) == (8, 0, 2)

    def test_sale_count_failure_is_finished_on_retry(self, store, order, fail_writes, callback):
        deliver = callback(order)
        fail_writes("products", when=lambda doc_id, changes: "units_sold" in changes)

        first = deliver()

        assert first.error.code == "temporarily_unavailable"
        stored = load_order(store, str(order.id))
        assert stored.status == "confirmed"
        assert stored.sale_finalized is True
        assert stored.sale_counted is False
        assert _counters(store) == (8, 2, 0)

        second = deliver()

        assert second.success
        assert second.order.sale_counted is True
        assert _counters(store) == (8, 0, 2)
        assert len(store.query("payment_logs", [("status", "==", "verified")])) == 1

        third = deliver()

        assert third.duplicate is True
        assert third.events == ()
        assert _counters(store) == (8, 0, 2)

    def test_cancel_finishes_an_uncounted_sale_first(
        self, store, orchestrator, order, fail_writes, callback, staff
    ):
        deliver = callback(order)
        fail_writes("products", when=lambda doc_id, changes: "units_sold" in changes, times=2)
        assert deliver().error.code == "temporarily_unavailable"

        # The cancel tries to finish counting the sale first, and that fails once more
        outcome = orchestrator.cancel_order(str(order.id), staff, reason="Customer called")

        assert outcome.error.code == "temporarily_unavailable"
        outcome = orchestrator.cancel_order(str(order.id), staff, reason="Customer called")

        assert outcome.success
        assert _counters(store) == (10, 0, 0)
