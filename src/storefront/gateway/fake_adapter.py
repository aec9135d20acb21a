"""Configurable fake payment gateway for development and testing.

Holds intents and payments in memory. ``capture`` plays the customer's
part: it records a captured payment against an intent and returns its id.
"""

from datetime import UTC, datetime
from uuid import uuid4

from storefront.errors import GatewayRejectedError, UpstreamUnavailableError
from storefront.gateway.port import GatewayPayment, PaymentGateway, PaymentIntent


class FakePaymentGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    def __init__(self) -> None:
        self.failure: str | None = None
        self.failure_reason: str = "Gateway declined the request"
        self.intents: dict[str, PaymentIntent] = {}
        self.payments: dict[str, GatewayPayment] = {}
        self.calls: list[dict] = []

    def configure(self, failure: str | None = None, failure_reason: str = "Gateway declined the request") -> None:
        """Make subsequent calls fail. ``failure`` is ``timeout``, ``rejected`` or None."""
        self.failure = failure
        self.failure_reason = failure_reason

    def _maybe_fail(self) -> None:
        if self.failure == "timeout":
            raise UpstreamUnavailableError("Payment gateway timed out", service="payment_gateway")
        if self.failure == "rejected":
            raise GatewayRejectedError(self.failure_reason, service="payment_gateway")

    def create_intent(self, amount, currency, reference, notes=None):
        self.calls.append(
            {"method": "create_intent", "amount": amount, "currency": currency, "reference": reference}
        )
        self._maybe_fail()
        intent = PaymentIntent(
            intent_id=f"order_fake_{uuid4().hex[:14]}",
            amount=amount,
            currency=currency,
            reference=reference,
        )
        self.intents[intent.intent_id] = intent
        return intent

    def fetch_payment(self, payment_id):
        self.calls.append({"method": "fetch_payment", "payment_id": payment_id})
        self._maybe_fail()
        payment = self.payments.get(payment_id)
        if payment is None:
            raise GatewayRejectedError(f"Payment {payment_id} is unknown to the gateway", service="payment_gateway")
        return payment

    def capture(self, intent_id: str, amount: int | None = None, status: str = "captured", method: str = "upi") -> str:
        """Record a payment against ``intent_id`` and return the payment id."""
        intent = self.intents[intent_id]
        payment = GatewayPayment(
            payment_id=f"pay_fake_{uuid4().hex[:14]}",
            intent_id=intent_id,
            status=status,
            amount=intent.amount if amount is None else amount,
            currency=intent.currency,
            method=method,
            captured_at=datetime.now(UTC) if status == "captured" else None,
        )
        self.payments[payment.payment_id] = payment
        return payment.payment_id
