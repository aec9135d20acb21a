"""Payment reconciliation.

Confirms an order once its payment callback checks out:

1. the callback signature matches ``HMAC-SHA256(order|payment)``;
2. the gateway itself reports the payment as captured;
3. the captured amount equals the order's grand total to the last paisa.

Only then is the payment recorded and the order confirmed. Recording the
payment, moving to ``confirmed`` and claiming the sale bookkeeping happen
in one guarded update, so a repeated callback finds the payment already
recorded and returns without touching counters again. The sale is counted
and the coupon redeemed after that update; a callback that failed part way
through is finished by the next one for the same payment.
"""

import hashlib
import hmac
from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import uuid4

import structlog
from protean.exceptions import ValidationError

from storefront.coupon.usage import CouponUsage
from storefront.errors import (
    AmountMismatchError,
    IllegalTransitionError,
    PaymentNotCapturedError,
    SignatureInvalidError,
)
from storefront.inventory.ledger import InventoryLedger
from storefront.order.documents import load_order
from storefront.order.events import PaymentVerified
from storefront.order.order import Order, OrderStatus
from storefront.order.state_machine import OrderStateMachine
from storefront.shared.actor import SYSTEM
from storefront.store.port import StoreError

logger = structlog.get_logger(__name__)

PAYMENT_LOGS = "payment_logs"


def sign_payment(secret: str, gateway_order_id: str, gateway_payment_id: str) -> str:
    """Hex HMAC-SHA256 over ``gateway_order_id|gateway_payment_id``."""
    message = f"{gateway_order_id}|{gateway_payment_id}".encode()
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


def signature_matches(secret: str, gateway_order_id: str, gateway_payment_id: str, signature: str) -> bool:
    expected = sign_payment(secret, gateway_order_id, gateway_payment_id)
    return hmac.compare_digest(expected, signature or "")


@dataclass(frozen=True)
class Verification:
    order: Order
    events: list = field(default_factory=list)
    already_verified: bool = False


class PaymentReconciler:
    def __init__(self, store, gateway, secret: str, state_machine=None, ledger=None, coupons=None):
        self.store = store
        self.gateway = gateway
        self.secret = secret
        self.ledger = ledger or InventoryLedger(store)
        self.state_machine = state_machine or OrderStateMachine(store, self.ledger)
        self.coupons = coupons or CouponUsage(store)

    def verify(self, order_id: str, gateway_order_id: str, gateway_payment_id: str, signature: str) -> Verification:
        attempt = {
            "order_id": order_id,
            "gateway_order_id": gateway_order_id,
            "gateway_payment_id": gateway_payment_id,
        }
        try:
            order, payment = self._check(order_id, gateway_order_id, gateway_payment_id, signature)
        except (SignatureInvalidError, PaymentNotCapturedError, AmountMismatchError, ValidationError) as exc:
            code = getattr(exc, "code", "validation_error")
            logger.warning("payment_verification_rejected", fraud_review=True, error_code=code, **attempt)
            self._log_attempt(attempt, "failed", error_code=code)
            raise

        if order.payment_verified:
            return self._already_verified(order, gateway_payment_id, attempt)

        now = datetime.now(UTC)
        changes = {
            "payment.verified_payment_id": payment.payment_id,
            "payment.verified_amount": payment.amount,
            "payment.status": "captured",
            "payment.captured_at": (payment.captured_at or now).isoformat(),
            "sale_finalized": True,
        }
        if payment.method:
            changes["payment.method"] = payment.method
        try:
            result = self.state_machine.transition(
                order,
                OrderStatus.CONFIRMED,
                SYSTEM,
                note="Payment verified and captured",
                changes=changes,
                expect={"payment.verified_payment_id": None},
            )
        except IllegalTransitionError:
            # A concurrent callback may have confirmed the order first
            fresh = load_order(self.store, order_id)
            if fresh.payment_verified:
                return self._already_verified(fresh, gateway_payment_id, attempt)
            logger.error(
                "captured_payment_for_unpayable_order",
                status=fresh.status,
                amount=payment.amount,
                **attempt,
            )
            raise

        confirmed = self._complete(result.order)
        self._log_attempt(attempt, "verified", amount=payment.amount)
        logger.info("payment_verified", order_id=order_id, payment_id=payment.payment_id, amount=payment.amount)
        return Verification(order=confirmed, events=[self._verified_event(confirmed, now), *result.events])

    def _complete(self, order: Order) -> Order:
        """Count the sale, then redeem the coupon. Both are safe to repeat."""
        order = self.state_machine.settle(order)
        if order.coupon:
            self.coupons.redeem(order.coupon.code, str(order.id))
        return order

    def _verified_event(self, order: Order, verified_at: datetime) -> PaymentVerified:
        return PaymentVerified(
            order_id=str(order.id),
            payment_id=order.payment.verified_payment_id,
            intent_id=order.payment.intent_id,
            amount=order.payment.verified_amount,
            method=order.payment.method,
            verified_at=verified_at,
        )

    def _check(self, order_id, gateway_order_id, gateway_payment_id, signature):
        if not signature_matches(self.secret, gateway_order_id, gateway_payment_id, signature):
            raise SignatureInvalidError("Payment signature does not match")

        payment = self.gateway.fetch_payment(gateway_payment_id)
        if not payment.captured:
            raise PaymentNotCapturedError(f"Payment is {payment.status}, not captured", status=payment.status)
        if payment.intent_id != gateway_order_id:
            raise ValidationError({"gateway_order_id": ["Payment was not made against this payment order"]})

        order = load_order(self.store, order_id)
        if not order.payment or order.payment.intent_id != gateway_order_id:
            raise ValidationError({"gateway_order_id": ["Payment order does not belong to this order"]})
        if payment.amount != order.pricing.grand_total or payment.currency != order.pricing.currency:
            raise AmountMismatchError(order.pricing.grand_total, payment.amount, order.pricing.currency)
        return order, payment

    def _already_verified(self, order: Order, gateway_payment_id: str, attempt: dict) -> Verification:
        if order.payment.verified_payment_id != gateway_payment_id:
            logger.warning(
                "second_payment_for_verified_order",
                fraud_review=True,
                order_id=str(order.id),
                recorded_payment_id=order.payment.verified_payment_id,
                gateway_payment_id=gateway_payment_id,
            )
            raise ValidationError({"gateway_payment_id": ["Order was already paid with a different payment"]})

        logged = self.store.query(
            PAYMENT_LOGS,
            [
                ("order_id", "==", str(order.id)),
                ("gateway_payment_id", "==", gateway_payment_id),
                ("status", "==", "verified"),
            ],
            limit=1,
        )
        if not logged:
            # An earlier callback confirmed the order but failed before finishing; complete it now
            logger.warning("payment_verification_resumed", order_id=str(order.id), payment_id=gateway_payment_id)
            order = self._complete(order)
            self._log_attempt(attempt, "verified", amount=order.payment.verified_amount)
            return Verification(order=order, events=[self._verified_event(order, datetime.now(UTC))])

        if order.coupon:
            self.coupons.redeem(order.coupon.code, str(order.id))
        logger.info("payment_already_verified", order_id=str(order.id), payment_id=gateway_payment_id)
        return Verification(order=order, events=[], already_verified=True)

    def _log_attempt(self, attempt: dict, status: str, error_code: str | None = None, amount: int | None = None):
        try:
            self.store.set(
                PAYMENT_LOGS,
                str(uuid4()),
                {
                    **attempt,
                    "status": status,
                    "error_code": error_code,
                    "amount": amount,
                    "at": datetime.now(UTC).isoformat(),
                },
            )
        except StoreError:
            logger.warning("payment_log_write_failed", status=status, **attempt)
