"""Order orchestration.

The orchestrator composes pricing, coupons, the inventory ledger, the
state machine and the payment reconciler into the operations the API
exposes. Business failures never escape as exceptions: every operation
returns an ``OrderOutcome`` (or ``BulkOutcome``) carrying either the
stored order and the events to publish, or a typed error.

No step relies on a multi-document transaction. Each operation is an
ordered series of single-document atomic writes, and a failure part way
through is compensated before the error is returned:

- stock reserved for an order that could not be stored is released;
- an order whose payment intent could not be opened, or recorded, is
  cancelled through the state machine, which releases its stock exactly
  once. If even that write fails the reservation is released directly.
"""

import json
import secrets
import string
import time
from dataclasses import dataclass
from datetime import UTC, datetime

import structlog
from protean.exceptions import InvalidOperationError, ValidationError
from structlog.contextvars import bound_contextvars

from storefront.carrier.port import ShipmentRequest
from storefront.config import Settings
from storefront.coupon.validator import CouponValidator
from storefront.errors import (
    CouponRejectedError,
    GatewayRejectedError,
    IllegalTransitionError,
    NotFoundError,
    StorefrontError,
    UnauthorizedError,
    UpstreamUnavailableError,
)
from storefront.inventory.ledger import PRODUCTS, InventoryLedger, StockLine, merge_lines
from storefront.order.delivery import estimate_delivery
from storefront.order.documents import ORDERS, from_document, load_order, note_entry, now_iso, to_document
from storefront.order.events import OrderPlaced, RefundRecorded
from storefront.order.order import Address, CouponReference, Order, OrderStatus, PaymentStatus
from storefront.order.outcomes import BulkItemResult, BulkOutcome, OrderError, OrderOutcome
from storefront.order.state_machine import OrderStateMachine
from storefront.payment.reconciler import PaymentReconciler
from storefront.pricing.calculator import PricedLine, compute_pricing, compute_subtotal, split_tax
from storefront.shared.actor import SYSTEM, Actor
from storefront.shared.money import to_major_units
from storefront.store.port import ArrayAppend, StoreError

logger = structlog.get_logger(__name__)

REFUNDS = "refunds"
MAX_NOTE_LENGTH = 1000
_ID_ALPHABET = string.ascii_uppercase + string.digits


@dataclass(frozen=True)
class CartLine:
    product_id: str
    quantity: int


@dataclass(frozen=True)
class OrderRequest:
    user_id: str
    lines: tuple
    shipping_address: dict
    billing_address: dict | None = None
    coupon_code: str | None = None
    gift_wrap: bool = False
    payment_method: str = "razorpay"


def generate_reference(prefix: str) -> str:
    """``PREFIX-<last 8 digits of epoch ms>-<6 uppercase alphanumerics>``."""
    stamp = str(int(time.time() * 1000))[-8:]
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(6))
    return f"{prefix}-{stamp}-{suffix}"


def parse_status(value) -> OrderStatus:
    try:
        return OrderStatus(value)
    except ValueError:
        raise ValidationError({"status": [f"Unknown order status: {value}"]}) from None


class OrderOrchestrator:
    def __init__(self, store, gateway, carrier, settings: Settings):
        self.store = store
        self.gateway = gateway
        self.carrier = carrier
        self.settings = settings
        self.ledger = InventoryLedger(store)
        self.state_machine = OrderStateMachine(store, self.ledger)
        self.coupon_validator = CouponValidator(store)
        self.reconciler = PaymentReconciler(
            store,
            gateway,
            settings.payment_signing_secret,
            state_machine=self.state_machine,
            ledger=self.ledger,
        )

    # -------------------------------------------------------------------
    # Error boundary
    # -------------------------------------------------------------------
    def _run(self, operation: str, order_id, work, failed=OrderOutcome.failed):
        with bound_contextvars(operation=operation, order_id=order_id):
            try:
                return work()
            except StorefrontError as exc:
                log = logger.warning if exc.retryable else logger.info
                log("operation_failed", error_code=exc.code, error=exc.message)
                return failed(OrderError.from_exception(exc))
            except ValidationError as exc:
                logger.info("operation_invalid", errors=exc.messages)
                return failed(OrderError.validation(exc.messages))
            except InvalidOperationError as exc:
                logger.info("operation_invalid", error=str(exc))
                return failed(OrderError(code="invalid_operation", message=str(exc)))
            except StoreError as exc:
                logger.error("store_failure", error=str(exc))
                return failed(OrderError.unavailable())

    # -------------------------------------------------------------------
    # Create
    # -------------------------------------------------------------------
    def create_order(self, request: OrderRequest) -> OrderOutcome:
        return self._run("create_order", None, lambda: self._create_order(request))

    def _create_order(self, request: OrderRequest) -> OrderOutcome:
        self._validate_request(request)
        shipping = Address(**request.shipping_address)
        billing = Address(**request.billing_address) if request.billing_address else shipping
        priced = self._price_lines(request.lines)

        discount = 0
        coupon = None
        if request.coupon_code:
            verdict = self.coupon_validator.validate(
                request.coupon_code, request.user_id, compute_subtotal(priced), priced
            )
            if not verdict.valid:
                raise CouponRejectedError(verdict.reason, verdict.message)
            discount = verdict.discount_amount
            coupon = CouponReference(code=verdict.coupon.code, discount_amount=discount)

        order_id = self._allocate_order_id()
        with bound_contextvars(order_id=order_id):
            reservation = self.ledger.reserve(StockLine(line.product_id, line.quantity) for line in priced)
            try:
                order = self._build_order(order_id, request, priced, discount, coupon, shipping, billing)
                self.store.set(ORDERS, order_id, to_document(order))
            except Exception:
                self.ledger.cancel_reservation(reservation.lines)
                raise

            try:
                intent = self.gateway.create_intent(
                    order.pricing.grand_total,
                    order.pricing.currency,
                    order_id,
                    notes={"user_id": request.user_id},
                )
            except (UpstreamUnavailableError, GatewayRejectedError):
                logger.warning("payment_intent_failed")
                self._abandon(order, "Payment could not be initiated")
                raise

            try:
                document = self.store.update(
                    ORDERS,
                    order_id,
                    {"payment.intent_id": intent.intent_id, "payment.status": PaymentStatus.CREATED.value},
                )
            except StoreError:
                logger.error("payment_intent_not_recorded", intent_id=intent.intent_id)
                self._abandon(order, "Payment intent could not be recorded")
                raise
            order = from_document(document)
            logger.info("order_created", user_id=request.user_id, grand_total=order.pricing.grand_total)
            event = OrderPlaced(
                order_id=order_id,
                user_id=request.user_id,
                items=json.dumps(
                    [
                        {"product_id": line.product_id, "quantity": line.quantity, "unit_price": line.unit_price}
                        for line in priced
                    ]
                ),
                grand_total=order.pricing.grand_total,
                currency=order.pricing.currency,
                coupon_code=coupon.code if coupon else None,
                payment_intent_id=intent.intent_id,
                placed_at=order.created_at,
            )
            return OrderOutcome.ok(order, [event], payment_intent=intent)

    def _abandon(self, order: Order, note: str) -> None:
        """Cancel an order that can no longer be paid for, giving its stock back."""
        try:
            self.state_machine.transition(order, OrderStatus.CANCELLED, SYSTEM, note=note)
        except IllegalTransitionError:
            # Moved on concurrently (e.g. cancelled by its owner), which released the stock
            logger.warning("order_abandon_skipped", order_id=str(order.id))
        except (StoreError, NotFoundError):
            logger.error("order_abandon_failed", order_id=str(order.id))
            self.ledger.cancel_reservation(order.stock_lines)

    def _validate_request(self, request: OrderRequest) -> None:
        errors = {}
        if not request.user_id:
            errors["user_id"] = ["User is required"]
        if not request.lines:
            errors["items"] = ["Cart is empty"]
        elif any(not line.product_id or line.quantity < 1 for line in request.lines):
            errors["items"] = ["Every item needs a product and a quantity of at least 1"]
        if not request.shipping_address:
            errors["shipping_address"] = ["Shipping address is required"]
        if errors:
            raise ValidationError(errors)

    def _price_lines(self, lines) -> list[PricedLine]:
        priced = []
        for line in merge_lines(lines):
            product = self.store.get(PRODUCTS, line.product_id)
            if product is None:
                raise NotFoundError("product", line.product_id)
            if not product.get("is_active", True):
                raise ValidationError({"items": [f"Product {line.product_id} is not available"]})
            priced.append(
                PricedLine(
                    product_id=line.product_id,
                    unit_price=product["price"],
                    quantity=line.quantity,
                    name=product.get("name", ""),
                    sku=product.get("sku", ""),
                    category=product.get("category", ""),
                )
            )
        return priced

    def _build_order(self, order_id, request, priced, discount, coupon, shipping, billing) -> Order:
        settings = self.settings
        quote = self.carrier.create_shipment(
            ShipmentRequest(
                order_id=order_id,
                lines=tuple(priced),
                shipping_address=request.shipping_address,
                billing_address=request.billing_address or request.shipping_address,
                subtotal=compute_subtotal(priced),
                discount=discount,
                gift_wrap_charge=settings.gift_wrap_charge if request.gift_wrap else 0,
                payment_method=request.payment_method,
            )
        )
        pricing = compute_pricing(
            priced,
            discount=discount,
            gift_wrap=request.gift_wrap,
            shipping_charge=quote.shipping_charge,
            tax_rate=settings.tax_rate,
            gift_wrap_charge=settings.gift_wrap_charge,
            currency=settings.currency,
        )
        estimate = estimate_delivery(shipping.postal_code, datetime.now(UTC))
        return Order.place(
            order_id,
            request.user_id,
            priced,
            pricing,
            shipping,
            billing_address=billing,
            coupon=coupon,
            gift_wrap=request.gift_wrap,
            payment_method=request.payment_method,
            shipment_reference=quote.shipment_id,
            estimated_delivery=estimate.estimated_date,
            tax_split=split_tax(pricing.tax, shipping.state, settings.seller_state),
            actor=f"customer:{request.user_id}",
        )

    def _allocate_order_id(self, attempts: int = 5) -> str:
        for _ in range(attempts):
            order_id = generate_reference("ORD")
            if self.store.get(ORDERS, order_id) is None:
                return order_id
        raise StoreError("Could not allocate a unique order id")

    # -------------------------------------------------------------------
    # Payment
    # -------------------------------------------------------------------
    def confirm_payment(self, order_id, gateway_order_id, gateway_payment_id, signature) -> OrderOutcome:
        def work():
            verification = self.reconciler.verify(order_id, gateway_order_id, gateway_payment_id, signature)
            return OrderOutcome.ok(
                verification.order, verification.events, duplicate=verification.already_verified
            )

        return self._run("confirm_payment", order_id, work)

    # -------------------------------------------------------------------
    # Cancel
    # -------------------------------------------------------------------
    def cancel_order(self, order_id, actor: Actor, reason: str | None = None) -> OrderOutcome:
        return self._run("cancel_order", order_id, lambda: self._cancel(order_id, actor, reason))

    def _cancel(self, order_id, actor: Actor, reason) -> OrderOutcome:
        order = self._load(order_id)
        self._authorize_owner_or_staff(order, actor)
        order.assert_can_transition(OrderStatus.CANCELLED)
        if not actor.is_staff and order.status != OrderStatus.PENDING.value:
            raise UnauthorizedError("Only staff can cancel an order once its payment is confirmed")

        reason = (reason or "").strip() or "No reason given"
        # Paid orders owe the customer whatever has not been refunded yet
        owed = order.pricing.grand_total - self._refunded(order_id) if order.payment_verified else 0
        refund_id = generate_reference("REF") if owed > 0 else None
        result = self.state_machine.transition(
            order,
            OrderStatus.CANCELLED,
            actor,
            note=f"Cancelled: {reason}",
            changes={"refund_reference": refund_id} if refund_id else None,
        )
        events = list(result.events)
        if refund_id:
            events.append(self._record_refund(result.order, refund_id, owed, f"Order cancelled: {reason}", actor))
        return OrderOutcome.ok(result.order, events, refund_id=refund_id)

    # -------------------------------------------------------------------
    # Refund
    # -------------------------------------------------------------------
    def refund_order(self, order_id, amount: int, reason: str, actor: Actor) -> OrderOutcome:
        return self._run("refund_order", order_id, lambda: self._refund(order_id, amount, reason, actor))

    def _refund(self, order_id, amount, reason, actor: Actor) -> OrderOutcome:
        """Record a refund of ``amount``.

        A refund of the whole grand total, or the one that brings a delivered
        order's refunds up to its grand total, moves the order to
        ``refunded`` and returns its stock. Any other refund is financial
        only: status and stock stay as they are.
        """
        if not actor.is_staff:
            raise UnauthorizedError("Only staff can refund orders")
        errors = {}
        if amount is None or amount <= 0:
            errors["amount"] = ["Refund amount must be greater than 0"]
        if not (reason or "").strip():
            errors["reason"] = ["Refund reason is required"]
        if errors:
            raise ValidationError(errors)

        order = self._load(order_id)
        if not order.payment_verified:
            raise ValidationError({"order": ["Order has no captured payment to refund"]})
        grand_total = order.pricing.grand_total
        refunded = self._refunded(order_id)
        if amount > grand_total or refunded + amount > grand_total:
            raise ValidationError(
                {"amount": [f"Refunds would total {refunded + amount}, more than the order total {grand_total}"]}
            )

        refund_id = generate_reference("REF")
        settles_order = refunded + amount == grand_total and order.status == OrderStatus.DELIVERED.value
        if amount == grand_total or settles_order:
            result = self.state_machine.transition(
                order,
                OrderStatus.REFUNDED,
                actor,
                note=f"{'Full' if amount == grand_total else 'Final'} refund {refund_id}: {reason}",
                changes={"refund_reference": refund_id},
            )
            event = self._record_refund(result.order, refund_id, amount, reason, actor)
            return OrderOutcome.ok(result.order, [*result.events, event], refund_id=refund_id)

        # Partial refunds are financial only: status and stock stay as they are
        event = self._record_refund(order, refund_id, amount, reason, actor)
        note = note_entry(
            f"Partial refund {refund_id} of {to_major_units(amount)} {order.pricing.currency}: {reason}",
            actor.label(),
            internal=True,
        )
        document = self.store.update(
            ORDERS,
            order_id,
            {"notes": ArrayAppend(note), "refund_reference": refund_id, "updated_at": now_iso()},
        )
        return OrderOutcome.ok(from_document(document), [event], refund_id=refund_id)

    def _load(self, order_id) -> Order:
        """Load an order for a change, first finishing any stock work left claimed."""
        return self.state_machine.settle(load_order(self.store, order_id))

    def _refunded(self, order_id) -> int:
        return sum(doc["amount"] for doc in self.store.query(REFUNDS, [("order_id", "==", order_id)]))

    def _record_refund(self, order: Order, refund_id: str, amount: int, reason: str, actor: Actor):
        refund_type = "full" if amount == order.pricing.grand_total else "partial"
        now = datetime.now(UTC)
        self.store.set(
            REFUNDS,
            refund_id,
            {
                "id": refund_id,
                "order_id": str(order.id),
                "user_id": str(order.user_id),
                "amount": amount,
                "refund_type": refund_type,
                "reason": reason,
                "status": "pending",
                "payment_id": order.payment.verified_payment_id if order.payment else None,
                "processed_by": actor.label(),
                "created_at": now.isoformat(),
            },
        )
        logger.info("refund_recorded", refund_id=refund_id, amount=amount, refund_type=refund_type)
        return RefundRecorded(
            order_id=str(order.id),
            refund_id=refund_id,
            amount=amount,
            refund_type=refund_type,
            reason=reason,
            recorded_at=now,
        )

    # -------------------------------------------------------------------
    # Staff status updates
    # -------------------------------------------------------------------
    def update_status(
        self, order_id, target, actor: Actor, note=None, tracking_number=None, carrier=None
    ) -> OrderOutcome:
        def work():
            if not actor.is_staff:
                raise UnauthorizedError("Only staff can update order status")
            return self._update_status(order_id, parse_status(target), actor, note, tracking_number, carrier)

        return self._run("update_status", order_id, work)

    def _update_status(self, order_id, target: OrderStatus, actor, note, tracking_number, carrier) -> OrderOutcome:
        if target == OrderStatus.CANCELLED:
            return self._cancel(order_id, actor, note)
        if target == OrderStatus.REFUNDED:
            raise ValidationError({"status": ["Refunds go through the refund operation"]})

        order = self._load(order_id)
        # A manual confirmation completes the sale the way a verified payment would
        finalize = target == OrderStatus.CONFIRMED and not order.sale_finalized
        result = self.state_machine.transition(
            order,
            target,
            actor,
            note=note,
            changes={"sale_finalized": True} if finalize else None,
            tracking_number=tracking_number,
            carrier=carrier,
        )
        return OrderOutcome.ok(self.state_machine.settle(result.order), result.events)

    def bulk_update_status(self, order_ids, target, actor: Actor, note=None) -> BulkOutcome:
        def work():
            if not actor.is_staff:
                raise UnauthorizedError("Only staff can update order status")
            ids = list(dict.fromkeys(str(order_id) for order_id in order_ids or [] if order_id))
            if not ids:
                raise ValidationError({"order_ids": ["At least one order id is required"]})
            if len(ids) > self.settings.bulk_status_limit:
                raise ValidationError(
                    {"order_ids": [f"At most {self.settings.bulk_status_limit} orders can be updated at once"]}
                )
            status = parse_status(target)
            if status == OrderStatus.REFUNDED:
                raise ValidationError({"status": ["Refunds go through the refund operation"]})

            results, events = [], []
            for order_id in ids:
                outcome = self._run(
                    "bulk_update_status",
                    order_id,
                    lambda order_id=order_id: self._bulk_item(order_id, status, actor, note),
                )
                if not outcome.success:
                    results.append(BulkItemResult(order_id, "failed", outcome.error))
                elif outcome.order is None:
                    results.append(BulkItemResult(order_id, "unchanged"))
                else:
                    results.append(BulkItemResult(order_id, "updated"))
                    events.extend(outcome.events)
            logger.info(
                "bulk_status_updated",
                status=status.value,
                updated=sum(1 for r in results if r.result == "updated"),
                failed=sum(1 for r in results if r.result == "failed"),
            )
            return BulkOutcome(success=True, results=tuple(results), events=tuple(events))

        return self._run("bulk_update_status", None, work, failed=BulkOutcome.failed)

    def _bulk_item(self, order_id, status: OrderStatus, actor, note) -> OrderOutcome:
        current = self._load(order_id)
        if current.status == status.value:
            # Already there: a retried bulk request is a no-op for this order
            return OrderOutcome.ok(None)
        return self._update_status(order_id, status, actor, note, None, None)

    # -------------------------------------------------------------------
    # Notes and queries
    # -------------------------------------------------------------------
    def add_note(self, order_id, text: str, actor: Actor, internal: bool = False) -> OrderOutcome:
        def work():
            order = load_order(self.store, order_id)
            self._authorize_owner_or_staff(order, actor)
            body = (text or "").strip()
            if not body or len(body) > MAX_NOTE_LENGTH:
                raise ValidationError({"text": [f"Note must be between 1 and {MAX_NOTE_LENGTH} characters"]})
            entry = note_entry(body, actor.label(), internal=internal and actor.is_staff)
            document = self.store.update(ORDERS, order_id, {"notes": ArrayAppend(entry), "updated_at": now_iso()})
            return OrderOutcome.ok(from_document(document))

        return self._run("add_note", order_id, work)

    def get_order(self, order_id, actor: Actor) -> OrderOutcome:
        def work():
            order = load_order(self.store, order_id)
            self._authorize_owner_or_staff(order, actor)
            return OrderOutcome.ok(order)

        return self._run("get_order", order_id, work)

    def list_orders(self, actor: Actor, user_id=None, status=None, limit: int = 20) -> list[Order]:
        if not actor.is_staff:
            user_id = actor.user_id
        filters = []
        if user_id:
            filters.append(("user_id", "==", user_id))
        if status:
            filters.append(("status", "==", parse_status(status).value))
        documents = self.store.query(ORDERS, filters, order_by="-created_at", limit=limit)
        return [from_document(document) for document in documents]

    def _authorize_owner_or_staff(self, order: Order, actor: Actor) -> None:
        if not (actor.is_staff or order.is_owned_by(actor.user_id)):
            logger.warning("order_access_denied", actor=actor.label())
            raise UnauthorizedError("You do not have access to this order")


def build_orchestrator() -> OrderOrchestrator:
    """Wire an orchestrator to the configured adapters."""
    from storefront.carrier import get_carrier
    from storefront.config import get_settings
    from storefront.gateway import get_gateway
    from storefront.store import get_store

    return OrderOrchestrator(get_store(), get_gateway(), get_carrier(), get_settings())
