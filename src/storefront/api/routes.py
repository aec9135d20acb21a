"""FastAPI routes for the Storefront domain: orders, coupons and product stock.

The caller's identity arrives in ``X-User-Id`` / ``X-User-Role`` headers set
by the authenticating gateway in front of this service.
"""

import json

from fastapi import APIRouter, Header, HTTPException
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from storefront.api.schemas import (
    AddNoteRequest,
    BulkItemResponse,
    BulkStatusRequest,
    BulkStatusResponse,
    CancelOrderRequest,
    CodeResponse,
    CouponPreviewResponse,
    DefineCouponRequest,
    OrderStatusResponse,
    PlacedOrderResponse,
    PlaceOrderRequest,
    RefundOrderRequest,
    StockProductRequest,
    UpdateStatusRequest,
    ValidateCouponRequest,
    VerifyPaymentRequest,
)
from storefront.coupon.definition import DefineCoupon
from storefront.coupon.validator import CartItem, CouponValidator
from storefront.inventory.products import stock_product
from storefront.order.cancellation import CancelOrder
from storefront.order.documents import to_document
from storefront.order.notes import AddOrderNote
from storefront.order.orchestrator import build_orchestrator
from storefront.order.placement import PlaceOrder
from storefront.order.refund import RefundOrder
from storefront.order.status import BulkUpdateOrderStatus, UpdateOrderStatus
from storefront.payment.verification import VerifyPayment
from storefront.shared.actor import Actor
from storefront.shared.money import savings_percentage
from storefront.store import get_store


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _actor(user_id: str | None, role: str | None) -> Actor:
    if not user_id:
        raise HTTPException(status_code=401, detail={"code": "unauthenticated", "message": "Missing X-User-Id"})
    return Actor(user_id=user_id, role=(role or "customer").lower())


def _require_staff(actor: Actor) -> None:
    if not actor.is_staff:
        raise HTTPException(status_code=403, detail={"code": "forbidden", "message": "Staff access required"})


def _process(command_cls, **fields):
    """Build and run a command synchronously, reporting bad input as 400."""
    try:
        return current_domain.process(command_cls(**fields), asynchronous=False)
    except ValidationError as exc:
        raise HTTPException(
            status_code=400,
            detail={"code": "validation_error", "message": "Invalid request", "errors": exc.messages},
        ) from exc


def _raise_for(outcome) -> None:
    if outcome.success:
        return
    error = outcome.error
    raise HTTPException(
        status_code=error.http_status,
        detail={"code": error.code, "message": error.message, "reason": error.reason},
    )


def _status_response(outcome) -> OrderStatusResponse:
    _raise_for(outcome)
    return OrderStatusResponse(
        order_id=str(outcome.order.id),
        status=outcome.order.status,
        refund_id=outcome.refund_id,
        duplicate=outcome.duplicate,
    )


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=PlacedOrderResponse)
async def place_order(
    body: PlaceOrderRequest,
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> PlacedOrderResponse:
    """Price the cart, hold its stock and open a payment intent."""
    actor = _actor(x_user_id, x_user_role)
    outcome = _process(
        PlaceOrder,
        user_id=actor.user_id,
        items=json.dumps([item.model_dump() for item in body.items]),
        shipping_address=json.dumps(body.shipping_address.model_dump()),
        billing_address=json.dumps(body.billing_address.model_dump()) if body.billing_address else None,
        coupon_code=body.coupon_code,
        gift_wrap=body.gift_wrap,
        payment_method=body.payment_method,
    )
    _raise_for(outcome)
    order = outcome.order
    return PlacedOrderResponse(
        order_id=str(order.id),
        status=order.status,
        grand_total=order.pricing.grand_total,
        currency=order.pricing.currency,
        payment_intent_id=outcome.payment_intent.intent_id,
    )


@order_router.post("/{order_id}/payment", response_model=OrderStatusResponse)
async def verify_payment(order_id: str, body: VerifyPaymentRequest) -> OrderStatusResponse:
    """Reconcile a payment callback. Repeated callbacks return the same result."""
    outcome = _process(
        VerifyPayment,
        order_id=order_id,
        gateway_order_id=body.gateway_order_id,
        gateway_payment_id=body.gateway_payment_id,
        signature=body.signature,
    )
    return _status_response(outcome)


@order_router.post("/{order_id}/cancel", response_model=OrderStatusResponse)
async def cancel_order(
    order_id: str,
    body: CancelOrderRequest,
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> OrderStatusResponse:
    actor = _actor(x_user_id, x_user_role)
    outcome = _process(
        CancelOrder, order_id=order_id, actor_id=actor.user_id, actor_role=actor.role, reason=body.reason
    )
    return _status_response(outcome)


@order_router.post("/{order_id}/refund", response_model=OrderStatusResponse)
async def refund_order(
    order_id: str,
    body: RefundOrderRequest,
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> OrderStatusResponse:
    actor = _actor(x_user_id, x_user_role)
    outcome = _process(
        RefundOrder,
        order_id=order_id,
        amount=body.amount,
        reason=body.reason,
        actor_id=actor.user_id,
        actor_role=actor.role,
    )
    return _status_response(outcome)


@order_router.patch("/status", response_model=BulkStatusResponse)
async def bulk_update_status(
    body: BulkStatusRequest,
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> BulkStatusResponse:
    """Move many orders to one status; reports a result per order."""
    actor = _actor(x_user_id, x_user_role)
    outcome = _process(
        BulkUpdateOrderStatus,
        order_ids=json.dumps(body.order_ids),
        status=body.status,
        actor_id=actor.user_id,
        actor_role=actor.role,
        note=body.note,
    )
    _raise_for(outcome)
    return BulkStatusResponse(
        updated=outcome.count("updated"),
        unchanged=outcome.count("unchanged"),
        failed=outcome.count("failed"),
        results=[
            BulkItemResponse(
                order_id=item.order_id,
                result=item.result,
                error_code=item.error.code if item.error else None,
                message=item.error.message if item.error else None,
            )
            for item in outcome.results
        ],
    )


@order_router.patch("/{order_id}/status", response_model=OrderStatusResponse)
async def update_status(
    order_id: str,
    body: UpdateStatusRequest,
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> OrderStatusResponse:
    actor = _actor(x_user_id, x_user_role)
    outcome = _process(
        UpdateOrderStatus,
        order_id=order_id,
        status=body.status,
        actor_id=actor.user_id,
        actor_role=actor.role,
        note=body.note,
        tracking_number=body.tracking_number,
        carrier=body.carrier,
    )
    return _status_response(outcome)


@order_router.post("/{order_id}/notes", response_model=OrderStatusResponse)
async def add_note(
    order_id: str,
    body: AddNoteRequest,
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> OrderStatusResponse:
    actor = _actor(x_user_id, x_user_role)
    outcome = _process(
        AddOrderNote,
        order_id=order_id,
        text=body.text,
        internal=body.internal,
        actor_id=actor.user_id,
        actor_role=actor.role,
    )
    return _status_response(outcome)


@order_router.get("/{order_id}")
async def get_order(
    order_id: str,
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> dict:
    outcome = build_orchestrator().get_order(order_id, _actor(x_user_id, x_user_role))
    _raise_for(outcome)
    return to_document(outcome.order)


@order_router.get("")
async def list_orders(
    status: str | None = None,
    user_id: str | None = None,
    limit: int = 20,
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> list[dict]:
    actor = _actor(x_user_id, x_user_role)
    try:
        orders = build_orchestrator().list_orders(actor, user_id=user_id, status=status, limit=min(limit, 100))
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail={"code": "validation_error", "errors": exc.messages}) from exc
    return [to_document(order) for order in orders]


# ---------------------------------------------------------------------------
# Coupon Router
# ---------------------------------------------------------------------------
coupon_router = APIRouter(prefix="/coupons", tags=["coupons"])


@coupon_router.post("", status_code=201, response_model=CodeResponse)
async def define_coupon(
    body: DefineCouponRequest,
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> CodeResponse:
    actor = _actor(x_user_id, x_user_role)
    _require_staff(actor)
    code = _process(
        DefineCoupon,
        code=body.code,
        description=body.description,
        discount_type=body.discount_type,
        value=body.value,
        min_order_value=body.min_order_value,
        max_discount=body.max_discount,
        starts_at=body.starts_at,
        expires_at=body.expires_at,
        usage_limit=body.usage_limit,
        first_time_only=body.first_time_only,
        allowed_users=json.dumps(body.allowed_users),
        excluded_users=json.dumps(body.excluded_users),
        applicable_categories=json.dumps(body.applicable_categories),
        applicable_products=json.dumps(body.applicable_products),
        created_by=actor.user_id,
    )
    return CodeResponse(code=code)


@coupon_router.post("/validate", response_model=CouponPreviewResponse)
async def validate_coupon(
    body: ValidateCouponRequest,
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> CouponPreviewResponse:
    """Preview the discount a coupon would give on a cart."""
    actor = _actor(x_user_id, x_user_role)
    items = [CartItem(product_id=item.product_id, category=item.category) for item in body.items]
    verdict = CouponValidator(get_store()).validate(body.coupon_code, actor.user_id, body.order_amount, items)
    if not verdict.valid:
        raise HTTPException(
            status_code=400,
            detail={"code": "coupon_rejected", "message": verdict.message, "reason": verdict.reason},
        )
    return CouponPreviewResponse(
        code=verdict.coupon.code,
        discount_type=verdict.coupon.discount_type,
        discount_amount=verdict.discount_amount,
        savings_percentage=float(savings_percentage(verdict.discount_amount, body.order_amount)),
        final_amount=body.order_amount - verdict.discount_amount,
    )


# ---------------------------------------------------------------------------
# Product stock Router
# ---------------------------------------------------------------------------
product_router = APIRouter(prefix="/products", tags=["products"])


@product_router.put("/{product_id}/stock")
async def put_stock(
    product_id: str,
    body: StockProductRequest,
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> dict:
    """Create or restock a product's stock record (staff only)."""
    _require_staff(_actor(x_user_id, x_user_role))
    try:
        return stock_product(get_store(), product_id, **body.model_dump())
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail={"code": "validation_error", "errors": exc.messages}) from exc
