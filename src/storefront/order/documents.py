"""Mapping between Order aggregates and their stored documents.

Documents hold plain JSON values only: timestamps are ISO-8601 strings and
nested value objects are dicts.
"""

from datetime import UTC, datetime
from uuid import uuid4

from storefront.errors import NotFoundError
from storefront.order.order import (
    Address,
    CouponReference,
    Order,
    OrderItem,
    OrderNote,
    PaymentRecord,
    StatusEntry,
)
from storefront.pricing.calculator import PriceBreakdown, TaxSplit

ORDERS = "orders"

_ADDRESS_FIELDS = ("name", "line1", "line2", "city", "state", "postal_code", "country", "phone")
_PRICING_FIELDS = ("subtotal", "discount", "tax", "shipping_charge", "gift_wrap_charge", "grand_total", "currency")


def iso(value) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.isoformat()


def parse_time(value):
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def now_iso() -> str:
    return datetime.now(UTC).isoformat()


def history_entry(status: str, actor: str, note: str | None = None, at: str | None = None) -> dict:
    return {"id": str(uuid4()), "status": status, "at": at or now_iso(), "actor": actor, "note": note}


def note_entry(text: str, actor: str, internal: bool = False) -> dict:
    return {"id": str(uuid4()), "text": text, "actor": actor, "at": now_iso(), "internal": internal}


def _address_document(address):
    if address is None:
        return None
    return {name: getattr(address, name) for name in _ADDRESS_FIELDS}


def to_document(order: Order) -> dict:
    payment = order.payment
    return {
        "id": str(order.id),
        "user_id": str(order.user_id),
        "status": order.status,
        "items": [
            {
                "id": str(item.id),
                "product_id": str(item.product_id),
                "name": item.name,
                "sku": item.sku,
                "category": item.category,
                "unit_price": item.unit_price,
                "quantity": item.quantity,
                "subtotal": item.subtotal,
            }
            for item in order.items
        ],
        "pricing": {name: getattr(order.pricing, name) for name in _PRICING_FIELDS},
        "tax_split": (
            {"cgst": order.tax_split.cgst, "sgst": order.tax_split.sgst, "igst": order.tax_split.igst}
            if order.tax_split
            else None
        ),
        "coupon": (
            {"code": order.coupon.code, "discount_amount": order.coupon.discount_amount} if order.coupon else None
        ),
        "shipping_address": _address_document(order.shipping_address),
        "billing_address": _address_document(order.billing_address),
        "payment": {
            "method": payment.method if payment else None,
            "intent_id": payment.intent_id if payment else None,
            "status": payment.status if payment else None,
            "verified_payment_id": payment.verified_payment_id if payment else None,
            "verified_amount": payment.verified_amount if payment else None,
            "captured_at": iso(payment.captured_at) if payment else None,
        },
        "history": [
            {"id": str(entry.id), "status": entry.status, "at": iso(entry.at), "actor": entry.actor, "note": entry.note}
            for entry in order.history
        ],
        "notes": [
            {"id": str(note.id), "text": note.text, "actor": note.actor, "at": iso(note.at), "internal": note.internal}
            for note in order.notes
        ],
        "gift_wrap": bool(order.gift_wrap),
        "tracking_number": order.tracking_number,
        "carrier": order.carrier,
        "shipment_reference": order.shipment_reference,
        "refund_reference": order.refund_reference,
        "estimated_delivery": iso(order.estimated_delivery),
        "inventory_released": bool(order.inventory_released),
        "stock_returned": bool(order.stock_returned),
        "sale_finalized": bool(order.sale_finalized),
        "sale_counted": bool(order.sale_counted),
        "created_at": iso(order.created_at),
        "updated_at": iso(order.updated_at),
    }


def from_document(document: dict) -> Order:
    payment = document.get("payment") or {}
    coupon = document.get("coupon")
    order = Order(
        id=document["id"],
        user_id=document["user_id"],
        status=document["status"],
        pricing=PriceBreakdown(**{name: document["pricing"][name] for name in _PRICING_FIELDS}),
        tax_split=TaxSplit(**document["tax_split"]) if document.get("tax_split") else None,
        coupon=CouponReference(**coupon) if coupon else None,
        shipping_address=Address(**document["shipping_address"]) if document.get("shipping_address") else None,
        billing_address=Address(**document["billing_address"]) if document.get("billing_address") else None,
        payment=PaymentRecord(
            method=payment.get("method") or "razorpay",
            intent_id=payment.get("intent_id"),
            status=payment.get("status") or "pending",
            verified_payment_id=payment.get("verified_payment_id"),
            verified_amount=payment.get("verified_amount"),
            captured_at=parse_time(payment.get("captured_at")),
        ),
        gift_wrap=document.get("gift_wrap", False),
        tracking_number=document.get("tracking_number"),
        carrier=document.get("carrier"),
        shipment_reference=document.get("shipment_reference"),
        refund_reference=document.get("refund_reference"),
        estimated_delivery=parse_time(document.get("estimated_delivery")),
        inventory_released=document.get("inventory_released", False),
        stock_returned=document.get("stock_returned", False),
        sale_finalized=document.get("sale_finalized", False),
        sale_counted=document.get("sale_counted", False),
        created_at=parse_time(document.get("created_at")),
        updated_at=parse_time(document.get("updated_at")),
    )
    for item in document.get("items", []):
        order.add_items(OrderItem(**item))
    for entry in document.get("history", []):
        order.add_history(StatusEntry(**{**entry, "at": parse_time(entry["at"])}))
    for note in document.get("notes", []):
        order.add_notes(OrderNote(**{**note, "at": parse_time(note["at"])}))
    return order


def load_order(store, order_id: str) -> Order:
    document = store.get(ORDERS, order_id)
    if document is None:
        raise NotFoundError("order", order_id)
    return from_document(document)
