"""Inventory ledger.

Per-product counters live on product documents:

    available   units that can still be reserved
    reserved    units held by orders awaiting payment
    units_sold  units of confirmed sales

Every mutation is an atomic ``Increment``. The ledger never reads a count,
computes a new value and writes it back. A reservation pre-checks stock to
fail fast, but the value returned by the atomic decrement is what decides:
if it went negative another order got there first and the reservation is
reversed.
"""

from collections import OrderedDict
from dataclasses import dataclass

import structlog

from storefront.errors import InsufficientStockError, NotFoundError
from storefront.store.port import DocumentNotFound, Increment, StoreError, WriteOp

logger = structlog.get_logger(__name__)

PRODUCTS = "products"


@dataclass(frozen=True)
class StockLine:
    product_id: str
    quantity: int


@dataclass(frozen=True)
class Reservation:
    lines: tuple

    @property
    def total_units(self) -> int:
        return sum(line.quantity for line in self.lines)


def merge_lines(lines) -> tuple:
    """Collapse repeated products into one line each, keeping first-seen order."""
    merged: OrderedDict[str, int] = OrderedDict()
    for line in lines:
        merged[line.product_id] = merged.get(line.product_id, 0) + line.quantity
    return tuple(StockLine(product_id=pid, quantity=qty) for pid, qty in merged.items())


class InventoryLedger:
    def __init__(self, store):
        self.store = store

    def reserve(self, lines) -> Reservation:
        """Hold stock for every line, or for none of them."""
        lines = merge_lines(lines)

        for line in lines:
            product = self.store.get(PRODUCTS, line.product_id)
            if product is None:
                raise NotFoundError("product", line.product_id)
            available = product.get("available", 0)
            if available < line.quantity:
                logger.info(
                    "reservation_refused",
                    product_id=line.product_id,
                    available=available,
                    requested=line.quantity,
                )
                raise InsufficientStockError(line.product_id, available, line.quantity)

        applied: list[StockLine] = []
        try:
            for line in lines:
                updated = self.store.update(
                    PRODUCTS,
                    line.product_id,
                    {"available": Increment(-line.quantity), "reserved": Increment(line.quantity)},
                )
                applied.append(line)
                if updated["available"] < 0:
                    logger.warning(
                        "reservation_overshoot",
                        product_id=line.product_id,
                        available=updated["available"],
                        requested=line.quantity,
                    )
                    raise InsufficientStockError(
                        line.product_id, updated["available"] + line.quantity, line.quantity
                    )
        except (InsufficientStockError, StoreError):
            self.cancel_reservation(applied)
            raise

        logger.info("stock_reserved", lines=[(line.product_id, line.quantity) for line in lines])
        return Reservation(lines=lines)

    def finalize_sale(self, lines) -> None:
        """Move reserved units into the sold counter once payment is confirmed."""
        lines = merge_lines(lines)
        self._apply(
            [
                WriteOp(
                    "update",
                    PRODUCTS,
                    line.product_id,
                    {"reserved": Increment(-line.quantity), "units_sold": Increment(line.quantity)},
                )
                for line in lines
            ],
            "finalize_sale",
        )

    def reverse_sale(self, lines) -> None:
        """Undo ``finalize_sale``: the units go back to ``reserved``."""
        lines = merge_lines(lines)
        self._apply(
            [
                WriteOp(
                    "update",
                    PRODUCTS,
                    line.product_id,
                    {"reserved": Increment(line.quantity), "units_sold": Increment(-line.quantity)},
                )
                for line in lines
            ],
            "reverse_sale",
        )

    def release(self, lines, sold: bool = False) -> None:
        """Return stock to ``available``.

        With ``sold=False`` this is the exact inverse of ``reserve``; with
        ``sold=True`` it is the inverse of ``reserve`` followed by
        ``finalize_sale``.
        """
        lines = merge_lines(lines)
        counter = "units_sold" if sold else "reserved"
        self._apply(
            [
                WriteOp(
                    "update",
                    PRODUCTS,
                    line.product_id,
                    {"available": Increment(line.quantity), counter: Increment(-line.quantity)},
                )
                for line in lines
            ],
            "release",
        )

    def cancel_reservation(self, lines) -> None:
        """Release a reservation on a failure path; logs instead of raising."""
        lines = tuple(lines)
        if not lines:
            return
        try:
            self.release(lines)
        except (StoreError, NotFoundError):
            logger.error("reservation_compensation_failed", lines=[(line.product_id, line.quantity) for line in lines])

    def _apply(self, operations, action: str) -> None:
        """Run counter updates for every product, or leave none of them applied."""
        failures = self.store.batch_write(operations)
        if failures:
            failed = [failure.op for failure in failures]
            self._undo([op for op in operations if not any(op is other for other in failed)], action)
            for failure in failures:
                logger.error(
                    "inventory_write_failed",
                    action=action,
                    product_id=failure.op.doc_id,
                    changes={path: getattr(change, "delta", change) for path, change in failure.op.payload.items()},
                    error=str(failure.error),
                )
            first = failures[0].error
            if isinstance(first, DocumentNotFound):
                raise NotFoundError("product", first.doc_id)
            raise StoreError(f"{len(failures)} inventory update(s) failed during {action}")
        logger.info(f"inventory_{action}", products=[op.doc_id for op in operations])

    def _undo(self, operations, action: str) -> None:
        inverse = [
            WriteOp(
                "update",
                op.collection,
                op.doc_id,
                {path: Increment(-change.delta) for path, change in op.payload.items()},
            )
            for op in operations
        ]
        for failure in self.store.batch_write(inverse):
            logger.error(
                "inventory_undo_failed",
                action=action,
                product_id=failure.op.doc_id,
                changes={path: change.delta for path, change in failure.op.payload.items()},
                error=str(failure.error),
            )
