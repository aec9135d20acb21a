"""Order status transitions and their side effects.

A transition is one guarded update on the order document: the new status,
its history entry and any caller-supplied changes are written together,
and only while the document still matches the snapshot the decision was
made on. Entering ``cancelled`` or ``refunded`` also claims the order's
``inventory_released`` flag in that update, so stock comes back once no
matter how often the call is retried.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime

import structlog

from storefront.errors import IllegalTransitionError, NotFoundError
from storefront.inventory.ledger import InventoryLedger
from storefront.order.documents import ORDERS, from_document, history_entry, load_order
from storefront.order.events import OrderStatusChanged
from storefront.order.order import RELEASING_STATES, Order, OrderStatus
from storefront.shared.actor import Actor
from storefront.store.port import ArrayAppend, ConditionFailed, DocumentNotFound, StoreError

logger = structlog.get_logger(__name__)

MAX_ATTEMPTS = 3


@dataclass(frozen=True)
class Transition:
    order: Order
    previous_status: str
    events: list = field(default_factory=list)


class OrderStateMachine:
    def __init__(self, store, ledger: InventoryLedger | None = None):
        self.store = store
        self.ledger = ledger or InventoryLedger(store)

    def transition(
        self,
        order: Order,
        target: OrderStatus,
        actor: Actor,
        note: str | None = None,
        changes: dict | None = None,
        expect: dict | None = None,
        tracking_number: str | None = None,
        carrier: str | None = None,
    ) -> Transition:
        """Move ``order`` to ``target``.

        Raises IllegalTransitionError, without writing anything, when
        ``target`` is not allowed from the order's current status. The
        ``order`` passed in is never mutated; the returned Transition holds
        the stored result.
        """
        target = OrderStatus(target)
        snapshot = order
        for attempt in range(1, MAX_ATTEMPTS + 1):
            snapshot.assert_can_transition(target)
            release = target in RELEASING_STATES and not snapshot.inventory_released

            update = {
                "status": target.value,
                "history": ArrayAppend(history_entry(target.value, actor.label(), note)),
                "updated_at": datetime.now(UTC).isoformat(),
                **(changes or {}),
            }
            if release:
                update["inventory_released"] = True
            if target == OrderStatus.SHIPPED:
                if tracking_number:
                    update["tracking_number"] = tracking_number
                if carrier:
                    update["carrier"] = carrier

            guard = {
                "status": snapshot.status,
                "inventory_released": bool(snapshot.inventory_released),
                "sale_finalized": bool(snapshot.sale_finalized),
                **(expect or {}),
            }
            try:
                document = self.store.update(ORDERS, str(snapshot.id), update, expect=guard)
            except DocumentNotFound:
                raise NotFoundError("order", str(snapshot.id)) from None
            except ConditionFailed as exc:
                logger.info(
                    "order_transition_conflict",
                    order_id=str(snapshot.id),
                    target=target.value,
                    path=exc.path,
                    attempt=attempt,
                )
                snapshot = load_order(self.store, str(snapshot.id))
                continue

            updated = from_document(document)
            if release:
                try:
                    updated = self.return_stock(updated)
                except (StoreError, NotFoundError):
                    # Stays claimed but not returned; settle() finishes it on a later call
                    logger.error(
                        "inventory_release_failed",
                        order_id=str(updated.id),
                        lines=[(line.product_id, line.quantity) for line in updated.stock_lines],
                        sold=bool(updated.sale_counted),
                    )

            logger.info(
                "order_status_changed",
                order_id=str(updated.id),
                previous_status=snapshot.status,
                new_status=target.value,
                actor=actor.label(),
            )
            event = OrderStatusChanged(
                order_id=str(updated.id),
                user_id=str(updated.user_id),
                previous_status=snapshot.status,
                new_status=target.value,
                actor=actor.label(),
                note=note,
                tracking_number=updated.tracking_number if target == OrderStatus.SHIPPED else None,
                changed_at=datetime.now(UTC),
            )
            return Transition(order=updated, previous_status=snapshot.status, events=[event])

        # The order kept changing underneath us; report against its latest state
        raise IllegalTransitionError(snapshot.status, target.value)

    # -------------------------------------------------------------------
    # Stock side effects
    #
    # ``sale_finalized`` and ``inventory_released`` are claims, written with
    # the status change. ``sale_counted`` and ``stock_returned`` record that
    # the counters actually moved. A claim without its completion is
    # unfinished work that settle() picks up.
    # -------------------------------------------------------------------
    def settle(self, order: Order) -> Order:
        """Finish any claimed stock work on ``order``.

        Store failures propagate so the caller can retry. A product that no
        longer exists cannot be fixed by retrying; that is logged instead.
        """
        try:
            if order.inventory_released and not order.stock_returned:
                return self.return_stock(order)
            if order.sale_finalized and not order.sale_counted and not order.inventory_released:
                return self.count_sale(order)
        except NotFoundError as exc:
            logger.error("stock_settlement_failed", order_id=str(order.id), error=str(exc))
        return order

    def count_sale(self, order: Order) -> Order:
        """Move the order's reserved units into ``units_sold``."""
        self.ledger.finalize_sale(order.stock_lines)
        try:
            document = self.store.update(
                ORDERS,
                str(order.id),
                {"sale_counted": True},
                expect={"sale_counted": False, "inventory_released": False},
            )
        except ConditionFailed as exc:
            # Counted elsewhere, or the order was cancelled meanwhile: put the units back
            logger.warning("sale_count_conflict", order_id=str(order.id), path=exc.path)
            self.ledger.reverse_sale(order.stock_lines)
            return load_order(self.store, str(order.id))
        return from_document(document)

    def return_stock(self, order: Order) -> Order:
        """Give a released order's units back to ``available``."""
        self.ledger.release(order.stock_lines, sold=bool(order.sale_counted))
        try:
            document = self.store.update(
                ORDERS, str(order.id), {"stock_returned": True}, expect={"stock_returned": False}
            )
        except ConditionFailed:
            logger.error("stock_returned_twice", order_id=str(order.id))
            return load_order(self.store, str(order.id))
        return from_document(document)
