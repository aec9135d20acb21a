"""Notifier registry and event dispatch."""

import structlog

from storefront.config import get_settings
from storefront.notification.port import Notifier

logger = structlog.get_logger(__name__)

_current_notifier: Notifier | None = None


def get_notifier() -> Notifier:
    """Return the active notifier. Tests get FakeNotifier, everything else LoggingNotifier."""
    global _current_notifier
    if _current_notifier is None:
        from storefront.notification.adapters import FakeNotifier, LoggingNotifier

        _current_notifier = FakeNotifier() if get_settings().env == "test" else LoggingNotifier()
    return _current_notifier


def set_notifier(notifier: Notifier) -> None:
    global _current_notifier
    _current_notifier = notifier


def reset_notifier() -> None:
    global _current_notifier
    _current_notifier = None


def dispatch_events(events, store, notifier: Notifier | None = None) -> int:
    """Hand each event to the notifier. Returns how many were delivered.

    Delivery failures are logged and skipped.
    """
    notifier = notifier or get_notifier()
    delivered = 0
    for event in events:
        try:
            notifier.notify(event, store.get("orders", str(event.order_id)))
            delivered += 1
        except Exception:
            logger.exception(
                "notification_failed",
                event_type=event.__class__.__name__,
                order_id=str(event.order_id),
            )
    return delivered
