"""Notifier adapters."""

import structlog

from storefront.notification.port import NotificationError, Notifier

logger = structlog.get_logger(__name__)


class FakeNotifier(Notifier):
    """Records notifications in memory for test assertions."""

    def __init__(self):
        self.sent: list[dict] = []
        self.should_succeed = True

    def configure(self, should_succeed: bool = True):
        self.should_succeed = should_succeed

    def notify(self, event, order):
        if not self.should_succeed:
            raise NotificationError("Notification delivery failed")
        self.sent.append(
            {
                "event": event.__class__.__name__,
                "order_id": event.order_id,
                "status": (order or {}).get("status"),
                "payload": event.to_dict(),
            }
        )

    def names(self) -> list[str]:
        return [record["event"] for record in self.sent]


class LoggingNotifier(Notifier):
    """Writes each notification to the log; the default outside tests."""

    def notify(self, event, order):
        logger.info(
            "notification",
            event_type=event.__class__.__name__,
            order_id=event.order_id,
            user_id=(order or {}).get("user_id"),
            status=(order or {}).get("status"),
        )
