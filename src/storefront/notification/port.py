"""Notifier port.

Notifications are fire-and-forget: they run after an operation's writes
are done and a failure here never changes order state.
"""

from abc import ABC, abstractmethod


class NotificationError(Exception):
    """The notifier could not deliver a message."""


class Notifier(ABC):
    @abstractmethod
    def notify(self, event, order: dict | None) -> None:
        """Deliver ``event``; ``order`` is the stored order document, if any."""
        ...
