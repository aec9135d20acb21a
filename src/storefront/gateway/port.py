"""Payment gateway port (abstract interface).

The gateway is reached for two things: opening a payment intent sized to
an order's grand total, and reading back the authoritative state of a
payment when its callback arrives. Adapters raise
UpstreamUnavailableError for timeouts and 5xx answers and
GatewayRejectedError when the gateway refuses a request.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class PaymentIntent:
    """A gateway-side order the customer pays against."""

    intent_id: str
    amount: int
    currency: str
    reference: str


@dataclass(frozen=True)
class GatewayPayment:
    """The gateway's record of a payment attempt."""

    payment_id: str
    intent_id: str | None
    status: str
    amount: int
    currency: str
    method: str | None = None
    captured_at: datetime | None = None

    @property
    def captured(self) -> bool:
        return self.status == "captured"


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    def create_intent(self, amount: int, currency: str, reference: str, notes: dict | None = None) -> PaymentIntent:
        """Open a payment intent for ``amount`` minor units."""
        ...

    @abstractmethod
    def fetch_payment(self, payment_id: str) -> GatewayPayment:
        """Read a payment's current state from the gateway."""
        ...
