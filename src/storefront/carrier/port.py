"""Carrier port: abstract interface for the shipping carrier.

The carrier is consulted once while an order is being placed. It books
the shipment and quotes the shipping charge that goes into the price
breakdown.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class ShipmentRequest:
    order_id: str
    lines: tuple
    shipping_address: dict
    billing_address: dict
    subtotal: int
    discount: int = 0
    gift_wrap_charge: int = 0
    payment_method: str = "razorpay"


@dataclass(frozen=True)
class ShipmentQuote:
    shipment_id: str
    shipping_charge: int
    tracking_number: str | None = None


class CarrierPort(ABC):
    """Abstract interface for carrier adapters."""

    @abstractmethod
    def create_shipment(self, request: ShipmentRequest) -> ShipmentQuote:
        """Book a shipment and return its quote.

        Raises UpstreamUnavailableError on timeouts and 5xx answers.
        """
        ...
