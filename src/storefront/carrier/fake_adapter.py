"""Fake carrier adapter: deterministic quotes for testing and development.

Orders whose subtotal (after discount) reaches the free-shipping threshold
ship free; everything else pays a flat charge.
"""

from uuid import uuid4

from storefront.carrier.port import CarrierPort, ShipmentQuote, ShipmentRequest
from storefront.errors import GatewayRejectedError, UpstreamUnavailableError


class FakeCarrier(CarrierPort):
    def __init__(self, free_shipping_threshold: int = 50000, flat_charge: int = 5000):
        self.free_shipping_threshold = free_shipping_threshold
        self.flat_charge = flat_charge
        self.failure: str | None = None
        self.requests: list[ShipmentRequest] = []

    def configure(self, failure: str | None = None, flat_charge: int | None = None) -> None:
        """Configure the fake carrier. ``failure`` is ``timeout``, ``rejected`` or None."""
        self.failure = failure
        if flat_charge is not None:
            self.flat_charge = flat_charge

    def create_shipment(self, request: ShipmentRequest) -> ShipmentQuote:
        self.requests.append(request)
        if self.failure == "timeout":
            raise UpstreamUnavailableError("Carrier timed out", service="carrier")
        if self.failure == "rejected":
            raise GatewayRejectedError("Carrier refused the shipment", service="carrier")

        payable = request.subtotal - request.discount
        charge = 0 if payable >= self.free_shipping_threshold else self.flat_charge
        return ShipmentQuote(
            shipment_id=f"ship-{uuid4().hex[:8]}",
            shipping_charge=charge,
            tracking_number=f"FAKE-{uuid4().hex[:12].upper()}",
        )
