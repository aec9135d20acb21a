"""Shiprocket carrier adapter.

Creates ad-hoc Shiprocket orders. The bearer token comes from an injected
``CredentialHolder``; a 401 answer invalidates it and the request is
retried once with a fresh token.
"""

from datetime import UTC, datetime, timedelta

import requests
import structlog

from storefront.carrier.credentials import CredentialHolder
from storefront.carrier.port import CarrierPort, ShipmentQuote, ShipmentRequest
from storefront.errors import GatewayRejectedError, UpstreamUnavailableError
from storefront.shared.money import to_major_units, to_minor_units

logger = structlog.get_logger(__name__)

SHIPROCKET_API = "https://apiv2.shiprocket.in/v1/external"


def shiprocket_login(email: str, password: str, timeout: float = 10.0, session=None, base_url=SHIPROCKET_API):
    """Return a callable that logs in and yields a fresh token."""
    http = session or requests.Session()

    def login() -> str:
        try:
            response = http.post(f"{base_url}/auth/login", json={"email": email, "password": password}, timeout=timeout)
        except (requests.Timeout, requests.ConnectionError) as exc:
            raise UpstreamUnavailableError("Carrier login is unreachable", service="shiprocket") from exc
        if response.status_code >= 500:
            raise UpstreamUnavailableError(f"Carrier login answered {response.status_code}", service="shiprocket")
        if response.status_code >= 400:
            raise GatewayRejectedError("Carrier login was refused", service="shiprocket")
        return response.json()["token"]

    return login


def shiprocket_credentials(email, password, ttl_hours=216, timeout=10.0, session=None, clock=None):
    return CredentialHolder(
        shiprocket_login(email, password, timeout=timeout, session=session),
        ttl=timedelta(hours=ttl_hours),
        clock=clock,
    )


class ShiprocketCarrier(CarrierPort):
    def __init__(self, credentials: CredentialHolder, timeout: float = 10.0, session=None, base_url=SHIPROCKET_API):
        self.credentials = credentials
        self.timeout = timeout
        self.session = session or requests.Session()
        self.base_url = base_url

    def _post(self, path: str, payload: dict):
        try:
            return self.session.post(
                f"{self.base_url}{path}",
                json=payload,
                headers={"Authorization": f"Bearer {self.credentials.token()}"},
                timeout=self.timeout,
            )
        except (requests.Timeout, requests.ConnectionError) as exc:
            logger.warning("shiprocket_unreachable", path=path, error=str(exc))
            raise UpstreamUnavailableError("Carrier is unreachable", service="shiprocket") from exc

    def create_shipment(self, request: ShipmentRequest) -> ShipmentQuote:
        payload = _adhoc_order(request)
        response = self._post("/orders/create/adhoc", payload)
        if response.status_code == 401:
            self.credentials.invalidate()
            response = self._post("/orders/create/adhoc", payload)

        if response.status_code >= 500:
            raise UpstreamUnavailableError(f"Carrier answered {response.status_code}", service="shiprocket")
        if response.status_code >= 400:
            logger.warning("shiprocket_rejected", order_id=request.order_id, status=response.status_code)
            raise GatewayRejectedError("Carrier refused the shipment", service="shiprocket")

        body = response.json()
        data = body.get("data") or {}
        charge = data.get("shipping_charges") or 0
        logger.info("shiprocket_order_created", order_id=request.order_id, shipment_id=body.get("shipment_id"))
        return ShipmentQuote(
            shipment_id=str(body.get("shipment_id") or body.get("order_id") or ""),
            shipping_charge=to_minor_units(charge),
            tracking_number=body.get("awb_code") or None,
        )


def _adhoc_order(request: ShipmentRequest) -> dict:
    shipping = request.shipping_address
    billing = request.billing_address or shipping
    return {
        "order_id": request.order_id,
        "order_date": datetime.now(UTC).date().isoformat(),
        "pickup_location": "Default",
        "billing_customer_name": billing.get("name"),
        "billing_address": billing.get("line1"),
        "billing_address_2": billing.get("line2") or "",
        "billing_city": billing.get("city"),
        "billing_pincode": billing.get("postal_code"),
        "billing_state": billing.get("state"),
        "billing_country": billing.get("country"),
        "billing_phone": billing.get("phone"),
        "shipping_is_billing": shipping == billing,
        "shipping_customer_name": shipping.get("name"),
        "shipping_address": shipping.get("line1"),
        "shipping_address_2": shipping.get("line2") or "",
        "shipping_city": shipping.get("city"),
        "shipping_pincode": shipping.get("postal_code"),
        "shipping_state": shipping.get("state"),
        "shipping_country": shipping.get("country"),
        "shipping_phone": shipping.get("phone"),
        "order_items": [
            {
                "name": line.name,
                "sku": line.sku or line.product_id,
                "units": line.quantity,
                "selling_price": str(to_major_units(line.unit_price)),
            }
            for line in request.lines
        ],
        "payment_method": "Prepaid",
        "shipping_charges": 0,
        "giftwrap_charges": str(to_major_units(request.gift_wrap_charge)),
        "total_discount": str(to_major_units(request.discount)),
        "sub_total": str(to_major_units(request.subtotal)),
        "length": 10,
        "breadth": 10,
        "height": 10,
        "weight": 0.5,
    }
