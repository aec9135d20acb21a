"""Razorpay payment gateway adapter.

Talks to the Razorpay REST API with basic auth (key id and secret).
Amounts are already in paise, which is what Razorpay expects.
"""

from datetime import UTC, datetime

import requests
import structlog

from storefront.errors import GatewayRejectedError, UpstreamUnavailableError
from storefront.gateway.port import GatewayPayment, PaymentGateway, PaymentIntent

logger = structlog.get_logger(__name__)

RAZORPAY_API = "https://api.razorpay.com/v1"


class RazorpayGateway(PaymentGateway):
    def __init__(self, key_id: str, key_secret: str, timeout: float = 10.0, session=None, base_url=RAZORPAY_API):
        self.key_id = key_id
        self.key_secret = key_secret
        self.timeout = timeout
        self.session = session or requests.Session()
        self.base_url = base_url

    def _request(self, method: str, path: str, **kwargs) -> dict:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(
                method, url, auth=(self.key_id, self.key_secret), timeout=self.timeout, **kwargs
            )
        except (requests.Timeout, requests.ConnectionError) as exc:
            logger.warning("razorpay_unreachable", path=path, error=str(exc))
            raise UpstreamUnavailableError("Payment gateway is unreachable", service="razorpay") from exc

        if response.status_code >= 500:
            logger.warning("razorpay_server_error", path=path, status=response.status_code)
            raise UpstreamUnavailableError(
                f"Payment gateway answered {response.status_code}", service="razorpay"
            )
        if response.status_code >= 400:
            description = _error_description(response)
            logger.warning("razorpay_rejected", path=path, status=response.status_code, error=description)
            raise GatewayRejectedError(description, service="razorpay", status=response.status_code)
        return response.json()

    def create_intent(self, amount, currency, reference, notes=None):
        body = self._request(
            "POST",
            "/orders",
            json={"amount": amount, "currency": currency, "receipt": reference, "notes": notes or {}},
        )
        logger.info("razorpay_order_created", intent_id=body["id"], reference=reference, amount=amount)
        return PaymentIntent(
            intent_id=body["id"],
            amount=body.get("amount", amount),
            currency=body.get("currency", currency),
            reference=reference,
        )

    def fetch_payment(self, payment_id):
        body = self._request("GET", f"/payments/{payment_id}")
        created = body.get("created_at")
        return GatewayPayment(
            payment_id=body["id"],
            intent_id=body.get("order_id"),
            status=body.get("status", "unknown"),
            amount=int(body.get("amount", 0)),
            currency=body.get("currency", ""),
            method=body.get("method"),
            captured_at=datetime.fromtimestamp(created, tz=UTC) if created else None,
        )


def _error_description(response) -> str:
    try:
        return response.json()["error"]["description"]
    except (ValueError, KeyError, TypeError):
        return f"Payment gateway rejected the request ({response.status_code})"
