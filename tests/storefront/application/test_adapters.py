"""Payment gateway and carrier adapters against a mocked HTTP session."""

from datetime import timedelta
from unittest.mock import MagicMock

import pytest
import requests
from storefront.carrier import get_carrier, reset_carrier
from storefront.carrier.credentials import CredentialHolder
from storefront.carrier.fake_adapter import FakeCarrier
from storefront.carrier.port import ShipmentRequest
from storefront.carrier.shiprocket_adapter import ShiprocketCarrier, shiprocket_login
from storefront.config import Settings, set_settings
from storefront.errors import GatewayRejectedError, UpstreamUnavailableError
from storefront.gateway import get_gateway, reset_gateway
from storefront.gateway.fake_adapter import FakePaymentGateway
from storefront.gateway.razorpay_adapter import RazorpayGateway
from storefront.pricing.calculator import PricedLine


def _response(status_code, body=None):
    response = MagicMock(status_code=status_code)
    response.json.return_value = body if body is not None else {}
    return response


@pytest.fixture
def session():
    return MagicMock()


@pytest.fixture
def shipment(address):
    return ShipmentRequest(
        order_id="ORD-1",
        lines=(PricedLine(product_id="p1", unit_price=50000, quantity=2, name="Kurta", sku="KU-1"),),
        shipping_address=address,
        billing_address=address,
        subtotal=100000,
        discount=20000,
        gift_wrap_charge=5000,
    )


class TestRazorpayGateway:
    def test_create_intent_sends_paise(self, session):
        session.request.return_value = _response(200, {"id": "order_Rz1", "amount": 118000, "currency": "INR"})
        gateway = RazorpayGateway("key", "secret", session=session)

        intent = gateway.create_intent(118000, "INR", "ORD-1", notes={"user_id": "cust-001"})

        assert intent.intent_id == "order_Rz1"
        assert intent.amount == 118000
        method, url = session.request.call_args.args
        assert (method, url) == ("POST", "https://api.razorpay.com/v1/orders")
        kwargs = session.request.call_args.kwargs
        assert kwargs["auth"] == ("key", "secret")
        assert kwargs["json"]["amount"] == 118000
        assert kwargs["json"]["receipt"] == "ORD-1"

    def test_fetch_payment(self, session):
        session.request.return_value = _response(
            200,
            {
                "id": "pay_1",
                "order_id": "order_Rz1",
                "status": "captured",
                "amount": 118000,
                "currency": "INR",
                "method": "upi",
                "created_at": 1760000000,
            },
        )

        payment = RazorpayGateway("key", "secret", session=session).fetch_payment("pay_1")

        assert payment.captured
        assert payment.intent_id == "order_Rz1"
        assert payment.amount == 118000
        assert payment.captured_at.tzinfo is not None

    def test_server_error_is_retryable(self, session):
        session.request.return_value = _response(503)
        with pytest.raises(UpstreamUnavailableError) as exc:
            RazorpayGateway("key", "secret", session=session).fetch_payment("pay_1")
        assert exc.value.retryable

    def test_timeout_is_retryable(self, session):
        session.request.side_effect = requests.Timeout("slow")
        with pytest.raises(UpstreamUnavailableError):
            RazorpayGateway("key", "secret", session=session).create_intent(100, "INR", "ORD-1")

    def test_client_error_carries_description(self, session):
        error = {"error": {"description": "The amount must be at least INR 1.00"}}
        session.request.return_value = _response(400, error)
        with pytest.raises(GatewayRejectedError) as exc:
            RazorpayGateway("key", "secret", session=session).create_intent(50, "INR", "ORD-1")
        assert exc.value.message == "The amount must be at least INR 1.00"
        assert not exc.value.retryable


class TestShiprocketCarrier:
    @pytest.fixture
    def credentials(self):
        tokens = iter(["token-1", "token-2", "token-3"])
        return CredentialHolder(lambda: next(tokens), ttl=timedelta(hours=1))

    def test_quote_converts_rupees(self, session, credentials, shipment):
        session.post.return_value = _response(
            200, {"shipment_id": 991, "awb_code": "AWB1", "data": {"shipping_charges": 49.5}}
        )

        quote = ShiprocketCarrier(credentials, session=session).create_shipment(shipment)

        assert quote.shipment_id == "991"
        assert quote.shipping_charge == 4950
        assert quote.tracking_number == "AWB1"

    def test_payload_uses_major_units(self, session, credentials, shipment):
        session.post.return_value = _response(200, {"shipment_id": 1})

        ShiprocketCarrier(credentials, session=session).create_shipment(shipment)

        payload = session.post.call_args.kwargs["json"]
        assert payload["order_items"][0]["selling_price"] == "500.00"
        assert payload["sub_total"] == "1000.00"
        assert payload["total_discount"] == "200.00"
        assert payload["giftwrap_charges"] == "50.00"
        assert payload["shipping_pincode"] == "400020"
        assert payload["shipping_is_billing"] is True

    def test_unauthorized_retries_once_with_fresh_token(self, session, credentials, shipment):
        session.post.side_effect = [_response(401), _response(200, {"shipment_id": 2})]

        quote = ShiprocketCarrier(credentials, session=session).create_shipment(shipment)

        assert quote.shipment_id == "2"
        headers = [call.kwargs["headers"]["Authorization"] for call in session.post.call_args_list]
        assert headers == ["Bearer token-1", "Bearer token-2"]

    def test_second_unauthorized_is_rejected(self, session, credentials, shipment):
        session.post.side_effect = [_response(401), _response(401)]
        with pytest.raises(GatewayRejectedError):
            ShiprocketCarrier(credentials, session=session).create_shipment(shipment)
        assert session.post.call_count == 2

    def test_server_error(self, session, credentials, shipment):
        session.post.return_value = _response(502)
        with pytest.raises(UpstreamUnavailableError):
            ShiprocketCarrier(credentials, session=session).create_shipment(shipment)

    def test_connection_error(self, session, credentials, shipment):
        session.post.side_effect = requests.ConnectionError("refused")
        with pytest.raises(UpstreamUnavailableError):
            ShiprocketCarrier(credentials, session=session).create_shipment(shipment)

    def test_login(self, session):
        session.post.return_value = _response(200, {"token": "abc"})
        assert shiprocket_login("ops@example.com", "pw", session=session)() == "abc"
        assert session.post.call_args.kwargs["json"] == {"email": "ops@example.com", "password": "pw"}

    def test_login_refused(self, session):
        session.post.return_value = _response(403)
        with pytest.raises(GatewayRejectedError):
            shiprocket_login("ops@example.com", "wrong", session=session)()


class TestAdapterFactories:
    def test_defaults_are_fakes(self):
        set_settings(Settings(env="test"))
        reset_gateway()
        reset_carrier()
        assert isinstance(get_gateway(), FakePaymentGateway)
        assert isinstance(get_carrier(), FakeCarrier)

    def test_configured_production_adapters(self):
        set_settings(Settings(env="test", payment_gateway="razorpay", carrier_adapter="shiprocket"))
        reset_gateway()
        reset_carrier()
        assert isinstance(get_gateway(), RazorpayGateway)
        assert isinstance(get_carrier(), ShiprocketCarrier)

    def test_unknown_adapter(self):
        set_settings(Settings(env="test", payment_gateway="paypal"))
        reset_gateway()
        with pytest.raises(ValueError):
            get_gateway()
