"""Payment gateway factory.

Provides get_gateway() / set_gateway() to swap implementations:
- FakePaymentGateway for development and testing
- RazorpayGateway for production (PAYMENT_GATEWAY=razorpay)
"""

from storefront.config import get_settings
from storefront.gateway.port import PaymentGateway

_current_gateway: PaymentGateway | None = None


def get_gateway() -> PaymentGateway:
    """Return the current payment gateway. Defaults to FakePaymentGateway."""
    global _current_gateway
    if _current_gateway is None:
        settings = get_settings()
        if settings.payment_gateway == "fake":
            from storefront.gateway.fake_adapter import FakePaymentGateway

            _current_gateway = FakePaymentGateway()
        elif settings.payment_gateway == "razorpay":
            from storefront.gateway.razorpay_adapter import RazorpayGateway

            _current_gateway = RazorpayGateway(
                settings.razorpay_key_id,
                settings.razorpay_key_secret,
                timeout=settings.gateway_timeout_seconds,
            )
        else:
            raise ValueError(f"Unknown payment gateway: {settings.payment_gateway}")
    return _current_gateway


def set_gateway(gateway: PaymentGateway) -> None:
    """Override the active payment gateway (useful for tests)."""
    global _current_gateway
    _current_gateway = gateway


def reset_gateway() -> None:
    """Reset to default gateway."""
    global _current_gateway
    _current_gateway = None
