"""Carrier adapter abstraction: pluggable shipping carrier integration."""

from storefront.config import get_settings

_carrier_instance = None


def get_carrier():
    """Return the configured carrier adapter (singleton).

    Uses FakeCarrier by default. In production, configure via the
    CARRIER_ADAPTER environment variable.
    """
    global _carrier_instance
    if _carrier_instance is None:
        settings = get_settings()
        if settings.carrier_adapter == "fake":
            from storefront.carrier.fake_adapter import FakeCarrier

            _carrier_instance = FakeCarrier(
                free_shipping_threshold=settings.free_shipping_threshold,
                flat_charge=settings.flat_shipping_charge,
            )
        elif settings.carrier_adapter == "shiprocket":
            from storefront.carrier.shiprocket_adapter import ShiprocketCarrier, shiprocket_credentials

            credentials = shiprocket_credentials(
                settings.shiprocket_email,
                settings.shiprocket_password,
                ttl_hours=settings.shiprocket_token_ttl_hours,
                timeout=settings.carrier_timeout_seconds,
            )
            _carrier_instance = ShiprocketCarrier(credentials, timeout=settings.carrier_timeout_seconds)
        else:
            raise ValueError(f"Unknown carrier adapter: {settings.carrier_adapter}")
    return _carrier_instance


def set_carrier(carrier) -> None:
    global _carrier_instance
    _carrier_instance = carrier


def reset_carrier():
    """Reset the carrier singleton (useful for testing)."""
    global _carrier_instance
    _carrier_instance = None
