"""Environment-driven settings for the storefront service."""

import os
from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class Settings:
    env: str = "development"
    currency: str = "INR"
    tax_rate: Decimal = Decimal("0.18")
    gift_wrap_charge: int = 5000
    seller_state: str = ""

    store_adapter: str = "memory"
    database_url: str = "sqlite://"

    payment_gateway: str = "fake"
    razorpay_key_id: str = ""
    razorpay_key_secret: str = "test-secret"
    gateway_timeout_seconds: float = 10.0

    carrier_adapter: str = "fake"
    shiprocket_email: str = ""
    shiprocket_password: str = ""
    shiprocket_token_ttl_hours: int = 216
    carrier_timeout_seconds: float = 10.0
    free_shipping_threshold: int = 50000
    flat_shipping_charge: int = 5000

    bulk_status_limit: int = 50

    @property
    def payment_signing_secret(self) -> str:
        """Shared secret for payment callback signatures."""
        return self.razorpay_key_secret


def load_settings(environ=None) -> Settings:
    """Build settings from environment variables, falling back to defaults."""
    env = os.environ if environ is None else environ
    defaults = Settings()
    return Settings(
        env=env.get("PROTEAN_ENV", defaults.env),
        currency=env.get("STOREFRONT_CURRENCY", defaults.currency),
        tax_rate=Decimal(env.get("STOREFRONT_TAX_RATE", str(defaults.tax_rate))),
        gift_wrap_charge=int(env.get("STOREFRONT_GIFT_WRAP_CHARGE", defaults.gift_wrap_charge)),
        seller_state=env.get("STOREFRONT_SELLER_STATE", defaults.seller_state),
        store_adapter=env.get("STORE_ADAPTER", defaults.store_adapter),
        database_url=env.get("DATABASE_URL", defaults.database_url),
        payment_gateway=env.get("PAYMENT_GATEWAY", defaults.payment_gateway),
        razorpay_key_id=env.get("RAZORPAY_KEY_ID", defaults.razorpay_key_id),
        razorpay_key_secret=env.get("RAZORPAY_KEY_SECRET", defaults.razorpay_key_secret),
        gateway_timeout_seconds=float(env.get("GATEWAY_TIMEOUT_SECONDS", defaults.gateway_timeout_seconds)),
        carrier_adapter=env.get("CARRIER_ADAPTER", defaults.carrier_adapter),
        shiprocket_email=env.get("SHIPROCKET_EMAIL", defaults.shiprocket_email),
        shiprocket_password=env.get("SHIPROCKET_PASSWORD", defaults.shiprocket_password),
        shiprocket_token_ttl_hours=int(env.get("SHIPROCKET_TOKEN_TTL_HOURS", defaults.shiprocket_token_ttl_hours)),
        carrier_timeout_seconds=float(env.get("CARRIER_TIMEOUT_SECONDS", defaults.carrier_timeout_seconds)),
        free_shipping_threshold=int(env.get("FREE_SHIPPING_THRESHOLD", defaults.free_shipping_threshold)),
        flat_shipping_charge=int(env.get("FLAT_SHIPPING_CHARGE", defaults.flat_shipping_charge)),
        bulk_status_limit=int(env.get("BULK_STATUS_LIMIT", defaults.bulk_status_limit)),
    )


_current_settings: Settings | None = None


def get_settings() -> Settings:
    """Return the active settings, loading them from the environment once."""
    global _current_settings
    if _current_settings is None:
        _current_settings = load_settings()
    return _current_settings


def set_settings(settings: Settings) -> None:
    """Override the active settings (useful for tests)."""
    global _current_settings
    _current_settings = settings


def reset_settings() -> None:
    global _current_settings
    _current_settings = None
