"""Tests for environment-driven settings and log configuration choices."""

from decimal import Decimal

import structlog
from storefront.config import Settings, get_settings, load_settings, reset_settings
from storefront.utils.logging import add_context, clear_context, get_log_format, get_log_level


class TestLoadSettings:
    def test_defaults(self):
        settings = load_settings({})
        assert settings == Settings()
        assert settings.free_shipping_threshold == 50000
        assert settings.bulk_status_limit == 50

    def test_values_are_parsed(self):
        settings = load_settings(
            {
                "PROTEAN_ENV": "production",
                "STOREFRONT_TAX_RATE": "0.05",
                "STOREFRONT_GIFT_WRAP_CHARGE": "2500",
                "GATEWAY_TIMEOUT_SECONDS": "2.5",
                "BULK_STATUS_LIMIT": "10",
                "RAZORPAY_KEY_SECRET": "rzp-secret",
                "STOREFRONT_SELLER_STATE": "Karnataka",
            }
        )
        assert settings.env == "production"
        assert settings.tax_rate == Decimal("0.05")
        assert settings.gift_wrap_charge == 2500
        assert settings.gateway_timeout_seconds == 2.5
        assert settings.bulk_status_limit == 10
        assert settings.payment_signing_secret == "rzp-secret"
        assert settings.seller_state == "Karnataka"

    def test_get_settings_reads_environment_once(self, monkeypatch):
        monkeypatch.setenv("BULK_STATUS_LIMIT", "7")
        reset_settings()
        first = get_settings()
        monkeypatch.setenv("BULK_STATUS_LIMIT", "8")
        assert get_settings() is first
        assert first.bulk_status_limit == 7


class TestLogConfiguration:
    def test_level_follows_environment(self, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        assert get_log_level("production") == "INFO"
        assert get_log_level("development") == "DEBUG"
        assert get_log_level("test") == "WARNING"

    def test_level_override(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "error")
        assert get_log_level("production") == "ERROR"

    def test_format_follows_environment(self, monkeypatch):
        monkeypatch.delenv("LOG_FORMAT", raising=False)
        assert get_log_format("production") == "json"
        assert get_log_format("development") == "console"

    def test_context_binding(self):
        clear_context()
        add_context(order_id="ORD-1")
        assert structlog.contextvars.get_contextvars() == {"order_id": "ORD-1"}
        clear_context()
        assert structlog.contextvars.get_contextvars() == {}
