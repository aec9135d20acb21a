"""Application tests for coupon validation, definition and usage accounting."""

from datetime import UTC, datetime, timedelta

import pytest
from protean import current_domain
from protean.exceptions import ValidationError
from storefront.coupon.definition import DefineCoupon
from storefront.coupon.usage import CouponUsage
from storefront.coupon.validator import CartItem, CouponValidator


def _past_order(store, order_id, status="pending", coupon_code=None, user_id="cust-001"):
    store.set(
        "orders",
        order_id,
        {
            "id": order_id,
            "user_id": user_id,
            "status": status,
            "coupon": {"code": coupon_code, "discount_amount": 100} if coupon_code else None,
        },
    )


class TestCouponValidator:
    def test_unknown_code(self, store):
        verdict = CouponValidator(store).validate("NOPE", "cust-001", 100000)
        assert verdict.reason == "not_found"

    def test_code_lookup_ignores_case(self, store, define_coupon):
        define_coupon("SAVE200", "fixed", 20000)
        verdict = CouponValidator(store).validate(" save200 ", "cust-001", 100000)
        assert verdict.valid
        assert verdict.discount_amount == 20000

    def test_already_used_on_earlier_order(self, store, define_coupon):
        define_coupon("SAVE200", "fixed", 20000)
        _past_order(store, "ORD-1", coupon_code="SAVE200")
        assert CouponValidator(store).validate("SAVE200", "cust-001", 100000).reason == "already_used"

    def test_use_on_cancelled_order_does_not_count(self, store, define_coupon):
        define_coupon("SAVE200", "fixed", 20000)
        _past_order(store, "ORD-1", status="cancelled", coupon_code="SAVE200")
        assert CouponValidator(store).validate("SAVE200", "cust-001", 100000).valid

    def test_other_users_history_is_ignored(self, store, define_coupon):
        define_coupon("SAVE200", "fixed", 20000)
        _past_order(store, "ORD-1", coupon_code="SAVE200", user_id="cust-002")
        assert CouponValidator(store).validate("SAVE200", "cust-001", 100000).valid

    def test_first_time_only(self, store, define_coupon):
        define_coupon("WELCOME", "percentage", 10, first_time_only=True)
        _past_order(store, "ORD-1")
        validator = CouponValidator(store)
        assert validator.validate("WELCOME", "cust-001", 100000).reason == "first_order_only"
        assert validator.validate("WELCOME", "cust-002", 100000).valid

    def test_clock_is_injectable(self, store, define_coupon):
        expiry = datetime(2026, 1, 1, tzinfo=UTC)
        define_coupon("NEWYEAR", "fixed", 1000, expires_at=expiry)
        before = CouponValidator(store, clock=lambda: expiry - timedelta(minutes=1))
        after = CouponValidator(store, clock=lambda: expiry + timedelta(minutes=1))
        assert before.validate("NEWYEAR", "cust-001", 100000).valid
        assert after.validate("NEWYEAR", "cust-001", 100000).reason == "expired"

    def test_cart_items_are_checked(self, store, define_coupon):
        define_coupon("BOOKS", "percentage", 10, applicable_categories=["books"])
        validator = CouponValidator(store)
        assert validator.validate("BOOKS", "cust-001", 100000, [CartItem("p1", "apparel")]).reason == (
            "not_applicable_to_cart"
        )
        assert validator.validate("BOOKS", "cust-001", 100000, [CartItem("p2", "books")]).valid


class TestCouponUsage:
    def test_redeem_counts_each_order_once(self, store, define_coupon):
        define_coupon("SAVE200", "fixed", 20000)
        usage = CouponUsage(store)

        assert usage.redeem("save200", "ORD-1") is True
        assert usage.redeem("SAVE200", "ORD-1") is False
        assert usage.redeem("SAVE200", "ORD-2") is True

        document = store.get("coupons", "SAVE200")
        assert document["usage_count"] == 2
        assert document["redeemed_orders"] == ["ORD-1", "ORD-2"]

    def test_missing_coupon(self, store):
        assert CouponUsage(store).redeem("GONE", "ORD-1") is False

    def test_usage_limit_applies_after_redemptions(self, store, define_coupon):
        define_coupon("ONCE", "fixed", 1000, usage_limit=1)
        CouponUsage(store).redeem("ONCE", "ORD-1")
        assert CouponValidator(store).validate("ONCE", "cust-009", 100000).reason == "usage_limit_reached"


class TestDefineCouponCommand:
    def test_define_persists_document(self, store):
        code = current_domain.process(
            DefineCoupon(
                code="festive25",
                discount_type="percentage",
                value=25,
                max_discount=50000,
                applicable_categories='["apparel"]',
                created_by="staff-001",
            ),
            asynchronous=False,
        )
        assert code == "FESTIVE25"

        document = store.get("coupons", "FESTIVE25")
        assert document["discount_type"] == "percentage"
        assert document["max_discount"] == 50000
        assert document["applicable_categories"] == ["apparel"]
        assert document["usage_count"] == 0
        assert document["redeemed_orders"] == []

    def test_duplicate_code_rejected(self, store, define_coupon):
        define_coupon("FESTIVE25", "percentage", 25)
        with pytest.raises(ValidationError):
            current_domain.process(
                DefineCoupon(code="Festive25", discount_type="fixed", value=100),
                asynchronous=False,
            )

    def test_invalid_terms_rejected(self, store):
        with pytest.raises(ValidationError):
            current_domain.process(
                DefineCoupon(code="HUGE", discount_type="percentage", value=120),
                asynchronous=False,
            )
        assert store.get("coupons", "HUGE") is None
