"""Tests for the Coupon Ledger — validation order, consumption races and reversal."""

from datetime import UTC, datetime, timedelta

import pytest
from ordering.coupon.ledger import CouponLedger
from protean.exceptions import ObjectNotFoundError, ValidationError

NOW = datetime.now(UTC)


class TestValidate:
    def test_valid_coupon_prices_discount(self, shop):
        shop.add_coupon("SAKURA10", 10, max_discount_amount=40_000.0)
        result = CouponLedger().validate("SAKURA10", 500_000.0)
        assert result.is_valid is True
        assert result.discount == 40_000.0
        assert result.code == "SAKURA10"

    def test_lookup_is_case_insensitive(self, shop):
        shop.add_coupon("Sakura10", 10)
        result = CouponLedger().validate("  sakura10 ", 200_000.0)
        assert result.is_valid is True
        assert result.code == "SAKURA10"
        assert result.discount == 20_000.0

    def test_unknown_code(self):
        result = CouponLedger().validate("NOPE", 100_000.0)
        assert result.is_valid is False
        assert result.message == "Coupon code does not exist"
        assert result.discount == 0.0

    def test_inactive_reported_before_expiry(self, shop):
        shop.add_coupon(
            "OLD",
            10,
            is_active=False,
            start_date=NOW - timedelta(days=10),
            end_date=NOW - timedelta(days=1),
        )
        assert CouponLedger().validate("OLD", 100_000.0).message == "Coupon is not active"

    def test_not_yet_valid(self, shop):
        shop.add_coupon("SOON", 10, start_date=NOW + timedelta(days=1), end_date=NOW + timedelta(days=5))
        assert CouponLedger().validate("SOON", 100_000.0).message == "Coupon is not yet valid"

    def test_expired(self, shop):
        shop.add_coupon("GONE", 10, start_date=NOW - timedelta(days=5), end_date=NOW - timedelta(days=1))
        assert CouponLedger().validate("GONE", 100_000.0).message == "Coupon has expired"

    def test_explicit_clock(self, shop):
        shop.add_coupon("TET", 10, start_date=NOW, end_date=NOW + timedelta(days=3))
        later = NOW + timedelta(days=4)
        assert CouponLedger().validate("TET", 100_000.0, now=later).message == "Coupon has expired"

    def test_exhausted(self, shop):
        shop.add_coupon("ONCE", 10, usage_limit=1)
        CouponLedger().try_consume("ONCE")
        result = CouponLedger().validate("ONCE", 100_000.0)
        assert result.message == "Coupon usage limit has been reached"

    def test_minimum_order_amount(self, shop):
        shop.add_coupon("BIG", 50_000, discount_type="Fixed", min_order_amount=300_000.0)
        result = CouponLedger().validate("BIG", 299_000.0)
        assert result.is_valid is False
        assert result.message == "Minimum order amount is 300,000"

    def test_validate_does_not_consume(self, shop):
        shop.add_coupon("ONCE", 10, usage_limit=1)
        CouponLedger().validate("ONCE", 100_000.0)
        assert CouponLedger().get("ONCE").used_count == 0


class TestConsume:
    def test_consume_increments(self, shop):
        shop.add_coupon("SAKURA10", 10, usage_limit=5)
        assert CouponLedger().try_consume("sakura10") is True
        assert CouponLedger().get("SAKURA10").used_count == 1

    def test_last_redemption_goes_to_one_caller(self, shop):
        shop.add_coupon("ONCE", 10, usage_limit=1)
        ledger = CouponLedger()

        # Both checkouts validate before either consumes
        assert ledger.validate("ONCE", 100_000.0).is_valid
        assert ledger.validate("ONCE", 100_000.0).is_valid

        assert ledger.try_consume("ONCE") is True
        assert ledger.try_consume("ONCE") is False
        assert ledger.get("ONCE").used_count == 1

    def test_unlimited_coupon(self, shop):
        shop.add_coupon("FOREVER", 5)
        ledger = CouponLedger()
        for _ in range(20):
            assert ledger.try_consume("FOREVER") is True
        assert ledger.get("FOREVER").used_count == 20

    def test_unknown_code_cannot_be_consumed(self):
        assert CouponLedger().try_consume("NOPE") is False


class TestRevert:
    def test_revert_gives_redemption_back(self, shop):
        shop.add_coupon("ONCE", 10, usage_limit=1)
        ledger = CouponLedger()
        ledger.try_consume("ONCE")
        ledger.revert("ONCE")
        assert ledger.get("ONCE").used_count == 0
        assert ledger.validate("ONCE", 100_000.0).is_valid is True

    def test_revert_never_goes_below_zero(self, shop):
        shop.add_coupon("SAKURA10", 10)
        ledger = CouponLedger()
        ledger.revert("SAKURA10")
        assert ledger.get("SAKURA10").used_count == 0

    def test_revert_unknown_code_is_skipped(self):
        CouponLedger().revert("NOPE")


class TestManagement:
    def test_toggle(self, shop):
        shop.add_coupon("SAKURA10", 10)
        ledger = CouponLedger()

        assert ledger.set_active("sakura10", False).is_active is False
        assert ledger.validate("SAKURA10", 100_000.0).message == "Coupon is not active"

        assert ledger.set_active("SAKURA10", True).is_active is True

    def test_toggle_unknown_code(self):
        with pytest.raises(ObjectNotFoundError):
            CouponLedger().set_active("NOPE", True)

    def test_get_unknown_code(self):
        with pytest.raises(ObjectNotFoundError):
            CouponLedger().get("NOPE")

    def test_duplicate_code_rejected(self, shop):
        shop.add_coupon("SAKURA10", 10)
        with pytest.raises(ValidationError):
            shop.add_coupon("sakura10", 15)

    def test_percentage_over_hundred_rejected(self, shop):
        with pytest.raises(ValidationError):
            shop.add_coupon("HUGE", 150)
