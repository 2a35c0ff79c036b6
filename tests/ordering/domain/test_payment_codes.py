"""Tests for payment code formatting and recovery from transfer memos."""

import pytest
from ordering.config import Settings
from ordering.errors import MalformedPaymentCode
from ordering.payment.codes import format_payment_code, parse_order_number, transfer_content


class TestFormat:
    def test_zero_padded(self):
        assert format_payment_code(123, settings=Settings()) == "SAKURA000123"

    def test_custom_prefix_and_width(self):
        settings = Settings(payment_code_prefix="SHOP", payment_code_digits=4)
        assert format_payment_code(42, settings=settings) == "SHOP0042"

    def test_transfer_content(self):
        assert transfer_content("SAKURA000123", "PAY1") == "SAKURA000123 PAY1"


class TestParse:
    def test_exact_code(self):
        assert parse_order_number("SAKURA000123", settings=Settings()) == 123

    def test_code_inside_memo(self):
        memo = "MBVCB.1234.FT24 SAKURA000123 PAY20241001 chuyen tien"
        assert parse_order_number(memo, settings=Settings()) == 123

    def test_case_insensitive(self):
        assert parse_order_number("thanh toan sakura000045", settings=Settings()) == 45

    def test_first_memo_with_a_code_wins(self):
        assert parse_order_number(None, "no code here", "SAKURA000007", settings=Settings()) == 7

    def test_code_field_preferred_over_content(self):
        assert parse_order_number("SAKURA000009", "SAKURA000010", settings=Settings()) == 9

    @pytest.mark.parametrize(
        "memo",
        [
            "chuyen tien",
            "SAKURA123",
            "SAKURA0001234",
            "SAKURAABCDEF",
        ],
    )
    def test_malformed(self, memo):
        with pytest.raises(MalformedPaymentCode) as exc_info:
            parse_order_number(memo, settings=Settings())
        assert "content" in exc_info.value.messages

    def test_no_memo_at_all(self):
        with pytest.raises(MalformedPaymentCode):
            parse_order_number(None, "", settings=Settings())
