"""Tests for Order creation — line snapshots, pricing invariant and first history row."""

import json

import pytest
from ordering.order.events import OrderPlaced
from ordering.order.order import Order, OrderStatus, PaymentStatus
from protean.exceptions import ValidationError

ADDRESS = {
    "receiver_name": "Hana Sato",
    "street": "12 Nguyen Hue",
    "city": "Ho Chi Minh City",
    "email": "hana@example.com",
}


def _place(**overrides):
    fields = {
        "order_number": 1,
        "customer_id": "cust-001",
        "lines": [
            {
                "sku": "MATCHA-100",
                "product_id": "prod-1",
                "product_name": "Uji Matcha 100g",
                "unit_price": 250_000.0,
                "quantity": 2,
                "attributes": {"grade": "ceremonial"},
            }
        ],
        "pricing": {
            "subtotal": 500_000.0,
            "shipping_fee": 30_000.0,
            "tax_amount": 0.0,
            "discount_amount": 40_000.0,
            "total_amount": 490_000.0,
            "currency": "VND",
        },
        "shipping_address": ADDRESS,
    }
    fields.update(overrides)
    return Order.place(**fields)


class TestPlaceOrder:
    def test_order_starts_pending_with_pending_payment(self):
        order = _place()
        assert order.status == OrderStatus.PENDING.value
        assert order.payment_status == PaymentStatus.PENDING.value

    def test_line_items_snapshot_catalog_data(self):
        order = _place()
        item = order.items[0]
        assert item.product_name == "Uji Matcha 100g"
        assert item.unit_price == 250_000.0
        assert item.line_total == 500_000.0
        assert json.loads(item.attributes) == {"grade": "ceremonial"}

    def test_initial_history_row(self):
        order = _place()
        assert len(order.status_history) == 1
        entry = order.status_history[0]
        assert entry.old_status == OrderStatus.PENDING.value
        assert entry.new_status == OrderStatus.PENDING.value
        assert entry.note == "Order created successfully"

    def test_billing_defaults_to_shipping_address(self):
        order = _place()
        assert order.billing_address.street == order.shipping_address.street
        assert order.billing_address.receiver_name == "Hana Sato"

    def test_formatted_address(self):
        order = _place()
        assert order.shipping_address.formatted() == "12 Nguyen Hue, Ho Chi Minh City, Vietnam"

    def test_raises_order_placed(self):
        order = _place()
        placed = [e for e in order._events if isinstance(e, OrderPlaced)]
        assert len(placed) == 1
        assert placed[0].total_amount == 490_000.0
        assert placed[0].receiver_email == "hana@example.com"
        assert placed[0].item_count == 2


class TestPricingInvariant:
    def test_total_must_balance(self):
        with pytest.raises(ValidationError) as exc_info:
            _place(
                pricing={
                    "subtotal": 500_000.0,
                    "shipping_fee": 30_000.0,
                    "discount_amount": 0.0,
                    "total_amount": 500_000.0,
                }
            )
        assert "total_amount" in exc_info.value.messages

    def test_discount_cannot_exceed_subtotal(self):
        with pytest.raises(ValidationError):
            _place(
                pricing={
                    "subtotal": 10_000.0,
                    "shipping_fee": 30_000.0,
                    "discount_amount": 20_000.0,
                    "total_amount": 20_000.0,
                }
            )
