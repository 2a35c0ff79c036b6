"""Order aggregate — the committed result of a checkout.

The Order is a standard CQRS aggregate (not event sourced). It owns its line
items and an append-only status history, and it carries two loosely coupled
state machines: the fulfillment ``status`` and the independent
``payment_status``.

Fulfillment state machine:
    PENDING → CONFIRMED → PROCESSING → PACKED → SHIPPED → DELIVERED
    CANCELLED (from PENDING, CONFIRMED, PROCESSING)
    DELIVERED → RETURNED → REFUNDED

Cross-influence on payment status:
    entering CONFIRMED moves a PENDING payment to CONFIRMED,
    entering DELIVERED forces PAID (cash collected on delivery),
    entering REFUNDED moves a PAID payment to REFUNDED.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from ordering.domain import ordering
from ordering.errors import InvalidStatusTransition
from ordering.order.events import OrderCancelled, OrderPlaced, OrderStatusChanged


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    PROCESSING = "Processing"
    PACKED = "Packed"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"
    RETURNED = "Returned"
    REFUNDED = "Refunded"


class PaymentStatus(Enum):
    PENDING = "Pending"
    PROCESSING = "Processing"
    CONFIRMED = "Confirmed"
    PAID = "Paid"
    FAILED = "Failed"
    CANCELLED = "Cancelled"
    REFUNDED = "Refunded"
    EXPIRED = "Expired"


class DeliveryMethod(Enum):
    STANDARD = "Standard"
    EXPRESS = "Express"


def parse_status(value):
    """Coerce a status name or enum member, rejecting unknown names."""
    if isinstance(value, OrderStatus):
        return value
    try:
        return OrderStatus(value)
    except ValueError:
        raise ValidationError({"status": [f"Unknown order status {value}"]}) from None


# State machine transition map
_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.PACKED, OrderStatus.CANCELLED},
    OrderStatus.PACKED: {OrderStatus.SHIPPED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: {OrderStatus.RETURNED},
    OrderStatus.RETURNED: {OrderStatus.REFUNDED},
    OrderStatus.CANCELLED: set(),  # Terminal
    OrderStatus.REFUNDED: set(),  # Terminal
}

# States from which cancellation is allowed
_CANCELLABLE_STATES = {
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.PROCESSING,
}

# Timestamp stamped on entry to each state
_MILESTONES = {
    OrderStatus.CONFIRMED: "confirmed_at",
    OrderStatus.PROCESSING: "processing_at",
    OrderStatus.PACKED: "packed_at",
    OrderStatus.SHIPPED: "shipped_at",
    OrderStatus.DELIVERED: "delivered_at",
    OrderStatus.CANCELLED: "cancelled_at",
    OrderStatus.RETURNED: "returned_at",
    OrderStatus.REFUNDED: "refunded_at",
}


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@ordering.value_object(part_of="Order")
class AddressSnapshot:
    """Receiver and address copied from the customer's address book at checkout.

    The snapshot is never refreshed: later edits to the address book do not
    change where an existing order ships.
    """

    receiver_name = String(required=True, max_length=200)
    phone = String(max_length=30)
    email = String(max_length=254)
    street = String(required=True, max_length=255)
    ward = String(max_length=100)
    district = String(max_length=100)
    city = String(required=True, max_length=100)
    postal_code = String(max_length=20)
    country = String(max_length=100, default="Vietnam")

    def formatted(self):
        parts = [self.street, self.ward, self.district, self.city, self.country]
        return ", ".join(p for p in parts if p)


@ordering.value_object(part_of="Order")
class OrderPricing:
    """Money breakdown locked at checkout.

    ``total_amount = subtotal + shipping_fee + tax_amount - discount_amount``
    """

    subtotal = Float(default=0.0, min_value=0.0)
    shipping_fee = Float(default=0.0, min_value=0.0)
    tax_amount = Float(default=0.0, min_value=0.0)
    discount_amount = Float(default=0.0, min_value=0.0)
    total_amount = Float(default=0.0, min_value=0.0)
    currency = String(max_length=3, default="VND")


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@ordering.entity(part_of="Order")
class OrderLineItem:
    """What was bought, at the price and name the catalog showed at purchase time."""

    sku = String(required=True, max_length=100)
    product_id = Identifier()
    product_name = String(required=True, max_length=255)
    unit_price = Float(required=True, min_value=0.0)
    quantity = Integer(required=True, min_value=1)
    line_total = Float(required=True, min_value=0.0)
    attributes = Text()  # JSON: variant attributes (size, colour, ...)


@ordering.entity(part_of="Order")
class OrderStatusHistory:
    old_status = String(required=True, max_length=20)
    new_status = String(required=True, max_length=20)
    note = Text()
    changed_at = DateTime(required=True)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@ordering.aggregate
class Order:
    order_number = Integer(required=True, min_value=1, unique=True)
    customer_id = Identifier(required=True)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    payment_status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    items = HasMany(OrderLineItem)
    status_history = HasMany(OrderStatusHistory)
    pricing = ValueObject(OrderPricing)
    shipping_address = ValueObject(AddressSnapshot)
    billing_address = ValueObject(AddressSnapshot)
    coupon_code = String(max_length=50)
    delivery_method = String(choices=DeliveryMethod, default=DeliveryMethod.STANDARD.value)
    is_gift = Boolean(default=False)
    gift_message = Text()
    gift_wrap_requested = Boolean(default=False)
    customer_notes = Text()
    tracking_number = String(max_length=100)
    shipping_carrier = String(max_length=100)
    cancel_reason = Text()
    created_at = DateTime()
    confirmed_at = DateTime()
    processing_at = DateTime()
    packed_at = DateTime()
    shipped_at = DateTime()
    delivered_at = DateTime()
    cancelled_at = DateTime()
    returned_at = DateTime()
    refunded_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def totals_must_balance(self):
        pricing = self.pricing
        if pricing is None:
            return
        expected = pricing.subtotal + pricing.shipping_fee + pricing.tax_amount - pricing.discount_amount
        if abs(pricing.total_amount - expected) > 0.01:
            raise ValidationError({"total_amount": ["Total must equal subtotal + shipping + tax - discount"]})
        if pricing.discount_amount > pricing.subtotal:
            raise ValidationError({"discount_amount": ["Discount cannot exceed the subtotal"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        order_number,
        customer_id,
        lines,
        pricing,
        shipping_address,
        billing_address=None,
        coupon_code=None,
        delivery_method=DeliveryMethod.STANDARD.value,
        is_gift=False,
        gift_message=None,
        gift_wrap_requested=False,
        customer_notes=None,
    ):
        """Create a Pending order with its line items and the initial history row.

        Args:
            lines: dicts with sku, product_id, product_name, unit_price, quantity
                   and optional attributes (dict).
            pricing: dict with subtotal, shipping_fee, tax_amount,
                     discount_amount, total_amount, currency.
            shipping_address / billing_address: dicts for AddressSnapshot.
                     Billing defaults to the shipping address.
        """
        now = datetime.now(UTC)

        items = [
            OrderLineItem(
                sku=line["sku"],
                product_id=line.get("product_id"),
                product_name=line["product_name"],
                unit_price=line["unit_price"],
                quantity=line["quantity"],
                line_total=round(line["unit_price"] * line["quantity"], 2),
                attributes=json.dumps(line.get("attributes") or {}),
            )
            for line in lines
        ]

        order = cls(
            order_number=order_number,
            customer_id=customer_id,
            status=OrderStatus.PENDING.value,
            payment_status=PaymentStatus.PENDING.value,
            items=items,
            status_history=[
                OrderStatusHistory(
                    old_status=OrderStatus.PENDING.value,
                    new_status=OrderStatus.PENDING.value,
                    note="Order created successfully",
                    changed_at=now,
                )
            ],
            pricing=OrderPricing(**pricing),
            shipping_address=AddressSnapshot(**shipping_address),
            billing_address=AddressSnapshot(**(billing_address or shipping_address)),
            coupon_code=coupon_code,
            delivery_method=delivery_method,
            is_gift=is_gift,
            gift_message=gift_message,
            gift_wrap_requested=gift_wrap_requested,
            customer_notes=customer_notes,
            created_at=now,
            updated_at=now,
        )

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order_number,
                customer_id=str(customer_id),
                receiver_name=order.shipping_address.receiver_name,
                receiver_email=order.shipping_address.email,
                item_count=sum(item.quantity for item in items),
                total_amount=order.pricing.total_amount,
                currency=order.pricing.currency,
                coupon_code=coupon_code,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def can_cancel(self):
        return OrderStatus(self.status) in _CANCELLABLE_STATES

    @property
    def is_paid(self):
        return self.payment_status == PaymentStatus.PAID.value

    @property
    def total_amount(self):
        return self.pricing.total_amount

    @property
    def currency(self):
        return self.pricing.currency

    def can_transition_to(self, target_status):
        return target_status in _VALID_TRANSITIONS.get(OrderStatus(self.status), set())

    # -------------------------------------------------------------------
    # State transitions
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status):
        """Validate that the current state allows transition to target."""
        if not self.can_transition_to(target_status):
            raise InvalidStatusTransition(self.status, target_status.value)

    def transition_to(self, target_status, note=None, tracking_number=None, shipping_carrier=None):
        """Move the order to ``target_status``.

        Rejects illegal moves with ``InvalidStatusTransition`` before touching
        any field. A legal move stamps the milestone timestamp, applies the
        payment-status rule for the new state, and appends one history row.
        """
        target_status = parse_status(target_status)
        self._assert_can_transition(target_status)

        previous = OrderStatus(self.status)
        now = datetime.now(UTC)
        note = note or f"Status changed from {previous.value} to {target_status.value}"

        self.status = target_status.value
        setattr(self, _MILESTONES[target_status], now)
        self.updated_at = now

        if target_status == OrderStatus.CONFIRMED:
            if self.payment_status == PaymentStatus.PENDING.value:
                self.payment_status = PaymentStatus.CONFIRMED.value
        elif target_status == OrderStatus.SHIPPED:
            if tracking_number:
                self.tracking_number = tracking_number
            if shipping_carrier:
                self.shipping_carrier = shipping_carrier
        elif target_status == OrderStatus.DELIVERED:
            self.payment_status = PaymentStatus.PAID.value
        elif target_status == OrderStatus.REFUNDED:
            if self.payment_status == PaymentStatus.PAID.value:
                self.payment_status = PaymentStatus.REFUNDED.value

        self.add_status_history(
            OrderStatusHistory(
                old_status=previous.value,
                new_status=target_status.value,
                note=note,
                changed_at=now,
            )
        )

        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                order_number=self.order_number,
                customer_id=str(self.customer_id),
                old_status=previous.value,
                new_status=target_status.value,
                note=note,
                changed_at=now,
            )
        )

    def cancel(self, reason):
        """Cancel the order while it has not yet been packed for shipping."""
        if not self.can_cancel:
            raise InvalidStatusTransition(self.status, OrderStatus.CANCELLED.value)

        reason = reason or "Cancelled by customer"
        self.cancel_reason = reason
        self.transition_to(OrderStatus.CANCELLED, note=reason)

        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                order_number=self.order_number,
                customer_id=str(self.customer_id),
                reason=reason,
                total_amount=self.pricing.total_amount,
                cancelled_at=self.cancelled_at,
            )
        )

    # -------------------------------------------------------------------
    # Payment status
    # -------------------------------------------------------------------
    def confirm_payment(self):
        """Mark an unpaid order's payment as arranged (cash on delivery)."""
        if self.payment_status == PaymentStatus.PENDING.value:
            self.payment_status = PaymentStatus.CONFIRMED.value
            self.updated_at = datetime.now(UTC)

    def mark_paid(self):
        self.payment_status = PaymentStatus.PAID.value
        self.updated_at = datetime.now(UTC)


@ordering.repository(part_of=Order)
class OrderRepository:
    def find_by_number(self, order_number: int) -> Order | None:
        results = self._dao.query.filter(order_number=int(order_number)).all().items
        return results[0] if results else None

    def for_customer(self, customer_id: str) -> list[Order]:
        orders = self._dao.query.filter(customer_id=str(customer_id)).all().items
        return sorted(orders, key=lambda o: o.order_number, reverse=True)
