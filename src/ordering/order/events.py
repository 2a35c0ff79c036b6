"""Domain events for the Order aggregate.

Events are raised by the aggregate and dispatched after the unit of work that
persisted it commits. Handlers use them for best-effort side effects
(notifications, email) that must never roll back the order.
"""

from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from ordering.domain import ordering


@ordering.event(part_of="Order")
class OrderPlaced:
    """A cart was converted into a committed order."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = Integer(required=True)
    customer_id = Identifier(required=True)
    receiver_name = String()
    receiver_email = String()
    item_count = Integer()
    total_amount = Float(required=True)
    currency = String(default="VND")
    coupon_code = String()
    placed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderStatusChanged:
    """The order moved along its lifecycle (one per status history row after creation)."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = Integer()
    customer_id = Identifier(required=True)
    old_status = String(required=True)
    new_status = String(required=True)
    note = Text()
    changed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderCancelled:
    """The order was cancelled before shipping; stock and coupon are handed back."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = Integer()
    customer_id = Identifier(required=True)
    reason = Text()
    total_amount = Float()
    cancelled_at = DateTime(required=True)
