"""Domain events for the PaymentTransaction aggregate."""

from protean.fields import DateTime, Float, Identifier, Integer, String

from ordering.domain import ordering


@ordering.event(part_of="PaymentTransaction")
class PaymentConfirmed:
    """A bank transfer was matched to a pending attempt and the order is paid."""

    __version__ = 1

    transaction_id = String(required=True)
    order_id = Identifier(required=True)
    order_number = Integer()
    customer_id = Identifier(required=True)
    amount = Float(required=True)
    currency = String(default="VND")
    external_reference = String()
    paid_at = DateTime(required=True)
