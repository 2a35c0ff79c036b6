"""PaymentTransaction aggregate — one payment attempt against an order.

An order may accumulate several attempts (a cancelled one followed by a retry),
but at most one of them is Pending at any time. Amount and currency are copied
from the order when the attempt opens and are what an inbound bank transfer is
checked against.
"""

import json
from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from ordering.domain import ordering
from ordering.order.order import PaymentStatus
from ordering.payment.events import PaymentConfirmed


class PaymentMethod(Enum):
    COD = "COD"
    BANK_TRANSFER = "BANK_TRANSFER"
    SEPAY = "SEPAY"
    CREDIT_CARD = "CREDIT_CARD"
    E_WALLET = "E_WALLET"


# Methods settled by an inbound bank transfer carrying the payment code
BANK_TRANSFER_METHODS = {PaymentMethod.BANK_TRANSFER.value, PaymentMethod.SEPAY.value}


def generate_transaction_id(now=None):
    now = now or datetime.now(UTC)
    return f"PAY{int(now.timestamp())}{uuid4().hex[:8].upper()}"


@ordering.aggregate
class PaymentTransaction:
    transaction_id = String(required=True, max_length=50, unique=True)
    order_id = Identifier(required=True)
    order_number = Integer()
    customer_id = Identifier(required=True)
    payment_method = String(required=True, choices=PaymentMethod)
    amount = Float(required=True, min_value=0.0)
    currency = String(max_length=3, default="VND")
    status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    payment_code = String(max_length=50)
    description = String(max_length=255)
    external_reference = String(max_length=100)
    gateway_payload = Text()  # JSON: raw webhook body
    response_message = String(max_length=500)
    created_at = DateTime()
    completed_at = DateTime()
    cancelled_at = DateTime()

    @classmethod
    def open(cls, order, payment_method, payment_code=None):
        now = datetime.now(UTC)
        return cls(
            transaction_id=generate_transaction_id(now),
            order_id=str(order.id),
            order_number=order.order_number,
            customer_id=str(order.customer_id),
            payment_method=payment_method,
            amount=order.total_amount,
            currency=order.currency,
            status=PaymentStatus.PENDING.value,
            payment_code=payment_code,
            description=f"Payment for order {order.order_number}",
            created_at=now,
        )

    @property
    def is_pending(self):
        return self.status == PaymentStatus.PENDING.value

    def cancel(self, message):
        if not self.is_pending:
            raise ValidationError({"status": [f"Cannot cancel a {self.status} payment"]})
        now = datetime.now(UTC)
        self.status = PaymentStatus.CANCELLED.value
        self.response_message = message
        self.cancelled_at = now

    def confirm_cash_on_delivery(self):
        self.status = PaymentStatus.CONFIRMED.value
        self.response_message = "Cash on delivery confirmed"

    def mark_paid(self, external_reference, payload):
        """Settle the attempt with the gateway's reference and the raw callback body."""
        if not self.is_pending:
            raise ValidationError({"status": [f"Cannot settle a {self.status} payment"]})

        now = datetime.now(UTC)
        self.status = PaymentStatus.PAID.value
        self.external_reference = external_reference
        self.gateway_payload = json.dumps(payload, default=str)
        self.response_message = "Payment confirmed by gateway"
        self.completed_at = now

        self.raise_(
            PaymentConfirmed(
                transaction_id=self.transaction_id,
                order_id=str(self.order_id),
                order_number=self.order_number,
                customer_id=str(self.customer_id),
                amount=self.amount,
                currency=self.currency,
                external_reference=external_reference,
                paid_at=now,
            )
        )


@ordering.repository(part_of=PaymentTransaction)
class PaymentTransactionRepository:
    def for_order(self, order_id: str) -> list[PaymentTransaction]:
        transactions = self._dao.query.filter(order_id=str(order_id)).all().items
        return sorted(transactions, key=lambda t: t.created_at, reverse=True)

    def pending_for_order(self, order_id: str, methods=None) -> list[PaymentTransaction]:
        """Pending attempts for the order, most recent first."""
        return [
            t
            for t in self.for_order(order_id)
            if t.is_pending and (methods is None or t.payment_method in methods)
        ]

    def find_by_transaction_id(self, transaction_id: str) -> PaymentTransaction | None:
        results = self._dao.query.filter(transaction_id=transaction_id).all().items
        return results[0] if results else None
