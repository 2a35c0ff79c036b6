"""Payment Ledger — open payment attempts against an order.

``CreatePayment`` voids any still-pending attempt and opens a fresh one that
snapshots the order's total. Cash on delivery needs no external confirmation,
so its attempt and the order's payment status move straight to Confirmed.
``CancelPayment`` lets the customer void a pending attempt.
"""

from dataclasses import dataclass

import structlog
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from ordering.domain import ordering
from ordering.errors import PaymentAlreadyCompleted
from ordering.order.order import Order, OrderStatus
from ordering.payment.codes import format_payment_code, transfer_content
from ordering.payment.transaction import BANK_TRANSFER_METHODS, PaymentMethod, PaymentTransaction
from ordering.utils.locks import KeyedLock

logger = structlog.get_logger(__name__)

# Serialises payment creation and webhook settlement per order number
order_payment_locks = KeyedLock()

_UNPAYABLE_STATES = {OrderStatus.CANCELLED.value, OrderStatus.REFUNDED.value, OrderStatus.RETURNED.value}


@ordering.command(part_of="PaymentTransaction")
class CreatePayment:
    order_id = Identifier(required=True)
    payment_method = String(required=True, choices=PaymentMethod)


@ordering.command(part_of="PaymentTransaction")
class CancelPayment:
    transaction_id = String(required=True, max_length=50)
    reason = String(max_length=500)


@ordering.command_handler(part_of=PaymentTransaction)
class PaymentLedgerHandler:
    @handle(CreatePayment)
    def create_payment(self, command):
        order_repo = current_domain.repository_for(Order)
        order = order_repo.get(command.order_id)

        if order.is_paid:
            raise PaymentAlreadyCompleted(str(order.id))
        if order.status in _UNPAYABLE_STATES:
            raise ValidationError({"order": [f"Cannot take payment for a {order.status} order"]})

        repo = current_domain.repository_for(PaymentTransaction)
        for previous in repo.pending_for_order(order.id):
            previous.cancel("Cancelled due to new payment request")
            repo.add(previous)

        payment_code = None
        if command.payment_method in BANK_TRANSFER_METHODS:
            payment_code = format_payment_code(order.order_number)

        transaction = PaymentTransaction.open(order, command.payment_method, payment_code)

        if command.payment_method == PaymentMethod.COD.value:
            transaction.confirm_cash_on_delivery()
            order.confirm_payment()
            order_repo.add(order)

        repo.add(transaction)
        return transaction.transaction_id

    @handle(CancelPayment)
    def cancel_payment(self, command):
        repo = current_domain.repository_for(PaymentTransaction)
        transaction = repo.find_by_transaction_id(command.transaction_id)
        if transaction is None:
            raise ObjectNotFoundError(f"Payment transaction {command.transaction_id} not found")

        transaction.cancel(command.reason or "Cancelled by customer")
        repo.add(transaction)
        return transaction.status


@dataclass(frozen=True)
class PaymentInstructions:
    transaction_id: str
    order_id: str
    order_number: int
    payment_method: str
    amount: float
    currency: str
    status: str
    payment_code: str | None = None
    transfer_content: str | None = None


class PaymentLedger:
    def create_payment(self, order_id, payment_method) -> PaymentInstructions:
        """Open a new payment attempt for the order and describe how to pay it."""
        order = current_domain.repository_for(Order).get(order_id)

        with order_payment_locks.hold(str(order.order_number)):
            transaction_id = current_domain.process(
                CreatePayment(order_id=order_id, payment_method=payment_method),
                asynchronous=False,
            )

        transaction = current_domain.repository_for(PaymentTransaction).find_by_transaction_id(transaction_id)
        logger.info(
            "Payment attempt created",
            order_id=str(order_id),
            transaction_id=transaction_id,
            payment_method=payment_method,
            amount=transaction.amount,
        )

        return PaymentInstructions(
            transaction_id=transaction.transaction_id,
            order_id=str(transaction.order_id),
            order_number=transaction.order_number,
            payment_method=transaction.payment_method,
            amount=transaction.amount,
            currency=transaction.currency,
            status=transaction.status,
            payment_code=transaction.payment_code,
            transfer_content=(
                transfer_content(transaction.payment_code, transaction.transaction_id)
                if transaction.payment_code
                else None
            ),
        )

    def cancel_payment(self, transaction_id, reason=None) -> PaymentTransaction:
        """Void a pending payment attempt; settled or closed attempts are rejected."""
        transaction = current_domain.repository_for(PaymentTransaction).find_by_transaction_id(transaction_id)
        if transaction is None:
            raise ObjectNotFoundError(f"Payment transaction {transaction_id} not found")

        with order_payment_locks.hold(str(transaction.order_number)):
            current_domain.process(CancelPayment(transaction_id=transaction_id, reason=reason), asynchronous=False)

        logger.info("Payment attempt cancelled", transaction_id=transaction_id, order_id=str(transaction.order_id))
        return current_domain.repository_for(PaymentTransaction).find_by_transaction_id(transaction_id)
