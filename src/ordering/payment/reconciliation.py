"""Payment Reconciliation Gateway — settle pending payments from bank-transfer webhooks.

The gateway (SePay) calls us for every movement on the merchant account.
Processing a callback:

1. authenticate the ``Authorization: Apikey <secret>`` header;
2. ignore anything that is not an inbound credit;
3. recover the order number from the payment code in the transfer memo;
4. settle the order's most recent pending bank-transfer attempt, provided the
   amount matches.

Step 4 is the idempotency boundary. A replayed callback finds no pending
attempt left and is reported as ignored, as is a callback that loses the race
against a cancellation of the same order.
"""

import hmac
import json
from dataclasses import dataclass, field

import structlog
from protean.fields import Float, Integer, String, Text
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from ordering.config import get_settings
from ordering.domain import ordering
from ordering.errors import AmountMismatch, MalformedPaymentCode, NoPendingPayment, Unauthorized
from ordering.order.order import Order, OrderStatus
from ordering.payment.codes import parse_order_number
from ordering.payment.ledger import order_payment_locks
from ordering.payment.transaction import BANK_TRANSFER_METHODS, PaymentTransaction

logger = structlog.get_logger(__name__)

INBOUND = "in"


class WebhookStatus:
    PAID = "Paid"
    IGNORED = "Ignored"
    REJECTED = "Rejected"


@dataclass(frozen=True)
class TransferNotice:
    """One account movement reported by the gateway."""

    external_id: str
    amount: float
    direction: str
    content: str | None = None
    code: str | None = None
    gateway: str | None = None
    transaction_date: str | None = None
    reference_code: str | None = None
    raw: dict = field(default_factory=dict)

    @classmethod
    def from_sepay(cls, payload: dict) -> "TransferNotice":
        return cls(
            external_id=str(payload.get("id")),
            amount=float(payload.get("transferAmount") or 0),
            direction=(payload.get("transferType") or "").lower(),
            content=payload.get("content"),
            code=payload.get("code"),
            gateway=payload.get("gateway"),
            transaction_date=payload.get("transactionDate"),
            reference_code=payload.get("referenceCode"),
            raw=dict(payload),
        )


@dataclass(frozen=True)
class WebhookResult:
    success: bool
    message: str
    status: str
    transaction_id: str | None = None
    order_number: int | None = None
    amount: float | None = None


@ordering.command(part_of="PaymentTransaction")
class SettleTransfer:
    order_number = Integer(required=True)
    amount = Float(required=True)
    external_reference = String(required=True, max_length=100)
    raw_body = Text()  # JSON: webhook body as received


@ordering.command_handler(part_of=PaymentTransaction)
class SettleTransferHandler:
    @handle(SettleTransfer)
    def settle_transfer(self, command):
        order_repo = current_domain.repository_for(Order)
        order = order_repo.find_by_number(command.order_number)
        if order is None:
            raise NoPendingPayment(str(command.order_number))
        if order.status == OrderStatus.CANCELLED.value:
            raise NoPendingPayment(str(order.id))

        repo = current_domain.repository_for(PaymentTransaction)
        pending = repo.pending_for_order(order.id, methods=BANK_TRANSFER_METHODS)
        if not pending:
            raise NoPendingPayment(str(order.id))

        transaction = pending[0]
        if abs(command.amount - transaction.amount) > get_settings().webhook_amount_epsilon:
            raise AmountMismatch(expected=transaction.amount, received=command.amount)

        transaction.mark_paid(command.external_reference, json.loads(command.raw_body or "{}"))
        order.mark_paid()
        repo.add(transaction)
        order_repo.add(order)

        return {
            "transaction_id": transaction.transaction_id,
            "order_number": order.order_number,
            "amount": transaction.amount,
        }


class ReconciliationGateway:
    def __init__(self, settings=None):
        self.settings = settings or get_settings()

    def authorize(self, authorization: str | None) -> None:
        """Accept ``Apikey <secret>`` (SePay's format) or the bare secret."""
        provided = (authorization or "").strip()
        if provided.lower().startswith("apikey "):
            provided = provided[len("apikey ") :].strip()

        if not provided or not hmac.compare_digest(provided, self.settings.webhook_secret):
            logger.warning("Webhook rejected: invalid API key")
            raise Unauthorized()

    def process_webhook(self, payload: dict, authorization: str | None) -> WebhookResult:
        """Apply one gateway callback. Integrity failures raise and change nothing."""
        self.authorize(authorization)
        notice = TransferNotice.from_sepay(payload)

        if notice.direction != INBOUND:
            logger.info("Webhook ignored: not an inbound transfer", external_id=notice.external_id)
            return WebhookResult(success=True, message="Outgoing transfer ignored", status=WebhookStatus.IGNORED)

        try:
            order_number = parse_order_number(notice.code, notice.content, settings=self.settings)
        except MalformedPaymentCode:
            logger.warning("Webhook rejected: no payment code", external_id=notice.external_id, content=notice.content)
            raise

        with order_payment_locks.hold(str(order_number)):
            try:
                settled = current_domain.process(
                    SettleTransfer(
                        order_number=order_number,
                        amount=notice.amount,
                        external_reference=notice.external_id,
                        raw_body=json.dumps(notice.raw, default=str),
                    ),
                    asynchronous=False,
                )
            except NoPendingPayment:
                logger.info(
                    "Webhook ignored: no pending payment",
                    order_number=order_number,
                    external_id=notice.external_id,
                )
                return WebhookResult(
                    success=True,
                    message="No pending payment for this order",
                    status=WebhookStatus.IGNORED,
                    order_number=order_number,
                    amount=notice.amount,
                )
            except AmountMismatch as exc:
                logger.warning(
                    "Webhook rejected: amount mismatch",
                    order_number=order_number,
                    expected=exc.expected,
                    received=exc.received,
                )
                raise

        logger.info(
            "Bank transfer reconciled",
            order_number=order_number,
            transaction_id=settled["transaction_id"],
            external_id=notice.external_id,
        )
        return WebhookResult(
            success=True,
            message="Payment confirmed",
            status=WebhookStatus.PAID,
            transaction_id=settled["transaction_id"],
            order_number=settled["order_number"],
            amount=settled["amount"],
        )
