"""Order Lifecycle Controller — status updates and cancellation.

Plain status moves are a single-aggregate change and run as the
``UpdateOrderStatus`` command. Cancellation spans aggregates: the
``CancelOrder`` handler cancels the order, voids its pending payment attempt
and reverses the customer's statistics in one unit of work. ``OrderLifecycle``
then hands stock and the coupon redemption back to the ledgers once that unit
has committed, because the ledgers write through their own locked updates.
"""

import structlog
from protean.exceptions import ValidationError
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from ordering.coupon.ledger import CouponLedger
from ordering.customer.account import CustomerAccount, load_or_open_account
from ordering.domain import ordering
from ordering.order.order import Order, OrderStatus, parse_status
from ordering.payment.ledger import order_payment_locks
from ordering.payment.transaction import PaymentTransaction
from ordering.stock.ledger import StockLedger

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Order")
class UpdateOrderStatus:
    order_id = Identifier(required=True)
    status = String(required=True, max_length=20)
    note = Text()
    tracking_number = String(max_length=100)
    shipping_carrier = String(max_length=100)


@ordering.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    reason = Text()


@ordering.command_handler(part_of=Order)
class OrderLifecycleHandler:
    @handle(UpdateOrderStatus)
    def update_status(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        if parse_status(command.status) == OrderStatus.CANCELLED:
            raise ValidationError({"status": ["Use CancelOrder to cancel an order"]})

        order.transition_to(
            command.status,
            note=command.note,
            tracking_number=command.tracking_number,
            shipping_carrier=command.shipping_carrier,
        )
        repo.add(order)
        return order.status

    @handle(CancelOrder)
    def cancel_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        order.cancel(command.reason)
        repo.add(order)

        payment_repo = current_domain.repository_for(PaymentTransaction)
        for transaction in payment_repo.pending_for_order(order.id):
            transaction.cancel("Cancelled together with the order")
            payment_repo.add(transaction)

        account = load_or_open_account(order.customer_id)
        account.revoke_order(order.total_amount)
        current_domain.repository_for(CustomerAccount).add(account)

        return {
            "order_id": str(order.id),
            "lines": [(item.sku, item.quantity) for item in order.items],
            "coupon_code": order.coupon_code,
            "was_paid": order.is_paid,
        }


class OrderLifecycle:
    def __init__(self, stock_ledger=None, coupon_ledger=None):
        self.stock_ledger = stock_ledger or StockLedger()
        self.coupon_ledger = coupon_ledger or CouponLedger()

    def update_status(self, order_id, status, note=None, tracking_number=None, shipping_carrier=None):
        """Move an order to ``status``; a move to Cancelled runs the full cancellation."""
        if parse_status(status) == OrderStatus.CANCELLED:
            return self.cancel(order_id, note)

        new_status = current_domain.process(
            UpdateOrderStatus(
                order_id=order_id,
                status=parse_status(status).value,
                note=note,
                tracking_number=tracking_number,
                shipping_carrier=shipping_carrier,
            ),
            asynchronous=False,
        )
        logger.info("Order status updated", order_id=str(order_id), status=new_status)
        return new_status

    def request_return(self, order_id, reason=None):
        """Record a customer return of a delivered order."""
        note = f"Return requested: {reason}" if reason else "Return requested by customer"
        return self.update_status(order_id, OrderStatus.RETURNED.value, note=note)

    def cancel(self, order_id, reason=None):
        """Cancel the order, then restore its stock and, if unpaid, its coupon redemption.

        The cancellation holds the order's payment lock so a bank transfer
        webhook cannot settle the payment attempt being voided.
        """
        order = current_domain.repository_for(Order).get(order_id)
        with order_payment_locks.hold(str(order.order_number)):
            outcome = current_domain.process(CancelOrder(order_id=order_id, reason=reason), asynchronous=False)

        for sku, quantity in outcome["lines"]:
            try:
                self.stock_ledger.restore(sku, quantity)
            except Exception as exc:
                logger.error(
                    "Stock restore failed after cancellation",
                    order_id=str(order_id),
                    sku=sku,
                    quantity=quantity,
                    error=str(exc),
                )

        if outcome["coupon_code"] and not outcome["was_paid"]:
            try:
                self.coupon_ledger.revert(outcome["coupon_code"])
            except Exception as exc:
                logger.error(
                    "Coupon revert failed after cancellation",
                    order_id=str(order_id),
                    coupon_code=outcome["coupon_code"],
                    error=str(exc),
                )

        logger.info("Order cancelled", order_id=str(order_id), reason=reason)
        return OrderStatus.CANCELLED.value
