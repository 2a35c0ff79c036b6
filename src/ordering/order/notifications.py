"""Post-commit side effects for orders and payments.

These handlers run after the unit of work that raised the event has committed:
inline in the test environment, and from the Engine's outbox processing in
production. Delivery is best-effort. A failing channel is logged and never
propagates, so it can neither delay nor undo the order.
"""

import structlog
from protean.utils.mixins import handle

from ordering.collaborators import get_collaborators
from ordering.domain import ordering
from ordering.order.events import OrderCancelled, OrderPlaced, OrderStatusChanged
from ordering.order.order import Order
from ordering.payment.events import PaymentConfirmed
from ordering.payment.transaction import PaymentTransaction

logger = structlog.get_logger(__name__)


def _deliver(channel, description, send, **context):
    try:
        send()
    except Exception as e:
        logger.error(
            "Side-effect delivery failed",
            channel=channel,
            description=description,
            error=str(e),
            **context,
        )


@ordering.event_handler(part_of=Order)
class OrderNotificationsHandler:
    @handle(OrderPlaced)
    def on_order_placed(self, event: OrderPlaced) -> None:
        collaborators = get_collaborators()
        payload = {
            "order_id": str(event.order_id),
            "order_number": event.order_number,
            "total_amount": event.total_amount,
            "currency": event.currency,
        }

        _deliver(
            "notification",
            "order_confirmation",
            lambda: collaborators.notifier.notify(str(event.customer_id), "order_placed", payload),
            order_id=str(event.order_id),
        )

        if not event.receiver_email:
            logger.info("No receiver email, skipping confirmation email", order_id=str(event.order_id))
            return

        _deliver(
            "email",
            "order_confirmation",
            lambda: collaborators.mailer.send_email(
                event.receiver_email,
                "order_confirmation",
                {**payload, "receiver_name": event.receiver_name, "item_count": event.item_count},
            ),
            order_id=str(event.order_id),
        )

    @handle(OrderStatusChanged)
    def on_status_changed(self, event: OrderStatusChanged) -> None:
        collaborators = get_collaborators()
        _deliver(
            "notification",
            "order_status_changed",
            lambda: collaborators.notifier.notify(
                str(event.customer_id),
                "order_status_changed",
                {
                    "order_id": str(event.order_id),
                    "order_number": event.order_number,
                    "old_status": event.old_status,
                    "new_status": event.new_status,
                    "note": event.note,
                },
            ),
            order_id=str(event.order_id),
        )

    @handle(OrderCancelled)
    def on_order_cancelled(self, event: OrderCancelled) -> None:
        collaborators = get_collaborators()
        _deliver(
            "notification",
            "order_cancelled",
            lambda: collaborators.notifier.notify(
                str(event.customer_id),
                "order_cancelled",
                {"order_id": str(event.order_id), "order_number": event.order_number, "reason": event.reason},
            ),
            order_id=str(event.order_id),
        )


@ordering.event_handler(part_of=PaymentTransaction)
class PaymentRealtimeHandler:
    @handle(PaymentConfirmed)
    def on_payment_confirmed(self, event: PaymentConfirmed) -> None:
        """Tell an open client session that the order has been paid."""
        collaborators = get_collaborators()
        _deliver(
            "realtime",
            "payment_confirmed",
            lambda: collaborators.realtime.push(
                str(event.customer_id),
                "payment_confirmed",
                {
                    "order_id": str(event.order_id),
                    "order_number": event.order_number,
                    "transaction_id": event.transaction_id,
                    "amount": event.amount,
                },
            ),
            order_id=str(event.order_id),
        )
