"""Ordering bounded context — checkout, order lifecycle and payment reconciliation.

Converts a customer's cart into a financially consistent order, drives the order
through fulfillment, and reconciles bank-transfer confirmations against pending
payment transactions. Stock levels and coupon usage counters live here too
because they are the contended rows an order creation must update atomically.
"""

import structlog
from protean.domain import Domain

ordering = Domain(name="ordering")

logger = structlog.get_logger(__name__)
