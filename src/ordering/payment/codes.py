"""Payment codes — correlate a bank-transfer memo with an order.

A payment code is the configured prefix followed by the zero-padded order
number, e.g. ``SAKURA000123``. Customers put it in the transfer content; the
reconciliation gateway finds it there again.
"""

import re

from ordering.config import get_settings
from ordering.errors import MalformedPaymentCode


def format_payment_code(order_number, settings=None):
    settings = settings or get_settings()
    return f"{settings.payment_code_prefix}{int(order_number):0{settings.payment_code_digits}d}"


def transfer_content(payment_code, transaction_id):
    """Text the customer is asked to put in the bank transfer."""
    return f"{payment_code} {transaction_id}"


def parse_order_number(*memos, settings=None):
    """Find the payment code in the first memo that carries one and return its order number.

    Banks upper-case, lower-case or glue the memo to other text, so the match
    is case-insensitive and not anchored. Raises ``MalformedPaymentCode`` when
    no memo has a well-formed code.
    """
    settings = settings or get_settings()
    pattern = re.compile(
        rf"{re.escape(settings.payment_code_prefix)}(\d{{{settings.payment_code_digits}}})(?!\d)",
        re.IGNORECASE,
    )

    for memo in memos:
        if not memo:
            continue
        match = pattern.search(str(memo))
        if match:
            return int(match.group(1))

    raise MalformedPaymentCode(" | ".join(str(m) for m in memos if m))
