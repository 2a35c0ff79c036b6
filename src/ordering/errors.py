"""Domain error taxonomy for the Ordering domain.

Validation and integrity errors subclass Protean's ``ValidationError`` so they
carry a ``messages`` dict and render as HTTP 400 through Protean's FastAPI
exception handlers. ``TransientFailure`` is the only error a caller is expected
to retry.
"""

from protean.exceptions import ProteanException, ValidationError


# ---------------------------------------------------------------------------
# Checkout validation
# ---------------------------------------------------------------------------
class EmptyCart(ValidationError):
    def __init__(self, customer_id):
        self.customer_id = customer_id
        super().__init__({"cart": ["Cart is empty"]})


class OrderValidationFailed(ValidationError):
    """One or more cart lines failed re-validation against the catalog.

    ``errors`` is a list of ``{"sku": ..., "error": ...}`` dicts, one per failing line.
    """

    def __init__(self, errors, message="Order validation failed"):
        self.errors = list(errors)
        messages = {"order": [message]}
        if self.errors:
            messages["items"] = [f"{e['sku']}: {e['error']}" for e in self.errors]
        super().__init__(messages)


class AddressNotFound(ValidationError):
    def __init__(self, address_id):
        self.address_id = address_id
        super().__init__({"address": [f"Address {address_id} not found"]})


class InsufficientStock(ValidationError):
    def __init__(self, sku, requested=None, available=None):
        self.sku = sku
        self.requested = requested
        self.available = available
        super().__init__({"stock": [f"Insufficient stock for SKU {sku}"]})


class CouponInvalid(ValidationError):
    """The coupon failed validation (unknown, inactive, expired, exhausted, below minimum)."""

    def __init__(self, code, reason):
        self.code = code
        self.reason = reason
        super().__init__({"coupon_code": [reason]})


class CouponUnavailable(ValidationError):
    """The last redemption was taken by a concurrent order between validation and consumption."""

    def __init__(self, code):
        self.code = code
        super().__init__({"coupon_code": [f"Coupon {code} is no longer available"]})


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------
class InvalidStatusTransition(ValidationError):
    def __init__(self, current, target):
        self.current = current
        self.target = target
        super().__init__({"status": [f"Cannot transition from {current} to {target}"]})


# ---------------------------------------------------------------------------
# Payments and reconciliation
# ---------------------------------------------------------------------------
class PaymentAlreadyCompleted(ValidationError):
    def __init__(self, order_id):
        self.order_id = order_id
        super().__init__({"payment": ["Order is already paid"]})


class Unauthorized(ValidationError):
    def __init__(self):
        super().__init__({"authorization": ["Invalid webhook API key"]})


class MalformedPaymentCode(ValidationError):
    def __init__(self, memo):
        self.memo = memo
        super().__init__({"content": ["Payment code not found in transfer content"]})


class NoPendingPayment(ValidationError):
    def __init__(self, order_id):
        self.order_id = order_id
        super().__init__({"payment": [f"No pending payment for order {order_id}"]})


class AmountMismatch(ValidationError):
    def __init__(self, expected, received):
        self.expected = expected
        self.received = received
        super().__init__({"amount": [f"Amount mismatch: expected {expected}, received {received}"]})


# ---------------------------------------------------------------------------
# Contention
# ---------------------------------------------------------------------------
class TransientFailure(ProteanException):
    """Storage contention persisted through every retry attempt."""

    def __init__(self, attempts):
        self.attempts = attempts
        super().__init__({"_entity": [f"Order could not be placed after {attempts} attempts, please retry"]})
