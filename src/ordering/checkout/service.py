"""Transactional Order Orchestrator — turn a customer's cart into a committed order.

One attempt runs the checkout end to end:

1. load the cart (``EmptyCart`` if it has no lines);
2. re-price every line from the live catalog and check it is sellable
   (``OrderValidationFailed`` with one entry per bad line, or
   ``InsufficientStock`` when a stock shortfall is the only problem);
3. resolve the customer's shipping and billing addresses (``AddressNotFound``);
4. quote subtotal, shipping, tax and the coupon discount;
5. decrement stock for every line through the Stock Ledger;
6. consume the coupon through the Coupon Ledger;
7. persist the order, its lines and first history row together with the
   customer's updated statistics in one unit of work;
8. clear the cart.

The ledgers commit their conditional updates immediately, so every ledger
write is journalled and undone if a later step fails. The whole attempt is
re-run on a storage version conflict, a bounded number of times, before the
caller gets ``TransientFailure``. Notification and email go out from the
``OrderPlaced`` event handler after the unit of work commits.
"""

from dataclasses import dataclass

import structlog
from protean.core.unit_of_work import UnitOfWork
from protean.exceptions import ExpectedVersionError
from protean.utils.globals import current_domain

from ordering.checkout.pricing import PricedLine, Quote, shipping_fee_for, subtotal_of, tax_for
from ordering.collaborators import get_collaborators
from ordering.config import get_settings
from ordering.coupon.ledger import CouponLedger
from ordering.customer.account import CustomerAccount, load_or_open_account
from ordering.errors import (
    AddressNotFound,
    CouponInvalid,
    CouponUnavailable,
    EmptyCart,
    InsufficientStock,
    OrderValidationFailed,
    TransientFailure,
)
from ordering.order.numbering import next_order_number
from ordering.order.order import DeliveryMethod, Order
from ordering.stock.ledger import StockLedger

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PlaceOrderRequest:
    customer_id: str
    shipping_address_id: str
    billing_address_id: str | None = None
    coupon_code: str | None = None
    express_delivery: bool = False
    is_gift: bool = False
    gift_message: str | None = None
    gift_wrap_requested: bool = False
    customer_notes: str | None = None

    @property
    def delivery_method(self) -> str:
        return DeliveryMethod.EXPRESS.value if self.express_delivery else DeliveryMethod.STANDARD.value


class _Compensations:
    """Undo actions for ledger writes that committed ahead of the order."""

    def __init__(self, **context) -> None:
        self._actions = []
        self._context = context

    def push(self, description, action) -> None:
        self._actions.append((description, action))

    def unwind(self) -> None:
        while self._actions:
            description, action = self._actions.pop()
            try:
                action()
            except Exception as e:
                logger.error("Compensation failed", action=description, error=str(e), **self._context)


class CheckoutService:
    def __init__(self, stock_ledger=None, coupon_ledger=None, collaborators=None, settings=None):
        self.stock_ledger = stock_ledger or StockLedger()
        self.coupon_ledger = coupon_ledger or CouponLedger()
        self._collaborators = collaborators
        self.settings = settings or get_settings()

    @property
    def collaborators(self):
        return self._collaborators or get_collaborators()

    def place_order(self, request: PlaceOrderRequest) -> Order:
        """Place an order from the customer's cart, retrying on storage conflicts."""
        attempts = self.settings.checkout_max_attempts
        for attempt in range(1, attempts + 1):
            try:
                return self._attempt(request)
            except ExpectedVersionError as exc:
                logger.warning(
                    "Checkout hit a write conflict, retrying",
                    customer_id=request.customer_id,
                    attempt=attempt,
                    error=str(exc),
                )

        logger.error("Checkout gave up after repeated conflicts", customer_id=request.customer_id, attempts=attempts)
        raise TransientFailure(attempts)

    # -------------------------------------------------------------------
    # One attempt
    # -------------------------------------------------------------------
    def _attempt(self, request: PlaceOrderRequest) -> Order:
        collaborators = self.collaborators

        cart = collaborators.carts.get_cart(request.customer_id)
        if cart.is_empty:
            raise EmptyCart(request.customer_id)

        lines = self._revalidate(cart)
        shipping_address, billing_address = self._resolve_addresses(request)
        quote = self._quote(lines, shipping_address, request)

        order_number = next_order_number()
        journal = _Compensations(customer_id=request.customer_id, order_number=order_number)
        try:
            for line in quote.lines:
                self.stock_ledger.decrement(line.sku, line.quantity)
                journal.push(
                    f"restore {line.sku}",
                    lambda sku=line.sku, quantity=line.quantity: self.stock_ledger.restore(sku, quantity),
                )

            if quote.coupon_code:
                if not self.coupon_ledger.try_consume(quote.coupon_code):
                    raise CouponUnavailable(quote.coupon_code)
                journal.push(f"revert {quote.coupon_code}", lambda: self.coupon_ledger.revert(quote.coupon_code))

            with UnitOfWork():
                order = Order.place(
                    order_number=order_number,
                    customer_id=request.customer_id,
                    lines=[line.as_order_line() for line in quote.lines],
                    pricing=quote.as_pricing(),
                    shipping_address=shipping_address,
                    billing_address=billing_address,
                    coupon_code=quote.coupon_code,
                    delivery_method=request.delivery_method,
                    is_gift=request.is_gift,
                    gift_message=request.gift_message,
                    gift_wrap_requested=request.gift_wrap_requested,
                    customer_notes=request.customer_notes,
                )
                current_domain.repository_for(Order).add(order)

                account = load_or_open_account(request.customer_id)
                account.record_order(order.total_amount)
                current_domain.repository_for(CustomerAccount).add(account)
        except Exception:
            journal.unwind()
            raise

        self._clear_cart(request.customer_id, order)

        logger.info(
            "Order placed",
            order_id=str(order.id),
            order_number=order.order_number,
            customer_id=request.customer_id,
            total_amount=order.total_amount,
            coupon_code=order.coupon_code,
        )
        return order

    # -------------------------------------------------------------------
    # Steps
    # -------------------------------------------------------------------
    def _revalidate(self, cart) -> list[PricedLine]:
        catalog = self.collaborators.catalog
        lines, errors, shortfalls = [], [], []

        for cart_line in cart.lines:
            if cart_line.quantity <= 0:
                errors.append({"sku": cart_line.sku, "error": "Quantity must be positive"})
                continue

            product = catalog.get_product(cart_line.sku)
            if product is None:
                errors.append({"sku": cart_line.sku, "error": "Product not found"})
                continue
            if not product.is_active:
                errors.append({"sku": cart_line.sku, "error": f"{product.name} is no longer available"})
                continue
            if not self.stock_ledger.check_available(cart_line.sku, cart_line.quantity):
                available = max(self.stock_ledger.available(cart_line.sku), 0)
                shortfalls.append((cart_line.sku, cart_line.quantity, available))
                continue

            if cart_line.unit_price and abs(cart_line.unit_price - product.price) > 0.01:
                logger.info(
                    "Cart price differs from catalog, using catalog price",
                    sku=cart_line.sku,
                    cart_price=cart_line.unit_price,
                    catalog_price=product.price,
                )

            lines.append(
                PricedLine(
                    sku=cart_line.sku,
                    product_name=product.name,
                    unit_price=product.price,
                    quantity=cart_line.quantity,
                    product_id=product.product_id or cart_line.product_id,
                    attributes=dict(cart_line.attributes),
                    weight_grams=product.weight_grams,
                )
            )

        if shortfalls and not errors:
            sku, requested, available = shortfalls[0]
            raise InsufficientStock(sku, requested=requested, available=available)
        if errors:
            errors.extend(
                {"sku": sku, "error": f"Only {available} left in stock"} for sku, _requested, available in shortfalls
            )
            raise OrderValidationFailed(errors)
        return lines

    def _resolve_addresses(self, request: PlaceOrderRequest) -> tuple[dict, dict]:
        addresses = self.collaborators.addresses

        shipping = addresses.get_address(request.customer_id, request.shipping_address_id)
        if shipping is None:
            raise AddressNotFound(request.shipping_address_id)

        billing = shipping
        if request.billing_address_id and request.billing_address_id != request.shipping_address_id:
            billing = addresses.get_address(request.customer_id, request.billing_address_id)
            if billing is None:
                raise AddressNotFound(request.billing_address_id)

        return shipping.snapshot(), billing.snapshot()

    def _quote(self, lines, shipping_address, request: PlaceOrderRequest) -> Quote:
        subtotal = subtotal_of(lines)
        shipping_fee = shipping_fee_for(request.delivery_method, shipping_address, lines, self.settings)
        tax_amount = tax_for(subtotal, self.settings)

        discount, coupon_code = 0.0, None
        if request.coupon_code:
            validation = self.coupon_ledger.validate(request.coupon_code, subtotal)
            if not validation.is_valid:
                raise CouponInvalid(validation.code, validation.message)
            discount, coupon_code = validation.discount, validation.code

        quote = Quote(
            lines=tuple(lines),
            subtotal=subtotal,
            shipping_fee=shipping_fee,
            tax_amount=tax_amount,
            discount_amount=discount,
            currency=self.settings.currency,
            coupon_code=coupon_code,
        )
        if quote.total_amount <= 0:
            raise OrderValidationFailed([], message="Order total must be greater than zero")
        return quote

    def _clear_cart(self, customer_id, order) -> None:
        try:
            self.collaborators.carts.clear_cart(customer_id)
        except Exception as e:
            logger.error("Failed to clear cart after checkout", order_id=str(order.id), error=str(e))
