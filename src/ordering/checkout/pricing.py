"""Checkout pricing — re-priced lines, shipping, tax and the resulting quote."""

from dataclasses import dataclass, field

from ordering.config import get_settings
from ordering.order.order import DeliveryMethod


@dataclass(frozen=True)
class PricedLine:
    """A cart line re-priced from the live catalog."""

    sku: str
    product_name: str
    unit_price: float
    quantity: int
    product_id: str | None = None
    attributes: dict = field(default_factory=dict)
    weight_grams: int = 0

    @property
    def line_total(self) -> float:
        return round(self.unit_price * self.quantity, 2)

    def as_order_line(self) -> dict:
        return {
            "sku": self.sku,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "unit_price": self.unit_price,
            "quantity": self.quantity,
            "attributes": self.attributes,
        }


@dataclass(frozen=True)
class Quote:
    lines: tuple[PricedLine, ...]
    subtotal: float
    shipping_fee: float
    tax_amount: float
    discount_amount: float
    currency: str
    coupon_code: str | None = None

    @property
    def total_amount(self) -> float:
        return round(self.subtotal + self.shipping_fee + self.tax_amount - self.discount_amount, 2)

    def as_pricing(self) -> dict:
        return {
            "subtotal": self.subtotal,
            "shipping_fee": self.shipping_fee,
            "tax_amount": self.tax_amount,
            "discount_amount": self.discount_amount,
            "total_amount": self.total_amount,
            "currency": self.currency,
        }


def subtotal_of(lines) -> float:
    return round(sum(line.line_total for line in lines), 2)


def shipping_fee_for(delivery_method, destination=None, lines=(), settings=None) -> float:
    """Flat fee by delivery speed.

    ``destination`` and ``lines`` (with their weights) are accepted so a
    weight or zone table can replace the flat fee without changing callers.
    """
    settings = settings or get_settings()
    if delivery_method == DeliveryMethod.EXPRESS.value:
        return settings.express_shipping_fee
    return settings.standard_shipping_fee


def tax_for(subtotal, settings=None) -> float:
    settings = settings or get_settings()
    return round(subtotal * settings.tax_rate, 2)
