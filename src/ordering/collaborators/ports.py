"""Collaborator ports (abstract interfaces).

The ordering core talks to the surrounding platform (cart, catalog, address
book, notification and email delivery, realtime push) only through these narrow
contracts. Adapters for the real services implement them; the in-memory
adapters in ``ordering.collaborators.memory`` back development and tests.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass(frozen=True)
class CartLine:
    sku: str
    quantity: int
    product_id: str | None = None
    unit_price: float = 0.0  # price shown in the cart; untrusted
    attributes: dict = field(default_factory=dict)


@dataclass(frozen=True)
class Cart:
    customer_id: str
    lines: tuple[CartLine, ...] = ()

    @property
    def subtotal(self) -> float:
        return sum(line.unit_price * line.quantity for line in self.lines)

    @property
    def is_empty(self) -> bool:
        return not self.lines


@dataclass(frozen=True)
class Product:
    sku: str
    name: str
    price: float
    is_active: bool = True
    product_id: str | None = None
    weight_grams: int = 0


@dataclass(frozen=True)
class Address:
    id: str
    customer_id: str
    receiver_name: str
    street: str
    city: str
    phone: str | None = None
    email: str | None = None
    ward: str | None = None
    district: str | None = None
    postal_code: str | None = None
    country: str = "Vietnam"

    def snapshot(self) -> dict:
        return {
            "receiver_name": self.receiver_name,
            "phone": self.phone,
            "email": self.email,
            "street": self.street,
            "ward": self.ward,
            "district": self.district,
            "city": self.city,
            "postal_code": self.postal_code,
            "country": self.country,
        }


class CartStore(ABC):
    @abstractmethod
    def get_cart(self, customer_id: str) -> Cart:
        """Current cart of the customer; an empty cart when there is none."""
        ...

    @abstractmethod
    def clear_cart(self, customer_id: str) -> None: ...


class Catalog(ABC):
    @abstractmethod
    def get_product(self, sku: str) -> Product | None:
        """Live price and availability for ``sku``, or None when unknown."""
        ...


class AddressBook(ABC):
    @abstractmethod
    def get_address(self, customer_id: str, address_id: str) -> Address | None:
        """The address, only if it exists and belongs to ``customer_id``."""
        ...


class Notifier(ABC):
    @abstractmethod
    def notify(self, customer_id: str, event: str, payload: dict) -> None: ...


class Mailer(ABC):
    @abstractmethod
    def send_email(self, to: str, template: str, model: dict) -> None: ...


class RealtimeChannel(ABC):
    @abstractmethod
    def push(self, customer_id: str, event: str, payload: dict) -> None: ...
