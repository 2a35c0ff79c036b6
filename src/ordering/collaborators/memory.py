"""In-memory collaborator adapters for development and testing.

Each adapter keeps its state in plain dicts and records the calls made to it.
The delivery adapters (notifier, mailer, realtime) can be configured to fail so
tests can prove that a broken channel never affects the order itself.
"""

from ordering.collaborators.ports import (
    Address,
    AddressBook,
    Cart,
    CartLine,
    CartStore,
    Catalog,
    Mailer,
    Notifier,
    Product,
    RealtimeChannel,
)


class InMemoryCartStore(CartStore):
    def __init__(self) -> None:
        self._carts: dict[str, tuple[CartLine, ...]] = {}
        self.cleared: list[str] = []

    def put_cart(self, customer_id: str, lines) -> None:
        self._carts[str(customer_id)] = tuple(lines)

    def get_cart(self, customer_id: str) -> Cart:
        return Cart(customer_id=str(customer_id), lines=self._carts.get(str(customer_id), ()))

    def clear_cart(self, customer_id: str) -> None:
        self._carts.pop(str(customer_id), None)
        self.cleared.append(str(customer_id))


class InMemoryCatalog(Catalog):
    def __init__(self) -> None:
        self._products: dict[str, Product] = {}

    def add_product(self, product: Product) -> None:
        self._products[product.sku] = product

    def get_product(self, sku: str) -> Product | None:
        return self._products.get(sku)


class InMemoryAddressBook(AddressBook):
    def __init__(self) -> None:
        self._addresses: dict[str, Address] = {}

    def add_address(self, address: Address) -> None:
        self._addresses[str(address.id)] = address

    def get_address(self, customer_id: str, address_id: str) -> Address | None:
        address = self._addresses.get(str(address_id))
        if address is None or str(address.customer_id) != str(customer_id):
            return None
        return address


class _RecordingChannel:
    def __init__(self) -> None:
        self.should_fail: bool = False
        self.failure_reason: str = "Channel unavailable"
        self.calls: list[dict] = []

    def configure(self, should_fail: bool, failure_reason: str = "Channel unavailable") -> None:
        """Configure channel behavior at runtime."""
        self.should_fail = should_fail
        self.failure_reason = failure_reason

    def _record(self, call: dict) -> None:
        if self.should_fail:
            raise ConnectionError(self.failure_reason)
        self.calls.append(call)


class RecordingNotifier(_RecordingChannel, Notifier):
    def notify(self, customer_id: str, event: str, payload: dict) -> None:
        self._record({"customer_id": str(customer_id), "event": event, "payload": payload})


class RecordingMailer(_RecordingChannel, Mailer):
    def send_email(self, to: str, template: str, model: dict) -> None:
        self._record({"to": to, "template": template, "model": model})


class RecordingRealtimeChannel(_RecordingChannel, RealtimeChannel):
    def push(self, customer_id: str, event: str, payload: dict) -> None:
        self._record({"customer_id": str(customer_id), "event": event, "payload": payload})
