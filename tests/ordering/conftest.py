from datetime import UTC, datetime, timedelta

import pytest
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def ordering_bed():
    from ordering.domain import ordering

    bed = DomainFixture(ordering)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(ordering_bed):
    from ordering.collaborators import reset_collaborators

    reset_collaborators()
    with ordering_bed.domain_context():
        yield

        from protean import current_domain

        for _, provider in current_domain.providers.items():
            provider._data_reset()
        current_domain.event_store.store._data_reset()
    reset_collaborators()


class Shop:
    """Seeds the collaborators and ledgers a checkout reads from."""

    def __init__(self):
        from ordering.collaborators import get_collaborators

        self.collaborators = get_collaborators()

    def add_product(self, sku, price, stock=10, name=None, is_active=True, allow_backorder=False):
        from ordering.collaborators.ports import Product
        from ordering.stock.management import RegisterStock
        from protean import current_domain

        self.collaborators.catalog.add_product(
            Product(sku=sku, name=name or f"Product {sku}", price=price, is_active=is_active, product_id=f"prod-{sku}")
        )
        current_domain.process(
            RegisterStock(sku=sku, product_id=f"prod-{sku}", stock=stock, allow_backorder=allow_backorder),
            asynchronous=False,
        )

    def add_address(self, customer_id, address_id="addr-001", email="hana@example.com", **overrides):
        from ordering.collaborators.ports import Address

        fields = {
            "id": address_id,
            "customer_id": customer_id,
            "receiver_name": "Hana Sato",
            "phone": "0901234567",
            "email": email,
            "street": "12 Nguyen Hue",
            "ward": "Ben Nghe",
            "district": "District 1",
            "city": "Ho Chi Minh City",
        }
        fields.update(overrides)
        self.collaborators.addresses.add_address(Address(**fields))
        return address_id

    def fill_cart(self, customer_id, *lines):
        """``lines`` are (sku, quantity) or (sku, quantity, cart_price) tuples."""
        from ordering.collaborators.ports import CartLine

        self.collaborators.carts.put_cart(
            customer_id,
            [
                CartLine(sku=line[0], quantity=line[1], unit_price=line[2] if len(line) > 2 else 0.0)
                for line in lines
            ],
        )

    def add_coupon(self, code, value, discount_type="Percentage", **kwargs):
        from ordering.coupon.management import CreateCoupon
        from protean import current_domain

        now = datetime.now(UTC)
        kwargs.setdefault("start_date", now - timedelta(days=1))
        kwargs.setdefault("end_date", now + timedelta(days=30))
        return current_domain.process(
            CreateCoupon(code=code, discount_type=discount_type, value=value, **kwargs),
            asynchronous=False,
        )


@pytest.fixture()
def shop():
    return Shop()


def _place_order(customer_id="cust-001", address_id="addr-001", **kwargs):
    """Run a checkout for ``customer_id`` with the default service wiring."""
    from ordering.checkout.service import CheckoutService, PlaceOrderRequest

    return CheckoutService().place_order(
        PlaceOrderRequest(customer_id=customer_id, shipping_address_id=address_id, **kwargs)
    )


@pytest.fixture()
def placed_order(shop):
    """A Pending order for 2 x MATCHA-100 at 250,000 with coupon SAKURA10 (10%, max 40,000)."""
    shop.add_product("MATCHA-100", price=250_000.0, stock=10, name="Uji Matcha 100g")
    shop.add_address("cust-001")
    shop.add_coupon("SAKURA10", 10, max_discount_amount=40_000.0, usage_limit=100)
    shop.fill_cart("cust-001", ("MATCHA-100", 2))
    return _place_order(coupon_code="SAKURA10")


@pytest.fixture()
def checkout():
    return _place_order
