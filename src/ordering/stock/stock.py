"""StockLevel aggregate — per-SKU sellable quantity.

A StockLevel is the contended row of the checkout path. Orders decrement it,
cancellations restore it. When backorder is disallowed the stock may never be
driven below zero, so every mutation goes through the repository's conditional
update methods, which hold a per-SKU lock across load, check and persist.
"""

from datetime import UTC, datetime

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Identifier, Integer, String

from ordering.domain import ordering
from ordering.errors import InsufficientStock
from ordering.utils.locks import KeyedLock

_sku_locks = KeyedLock()


@ordering.aggregate
class StockLevel:
    sku = String(required=True, max_length=100, unique=True)
    product_id = Identifier()
    stock = Integer(default=0)
    allow_backorder = Boolean(default=False)
    is_out_of_stock = Boolean(default=False)
    updated_at = DateTime()

    @invariant.post
    def stock_cannot_go_negative_without_backorder(self):
        if not self.allow_backorder and self.stock is not None and self.stock < 0:
            raise ValidationError({"stock": ["Stock cannot be negative when backorder is disallowed"]})

    @classmethod
    def register(cls, sku, stock=0, product_id=None, allow_backorder=False):
        return cls(
            sku=sku,
            product_id=product_id,
            stock=stock,
            allow_backorder=allow_backorder,
            is_out_of_stock=stock <= 0,
            updated_at=datetime.now(UTC),
        )

    def can_supply(self, quantity):
        return self.allow_backorder or quantity <= self.stock

    def decrement(self, quantity):
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})
        if not self.can_supply(quantity):
            raise InsufficientStock(self.sku, requested=quantity, available=self.stock)

        self.stock -= quantity
        self.is_out_of_stock = self.stock <= 0
        self.updated_at = datetime.now(UTC)

    def restore(self, quantity):
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})

        self.stock += quantity
        self.is_out_of_stock = self.stock <= 0
        self.updated_at = datetime.now(UTC)

    def set_stock(self, stock, allow_backorder=None):
        if allow_backorder is not None:
            self.allow_backorder = allow_backorder
        self.stock = stock
        self.is_out_of_stock = stock <= 0
        self.updated_at = datetime.now(UTC)


@ordering.repository(part_of=StockLevel)
class StockLevelRepository:
    """Conditional updates for stock rows.

    The mutating methods persist immediately and must be called outside an
    enclosing UnitOfWork; inside one the write would be deferred past the
    release of the SKU lock.
    """

    def find_by_sku(self, sku: str) -> StockLevel | None:
        results = self._dao.query.filter(sku=sku).all().items
        return results[0] if results else None

    def conditional_decrement(self, sku: str, quantity: int) -> StockLevel:
        with _sku_locks.hold(sku):
            level = self.find_by_sku(sku)
            if level is None:
                raise InsufficientStock(sku, requested=quantity, available=0)

            level.decrement(quantity)
            self.add(level)
            return level

    def increment(self, sku: str, quantity: int) -> StockLevel | None:
        with _sku_locks.hold(sku):
            level = self.find_by_sku(sku)
            if level is None:
                return None

            level.restore(quantity)
            self.add(level)
            return level

    def overwrite(self, sku: str, stock: int, allow_backorder=None) -> StockLevel | None:
        with _sku_locks.hold(sku):
            level = self.find_by_sku(sku)
            if level is None:
                return None

            level.set_stock(stock, allow_backorder)
            self.add(level)
            return level
