"""Stock Ledger — availability checks and atomic decrement/restore per SKU."""

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from ordering.stock.stock import StockLevel

logger = structlog.get_logger(__name__)


class StockLedger:
    @staticmethod
    def _repo():
        return current_domain.repository_for(StockLevel)

    def check_available(self, sku: str, quantity: int) -> bool:
        level = self._repo().find_by_sku(sku)
        if level is None:
            return False
        return level.can_supply(quantity)

    def available(self, sku: str) -> int:
        level = self._repo().find_by_sku(sku)
        return level.stock if level is not None else 0

    def decrement(self, sku: str, quantity: int) -> StockLevel:
        """Take ``quantity`` units of ``sku``.

        Raises ``InsufficientStock`` when the SKU is unknown, or when the
        decrement would drive stock below zero and backorder is disallowed.
        Nothing is written in that case.
        """
        level = self._repo().conditional_decrement(sku, quantity)
        logger.info("Stock decremented", sku=sku, quantity=quantity, remaining=level.stock)
        return level

    def restore(self, sku: str, quantity: int) -> None:
        """Give ``quantity`` units back to ``sku``. Unknown SKUs are logged and skipped."""
        level = self._repo().increment(sku, quantity)
        if level is None:
            logger.warning("Stock restore skipped for unknown SKU", sku=sku, quantity=quantity)
            return
        logger.info("Stock restored", sku=sku, quantity=quantity, stock=level.stock)

    def set_stock(self, sku: str, stock: int, allow_backorder: bool | None = None) -> StockLevel:
        """Overwrite the stock count of a registered SKU (stock take, manual correction)."""
        level = self._repo().overwrite(sku, stock, allow_backorder)
        if level is None:
            raise ValidationError({"sku": [f"Unknown SKU {sku}"]})
        logger.info("Stock level set", sku=sku, stock=stock)
        return level
