"""RegisterStock — start tracking a SKU in the stock ledger.

Later adjustments go through ``StockLedger.set_stock`` so they take the same
per-SKU lock as checkout decrements.
"""

from protean.exceptions import ValidationError
from protean.fields import Boolean, Identifier, Integer, String
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from ordering.domain import ordering
from ordering.stock.stock import StockLevel


@ordering.command(part_of="StockLevel")
class RegisterStock:
    sku = String(required=True, max_length=100)
    product_id = Identifier()
    stock = Integer(required=True, min_value=0)
    allow_backorder = Boolean(default=False)


@ordering.command_handler(part_of=StockLevel)
class RegisterStockHandler:
    @handle(RegisterStock)
    def register_stock(self, command):
        repo = current_domain.repository_for(StockLevel)
        if repo.find_by_sku(command.sku) is not None:
            raise ValidationError({"sku": [f"Stock for SKU {command.sku} is already registered"]})

        level = StockLevel.register(
            sku=command.sku,
            stock=command.stock,
            product_id=command.product_id,
            allow_backorder=command.allow_backorder,
        )
        repo.add(level)
        return str(level.id)
