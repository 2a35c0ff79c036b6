"""CustomerAccount aggregate — per-customer order statistics and loyalty tier.

The account is keyed by the customer's identity id. Checkout adds to it in the
same unit of work that persists the order; cancellation subtracts. Neither
counter goes below zero, and the tier is recomputed from total spend after
every change.
"""

from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ObjectNotFoundError
from protean.fields import DateTime, Float, Integer, String
from protean.utils.globals import current_domain

from ordering.domain import ordering


class CustomerTier(Enum):
    BRONZE = "Bronze"
    SILVER = "Silver"
    GOLD = "Gold"
    PLATINUM = "Platinum"
    DIAMOND = "Diamond"


# Minimum total spend (VND) per tier, highest first
_TIER_THRESHOLDS = [
    (20_000_000, CustomerTier.DIAMOND),
    (10_000_000, CustomerTier.PLATINUM),
    (5_000_000, CustomerTier.GOLD),
    (1_000_000, CustomerTier.SILVER),
]


def tier_for(total_spent):
    for threshold, tier in _TIER_THRESHOLDS:
        if total_spent >= threshold:
            return tier
    return CustomerTier.BRONZE


@ordering.aggregate
class CustomerAccount:
    total_orders = Integer(default=0, min_value=0)
    total_spent = Float(default=0.0, min_value=0.0)
    tier = String(choices=CustomerTier, default=CustomerTier.BRONZE.value)
    updated_at = DateTime()

    @classmethod
    def open(cls, customer_id):
        return cls(
            id=customer_id,
            total_orders=0,
            total_spent=0.0,
            tier=CustomerTier.BRONZE.value,
            updated_at=datetime.now(UTC),
        )

    def record_order(self, amount):
        self.total_orders += 1
        self.total_spent = round(self.total_spent + amount, 2)
        self._refresh_tier()

    def revoke_order(self, amount):
        self.total_orders = max(0, self.total_orders - 1)
        self.total_spent = max(0.0, round(self.total_spent - amount, 2))
        self._refresh_tier()

    def _refresh_tier(self):
        self.tier = tier_for(self.total_spent).value
        self.updated_at = datetime.now(UTC)


def load_or_open_account(customer_id):
    """Fetch the account for ``customer_id``, starting a fresh one on first order."""
    repo = current_domain.repository_for(CustomerAccount)
    try:
        return repo.get(customer_id)
    except ObjectNotFoundError:
        return CustomerAccount.open(customer_id)
