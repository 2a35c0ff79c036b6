"""Coupon Ledger — validate, price, consume and revert discount codes."""

from dataclasses import dataclass
from datetime import UTC, datetime

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from ordering.coupon.coupon import Coupon, calculate_discount, normalize_code

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CouponValidation:
    is_valid: bool
    message: str
    code: str
    discount: float = 0.0


class CouponLedger:
    @staticmethod
    def _repo():
        return current_domain.repository_for(Coupon)

    def get(self, code: str) -> Coupon:
        coupon = self._repo().find_by_code(code)
        if coupon is None:
            raise ObjectNotFoundError(f"Coupon {normalize_code(code)} does not exist")
        return coupon

    def validate(self, code: str, order_amount: float, now: datetime | None = None) -> CouponValidation:
        """Check ``code`` against ``order_amount`` at ``now`` without consuming it.

        Rules run in a fixed order (exists, active, validity window, remaining
        uses, minimum order amount) and the first failure is reported.
        """
        now = now or datetime.now(UTC)
        key = normalize_code(code)

        coupon = self._repo().find_by_code(key)
        if coupon is None:
            return CouponValidation(is_valid=False, message="Coupon code does not exist", code=key)

        reason = coupon.rejection_reason(order_amount, now)
        if reason is not None:
            return CouponValidation(is_valid=False, message=reason, code=key)

        return CouponValidation(
            is_valid=True,
            message="Coupon applied",
            code=key,
            discount=calculate_discount(coupon, order_amount),
        )

    def try_consume(self, code: str) -> bool:
        """Atomically take one redemption; False when the limit is already reached."""
        consumed = self._repo().try_increment(code)
        if consumed:
            logger.info("Coupon redemption consumed", code=normalize_code(code))
        else:
            logger.warning("Coupon redemption rejected", code=normalize_code(code))
        return consumed

    def revert(self, code: str) -> None:
        coupon = self._repo().decrement(code)
        if coupon is None:
            logger.warning("Coupon revert skipped for unknown code", code=normalize_code(code))
            return
        logger.info("Coupon redemption reverted", code=coupon.code, used_count=coupon.used_count)

    def set_active(self, code: str, active: bool) -> Coupon:
        coupon = self._repo().set_active(code, active)
        if coupon is None:
            raise ObjectNotFoundError(f"Coupon {normalize_code(code)} does not exist")
        return coupon
