"""Coupon aggregate — discount code with a bounded, shared usage counter.

``used_count`` is a hot counter: many checkouts may race for the last
redemption of a limited-run code. Consumption and reversal therefore happen
only through ``CouponRepository.try_increment`` / ``decrement``, which hold a
per-code lock across load, compare and persist.
"""

from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, Integer, String, Text

from ordering.domain import ordering
from ordering.utils.locks import KeyedLock

_code_locks = KeyedLock()


class DiscountType(Enum):
    PERCENTAGE = "Percentage"
    FIXED = "Fixed"


def normalize_code(code):
    return (code or "").strip().upper()


def _aware(value):
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def calculate_discount(coupon, order_amount):
    """Discount ``coupon`` grants on ``order_amount``.

    Percentage coupons take ``value`` percent of the amount, fixed coupons take
    ``value``. ``max_discount_amount`` caps either kind, and the result never
    exceeds the order amount.
    """
    if order_amount <= 0:
        return 0.0

    if coupon.discount_type == DiscountType.PERCENTAGE.value:
        discount = order_amount * coupon.value / 100
    else:
        discount = coupon.value

    if coupon.max_discount_amount is not None and discount > coupon.max_discount_amount:
        discount = coupon.max_discount_amount

    return round(min(discount, order_amount), 2)


@ordering.aggregate
class Coupon:
    code = String(required=True, max_length=50, unique=True)
    name = String(max_length=200)
    description = Text()
    discount_type = String(choices=DiscountType, default=DiscountType.PERCENTAGE.value)
    value = Float(required=True, min_value=0.0)
    min_order_amount = Float(min_value=0.0)
    max_discount_amount = Float(min_value=0.0)
    usage_limit = Integer(min_value=0)
    used_count = Integer(default=0, min_value=0)
    start_date = DateTime(required=True)
    end_date = DateTime(required=True)
    is_active = Boolean(default=True)
    created_at = DateTime()

    @invariant.post
    def percentage_cannot_exceed_hundred(self):
        if self.discount_type == DiscountType.PERCENTAGE.value and self.value is not None and self.value > 100:
            raise ValidationError({"value": ["Percentage discount cannot exceed 100"]})

    @invariant.post
    def usage_cannot_exceed_limit(self):
        if self.usage_limit is not None and self.used_count is not None and self.used_count > self.usage_limit:
            raise ValidationError({"used_count": ["Coupon usage cannot exceed its limit"]})

    @invariant.post
    def validity_window_must_be_ordered(self):
        if self.start_date and self.end_date and _aware(self.end_date) < _aware(self.start_date):
            raise ValidationError({"end_date": ["End date must not precede start date"]})

    @classmethod
    def create(
        cls,
        code,
        discount_type,
        value,
        start_date,
        end_date,
        name=None,
        description=None,
        min_order_amount=None,
        max_discount_amount=None,
        usage_limit=None,
        is_active=True,
    ):
        return cls(
            code=normalize_code(code),
            name=name,
            description=description,
            discount_type=discount_type,
            value=value,
            min_order_amount=min_order_amount,
            max_discount_amount=max_discount_amount,
            usage_limit=usage_limit,
            used_count=0,
            start_date=start_date,
            end_date=end_date,
            is_active=is_active,
            created_at=datetime.now(UTC),
        )

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def has_remaining_uses(self):
        return self.usage_limit is None or self.used_count < self.usage_limit

    def rejection_reason(self, order_amount, now):
        """First failing rule as a customer-facing message, or None if usable."""
        now = _aware(now)
        if not self.is_active:
            return "Coupon is not active"
        if now < _aware(self.start_date):
            return "Coupon is not yet valid"
        if now > _aware(self.end_date):
            return "Coupon has expired"
        if not self.has_remaining_uses:
            return "Coupon usage limit has been reached"
        if self.min_order_amount is not None and order_amount < self.min_order_amount:
            return f"Minimum order amount is {self.min_order_amount:,.0f}"
        return None

    # -------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------
    def consume(self):
        """Take one redemption. Returns False, without changing anything, when none remain."""
        if not self.has_remaining_uses:
            return False
        self.used_count += 1
        return True

    def release(self):
        if self.used_count > 0:
            self.used_count -= 1

    def activate(self):
        self.is_active = True

    def deactivate(self):
        self.is_active = False


@ordering.repository(part_of=Coupon)
class CouponRepository:
    """Case-insensitive lookup and the conditional counter updates.

    ``try_increment`` and ``decrement`` persist immediately and must be called
    outside an enclosing UnitOfWork.
    """

    def find_by_code(self, code: str) -> Coupon | None:
        results = self._dao.query.filter(code=normalize_code(code)).all().items
        return results[0] if results else None

    def try_increment(self, code: str) -> bool:
        key = normalize_code(code)
        with _code_locks.hold(key):
            coupon = self.find_by_code(key)
            if coupon is None or not coupon.consume():
                return False
            self.add(coupon)
            return True

    def decrement(self, code: str) -> Coupon | None:
        key = normalize_code(code)
        with _code_locks.hold(key):
            coupon = self.find_by_code(key)
            if coupon is None:
                return None
            coupon.release()
            self.add(coupon)
            return coupon

    def set_active(self, code: str, active: bool) -> Coupon | None:
        key = normalize_code(code)
        with _code_locks.hold(key):
            coupon = self.find_by_code(key)
            if coupon is None:
                return None
            if active:
                coupon.activate()
            else:
                coupon.deactivate()
            self.add(coupon)
            return coupon
