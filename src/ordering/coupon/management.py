"""CreateCoupon — register a new discount code."""

from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, Integer, String, Text
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from ordering.coupon.coupon import Coupon
from ordering.domain import ordering


@ordering.command(part_of="Coupon")
class CreateCoupon:
    code = String(required=True, max_length=50)
    discount_type = String(required=True, max_length=20)
    value = Float(required=True, min_value=0.0)
    start_date = DateTime(required=True)
    end_date = DateTime(required=True)
    name = String(max_length=200)
    description = Text()
    min_order_amount = Float()
    max_discount_amount = Float()
    usage_limit = Integer()
    is_active = Boolean(default=True)


@ordering.command_handler(part_of=Coupon)
class CreateCouponHandler:
    @handle(CreateCoupon)
    def create_coupon(self, command):
        repo = current_domain.repository_for(Coupon)
        if repo.find_by_code(command.code) is not None:
            raise ValidationError({"code": [f"Coupon {command.code.upper()} already exists"]})

        coupon = Coupon.create(
            code=command.code,
            discount_type=command.discount_type,
            value=command.value,
            start_date=command.start_date,
            end_date=command.end_date,
            name=command.name,
            description=command.description,
            min_order_amount=command.min_order_amount,
            max_discount_amount=command.max_discount_amount,
            usage_limit=command.usage_limit,
            is_active=command.is_active,
        )
        repo.add(coupon)
        return coupon.code
