"""Pydantic request/response schemas for the Ordering API.

These are external contracts (anti-corruption layer) — separate from
internal Protean commands and services.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
class PlaceOrderRequest(BaseModel):
    customer_id: str
    shipping_address_id: str
    billing_address_id: str | None = None
    coupon_code: str | None = None
    express_delivery: bool = False
    is_gift: bool = False
    gift_message: str | None = Field(default=None, max_length=500)
    gift_wrap_requested: bool = False
    customer_notes: str | None = Field(default=None, max_length=1000)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "customer_id": "cust-001",
                    "shipping_address_id": "addr-001",
                    "coupon_code": "SAKURA10",
                    "express_delivery": False,
                }
            ]
        }
    }


class UpdateOrderStatusRequest(BaseModel):
    status: str
    note: str | None = None
    tracking_number: str | None = None
    shipping_carrier: str | None = None


class CancelOrderRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=500)


class ReturnOrderRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=500)


class OrderLineResponse(BaseModel):
    sku: str
    product_name: str
    unit_price: float
    quantity: int
    line_total: float


class StatusHistoryResponse(BaseModel):
    old_status: str
    new_status: str
    note: str | None = None
    changed_at: datetime


class OrderResponse(BaseModel):
    order_id: str
    order_number: int
    customer_id: str
    status: str
    payment_status: str
    subtotal: float
    shipping_fee: float
    tax_amount: float
    discount_amount: float
    total_amount: float
    currency: str
    coupon_code: str | None = None
    delivery_method: str
    items: list[OrderLineResponse]
    status_history: list[StatusHistoryResponse]


class OrderSummaryResponse(BaseModel):
    order_id: str
    order_number: int
    status: str
    payment_status: str
    total_amount: float
    currency: str
    item_count: int
    created_at: datetime | None = None


class StatusResponse(BaseModel):
    status: str


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------
class CreatePaymentRequest(BaseModel):
    order_id: str
    payment_method: str


class PaymentResponse(BaseModel):
    transaction_id: str
    order_id: str
    order_number: int
    payment_method: str
    amount: float
    currency: str
    status: str
    payment_code: str | None = None
    transfer_content: str | None = None


class PaymentTransactionResponse(BaseModel):
    transaction_id: str
    order_id: str
    order_number: int | None = None
    payment_method: str
    amount: float
    currency: str
    status: str
    payment_code: str | None = None
    external_reference: str | None = None
    response_message: str | None = None
    created_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None


class SePayWebhookRequest(BaseModel):
    """Bank-account movement as posted by SePay."""

    model_config = ConfigDict(extra="allow")

    id: int | str
    gateway: str | None = None
    transactionDate: str | None = None  # noqa: N815
    accountNumber: str | None = None  # noqa: N815
    code: str | None = None
    content: str | None = None
    transferType: str  # noqa: N815
    transferAmount: float  # noqa: N815
    accumulated: float | None = None
    subAccount: str | None = None  # noqa: N815
    referenceCode: str | None = None  # noqa: N815
    description: str | None = None


class WebhookResponse(BaseModel):
    success: bool
    message: str
    status: str
    transaction_id: str | None = None
    order_number: int | None = None
    amount: float | None = None


# ---------------------------------------------------------------------------
# Coupons
# ---------------------------------------------------------------------------
class CreateCouponRequest(BaseModel):
    code: str = Field(min_length=1, max_length=50)
    discount_type: str
    value: float = Field(ge=0)
    start_date: datetime
    end_date: datetime
    name: str | None = None
    description: str | None = None
    min_order_amount: float | None = Field(default=None, ge=0)
    max_discount_amount: float | None = Field(default=None, ge=0)
    usage_limit: int | None = Field(default=None, ge=0)
    is_active: bool = True


class ToggleCouponRequest(BaseModel):
    is_active: bool


class ValidateCouponRequest(BaseModel):
    code: str
    order_amount: float = Field(ge=0)


class CouponValidationResponse(BaseModel):
    is_valid: bool
    message: str
    code: str
    discount: float


class CouponResponse(BaseModel):
    code: str
    discount_type: str
    value: float
    used_count: int
    usage_limit: int | None = None
    is_active: bool


# ---------------------------------------------------------------------------
# Stock
# ---------------------------------------------------------------------------
class RegisterStockRequest(BaseModel):
    sku: str
    product_id: str | None = None
    stock: int = Field(ge=0)
    allow_backorder: bool = False


class SetStockRequest(BaseModel):
    stock: int
    allow_backorder: bool | None = None


class StockResponse(BaseModel):
    sku: str
    stock: int
    allow_backorder: bool
    is_out_of_stock: bool
