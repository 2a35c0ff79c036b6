"""FastAPI routes for the Ordering domain — orders, payments, coupons and stock."""

from dataclasses import asdict

from fastapi import APIRouter, Header, HTTPException, Query
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from ordering.api.schemas import (
    CancelOrderRequest,
    CouponResponse,
    CouponValidationResponse,
    CreateCouponRequest,
    CreatePaymentRequest,
    OrderLineResponse,
    OrderResponse,
    OrderSummaryResponse,
    PaymentResponse,
    PaymentTransactionResponse,
    PlaceOrderRequest,
    RegisterStockRequest,
    ReturnOrderRequest,
    SePayWebhookRequest,
    SetStockRequest,
    StatusHistoryResponse,
    StatusResponse,
    StockResponse,
    ToggleCouponRequest,
    UpdateOrderStatusRequest,
    ValidateCouponRequest,
    WebhookResponse,
)
from ordering.checkout import service as checkout
from ordering.coupon.ledger import CouponLedger
from ordering.coupon.management import CreateCoupon
from ordering.errors import Unauthorized
from ordering.order.lifecycle import OrderLifecycle
from ordering.order.order import Order
from ordering.payment.ledger import PaymentLedger
from ordering.payment.reconciliation import ReconciliationGateway, WebhookStatus
from ordering.payment.transaction import PaymentTransaction
from ordering.stock.ledger import StockLedger
from ordering.stock.management import RegisterStock
from ordering.stock.stock import StockLevel


def _order_response(order: Order) -> OrderResponse:
    return OrderResponse(
        order_id=str(order.id),
        order_number=order.order_number,
        customer_id=str(order.customer_id),
        status=order.status,
        payment_status=order.payment_status,
        subtotal=order.pricing.subtotal,
        shipping_fee=order.pricing.shipping_fee,
        tax_amount=order.pricing.tax_amount,
        discount_amount=order.pricing.discount_amount,
        total_amount=order.pricing.total_amount,
        currency=order.pricing.currency,
        coupon_code=order.coupon_code,
        delivery_method=order.delivery_method,
        items=[
            OrderLineResponse(
                sku=item.sku,
                product_name=item.product_name,
                unit_price=item.unit_price,
                quantity=item.quantity,
                line_total=item.line_total,
            )
            for item in order.items
        ],
        status_history=_history_response(order),
    )


def _history_response(order: Order) -> list[StatusHistoryResponse]:
    return [
        StatusHistoryResponse(
            old_status=entry.old_status,
            new_status=entry.new_status,
            note=entry.note,
            changed_at=entry.changed_at,
        )
        for entry in sorted(order.status_history, key=lambda e: e.changed_at)
    ]


def _summary_response(order: Order) -> OrderSummaryResponse:
    return OrderSummaryResponse(
        order_id=str(order.id),
        order_number=order.order_number,
        status=order.status,
        payment_status=order.payment_status,
        total_amount=order.pricing.total_amount,
        currency=order.pricing.currency,
        item_count=sum(item.quantity for item in order.items),
        created_at=order.created_at,
    )


def _transaction_response(transaction: PaymentTransaction) -> PaymentTransactionResponse:
    return PaymentTransactionResponse(
        transaction_id=transaction.transaction_id,
        order_id=str(transaction.order_id),
        order_number=transaction.order_number,
        payment_method=transaction.payment_method,
        amount=transaction.amount,
        currency=transaction.currency,
        status=transaction.status,
        payment_code=transaction.payment_code,
        external_reference=transaction.external_reference,
        response_message=transaction.response_message,
        created_at=transaction.created_at,
        completed_at=transaction.completed_at,
        cancelled_at=transaction.cancelled_at,
    )


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=OrderResponse)
async def place_order(body: PlaceOrderRequest) -> OrderResponse:
    """Place an order from the customer's current cart."""
    order = checkout.CheckoutService().place_order(checkout.PlaceOrderRequest(**body.model_dump()))
    return _order_response(order)


@order_router.get("", response_model=list[OrderSummaryResponse])
async def list_orders(customer_id: str = Query(...)) -> list[OrderSummaryResponse]:
    """The customer's orders, newest first."""
    orders = current_domain.repository_for(Order).for_customer(customer_id)
    return [_summary_response(order) for order in orders]


@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str) -> OrderResponse:
    order = current_domain.repository_for(Order).get(order_id)
    return _order_response(order)


@order_router.get("/{order_id}/status-history", response_model=list[StatusHistoryResponse])
async def get_status_history(order_id: str) -> list[StatusHistoryResponse]:
    order = current_domain.repository_for(Order).get(order_id)
    return _history_response(order)


@order_router.put("/{order_id}/status", response_model=StatusResponse)
async def update_order_status(order_id: str, body: UpdateOrderStatusRequest) -> StatusResponse:
    """Advance the order along its lifecycle."""
    status = OrderLifecycle().update_status(
        order_id,
        body.status,
        note=body.note,
        tracking_number=body.tracking_number,
        shipping_carrier=body.shipping_carrier,
    )
    return StatusResponse(status=status)


@order_router.post("/{order_id}/cancel", response_model=StatusResponse)
async def cancel_order(order_id: str, body: CancelOrderRequest) -> StatusResponse:
    status = OrderLifecycle().cancel(order_id, body.reason)
    return StatusResponse(status=status)


@order_router.post("/{order_id}/return", response_model=StatusResponse)
async def return_order(order_id: str, body: ReturnOrderRequest) -> StatusResponse:
    """Mark a delivered order as returned."""
    status = OrderLifecycle().request_return(order_id, body.reason)
    return StatusResponse(status=status)


# ---------------------------------------------------------------------------
# Payment Router
# ---------------------------------------------------------------------------
payment_router = APIRouter(prefix="/payments", tags=["payments"])


@payment_router.post("", status_code=201, response_model=PaymentResponse)
async def create_payment(body: CreatePaymentRequest) -> PaymentResponse:
    """Open a payment attempt for an order."""
    instructions = PaymentLedger().create_payment(body.order_id, body.payment_method)
    return PaymentResponse(**asdict(instructions))


@payment_router.post("/webhook", response_model=WebhookResponse)
async def process_webhook(
    body: SePayWebhookRequest,
    authorization: str = Header(default=""),
) -> WebhookResponse:
    """Process a SePay bank-transfer callback.

    Integrity failures are answered with ``success: false`` and HTTP 200 so the
    gateway does not keep retrying a callback that can never apply.
    """
    try:
        result = ReconciliationGateway().process_webhook(body.model_dump(), authorization)
    except Unauthorized:
        raise HTTPException(status_code=401, detail="Invalid webhook API key") from None
    except ValidationError as exc:
        message = "; ".join(m for messages in exc.messages.values() for m in messages)
        return WebhookResponse(success=False, message=message, status=WebhookStatus.REJECTED)

    return WebhookResponse(**asdict(result))


@payment_router.get("/order/{order_id}", response_model=list[PaymentTransactionResponse])
async def list_order_payments(order_id: str) -> list[PaymentTransactionResponse]:
    """Every payment attempt for the order, newest first."""
    current_domain.repository_for(Order).get(order_id)
    transactions = current_domain.repository_for(PaymentTransaction).for_order(order_id)
    return [_transaction_response(t) for t in transactions]


@payment_router.get("/{transaction_id}", response_model=PaymentTransactionResponse)
async def get_payment(transaction_id: str) -> PaymentTransactionResponse:
    transaction = current_domain.repository_for(PaymentTransaction).find_by_transaction_id(transaction_id)
    if transaction is None:
        raise ObjectNotFoundError(f"Payment transaction {transaction_id} not found")
    return _transaction_response(transaction)


@payment_router.delete("/{transaction_id}", response_model=PaymentTransactionResponse)
async def cancel_payment(
    transaction_id: str,
    reason: str | None = Query(default=None, max_length=500),
) -> PaymentTransactionResponse:
    """Void a pending payment attempt."""
    return _transaction_response(PaymentLedger().cancel_payment(transaction_id, reason))


# ---------------------------------------------------------------------------
# Coupon Router
# ---------------------------------------------------------------------------
coupon_router = APIRouter(prefix="/coupons", tags=["coupons"])


def _coupon_response(coupon) -> CouponResponse:
    return CouponResponse(
        code=coupon.code,
        discount_type=coupon.discount_type,
        value=coupon.value,
        used_count=coupon.used_count,
        usage_limit=coupon.usage_limit,
        is_active=coupon.is_active,
    )


@coupon_router.post("", status_code=201, response_model=CouponResponse)
async def create_coupon(body: CreateCouponRequest) -> CouponResponse:
    code = current_domain.process(CreateCoupon(**body.model_dump()), asynchronous=False)
    return _coupon_response(CouponLedger().get(code))


@coupon_router.put("/{code}/toggle", response_model=CouponResponse)
async def toggle_coupon(code: str, body: ToggleCouponRequest) -> CouponResponse:
    return _coupon_response(CouponLedger().set_active(code, body.is_active))


@coupon_router.post("/validate", response_model=CouponValidationResponse)
async def validate_coupon(body: ValidateCouponRequest) -> CouponValidationResponse:
    """Preview a coupon against an order amount without consuming it."""
    validation = CouponLedger().validate(body.code, body.order_amount)
    return CouponValidationResponse(**asdict(validation))


# ---------------------------------------------------------------------------
# Stock Router
# ---------------------------------------------------------------------------
stock_router = APIRouter(prefix="/stock", tags=["stock"])


def _stock_response(level: StockLevel) -> StockResponse:
    return StockResponse(
        sku=level.sku,
        stock=level.stock,
        allow_backorder=level.allow_backorder,
        is_out_of_stock=level.is_out_of_stock,
    )


@stock_router.post("", status_code=201, response_model=StockResponse)
async def register_stock(body: RegisterStockRequest) -> StockResponse:
    current_domain.process(RegisterStock(**body.model_dump()), asynchronous=False)
    return _stock_response(current_domain.repository_for(StockLevel).find_by_sku(body.sku))


@stock_router.get("/{sku}", response_model=StockResponse)
async def get_stock(sku: str) -> StockResponse:
    level = current_domain.repository_for(StockLevel).find_by_sku(sku)
    if level is None:
        raise ObjectNotFoundError(f"No stock registered for SKU {sku}")
    return _stock_response(level)


@stock_router.put("/{sku}", response_model=StockResponse)
async def set_stock(sku: str, body: SetStockRequest) -> StockResponse:
    return _stock_response(StockLedger().set_stock(sku, body.stock, body.allow_backorder))
