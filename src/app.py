"""Sakura ordering FastAPI application.

Serves checkout, order lifecycle, payments (including the SePay webhook),
coupons and stock over HTTP. Commands are processed synchronously; every request
runs inside the ordering domain context.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

# PROTEAN_ENV controls which config overlay is applied:
#   - "test"       → event_processing = "sync"  (handlers fire on UoW commit)
#   - "production" → event_processing = "async" (handlers fire via Engine)
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from ordering.domain import ordering
from ordering.errors import TransientFailure
from ordering.utils.logging import configure_logging

configure_logging()
ordering.init()

app = FastAPI(
    title="Sakura Ordering API",
    description="Checkout, order lifecycle and payment reconciliation",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)


@app.exception_handler(TransientFailure)
async def transient_failure_handler(request: Request, exc: TransientFailure):
    return JSONResponse(status_code=503, content={"error": exc.messages})


@app.middleware("http")
async def domain_context_middleware(request: Request, call_next):
    """Push the ordering domain context for each request."""
    with ordering.domain_context():
        response = await call_next(request)
    return response


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from ordering.api.routes import coupon_router, order_router, payment_router, stock_router  # noqa: E402

app.include_router(order_router)
app.include_router(payment_router)
app.include_router(coupon_router)
app.include_router(stock_router)


@app.get("/health")
async def health():
    return JSONResponse(content={"status": "ok", "domain": ordering.name})
