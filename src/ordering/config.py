"""Application settings for the Ordering domain.

Infrastructure (databases, brokers, event processing mode) is configured in
``domain.toml`` and selected by ``PROTEAN_ENV``. The values here are business
knobs read from the environment once per call to ``get_settings()``.
"""

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    payment_code_prefix: str = "SAKURA"
    payment_code_digits: int = 6
    webhook_secret: str = "sakura-dev-webhook-key"
    webhook_amount_epsilon: float = 0.01
    currency: str = "VND"
    standard_shipping_fee: float = 30000.0
    express_shipping_fee: float = 50000.0
    tax_rate: float = 0.0
    checkout_max_attempts: int = 3


def get_settings() -> Settings:
    """Build settings from environment variables, falling back to defaults."""
    defaults = Settings()
    return Settings(
        payment_code_prefix=os.environ.get("PAYMENT_CODE_PREFIX", defaults.payment_code_prefix),
        payment_code_digits=int(os.environ.get("PAYMENT_CODE_DIGITS", defaults.payment_code_digits)),
        webhook_secret=os.environ.get("SEPAY_WEBHOOK_SECRET", defaults.webhook_secret),
        webhook_amount_epsilon=float(os.environ.get("WEBHOOK_AMOUNT_EPSILON", defaults.webhook_amount_epsilon)),
        currency=os.environ.get("CURRENCY", defaults.currency),
        standard_shipping_fee=float(os.environ.get("STANDARD_SHIPPING_FEE", defaults.standard_shipping_fee)),
        express_shipping_fee=float(os.environ.get("EXPRESS_SHIPPING_FEE", defaults.express_shipping_fee)),
        tax_rate=float(os.environ.get("TAX_RATE", defaults.tax_rate)),
        checkout_max_attempts=int(os.environ.get("CHECKOUT_MAX_ATTEMPTS", defaults.checkout_max_attempts)),
    )
