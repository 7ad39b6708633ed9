"""
Billing configuration.

Everything Stripe-related is read once from the environment into an
immutable `BillingConfig` and passed explicitly to the components that need
it. Missing values are only fatal when a component actually needs them
(`require_*` raises `ConfigurationError`).
"""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv

from src.stockstay.core.exceptions import ConfigurationError

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_TRIAL_DAYS = 14
DEFAULT_TRIAL_CHECK_INTERVAL_SECONDS = 60 * 60  # 1 hour
DEFAULT_WEBHOOK_TOLERANCE_SECONDS = 300


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Ignoring non-integer value for {name}: {raw!r}")
        return default


@dataclass(frozen=True)
class BillingConfig:
    stripe_secret_key: Optional[str] = None
    webhook_secret: Optional[str] = None
    pro_price_id: Optional[str] = None
    pro_annual_price_id: Optional[str] = None
    starter_price_id: Optional[str] = None
    starter_annual_price_id: Optional[str] = None
    extra_user_slot_price_id: Optional[str] = None
    frontend_url: str = "http://localhost:5173"
    trial_days: int = DEFAULT_TRIAL_DAYS
    trial_check_interval_seconds: int = DEFAULT_TRIAL_CHECK_INTERVAL_SECONDS
    webhook_tolerance_seconds: int = DEFAULT_WEBHOOK_TOLERANCE_SECONDS

    @property
    def is_billing_configured(self) -> bool:
        return bool(self.stripe_secret_key and self.pro_price_id)

    def require_secret_key(self) -> str:
        if not self.stripe_secret_key:
            raise ConfigurationError(
                "Stripe billing is not configured. Set STRIPE_SECRET_KEY."
            )
        return self.stripe_secret_key

    def require_webhook_secret(self) -> str:
        if not self.webhook_secret:
            raise ConfigurationError(
                "Stripe webhook is not configured. Set STRIPE_WEBHOOK_SECRET."
            )
        return self.webhook_secret

    def require_extra_user_slot_price(self) -> str:
        if not self.extra_user_slot_price_id:
            raise ConfigurationError(
                "Extra user slots are not configured. Set STRIPE_EXTRA_USER_SLOT_PRICE_ID."
            )
        return self.extra_user_slot_price_id

    def price_for_plan(self, plan: str, billing_period: str = "monthly") -> str:
        """Resolve the Stripe price for plan + billing period.

        Falls back to monthly Pro when the requested combination has no
        configured price.
        """
        if not self.pro_price_id:
            raise ConfigurationError(
                "Stripe billing is not configured. Set STRIPE_SECRET_KEY and STRIPE_PRO_PRICE_ID."
            )
        annual = billing_period == "annual"
        if plan == "starter":
            if annual and self.starter_annual_price_id:
                return self.starter_annual_price_id
            if self.starter_price_id:
                return self.starter_price_id
        if plan == "pro" and annual and self.pro_annual_price_id:
            return self.pro_annual_price_id
        return self.pro_price_id

    def plan_for_price(self, price_id: Optional[str]) -> Optional[str]:
        """Map a Stripe price id back to a plan name, or None if unknown."""
        if not price_id:
            return None
        mapping = {
            self.pro_price_id: "pro",
            self.pro_annual_price_id: "pro",
            self.starter_price_id: "starter",
            self.starter_annual_price_id: "starter",
        }
        mapping.pop(None, None)
        return mapping.get(price_id)


def load_billing_config() -> BillingConfig:
    """Build a BillingConfig from the process environment."""
    return BillingConfig(
        stripe_secret_key=os.getenv("STRIPE_SECRET_KEY") or None,
        webhook_secret=os.getenv("STRIPE_WEBHOOK_SECRET") or None,
        pro_price_id=os.getenv("STRIPE_PRO_PRICE_ID") or None,
        pro_annual_price_id=os.getenv("STRIPE_PRO_ANNUAL_PRICE_ID") or None,
        starter_price_id=os.getenv("STRIPE_STARTER_PRICE_ID") or None,
        starter_annual_price_id=os.getenv("STRIPE_STARTER_ANNUAL_PRICE_ID") or None,
        extra_user_slot_price_id=os.getenv("STRIPE_EXTRA_USER_SLOT_PRICE_ID") or None,
        frontend_url=os.getenv("FRONTEND_URL", "http://localhost:5173").rstrip("/"),
        trial_days=_int_env("TRIAL_DAYS", DEFAULT_TRIAL_DAYS),
        trial_check_interval_seconds=_int_env(
            "TRIAL_CHECK_INTERVAL_SECONDS", DEFAULT_TRIAL_CHECK_INTERVAL_SECONDS
        ),
        webhook_tolerance_seconds=_int_env(
            "STRIPE_WEBHOOK_TOLERANCE", DEFAULT_WEBHOOK_TOLERANCE_SECONDS
        ),
    )


@lru_cache()
def get_billing_config() -> BillingConfig:
    """Process-wide config, loaded on first use."""
    config = load_billing_config()
    if not config.is_billing_configured:
        logger.warning(
            "Stripe billing is not fully configured (STRIPE_SECRET_KEY / STRIPE_PRO_PRICE_ID)"
        )
    return config
