import pytest

from src.stockstay.core.config import BillingConfig, load_billing_config
from src.stockstay.core.exceptions import ConfigurationError


def test_load_billing_config_from_environment(monkeypatch):
    monkeypatch.setenv("STRIPE_SECRET_KEY", "sk_live_x")
    monkeypatch.setenv("STRIPE_PRO_PRICE_ID", "price_pro")
    monkeypatch.setenv("STRIPE_EXTRA_USER_SLOT_PRICE_ID", "price_slot")
    monkeypatch.setenv("FRONTEND_URL", "https://app.stockstay.com/")
    monkeypatch.setenv("TRIAL_DAYS", "7")
    monkeypatch.setenv("TRIAL_CHECK_INTERVAL_SECONDS", "not-a-number")

    config = load_billing_config()

    assert config.stripe_secret_key == "sk_live_x"
    assert config.is_billing_configured
    assert config.frontend_url == "https://app.stockstay.com"
    assert config.trial_days == 7
    assert config.trial_check_interval_seconds == 3600


def test_require_methods_raise_when_unset():
    config = BillingConfig()
    for require in (
        config.require_secret_key,
        config.require_webhook_secret,
        config.require_extra_user_slot_price,
    ):
        with pytest.raises(ConfigurationError):
            require()


def test_price_for_plan_falls_back_to_pro_monthly(config):
    assert config.price_for_plan("starter", "annual") == "price_starter_year"
    assert config.price_for_plan("pro", "annual") == "price_pro_year"
    assert config.price_for_plan("pro", "monthly") == "price_pro_month"

    partial = BillingConfig(pro_price_id="price_pro_month")
    assert partial.price_for_plan("starter", "annual") == "price_pro_month"


def test_plan_for_price(config):
    assert config.plan_for_price("price_starter_year") == "starter"
    assert config.plan_for_price("price_pro_month") == "pro"
    assert config.plan_for_price("price_extra_slot") is None
    assert config.plan_for_price(None) is None
