import hashlib
import hmac
import json
import os
import time
from datetime import datetime

# Must be set before any src.stockstay module reads the environment
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")
os.environ.setdefault("RUN_TRIAL_EXPIRY_SERVICE", "false")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from src.stockstay.billing.events import LineItem
from src.stockstay.billing.stripe_client import StripeGateway
from src.stockstay.core.config import BillingConfig
from src.stockstay.core.database import Base
from src.stockstay.models import team as _team_models  # noqa: F401  registers tables
from src.stockstay.repositories.team_store import TeamStore

NOW = datetime(2025, 1, 1, 12, 0, 0)
NOW_TS = 1735732800  # NOW as a unix timestamp

WEBHOOK_SECRET = "whsec_test_secret"

TEST_CONFIG = BillingConfig(
    stripe_secret_key="sk_test_123",
    webhook_secret=WEBHOOK_SECRET,
    pro_price_id="price_pro_month",
    pro_annual_price_id="price_pro_year",
    starter_price_id="price_starter_month",
    starter_annual_price_id="price_starter_year",
    extra_user_slot_price_id="price_extra_slot",
    frontend_url="https://app.stockstay.test",
)


class FakeGateway(StripeGateway):
    """Records Stripe calls instead of making them. Webhook verification is real."""

    def __init__(self, config, items=()):
        super().__init__(config)
        self.items = list(items)
        self.calls = []
        self.fail_with = None

    def list_subscription_items(self, subscription_id):
        self.calls.append(("list_items", subscription_id))
        return tuple(self.items)

    def update_subscription_items(self, subscription_id, items):
        if self.fail_with is not None:
            raise self.fail_with
        self.calls.append(("update_items", subscription_id, items))

    def create_customer(self, email, team_id):
        self.calls.append(("create_customer", email, team_id))
        return "cus_new"

    def create_checkout_session(self, **params):
        self.calls.append(("checkout", params))
        return {"url": "https://checkout.stripe.test/c/cs_test_1", "session_id": "cs_test_1"}

    def create_portal_session(self, customer_id, return_url):
        self.calls.append(("portal", customer_id, return_url))
        return {"url": "https://billing.stripe.test/p/session_1"}

    def calls_named(self, name):
        return [call for call in self.calls if call[0] == name]


def sign_payload(payload: str, secret: str = WEBHOOK_SECRET, timestamp=None) -> str:
    """Stripe-Signature header for `payload` (t=<ts>,v1=<hmac-sha256>)."""
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed = f"{timestamp}.{payload}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def line_item(item_id, price_id, quantity=1, interval="month"):
    return {
        "id": item_id,
        "quantity": quantity,
        "price": {"id": price_id, "recurring": {"interval": interval}},
    }


def subscription_event(
    event_type="customer.subscription.updated",
    team_id="t1",
    status="active",
    plan=None,
    items=None,
    created=NOW_TS,
    subscription_id="sub_123",
    customer="cus_123",
    event_id="evt_1",
):
    metadata = {}
    if team_id:
        metadata["teamId"] = team_id
    if plan:
        metadata["plan"] = plan
    if items is None:
        items = [line_item("si_base", "price_starter_month")]
    return {
        "id": event_id,
        "object": "event",
        "type": event_type,
        "created": created,
        "data": {
            "object": {
                "id": subscription_id,
                "object": "subscription",
                "customer": customer,
                "status": status,
                "metadata": metadata,
                "items": {"object": "list", "data": items},
            }
        },
    }


def signed_request(event):
    """(raw body, signature header) for a webhook event dict."""
    body = json.dumps(event)
    return body.encode("utf-8"), sign_payload(body)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def store(db):
    return TeamStore(db)


@pytest.fixture
def config():
    return TEST_CONFIG


@pytest.fixture
def gateway(config):
    return FakeGateway(config)


@pytest.fixture
def make_team(store):
    def _make(team_id="t1", now=NOW, **fields):
        team = store.create(name=f"Team {team_id}", team_id=team_id)
        if fields:
            team = store.apply(team_id, lambda t: dict(fields), now=now)
        return team

    return _make


@pytest.fixture
def subscribed_team(make_team):
    """Team t1 on an active Pro subscription with no add-on."""
    return make_team(
        plan="pro",
        stripe_customer_id="cus_123",
        stripe_subscription_id="sub_123",
        stripe_subscription_status="active",
        billing_interval="month",
    )


@pytest.fixture
def base_item():
    return LineItem(id="si_base", price_id="price_pro_month", quantity=1, interval="month")
