"""
Thin gateway over the Stripe SDK.

Every Stripe call used by the engine goes through `StripeGateway`, which
passes the configured API key per request and turns `stripe.StripeError`
into `ProviderError`. Webhook signature verification uses Stripe's
HMAC-SHA256 scheme via `stripe.WebhookSignature`.
"""

import json
import logging
from functools import wraps
from typing import Any, Dict, List, Optional, Tuple

import stripe

from src.stockstay.billing.events import BILLING_INTERVALS, LineItem
from src.stockstay.core.config import BillingConfig
from src.stockstay.core.exceptions import AuthenticationError, ProviderError

logger = logging.getLogger(__name__)


def _field(obj: Any, key: str) -> Any:
    if obj is None:
        return None
    try:
        return obj[key]
    except (KeyError, TypeError, AttributeError):
        return None


def _provider_call(action: str):
    """Translate Stripe SDK failures into ProviderError for `action`."""

    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except stripe.StripeError as e:
                message = getattr(e, "user_message", None) or str(e)
                logger.error(f"Stripe error while trying to {action}: {message}")
                raise ProviderError(
                    f"Failed to {action}: {message}",
                    code=getattr(e, "code", None),
                    http_status=getattr(e, "http_status", None),
                ) from e

        return wrapper

    return decorator


class StripeGateway:
    def __init__(self, config: BillingConfig):
        self.config = config

    @property
    def api_key(self) -> str:
        return self.config.require_secret_key()

    # ------------------------------------------------------------------
    # Webhooks
    # ------------------------------------------------------------------
    def verify_webhook(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """Verify the Stripe-Signature header and return the decoded event."""
        secret = self.config.require_webhook_secret()
        if not signature:
            raise AuthenticationError("Missing Stripe-Signature header")

        try:
            body = payload.decode("utf-8") if isinstance(payload, bytes) else payload
        except UnicodeDecodeError as e:
            raise AuthenticationError("Webhook payload is not valid UTF-8") from e

        try:
            stripe.WebhookSignature.verify_header(
                body, signature, secret, self.config.webhook_tolerance_seconds
            )
        except stripe.SignatureVerificationError as e:
            raise AuthenticationError(
                f"Webhook signature verification failed: {e}"
            ) from e

        try:
            event = json.loads(body)
        except ValueError as e:
            raise AuthenticationError("Webhook payload is not valid JSON") from e
        if not isinstance(event, dict):
            raise AuthenticationError("Webhook payload is not a JSON object")
        return event

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------
    @_provider_call("retrieve subscription")
    def list_subscription_items(self, subscription_id: str) -> Tuple[LineItem, ...]:
        subscription = stripe.Subscription.retrieve(subscription_id, api_key=self.api_key)
        data = _field(_field(subscription, "items"), "data") or []

        items = []
        for item in data:
            price = _field(item, "price")
            interval = _field(_field(price, "recurring"), "interval")
            items.append(
                LineItem(
                    id=_field(item, "id"),
                    price_id=_field(price, "id"),
                    quantity=int(_field(item, "quantity") or 0),
                    interval=interval if interval in BILLING_INTERVALS else None,
                )
            )
        return tuple(items)

    @_provider_call("update subscription")
    def update_subscription_items(
        self, subscription_id: str, items: List[Dict[str, Any]]
    ) -> None:
        stripe.Subscription.modify(
            subscription_id,
            api_key=self.api_key,
            items=items,
            proration_behavior="create_prorations",
        )
        logger.info(f"Updated {len(items)} line item(s) on subscription {subscription_id}")

    # ------------------------------------------------------------------
    # Customers, checkout and portal
    # ------------------------------------------------------------------
    @_provider_call("create customer")
    def create_customer(self, email: Optional[str], team_id: str) -> str:
        customer = stripe.Customer.create(
            api_key=self.api_key,
            email=email,
            metadata={"teamId": team_id},
        )
        logger.info(f"Created Stripe customer {customer.id} for team {team_id}")
        return customer.id

    @_provider_call("create checkout session")
    def create_checkout_session(self, **params: Any) -> Dict[str, Optional[str]]:
        session = stripe.checkout.Session.create(api_key=self.api_key, **params)
        return {"url": session.url, "session_id": session.id}

    @_provider_call("create billing portal session")
    def create_portal_session(self, customer_id: str, return_url: str) -> Dict[str, str]:
        session = stripe.billing_portal.Session.create(
            api_key=self.api_key,
            customer=customer_id,
            return_url=return_url,
        )
        return {"url": session.url}
