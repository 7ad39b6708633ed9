"""
Stripe Checkout and Customer Portal sessions.

Thin layer over the gateway: resolves the price for the requested plan,
makes sure the team has a Stripe customer, and tags the session and the
resulting subscription with `teamId` / `plan` metadata so the webhook can
find the team again.
"""

import logging
from typing import Any, Dict, Optional

from src.stockstay.billing import plans
from src.stockstay.billing.stripe_client import StripeGateway
from src.stockstay.core.config import BillingConfig
from src.stockstay.core.exceptions import NotSubscribed
from src.stockstay.repositories.team_store import TeamStore

logger = logging.getLogger(__name__)

BILLING_PERIODS = ("monthly", "annual")


class CheckoutService:
    def __init__(
        self,
        config: BillingConfig,
        store: TeamStore,
        gateway: Optional[StripeGateway] = None,
    ):
        self.config = config
        self.store = store
        self.gateway = gateway or StripeGateway(config)

    def _success_url(self) -> str:
        return f"{self.config.frontend_url}/billing/success?session_id={{CHECKOUT_SESSION_ID}}"

    def _cancel_url(self) -> str:
        return f"{self.config.frontend_url}/billing/cancel"

    def ensure_customer(self, team_id: str, email: Optional[str]) -> str:
        """Return the team's Stripe customer id, creating the customer if needed."""
        team = self.store.get(team_id)
        if team.stripe_customer_id:
            logger.info(f"Using existing Stripe customer {team.stripe_customer_id}")
            return team.stripe_customer_id

        customer_id = self.gateway.create_customer(email, team_id)
        self.store.apply(team_id, lambda t: {"stripe_customer_id": customer_id})
        return customer_id

    def create_checkout_session(
        self,
        team_id: str,
        email: Optional[str],
        plan: str = plans.PRO,
        billing_period: str = "monthly",
        trial_days: Optional[int] = None,
        success_url: Optional[str] = None,
        cancel_url: Optional[str] = None,
    ) -> Dict[str, Optional[str]]:
        """Subscription checkout for an existing team.

        `trial_days` defaults to the configured trial length; 0 charges
        immediately.
        """
        plan = plan if plan in plans.PAID_PLANS else plans.PRO
        if billing_period not in BILLING_PERIODS:
            billing_period = "monthly"
        price_id = self.config.price_for_plan(plan, billing_period)
        if trial_days is None:
            trial_days = self.config.trial_days

        customer_id = self.ensure_customer(team_id, email)
        metadata = {"teamId": team_id, "plan": plan}

        subscription_data: Dict[str, Any] = {"metadata": metadata}
        if trial_days > 0:
            subscription_data["trial_period_days"] = trial_days

        session = self.gateway.create_checkout_session(
            customer=customer_id,
            mode="subscription",
            line_items=[{"price": price_id, "quantity": 1}],
            success_url=success_url or self._success_url(),
            cancel_url=cancel_url or self._cancel_url(),
            metadata=metadata,
            subscription_data=subscription_data,
            allow_promotion_codes=True,
        )
        logger.info(
            f"Created checkout session {session.get('session_id')} for team {team_id} "
            f"({plan}, {billing_period}, trial {trial_days}d)"
        )
        return {"url": session.get("url")}

    def create_signup_checkout_session(
        self,
        email: str,
        success_url: Optional[str] = None,
        cancel_url: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Optional[str]]:
        """Pro checkout for a new signup that has no team yet."""
        price_id = self.config.price_for_plan(plans.PRO, "monthly")
        session_metadata = {"plan": plans.PRO, "signup": "true"}
        session_metadata.update(metadata or {})

        subscription_data: Dict[str, Any] = {"metadata": session_metadata}
        if self.config.trial_days > 0:
            subscription_data["trial_period_days"] = self.config.trial_days

        session = self.gateway.create_checkout_session(
            customer_email=email,
            mode="subscription",
            line_items=[{"price": price_id, "quantity": 1}],
            success_url=success_url or self._success_url(),
            cancel_url=cancel_url or f"{self.config.frontend_url}/signup",
            metadata=session_metadata,
            subscription_data=subscription_data,
            allow_promotion_codes=True,
        )
        logger.info(f"Created signup checkout session {session.get('session_id')} for {email}")
        return {"url": session.get("url"), "session_id": session.get("session_id")}

    def create_portal_session(
        self, team_id: str, return_url: Optional[str] = None
    ) -> Dict[str, str]:
        team = self.store.get(team_id)
        if not team.stripe_customer_id:
            raise NotSubscribed(
                "No billing account found for this team. Subscribe to a plan first."
            )
        return self.gateway.create_portal_session(
            team.stripe_customer_id,
            return_url or f"{self.config.frontend_url}/settings/billing",
        )
