"""
Stripe subscription synchronizer.

Handles Stripe webhook events for the subscription lifecycle:
- customer.subscription.created / updated: derive plan, limits, add-on
  slots and billing interval from the subscription payload
- customer.subscription.deleted: downgrade the team to Free

Each event fully re-derives the team's billing fields from its own payload
(no deltas), so redelivery of the same event converges to the same record.
Events older than the last applied one are acknowledged and skipped.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from src.stockstay.billing import plans
from src.stockstay.billing.events import (
    IgnoredEvent,
    SubscriptionChanged,
    SubscriptionDeleted,
    WebhookEvent,
    parse_event,
)
from src.stockstay.billing.stripe_client import StripeGateway
from src.stockstay.core.config import BillingConfig
from src.stockstay.core.exceptions import TeamNotFound
from src.stockstay.repositories.team_store import TeamStore

logger = logging.getLogger(__name__)

ACK = {"received": True}


def _cleared_trial() -> Dict[str, Any]:
    return {"is_on_trial": False, "trial_plan": None, "trial_ends_at": None}


def resolve_subscription_plan(event: SubscriptionChanged, config: BillingConfig) -> str:
    """Paid plan named by the subscription: metadata first, then price mapping."""
    if event.metadata_plan in plans.PAID_PLANS:
        return event.metadata_plan

    for item in event.items:
        if item.price_id == config.extra_user_slot_price_id:
            continue
        mapped = config.plan_for_price(item.price_id)
        if mapped:
            return mapped

    logger.warning(
        f"Subscription {event.subscription_id} has no recognizable plan "
        f"(metadata plan={event.metadata_plan!r}); defaulting to pro"
    )
    return plans.PRO


def subscription_changes(
    event: WebhookEvent, config: BillingConfig
) -> Optional[Dict[str, Any]]:
    """The team fields a subscription event sets. Pure function of the event."""
    if isinstance(event, SubscriptionDeleted):
        changes = {
            "plan": plans.FREE,
            "extra_user_slots": 0,
            "stripe_subscription_id": None,
            "stripe_subscription_status": "canceled",
            "billing_interval": None,
        }
        changes.update(_cleared_trial())
        if event.created:
            changes["subscription_synced_at"] = event.created
        return changes

    if not isinstance(event, SubscriptionChanged):
        return None

    is_active = plans.is_subscription_active(event.status)
    paid_plan = resolve_subscription_plan(event, config)
    addon_price = config.extra_user_slot_price_id

    addon_quantity = 0
    billing_interval = None
    for item in event.items:
        if addon_price and item.price_id == addon_price:
            addon_quantity += item.quantity
        elif billing_interval is None:
            billing_interval = item.interval

    cap = plans.max_extra_user_slots(paid_plan)
    if addon_quantity > cap:
        logger.warning(
            f"Subscription {event.subscription_id} carries {addon_quantity} extra user "
            f"slot(s); {paid_plan} allows {cap}, storing {cap}"
        )
        addon_quantity = cap

    changes = {
        "plan": paid_plan if is_active else plans.FREE,
        "extra_user_slots": addon_quantity if is_active else 0,
        "billing_interval": billing_interval if is_active else None,
        "stripe_subscription_id": event.subscription_id,
        "stripe_subscription_status": event.status,
    }
    if event.customer_id:
        changes["stripe_customer_id"] = event.customer_id
    if event.created:
        changes["subscription_synced_at"] = event.created
    changes.update(_cleared_trial())
    return changes


def _is_stale(team, event_created: Optional[datetime]) -> bool:
    synced_at = team.subscription_synced_at
    return bool(event_created and synced_at and event_created < synced_at)


def _is_superseded(team, event: WebhookEvent) -> bool:
    """An event ending some other subscription while the team has moved on."""
    current = team.stripe_subscription_id
    if not current or not event.subscription_id or current == event.subscription_id:
        return False
    if isinstance(event, SubscriptionDeleted):
        return True
    return not plans.is_subscription_active(event.status) and plans.is_subscription_active(
        team.stripe_subscription_status
    )


class SubscriptionSynchronizer:
    def __init__(
        self,
        config: BillingConfig,
        store: TeamStore,
        gateway: Optional[StripeGateway] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.config = config
        self.store = store
        self.gateway = gateway or StripeGateway(config)
        self.clock = clock

    def handle_webhook_event(self, raw_payload: bytes, signature: Optional[str]) -> Dict[str, bool]:
        """Verify, parse and apply one webhook delivery.

        Raises AuthenticationError (bad signature) or ConfigurationError
        before anything is written.
        """
        payload = self.gateway.verify_webhook(raw_payload, signature)
        event = parse_event(payload)
        logger.info(f"Received Stripe webhook event: {payload.get('type')} id={payload.get('id')}")
        return self.apply_event(event)

    def apply_event(self, event: WebhookEvent) -> Dict[str, bool]:
        if isinstance(event, IgnoredEvent):
            logger.info(
                f"Ignoring Stripe event {event.event_id} ({event.event_type}): {event.reason}"
            )
            return ACK

        changes = subscription_changes(event, self.config)
        now = self.clock() if self.clock else None

        def compute(team):
            if _is_stale(team, event.created):
                logger.warning(
                    f"Skipping out-of-order event {event.event_id} for team {team.id}: "
                    f"created {event.created} < last synced {team.subscription_synced_at}"
                )
                return None
            if _is_superseded(team, event):
                logger.info(
                    f"Ignoring {type(event).__name__} for subscription {event.subscription_id}: "
                    f"team {team.id} is now on {team.stripe_subscription_id}"
                )
                return None
            return changes

        try:
            team = self.store.apply(event.team_id, compute, now=now)
        except TeamNotFound:
            logger.warning(
                f"Stripe event {event.event_id} references unknown team {event.team_id}; skipping"
            )
            return ACK

        if isinstance(event, SubscriptionDeleted):
            logger.info(f"Subscription canceled for team {team.id}")
        else:
            logger.info(
                f"Subscription {event.subscription_id} for team {team.id}: "
                f"{team.plan} {event.status}"
            )
        return ACK
