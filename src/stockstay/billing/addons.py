"""
Extra user slot add-on.

The add-on is a separate line item (its own Stripe price) on the team's
subscription. Stripe is the source of truth for line item ids, so the live
subscription is read before every change; the local `extra_user_slots`
mirror is written only after Stripe accepts the update.

Plan caps (starter 2, pro 3) are validated by the caller before
`set_extra_user_slots` is invoked.
"""

import logging
from typing import Any, Dict, List, Optional

from src.stockstay.billing import plans
from src.stockstay.billing.stripe_client import StripeGateway
from src.stockstay.core.config import BillingConfig
from src.stockstay.core.exceptions import NotSubscribed, OnTrialWithoutSubscription
from src.stockstay.repositories.team_store import TeamStore

logger = logging.getLogger(__name__)


def ensure_subscribed(team) -> None:
    if team.stripe_subscription_id and plans.is_subscription_active(
        team.stripe_subscription_status
    ):
        return
    if team.is_on_trial:
        raise OnTrialWithoutSubscription()
    raise NotSubscribed()


class AddonReconciler:
    def __init__(
        self,
        config: BillingConfig,
        store: TeamStore,
        gateway: Optional[StripeGateway] = None,
    ):
        self.config = config
        self.store = store
        self.gateway = gateway or StripeGateway(config)

    def build_item_updates(self, items, desired_quantity: int) -> List[Dict[str, Any]]:
        """Stripe `items` payload for the desired add-on quantity.

        Returns an empty list when nothing needs to change.
        """
        addon_price = self.config.require_extra_user_slot_price()
        addon_items = [item for item in items if item.price_id == addon_price]
        base_items = [item for item in items if item.price_id != addon_price]

        if desired_quantity == 0 and not addon_items:
            return []

        updates: List[Dict[str, Any]] = [{"id": item.id} for item in base_items]
        if desired_quantity > 0:
            if addon_items:
                updates.append({"id": addon_items[0].id, "quantity": desired_quantity})
            else:
                updates.append({"price": addon_price, "quantity": desired_quantity})
            duplicates = addon_items[1:]
        else:
            duplicates = addon_items

        for item in duplicates:
            updates.append({"id": item.id, "deleted": True})
        return updates

    def set_extra_user_slots(self, team_id: str, desired_quantity: int) -> Dict[str, int]:
        desired_quantity = max(0, int(desired_quantity))
        team = self.store.get(team_id)
        ensure_subscribed(team)

        subscription_id = team.stripe_subscription_id
        items = self.gateway.list_subscription_items(subscription_id)
        updates = self.build_item_updates(items, desired_quantity)

        if not updates:
            logger.info(f"No extra user slot change needed for team {team_id}")
            if team.extra_user_slots != 0:
                team = self.store.apply(team_id, lambda t: {"extra_user_slots": 0})
            return {"extra_user_slots": team.extra_user_slots}

        self.gateway.update_subscription_items(subscription_id, updates)

        team = self.store.apply(
            team_id, lambda t: {"extra_user_slots": desired_quantity}
        )
        logger.info(
            f"Set extra user slots to {desired_quantity} for team {team_id} "
            f"(subscription {subscription_id})"
        )
        return {"extra_user_slots": team.extra_user_slots}
