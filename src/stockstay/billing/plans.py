"""
StockStay plan catalog.

Plan tiers:
- Free: 1 warehouse, single user, basic tracking
- Starter: 3 warehouses, 3 users (+ up to 2 paid extra user slots)
- Pro: 10 warehouses, 5 users (+ up to 3 paid extra user slots), team features

Unknown plan names resolve to Free. Never fall open to a paid tier.
"""

from dataclasses import dataclass
from typing import Dict, FrozenSet, Optional

FREE = "free"
STARTER = "starter"
PRO = "pro"

PLAN_NAMES = (FREE, STARTER, PRO)
PAID_PLANS = (STARTER, PRO)
TRIAL_PLANS = (STARTER, PRO)

# Stripe subscription statuses that grant a paid plan
ACTIVE_SUBSCRIPTION_STATUSES = frozenset({"active", "trialing"})

FREE_TIER_MAX_WAREHOUSES = 1


@dataclass(frozen=True)
class PlanLimits:
    name: str
    max_warehouses: int
    features: FrozenSet[str]
    base_max_users: int
    max_extra_user_slots: int
    max_inventory_items: Optional[int]  # None = unlimited


_FREE_FEATURES = frozenset({"basic_tracking"})
_STARTER_FEATURES = _FREE_FEATURES | {"exports", "invoices", "history"}
_PRO_FEATURES = _STARTER_FEATURES | {
    "team_members",
    "permissions",
    "advanced_reports",
    "value_tracking",
}

PLANS: Dict[str, PlanLimits] = {
    FREE: PlanLimits(
        name=FREE,
        max_warehouses=FREE_TIER_MAX_WAREHOUSES,
        features=_FREE_FEATURES,
        base_max_users=1,
        max_extra_user_slots=0,
        max_inventory_items=30,
    ),
    STARTER: PlanLimits(
        name=STARTER,
        max_warehouses=3,
        features=_STARTER_FEATURES,
        base_max_users=3,
        max_extra_user_slots=2,
        max_inventory_items=None,
    ),
    PRO: PlanLimits(
        name=PRO,
        max_warehouses=10,
        features=_PRO_FEATURES,
        base_max_users=5,
        max_extra_user_slots=3,
        max_inventory_items=None,
    ),
}


def normalize_plan(plan: Optional[str]) -> str:
    """Return a known plan name; anything unrecognised becomes 'free'."""
    if isinstance(plan, str):
        key = plan.strip().lower()
        if key in PLANS:
            return key
    return FREE


def limits_for(plan: Optional[str]) -> PlanLimits:
    """Get the limits for a plan (falls back to Free)."""
    return PLANS[normalize_plan(plan)]


def is_subscription_active(status: Optional[str]) -> bool:
    return status in ACTIVE_SUBSCRIPTION_STATUSES


def max_extra_user_slots(plan: Optional[str]) -> int:
    return limits_for(plan).max_extra_user_slots
