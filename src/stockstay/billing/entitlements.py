"""
Entitlement resolver.

`resolve(team, now)` is the single authority for what a team may do right
now. It combines the stored plan, the trial clock and the plan catalog and
never raises: anything malformed degrades to the Free plan.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, FrozenSet, Optional

from src.stockstay.billing import trial
from src.stockstay.billing.plans import FREE, limits_for, normalize_plan
from src.stockstay.core.exceptions import AddonLimitExceeded, FeatureNotAvailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Entitlement:
    effective_plan: str
    effective_max_warehouses: int
    features: FrozenSet[str]
    effective_max_users: Optional[int]

    def can_create_warehouse(self, current_count: int) -> Dict[str, Any]:
        return {
            "can_create": current_count < self.effective_max_warehouses,
            "limit": self.effective_max_warehouses,
            "current": current_count,
            "plan": self.effective_plan,
        }

    def has_feature(self, feature: str) -> bool:
        return feature in self.features


def _max_users(plan: str, extra_user_slots: Any) -> Optional[int]:
    limits = limits_for(plan)
    if limits.max_extra_user_slots == 0:
        return limits.base_max_users
    try:
        extra = max(0, int(extra_user_slots or 0))
    except (TypeError, ValueError):
        extra = 0
    return limits.base_max_users + min(extra, limits.max_extra_user_slots)


def _entitlement_for(plan: str, extra_user_slots: Any = 0) -> Entitlement:
    limits = limits_for(plan)
    return Entitlement(
        effective_plan=limits.name,
        effective_max_warehouses=limits.max_warehouses,
        features=limits.features,
        effective_max_users=_max_users(limits.name, extra_user_slots),
    )


FREE_ENTITLEMENT = _entitlement_for(FREE)


def resolve(team: Any, now: Optional[datetime] = None) -> Entitlement:
    """Compute the team's effective plan and limits at `now`."""
    if team is None:
        return FREE_ENTITLEMENT
    if now is None:
        now = trial.utcnow()

    try:
        plan = trial.effective_plan_name(team, now)
        return _entitlement_for(plan, getattr(team, "extra_user_slots", 0))
    except Exception:
        logger.exception(
            "Entitlement resolution failed for team %s; falling back to free",
            getattr(team, "id", None),
        )
        return FREE_ENTITLEMENT


def effective_max_users(team: Any, now: Optional[datetime] = None) -> Optional[int]:
    return resolve(team, now).effective_max_users


def can_create_warehouse(
    team: Any, current_count: int, now: Optional[datetime] = None
) -> Dict[str, Any]:
    return resolve(team, now).can_create_warehouse(current_count)


def has_feature(team: Any, feature: str, now: Optional[datetime] = None) -> bool:
    return resolve(team, now).has_feature(feature)


def require_feature(team: Any, feature: str, now: Optional[datetime] = None) -> None:
    """Raise FeatureNotAvailable if the team's effective plan lacks `feature`."""
    entitlement = resolve(team, now)
    if not entitlement.has_feature(feature):
        raise FeatureNotAvailable(feature, entitlement.effective_plan)


def validate_extra_user_slots(team: Any, quantity: int) -> int:
    """Caller-side cap check for extra user slots.

    The cap comes from the stored (paid) plan, since slots are billed on the
    subscription and not on a trial.
    """
    plan = normalize_plan(getattr(team, "plan", None))
    cap = limits_for(plan).max_extra_user_slots
    if quantity < 0 or quantity > cap:
        raise AddonLimitExceeded(plan, quantity, cap)
    return quantity
