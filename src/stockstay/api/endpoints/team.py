import logging

from fastapi import APIRouter, Depends

from src.stockstay import models, schemas
from src.stockstay.api.deps import (
    get_current_team,
    get_team_store,
    require_team_owner,
)
from src.stockstay.api.errors import to_http_exception
from src.stockstay.billing import entitlements, plans, trial
from src.stockstay.core.config import BillingConfig, get_billing_config
from src.stockstay.core.exceptions import EntitlementError
from src.stockstay.repositories.team_store import TeamStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/team", tags=["Team"])


@router.get("/limits", response_model=schemas.TeamLimitsResponse)
def get_team_limits(team: models.Team = Depends(get_current_team)):
    """Effective warehouse limit and plan, used by the UI before creating."""
    entitlement = entitlements.resolve(team)
    return schemas.TeamLimitsResponse(
        effective_max_warehouses=entitlement.effective_max_warehouses,
        effective_plan=entitlement.effective_plan,
    )


@router.get("/plan", response_model=schemas.TeamPlanResponse)
def get_team_plan(team: models.Team = Depends(get_current_team)):
    now = trial.utcnow()
    entitlement = entitlements.resolve(team, now)
    limits = plans.limits_for(entitlement.effective_plan)

    return {
        "team_id": team.id,
        "plan": plans.normalize_plan(team.plan),
        "effective_plan": entitlement.effective_plan,
        "limits": {
            "max_warehouses": entitlement.effective_max_warehouses,
            "max_users": entitlement.effective_max_users,
            "base_max_users": limits.base_max_users,
            "max_extra_user_slots": limits.max_extra_user_slots,
            "max_inventory_items": limits.max_inventory_items,
            "features": sorted(entitlement.features),
        },
        "trial": trial.trial_status(team, now),
        "billing": {
            "stripe_customer_id": team.stripe_customer_id,
            "stripe_subscription_id": team.stripe_subscription_id,
            "subscription_status": team.stripe_subscription_status,
            "billing_interval": team.billing_interval,
            "extra_user_slots": team.extra_user_slots or 0,
        },
    }


@router.post("/start-trial", response_model=schemas.StartTrialResponse)
def start_trial(
    data: schemas.StartTrialRequest,
    current_user: models.User = Depends(require_team_owner),
    team: models.Team = Depends(get_current_team),
    store: TeamStore = Depends(get_team_store),
    config: BillingConfig = Depends(get_billing_config),
):
    """Put a free team on a time-boxed trial of a paid plan."""
    now = trial.utcnow()
    try:
        team = store.apply(
            team.id,
            lambda t: trial.start_trial(t, data.plan, now, config.trial_days),
            now=now,
        )
    except EntitlementError as e:
        raise to_http_exception(e)

    logger.info(
        f"Team {team.id} started a {team.trial_plan} trial ending {team.trial_ends_at} "
        f"(by {current_user.email})"
    )
    status_ = trial.trial_status(team, now)
    return {
        "message": f"Your {status_['days_remaining']}-day {team.trial_plan} trial has started",
        "trial": status_,
        "plan": team.plan,
    }


@router.get("/features/{feature}")
def check_feature(feature: str, team: models.Team = Depends(get_current_team)):
    """403 unless the team's effective plan includes `feature`."""
    try:
        entitlements.require_feature(team, feature)
    except EntitlementError as e:
        raise to_http_exception(e)
    return {"feature": feature, "enabled": True}
