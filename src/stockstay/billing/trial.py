"""
Trial clock.

Pure functions over `(team, now)`. The resolver, the expiry sweeper and the
warehouse create path all use these, so trial expiry has one definition.
Datetimes are compared as naive UTC; aware values are converted first.
"""

import math
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from src.stockstay.billing.plans import FREE, PRO, TRIAL_PLANS, normalize_plan
from src.stockstay.core.exceptions import TrialNotAllowed

DEFAULT_TRIAL_DAYS = 14
SECONDS_PER_DAY = 24 * 60 * 60


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _trial_end(team: Any) -> Optional[datetime]:
    if not getattr(team, "is_on_trial", False):
        return None
    ends_at = getattr(team, "trial_ends_at", None)
    if not isinstance(ends_at, datetime):
        return None
    return as_naive_utc(ends_at)


def is_expired(team: Any, now: datetime) -> bool:
    """True once `now` is past the trial end. Not on trial means not expired."""
    ends_at = _trial_end(team)
    if ends_at is None:
        return False
    return as_naive_utc(now) > ends_at


def days_remaining(team: Any, now: datetime) -> int:
    ends_at = _trial_end(team)
    if ends_at is None:
        return 0
    seconds = (ends_at - as_naive_utc(now)).total_seconds()
    return max(0, math.ceil(seconds / SECONDS_PER_DAY))


def effective_plan_name(team: Any, now: datetime) -> str:
    """Trial plan while a trial is running, otherwise the stored plan."""
    if team is None:
        return FREE
    trial_plan = getattr(team, "trial_plan", None)
    if _trial_end(team) is not None and trial_plan and not is_expired(team, now):
        return normalize_plan(trial_plan)
    return normalize_plan(getattr(team, "plan", None))


def trial_status(team: Any, now: datetime) -> Dict[str, Any]:
    ends_at = _trial_end(team)
    if ends_at is None:
        return {
            "is_on_trial": False,
            "trial_plan": None,
            "ends_at": None,
            "days_remaining": 0,
            "expired": False,
        }

    return {
        "is_on_trial": True,
        "trial_plan": getattr(team, "trial_plan", None),
        "ends_at": ends_at,
        "days_remaining": days_remaining(team, now),
        "expired": is_expired(team, now),
    }


def start_trial(
    team: Any, plan: Optional[str], now: datetime, days: int = DEFAULT_TRIAL_DAYS
) -> Dict[str, Any]:
    """Compute the changes that put a free team on a time-boxed trial.

    The stored plan stays 'free'; the trial plan only governs limits until
    `trial_ends_at`.
    """
    if getattr(team, "is_on_trial", False):
        raise TrialNotAllowed("Team is already on a trial")
    if normalize_plan(getattr(team, "plan", None)) != FREE:
        raise TrialNotAllowed("Trials are only available for free plan teams")

    trial_plan = plan if plan in TRIAL_PLANS else PRO
    return {
        "is_on_trial": True,
        "trial_plan": trial_plan,
        "trial_ends_at": as_naive_utc(now) + timedelta(days=days),
    }


def expired_trial_changes() -> Dict[str, Any]:
    """Changes that downgrade a team whose trial has lapsed."""
    return {
        "plan": FREE,
        "is_on_trial": False,
        "trial_plan": None,
        "trial_ends_at": None,
    }
