from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from src.stockstay.billing import trial
from src.stockstay.core.exceptions import TrialNotAllowed

from conftest import NOW


def make_team(**fields):
    defaults = {
        "plan": "free",
        "is_on_trial": False,
        "trial_plan": None,
        "trial_ends_at": None,
    }
    defaults.update(fields)
    return SimpleNamespace(**defaults)


def on_trial(plan="pro", ends_at=NOW + timedelta(days=14)):
    return make_team(is_on_trial=True, trial_plan=plan, trial_ends_at=ends_at)


def test_not_on_trial_is_never_expired():
    team = make_team()
    assert trial.is_expired(team, NOW + timedelta(days=365)) is False
    assert trial.days_remaining(team, NOW) == 0


def test_expiry_is_strictly_after_end():
    team = on_trial(ends_at=NOW)
    assert trial.is_expired(team, NOW) is False
    assert trial.is_expired(team, NOW + timedelta(seconds=1)) is True


def test_expiry_is_monotonic_in_time():
    team = on_trial()
    results = [trial.is_expired(team, NOW + timedelta(days=d)) for d in range(0, 30)]
    first_expired = results.index(True)
    assert all(results[first_expired:])


def test_days_remaining_rounds_up_and_floors_at_zero():
    team = on_trial(ends_at=NOW + timedelta(days=2, hours=1))
    assert trial.days_remaining(team, NOW) == 3
    assert trial.days_remaining(team, NOW + timedelta(days=5)) == 0


def test_aware_datetimes_are_compared_as_utc():
    team = on_trial(ends_at=NOW)
    aware_later = (NOW + timedelta(minutes=1)).replace(tzinfo=timezone.utc)
    assert trial.is_expired(team, aware_later) is True


def test_effective_plan_follows_trial_until_it_lapses():
    team = on_trial(plan="starter")
    assert trial.effective_plan_name(team, NOW + timedelta(days=13)) == "starter"
    assert trial.effective_plan_name(team, NOW + timedelta(days=15)) == "free"


def test_effective_plan_of_missing_team_is_free():
    assert trial.effective_plan_name(None, NOW) == "free"


def test_trial_flag_without_end_date_is_ignored():
    team = make_team(plan="starter", is_on_trial=True, trial_plan="pro", trial_ends_at=None)
    assert trial.effective_plan_name(team, NOW) == "starter"
    assert trial.trial_status(team, NOW)["is_on_trial"] is False


def test_trial_status_reports_remaining_days():
    status = trial.trial_status(on_trial(), NOW)
    assert status == {
        "is_on_trial": True,
        "trial_plan": "pro",
        "ends_at": NOW + timedelta(days=14),
        "days_remaining": 14,
        "expired": False,
    }


def test_start_trial_keeps_stored_plan_free():
    changes = trial.start_trial(make_team(), "starter", NOW)
    assert changes == {
        "is_on_trial": True,
        "trial_plan": "starter",
        "trial_ends_at": NOW + timedelta(days=14),
    }
    assert "plan" not in changes


def test_start_trial_unknown_plan_becomes_pro():
    assert trial.start_trial(make_team(), "enterprise", NOW)["trial_plan"] == "pro"


def test_start_trial_honours_custom_length():
    changes = trial.start_trial(make_team(), "pro", NOW, days=7)
    assert changes["trial_ends_at"] == NOW + timedelta(days=7)


def test_start_trial_rejected_when_already_on_trial():
    with pytest.raises(TrialNotAllowed):
        trial.start_trial(on_trial(), "pro", NOW)


def test_start_trial_rejected_for_paid_teams():
    with pytest.raises(TrialNotAllowed):
        trial.start_trial(make_team(plan="starter"), "pro", NOW)


def test_expired_trial_changes_return_team_to_free():
    assert trial.expired_trial_changes() == {
        "plan": "free",
        "is_on_trial": False,
        "trial_plan": None,
        "trial_ends_at": None,
    }


def test_utcnow_is_naive():
    assert trial.utcnow().tzinfo is None
    assert isinstance(trial.utcnow(), datetime)
