import asyncio
from datetime import timedelta

from src.stockstay.services import trial_expiry_service
from src.stockstay.services.trial_expiry_service import (
    ExpirySweeper,
    TrialExpiryService,
    run_sweep,
)

from conftest import NOW


def trial_fields(plan="pro", ends_at=NOW):
    return {"is_on_trial": True, "trial_plan": plan, "trial_ends_at": ends_at}


def test_sweep_only_downgrades_expired_trials(store, make_team):
    make_team("expired", now=NOW - timedelta(days=20), **trial_fields(ends_at=NOW - timedelta(days=1)))
    make_team("running", **trial_fields(plan="starter", ends_at=NOW + timedelta(days=3)))
    make_team("paid", plan="pro", stripe_subscription_status="active")
    make_team("free")

    assert ExpirySweeper(store).sweep(NOW) == 1

    expired = store.get("expired")
    assert expired.plan == "free"
    assert expired.is_on_trial is False
    assert expired.trial_plan is None
    assert expired.trial_ends_at is None
    assert expired.max_warehouses == 1

    running = store.get("running")
    assert running.is_on_trial is True
    assert running.max_warehouses == 3
    assert store.get("paid").plan == "pro"


def test_second_sweep_processes_nothing(store, make_team):
    make_team("t1", **trial_fields(ends_at=NOW - timedelta(hours=1)))
    make_team("t2", **trial_fields(ends_at=NOW - timedelta(days=2)))

    sweeper = ExpirySweeper(store)
    assert sweeper.sweep(NOW) == 2
    assert sweeper.sweep(NOW) == 0


def test_trial_ending_exactly_now_is_not_swept(store, make_team):
    make_team("t1", **trial_fields(ends_at=NOW))
    assert ExpirySweeper(store).sweep(NOW) == 0
    assert store.get("t1").is_on_trial is True


def test_later_sweep_picks_up_newly_expired_trials(store, make_team):
    make_team("t1", **trial_fields(ends_at=NOW + timedelta(days=3)))

    sweeper = ExpirySweeper(store)
    assert sweeper.sweep(NOW) == 0
    assert sweeper.sweep(NOW + timedelta(days=4)) == 1
    assert store.get("t1").plan == "free"


def test_run_sweep_uses_its_own_session(session_factory, make_team, store):
    make_team("t1", **trial_fields(ends_at=NOW - timedelta(days=1)))

    assert run_sweep(session_factory, now=NOW) == 1
    store.db.expire_all()
    assert store.get("t1").is_on_trial is False


def test_background_service_sweeps_on_start(monkeypatch, session_factory):
    calls = []
    monkeypatch.setattr(
        trial_expiry_service, "run_sweep", lambda factory: calls.append(factory) or 0
    )

    async def scenario():
        service = TrialExpiryService(session_factory, interval_seconds=3600)
        await service.start()
        for _ in range(100):
            if calls:
                break
            await asyncio.sleep(0.01)
        await service.stop()
        return service

    service = asyncio.run(scenario())

    assert calls == [session_factory]
    assert service.running is False
