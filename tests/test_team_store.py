from datetime import timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from src.stockstay.core.database import Base
from src.stockstay.core.exceptions import ConcurrentUpdateError, TeamNotFound
from src.stockstay.models import Warehouse
from src.stockstay.repositories.team_store import TeamStore

from conftest import NOW


def test_new_team_starts_on_free(store):
    team = store.create(name="Acme")
    assert team.id
    assert team.plan == "free"
    assert team.is_on_trial is False
    assert team.max_warehouses == 1
    assert team.extra_user_slots == 0
    assert team.version == 1


def test_get_unknown_team_raises(store):
    with pytest.raises(TeamNotFound):
        store.get("nope")
    assert store.find("nope") is None


def test_apply_recomputes_cached_warehouse_limit(store, make_team):
    make_team()
    team = store.apply("t1", lambda t: {"plan": "starter"}, now=NOW)
    assert team.max_warehouses == 3
    assert team.version == 2


def test_apply_caches_trial_limits(store, make_team):
    make_team()
    team = store.apply(
        "t1",
        lambda t: {"is_on_trial": True, "trial_plan": "pro", "trial_ends_at": NOW + timedelta(days=14)},
        now=NOW,
    )
    assert team.plan == "free"
    assert team.max_warehouses == 10


def test_apply_without_changes_does_not_write(store, make_team):
    make_team()
    team = store.apply("t1", lambda t: None)
    assert team.version == 1
    team = store.apply("t1", lambda t: {})
    assert team.version == 1


def test_expired_trial_ids(store, make_team):
    make_team("old", is_on_trial=True, trial_plan="pro", trial_ends_at=NOW - timedelta(days=1))
    make_team("new", is_on_trial=True, trial_plan="pro", trial_ends_at=NOW + timedelta(days=1))
    make_team("plain")

    assert store.expired_trial_ids(NOW) == ["old"]


def test_warehouse_count(store, make_team, db):
    make_team()
    db.add_all([Warehouse(team_id="t1", name="North"), Warehouse(team_id="t1", name="South")])
    db.commit()
    assert store.warehouse_count("t1") == 2
    assert store.warehouse_count("t2") == 0


def test_concurrent_write_is_rejected(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'teams.db'}")
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    first, second = Session(), Session()

    try:
        TeamStore(first).create(team_id="t1")

        def compute(team):
            # Another writer commits between our read and our write
            TeamStore(second).apply("t1", lambda t: {"plan": "starter"})
            return {"plan": "pro"}

        with pytest.raises(ConcurrentUpdateError):
            TeamStore(first).apply("t1", compute)

        winner = TeamStore(first).apply("t1", lambda t: None)
        assert winner.plan == "starter"
        assert winner.version == 2
    finally:
        first.close()
        second.close()
        engine.dispose()
