"""
Persistence for the team record.

All entitlement writes go through `TeamStore.apply`: read the row fresh,
compute the full change set in memory, recompute the `max_warehouses` cache
from the resolver, then commit once. The `version` column (SQLAlchemy
`version_id_col`) rejects a write whose row changed in between.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from src.stockstay.billing import entitlements, trial
from src.stockstay.core.exceptions import ConcurrentUpdateError, TeamNotFound
from src.stockstay.models.team import Team, Warehouse

logger = logging.getLogger(__name__)

Changes = Optional[Dict[str, Any]]


class TeamStore:
    def __init__(self, db: Session):
        self.db = db

    def find(self, team_id: str) -> Optional[Team]:
        return self.db.query(Team).filter(Team.id == team_id).first()

    def get(self, team_id: str) -> Team:
        team = self.find(team_id)
        if team is None:
            raise TeamNotFound(team_id)
        return team

    def create(self, name: Optional[str] = None, team_id: Optional[str] = None) -> Team:
        """New teams start on the free plan with no trial."""
        team = Team(
            name=name,
            plan="free",
            is_on_trial=False,
            max_warehouses=1,
            extra_user_slots=0,
        )
        if team_id:
            team.id = team_id
        self.db.add(team)
        self.db.commit()
        self.db.refresh(team)
        return team

    def expired_trial_ids(self, now: datetime) -> List[str]:
        rows = (
            self.db.query(Team.id)
            .filter(Team.is_on_trial.is_(True), Team.trial_ends_at < trial.as_naive_utc(now))
            .all()
        )
        return [row[0] for row in rows]

    def warehouse_count(self, team_id: str) -> int:
        return self.db.query(Warehouse).filter(Warehouse.team_id == team_id).count()

    def apply(
        self,
        team_id: str,
        compute: Callable[[Team], Changes],
        now: Optional[datetime] = None,
    ) -> Team:
        """Apply `compute(team)` to a freshly read row in a single write.

        `compute` must not mutate the team; it returns the fields to change,
        or None/{} for no write.
        """
        if now is None:
            now = trial.utcnow()

        # Drop anything cached in this session so the read is fresh
        self.db.expire_all()
        team = self.get(team_id)

        changes = compute(team)
        if not changes:
            return team

        for field, value in changes.items():
            setattr(team, field, value)
        team.max_warehouses = entitlements.resolve(team, now).effective_max_warehouses

        try:
            self.db.commit()
        except StaleDataError as e:
            self.db.rollback()
            logger.warning(f"Concurrent update detected for team {team_id}")
            raise ConcurrentUpdateError(team_id) from e
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(team)
        return team
