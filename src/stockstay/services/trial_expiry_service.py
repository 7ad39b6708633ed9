"""
Background service to downgrade teams whose in-app trial has ended.

Runs once on startup and then every hour (TRIAL_CHECK_INTERVAL_SECONDS):
- Finds teams with is_on_trial and trial_ends_at in the past
- Moves each one back to Free (trial cleared, max_warehouses 1)
- Each team is written independently, so one conflict does not stop the sweep
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

from src.stockstay.billing import trial
from src.stockstay.core.config import get_billing_config
from src.stockstay.core.database import SessionLocal
from src.stockstay.core.exceptions import ConcurrentUpdateError, TeamNotFound
from src.stockstay.repositories.team_store import TeamStore

logger = logging.getLogger(__name__)


class ExpirySweeper:
    def __init__(self, store: TeamStore):
        self.store = store

    def sweep(self, now: Optional[datetime] = None) -> int:
        """Downgrade every expired trial; returns how many teams changed."""
        if now is None:
            now = trial.utcnow()

        team_ids = self.store.expired_trial_ids(now)
        if not team_ids:
            logger.info("No expired trials found")
            return 0

        def compute(team):
            # The row may have converted to a subscription since the query ran
            if not trial.is_expired(team, now):
                return None
            return trial.expired_trial_changes()

        expired_count = 0
        for team_id in team_ids:
            try:
                before = self.store.find(team_id)
                version = before.version if before is not None else None
                team = self.store.apply(team_id, compute, now=now)
            except (ConcurrentUpdateError, TeamNotFound) as e:
                logger.warning(f"Skipping trial expiry for team {team_id}: {e.message}")
                continue

            if team.version != version:
                logger.info(f"Expired trial for team {team_id}: downgraded to {team.plan}")
                expired_count += 1

        logger.info(f"Expired {expired_count} trial(s)")
        return expired_count


def run_sweep(
    session_factory: Callable[[], Session] = SessionLocal,
    now: Optional[datetime] = None,
) -> int:
    """One sweep on a fresh session."""
    db = session_factory()
    try:
        return ExpirySweeper(TeamStore(db)).sweep(now)
    finally:
        db.close()


class TrialExpiryService:
    """Background service that sweeps expired trials on an interval."""

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        interval_seconds: Optional[int] = None,
    ):
        self.session_factory = session_factory
        self.interval_seconds = interval_seconds
        self.running = False
        self.task = None

    async def start(self):
        """Start the background service."""
        if self.running:
            logger.warning("Trial expiry service is already running")
            return

        if self.interval_seconds is None:
            self.interval_seconds = get_billing_config().trial_check_interval_seconds

        self.running = True
        self.task = asyncio.create_task(self._run_expiry_loop())
        logger.info(
            f"Trial expiry service started (interval {self.interval_seconds}s)"
        )

    async def stop(self):
        """Stop the background service."""
        if not self.running:
            return

        self.running = False
        if self.task:
            self.task.cancel()
            try:
                await self.task
            except asyncio.CancelledError:
                pass
        logger.info("Trial expiry service stopped")

    async def _run_expiry_loop(self):
        while self.running:
            try:
                await asyncio.to_thread(run_sweep, self.session_factory)
            except asyncio.CancelledError:
                logger.info("Trial expiry service loop cancelled")
                break
            except Exception as e:
                logger.error(f"Error in trial expiry loop: {str(e)}", exc_info=True)

            try:
                await asyncio.sleep(self.interval_seconds)
            except asyncio.CancelledError:
                logger.info("Trial expiry service loop cancelled")
                break


# Global instance
trial_expiry_service = TrialExpiryService()


async def start_trial_expiry_service():
    """Start the trial expiry background service."""
    await trial_expiry_service.start()


async def stop_trial_expiry_service():
    """Stop the trial expiry background service."""
    await trial_expiry_service.stop()
