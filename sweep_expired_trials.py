"""
Scheduled Trial Expiry Script

Downgrades teams whose in-app trial has ended back to the Free plan.
The API process already does this hourly; run this script as a cron job
when the background service is disabled (RUN_TRIAL_EXPIRY_SERVICE=false).

Example cron (runs every hour):
0 * * * * cd /path/to/stockstay && /path/to/python sweep_expired_trials.py
"""

import logging
import os
import sys

from dotenv import load_dotenv

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from src.stockstay.billing.trial import utcnow
from src.stockstay.services.trial_expiry_service import run_sweep

# Load environment variables
load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("sweep_expired_trials")


if __name__ == "__main__":
    started_at = utcnow()
    try:
        expired_count = run_sweep(now=started_at)
        logger.info(
            f"[{started_at.isoformat()}] Sweep completed: {expired_count} trial(s) expired"
        )
        sys.exit(0)
    except Exception as e:
        logger.error(f"[{started_at.isoformat()}] Sweep failed: {str(e)}", exc_info=True)
        sys.exit(1)
