import logging
from typing import List

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from src.stockstay import models, schemas
from src.stockstay.api.deps import get_current_team, get_team_store, require_team_owner
from src.stockstay.api.errors import to_http_exception
from src.stockstay.billing import entitlements, trial
from src.stockstay.core.database import get_db
from src.stockstay.core.exceptions import EntitlementError
from src.stockstay.repositories.team_store import TeamStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/warehouses", tags=["Warehouses"])


@router.get("", response_model=List[schemas.WarehouseResponse])
def list_warehouses(
    team: models.Team = Depends(get_current_team),
    db: Session = Depends(get_db),
):
    return (
        db.query(models.Warehouse)
        .filter(models.Warehouse.team_id == team.id)
        .order_by(models.Warehouse.created_at)
        .all()
    )


@router.post(
    "",
    response_model=schemas.WarehouseResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_warehouse(
    data: schemas.WarehouseCreate,
    current_user: models.User = Depends(require_team_owner),
    team: models.Team = Depends(get_current_team),
    store: TeamStore = Depends(get_team_store),
    db: Session = Depends(get_db),
):
    """Create a warehouse if the team's effective plan allows another one."""
    now = trial.utcnow()

    if trial.is_expired(team, now):
        # Downgrade lazily instead of waiting for the hourly sweep
        try:
            team = store.apply(
                team.id,
                lambda t: trial.expired_trial_changes() if trial.is_expired(t, now) else None,
                now=now,
            )
        except EntitlementError as e:
            raise to_http_exception(e)
        logger.info(f"Trial expired for team {team.id}; downgraded to {team.plan}")

    current = store.warehouse_count(team.id)
    check = entitlements.can_create_warehouse(team, current, now)
    if not check["can_create"]:
        logger.info(
            f"Warehouse limit reached for team {team.id}: "
            f"{check['current']}/{check['limit']} on {check['plan']}"
        )
        return JSONResponse(
            status_code=status.HTTP_403_FORBIDDEN,
            content={
                "message": (
                    f"Your {check['plan']} plan allows {check['limit']} warehouse(s). "
                    "Upgrade your plan to add more."
                ),
                "limit": check["limit"],
                "current": check["current"],
                "plan": check["plan"],
            },
        )

    warehouse = models.Warehouse(
        team_id=team.id, name=data.name.strip(), location=data.location or ""
    )
    db.add(warehouse)
    db.commit()
    db.refresh(warehouse)
    logger.info(f"Created warehouse {warehouse.id} for team {team.id}")
    return warehouse
