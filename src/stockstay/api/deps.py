import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from src.stockstay import models
from src.stockstay.billing.addons import AddonReconciler
from src.stockstay.billing.checkout import CheckoutService
from src.stockstay.billing.stripe_client import StripeGateway
from src.stockstay.billing.synchronizer import SubscriptionSynchronizer
from src.stockstay.core.config import BillingConfig, get_billing_config
from src.stockstay.core.database import get_db
from src.stockstay.core.jwt import verify_token
from src.stockstay.repositories.team_store import TeamStore

logger = logging.getLogger("uvicorn.error")

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/token")


async def get_current_user(
    token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)
):
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    payload = verify_token(token)
    if payload is None:
        raise credentials_exception

    email: str = payload.get("sub")
    if email is None:
        raise credentials_exception

    user = db.query(models.User).filter(models.User.email == email).first()
    if user is None:
        raise credentials_exception
    # Deny access for administratively disabled users with a clear message.
    if not getattr(user, "is_active", True):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Your account has been disabled by an administrator. Contact support for assistance.",
        )
    return user


def get_current_team(
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> models.Team:
    """The team the caller belongs to."""
    if not current_user.team_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="You are not a member of any team",
        )
    team = db.query(models.Team).filter(models.Team.id == current_user.team_id).first()
    if team is None:
        logger.warning(
            "User %s references missing team %s", current_user.id, current_user.team_id
        )
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Team not found")
    return team


def require_team_owner(
    current_user: models.User = Depends(get_current_user),
) -> models.User:
    """Ensure the caller owns their team. Raises 403 for members."""
    if current_user.team_role != "owner":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the team owner can manage billing and plans",
        )
    return current_user


def get_team_store(db: Session = Depends(get_db)) -> TeamStore:
    return TeamStore(db)


def get_stripe_gateway(
    config: BillingConfig = Depends(get_billing_config),
) -> StripeGateway:
    return StripeGateway(config)


def get_synchronizer(
    config: BillingConfig = Depends(get_billing_config),
    store: TeamStore = Depends(get_team_store),
    gateway: StripeGateway = Depends(get_stripe_gateway),
) -> SubscriptionSynchronizer:
    return SubscriptionSynchronizer(config, store, gateway)


def get_addon_reconciler(
    config: BillingConfig = Depends(get_billing_config),
    store: TeamStore = Depends(get_team_store),
    gateway: StripeGateway = Depends(get_stripe_gateway),
) -> AddonReconciler:
    return AddonReconciler(config, store, gateway)


def get_checkout_service(
    config: BillingConfig = Depends(get_billing_config),
    store: TeamStore = Depends(get_team_store),
    gateway: StripeGateway = Depends(get_stripe_gateway),
) -> CheckoutService:
    return CheckoutService(config, store, gateway)
