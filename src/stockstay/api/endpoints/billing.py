import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request

from src.stockstay import models, schemas
from src.stockstay.api.deps import (
    get_addon_reconciler,
    get_checkout_service,
    get_current_team,
    get_synchronizer,
    require_team_owner,
)
from src.stockstay.api.errors import to_http_exception
from src.stockstay.billing import entitlements
from src.stockstay.billing.addons import AddonReconciler, ensure_subscribed
from src.stockstay.billing.checkout import CheckoutService
from src.stockstay.billing.synchronizer import SubscriptionSynchronizer
from src.stockstay.core.exceptions import (
    AuthenticationError,
    ConfigurationError,
    EntitlementError,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/billing", tags=["Billing"])


@router.post("/webhook", response_model=schemas.WebhookAck)
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="stripe-signature"),
    synchronizer: SubscriptionSynchronizer = Depends(get_synchronizer),
):
    """
    Handle Stripe webhook events.

    - customer.subscription.created / updated: sync plan, limits and add-ons
    - customer.subscription.deleted: downgrade the team to Free

    Other event types are acknowledged and ignored. Processing failures
    return 500 so Stripe redelivers the event.
    """
    payload = await request.body()
    logger.info(
        "Incoming webhook: payload_len=%d has_signature=%s",
        len(payload),
        bool(stripe_signature),
    )

    try:
        return synchronizer.handle_webhook_event(payload, stripe_signature)
    except AuthenticationError as e:
        logger.error(f"Invalid webhook: {e.message}")
        raise HTTPException(status_code=400, detail=e.message)
    except ConfigurationError as e:
        logger.error(f"Webhook not configured: {e.message}")
        raise HTTPException(status_code=500, detail=e.message)
    except Exception as e:
        logger.exception("Unhandled exception while processing webhook: %s", str(e))
        raise HTTPException(status_code=500, detail="Webhook processing failed")


@router.post(
    "/create-checkout-session", response_model=schemas.CheckoutSessionResponse
)
def create_checkout_session(
    data: schemas.CreateCheckoutSessionRequest,
    current_user: models.User = Depends(require_team_owner),
    team: models.Team = Depends(get_current_team),
    checkout: CheckoutService = Depends(get_checkout_service),
):
    """Start a Stripe Checkout subscription for the caller's team."""
    try:
        return checkout.create_checkout_session(
            team_id=team.id,
            email=current_user.email,
            plan=data.plan,
            billing_period=data.billing_period,
            trial_days=data.trial_days,
            success_url=data.success_url,
            cancel_url=data.cancel_url,
        )
    except EntitlementError as e:
        raise to_http_exception(e)


@router.post(
    "/signup-checkout-session", response_model=schemas.SignupCheckoutSessionResponse
)
def create_signup_checkout_session(
    data: schemas.SignupCheckoutSessionRequest,
    checkout: CheckoutService = Depends(get_checkout_service),
):
    """Checkout for a new signup; the team is created once payment succeeds."""
    try:
        return checkout.create_signup_checkout_session(
            email=data.email,
            success_url=data.success_url,
            cancel_url=data.cancel_url,
            metadata=data.metadata,
        )
    except EntitlementError as e:
        raise to_http_exception(e)


@router.post("/customer-portal", response_model=schemas.CustomerPortalResponse)
def create_customer_portal_session(
    data: Optional[schemas.CustomerPortalRequest] = None,
    current_user: models.User = Depends(require_team_owner),
    team: models.Team = Depends(get_current_team),
    checkout: CheckoutService = Depends(get_checkout_service),
):
    return_url = data.return_url if data else None
    try:
        return checkout.create_portal_session(team.id, return_url)
    except EntitlementError as e:
        raise to_http_exception(e)


@router.put("/extra-user-slots", response_model=schemas.ExtraUserSlotsResponse)
def set_extra_user_slots(
    data: schemas.ExtraUserSlotsRequest,
    current_user: models.User = Depends(require_team_owner),
    team: models.Team = Depends(get_current_team),
    reconciler: AddonReconciler = Depends(get_addon_reconciler),
):
    """Set the number of paid extra user slots on the team's subscription."""
    try:
        ensure_subscribed(team)
        entitlements.validate_extra_user_slots(team, data.quantity)
        result = reconciler.set_extra_user_slots(team.id, data.quantity)
    except EntitlementError as e:
        raise to_http_exception(e)

    logger.info(
        f"User {current_user.email} set extra user slots to "
        f"{result['extra_user_slots']} for team {team.id}"
    )
    return result
