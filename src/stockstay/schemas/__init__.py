from . import billing, team
from .billing import (
    CheckoutSessionResponse,
    CreateCheckoutSessionRequest,
    CustomerPortalRequest,
    CustomerPortalResponse,
    ExtraUserSlotsRequest,
    ExtraUserSlotsResponse,
    SignupCheckoutSessionRequest,
    SignupCheckoutSessionResponse,
    WebhookAck,
)
from .team import (
    BillingInfo,
    PlanLimitsResponse,
    StartTrialRequest,
    StartTrialResponse,
    TeamLimitsResponse,
    TeamPlanResponse,
    TrialStatus,
    WarehouseCreate,
    WarehouseResponse,
)
