from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class TeamLimitsResponse(BaseModel):
    """Limit check payload for the UI (camelCase on the wire)."""

    model_config = ConfigDict(populate_by_name=True)

    effective_max_warehouses: int = Field(alias="effectiveMaxWarehouses")
    effective_plan: str = Field(alias="effectivePlan")


class TrialStatus(BaseModel):
    is_on_trial: bool
    trial_plan: Optional[str] = None
    ends_at: Optional[datetime] = None
    days_remaining: int = 0
    expired: bool = False


class PlanLimitsResponse(BaseModel):
    max_warehouses: int
    max_users: Optional[int] = None
    base_max_users: int
    max_extra_user_slots: int
    max_inventory_items: Optional[int] = None
    features: List[str]


class BillingInfo(BaseModel):
    stripe_customer_id: Optional[str] = None
    stripe_subscription_id: Optional[str] = None
    subscription_status: Optional[str] = None
    billing_interval: Optional[str] = None
    extra_user_slots: int = 0


class TeamPlanResponse(BaseModel):
    team_id: str
    plan: str
    effective_plan: str
    limits: PlanLimitsResponse
    trial: TrialStatus
    billing: BillingInfo


class StartTrialRequest(BaseModel):
    plan: Optional[str] = "pro"


class StartTrialResponse(BaseModel):
    message: str
    trial: TrialStatus
    plan: str


# Warehouse Schemas
class WarehouseCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    location: Optional[str] = ""


class WarehouseResponse(BaseModel):
    id: str
    team_id: str
    name: str
    location: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
