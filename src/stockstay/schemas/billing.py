from typing import Dict, Literal, Optional

from pydantic import BaseModel, EmailStr, Field


# Checkout Schemas
class CreateCheckoutSessionRequest(BaseModel):
    plan: Literal["starter", "pro"] = "pro"
    billing_period: Literal["monthly", "annual"] = "monthly"
    trial_days: Optional[int] = Field(default=None, ge=0, le=30)
    success_url: Optional[str] = None
    cancel_url: Optional[str] = None


class CheckoutSessionResponse(BaseModel):
    url: Optional[str] = None


class SignupCheckoutSessionRequest(BaseModel):
    email: EmailStr
    success_url: Optional[str] = None
    cancel_url: Optional[str] = None
    metadata: Optional[Dict[str, str]] = None


class SignupCheckoutSessionResponse(BaseModel):
    url: Optional[str] = None
    session_id: Optional[str] = None


# Customer Portal Schemas
class CustomerPortalRequest(BaseModel):
    return_url: Optional[str] = None


class CustomerPortalResponse(BaseModel):
    url: str


# Add-on Schemas
class ExtraUserSlotsRequest(BaseModel):
    quantity: int = Field(ge=0)


class ExtraUserSlotsResponse(BaseModel):
    extra_user_slots: int


class WebhookAck(BaseModel):
    received: bool = True
