"""
Error taxonomy for the entitlement engine.

Endpoints translate these into HTTP responses; background jobs log them.
Unknown webhook event types have no error class: they are acknowledged,
not raised.
"""

from typing import Optional


class EntitlementError(Exception):
    """Base class for all entitlement engine errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationError(EntitlementError):
    """A required secret or price mapping is missing."""


class AuthenticationError(EntitlementError):
    """Webhook signature verification failed."""


class NotSubscribed(EntitlementError):
    """An add-on change was attempted without an active paid subscription."""

    def __init__(self, message: Optional[str] = None):
        super().__init__(
            message
            or "No active subscription found. Subscribe to a paid plan to manage extra user slots."
        )


class OnTrialWithoutSubscription(NotSubscribed):
    """The team is on the in-app free trial and has no Stripe subscription yet."""

    def __init__(self, message: Optional[str] = None):
        super().__init__(
            message
            or (
                "Your team is on a free trial. Extra user slots are billed on a paid "
                "subscription, so add a payment method and subscribe first."
            )
        )


class ProviderError(EntitlementError):
    """Stripe returned an error or could not be reached."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        http_status: Optional[int] = None,
    ):
        super().__init__(message)
        self.code = code
        self.http_status = http_status


class TeamNotFound(EntitlementError):
    def __init__(self, team_id: str):
        super().__init__(f"Team {team_id} not found")
        self.team_id = team_id


class TrialNotAllowed(EntitlementError):
    """Trial start rejected (already on a trial, or not on the free plan)."""


class AddonLimitExceeded(EntitlementError):
    def __init__(self, plan: str, requested: int, cap: int):
        super().__init__(
            f"The {plan} plan allows at most {cap} extra user slot(s); {requested} requested."
        )
        self.plan = plan
        self.requested = requested
        self.cap = cap


class FeatureNotAvailable(EntitlementError):
    def __init__(self, feature: str, plan: str):
        super().__init__(
            f"Your current plan ({plan}) does not include '{feature}'. Upgrade to access this feature."
        )
        self.feature = feature
        self.plan = plan


class ConcurrentUpdateError(EntitlementError):
    """The team row changed between read and write (optimistic concurrency)."""

    def __init__(self, team_id: str):
        super().__init__(f"Team {team_id} was modified concurrently; retry the operation")
        self.team_id = team_id
