"""
Typed view of the Stripe webhook events the engine reacts to.

Verified payloads are parsed into a closed set of variants:
- SubscriptionChanged: customer.subscription.created / .updated
- SubscriptionDeleted: customer.subscription.deleted
- IgnoredEvent: everything else, or events without a teamId in metadata
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple, Union

SUBSCRIPTION_CREATED = "customer.subscription.created"
SUBSCRIPTION_UPDATED = "customer.subscription.updated"
SUBSCRIPTION_DELETED = "customer.subscription.deleted"

BILLING_INTERVALS = ("month", "year")


@dataclass(frozen=True)
class LineItem:
    id: str
    price_id: Optional[str]
    quantity: int
    interval: Optional[str]


@dataclass(frozen=True)
class SubscriptionChanged:
    event_id: Optional[str]
    event_type: str
    created: Optional[datetime]
    team_id: str
    subscription_id: str
    customer_id: Optional[str]
    status: Optional[str]
    metadata_plan: Optional[str]
    items: Tuple[LineItem, ...]


@dataclass(frozen=True)
class SubscriptionDeleted:
    event_id: Optional[str]
    created: Optional[datetime]
    team_id: str
    subscription_id: Optional[str]


@dataclass(frozen=True)
class IgnoredEvent:
    event_id: Optional[str]
    event_type: Optional[str]
    reason: str


WebhookEvent = Union[SubscriptionChanged, SubscriptionDeleted, IgnoredEvent]


def _timestamp(value: Any) -> Optional[datetime]:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value, tz=timezone.utc).replace(tzinfo=None)
    return None


def _customer_id(value: Any) -> Optional[str]:
    # Stripe sends either the id or an expanded customer object
    if isinstance(value, dict):
        return value.get("id")
    return value or None


def parse_line_item(item: Dict[str, Any]) -> LineItem:
    price = item.get("price") or {}
    recurring = price.get("recurring") or {}
    interval = recurring.get("interval")
    try:
        quantity = int(item.get("quantity") or 0)
    except (TypeError, ValueError):
        quantity = 0
    return LineItem(
        id=item.get("id"),
        price_id=price.get("id"),
        quantity=quantity,
        interval=interval if interval in BILLING_INTERVALS else None,
    )


def parse_line_items(subscription: Dict[str, Any]) -> Tuple[LineItem, ...]:
    items = (subscription.get("items") or {}).get("data") or []
    return tuple(parse_line_item(item) for item in items if isinstance(item, dict))


def parse_event(event: Dict[str, Any]) -> WebhookEvent:
    """Turn a decoded webhook payload into one of the event variants."""
    event_id = event.get("id")
    event_type = event.get("type")

    if event_type not in (SUBSCRIPTION_CREATED, SUBSCRIPTION_UPDATED, SUBSCRIPTION_DELETED):
        return IgnoredEvent(event_id, event_type, "unhandled event type")

    subscription = (event.get("data") or {}).get("object") or {}
    metadata = subscription.get("metadata") or {}
    team_id = metadata.get("teamId")
    if not team_id:
        return IgnoredEvent(event_id, event_type, "no teamId in subscription metadata")

    created = _timestamp(event.get("created"))

    if event_type == SUBSCRIPTION_DELETED:
        return SubscriptionDeleted(
            event_id=event_id,
            created=created,
            team_id=str(team_id),
            subscription_id=subscription.get("id"),
        )

    return SubscriptionChanged(
        event_id=event_id,
        event_type=event_type,
        created=created,
        team_id=str(team_id),
        subscription_id=subscription.get("id"),
        customer_id=_customer_id(subscription.get("customer")),
        status=subscription.get("status"),
        metadata_plan=metadata.get("plan"),
        items=parse_line_items(subscription),
    )
