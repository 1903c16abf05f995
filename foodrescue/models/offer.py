"""
Food offer models and the offer lifecycle.

Every change to an offer's status is an OfferAction. OFFER_TRANSITIONS
lists, per action, the statuses it may start from and the status it
leads to; PICKUP_OUTCOMES lists what the action does to the offer's
pickup. Services look transitions up here and never assign statuses
directly.
"""

from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from pydantic import Field

from .base import BaseEntity, TimestampMixin, UtcDateTime, load_json
from .pickup import Pickup, PickupStatus
from ..core.exceptions import InvalidTransitionError


class OfferStatus(str, Enum):
    OPEN = "open"
    CLAIMED = "claimed"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


TERMINAL_OFFER_STATUSES = frozenset({
    OfferStatus.COMPLETED, OfferStatus.CANCELLED, OfferStatus.EXPIRED
})


class OfferAction(str, Enum):
    CLAIM = "claim"
    CONFIRM = "confirm"
    REJECT = "reject"
    WITHDRAW = "withdraw"   # volunteer gives the claim back
    RELEASE = "release"     # restaurant cancels the pickup
    COMPLETE = "complete"
    CANCEL = "cancel"       # restaurant removes an open offer
    EXPIRE = "expire"


OFFER_TRANSITIONS: Dict[OfferAction, Tuple[FrozenSet[OfferStatus], OfferStatus]] = {
    OfferAction.CLAIM: (frozenset({OfferStatus.OPEN}), OfferStatus.CLAIMED),
    OfferAction.CONFIRM: (frozenset({OfferStatus.CLAIMED}), OfferStatus.CONFIRMED),
    OfferAction.REJECT: (frozenset({OfferStatus.CLAIMED}), OfferStatus.OPEN),
    OfferAction.WITHDRAW: (frozenset({OfferStatus.CLAIMED}), OfferStatus.OPEN),
    OfferAction.RELEASE: (
        frozenset({OfferStatus.CLAIMED, OfferStatus.CONFIRMED}), OfferStatus.OPEN
    ),
    OfferAction.COMPLETE: (frozenset({OfferStatus.CONFIRMED}), OfferStatus.COMPLETED),
    OfferAction.CANCEL: (frozenset({OfferStatus.OPEN}), OfferStatus.CANCELLED),
    OfferAction.EXPIRE: (frozenset({OfferStatus.OPEN}), OfferStatus.EXPIRED),
}

PICKUP_OUTCOMES: Dict[OfferAction, PickupStatus] = {
    OfferAction.CLAIM: PickupStatus.PENDING,
    OfferAction.CONFIRM: PickupStatus.CONFIRMED,
    OfferAction.REJECT: PickupStatus.REJECTED,
    OfferAction.WITHDRAW: PickupStatus.CANCELLED,
    OfferAction.RELEASE: PickupStatus.CANCELLED,
    OfferAction.COMPLETE: PickupStatus.COMPLETED,
}

_CONFLICT_MESSAGES = {
    OfferAction.CLAIM: "Food offer is no longer available",
    OfferAction.CONFIRM: "Pickup is not awaiting confirmation",
    OfferAction.REJECT: "Pickup is not awaiting confirmation",
    OfferAction.WITHDRAW: "Only claimed offers can be cancelled by the volunteer",
    OfferAction.RELEASE: "Pickup cannot be cancelled in its current state",
    OfferAction.COMPLETE: "Pickup must be confirmed before completion",
    OfferAction.CANCEL: "Only open offers can be cancelled",
    OfferAction.EXPIRE: "Only open offers can expire",
}


def next_offer_status(current: str, action: OfferAction) -> OfferStatus:
    """Resolve the status an action leads to, or raise if it is not allowed from `current`"""
    sources, target = OFFER_TRANSITIONS[action]
    if OfferStatus(current) not in sources:
        raise InvalidTransitionError(
            f"{_CONFLICT_MESSAGES[action]} (status: {current})",
            current_status=OfferStatus(current).value,
            action=action.value,
        )
    return target


def reopens(action: OfferAction) -> bool:
    """True when the action hands the offer back to the open pool"""
    return OFFER_TRANSITIONS[action][1] == OfferStatus.OPEN


class FoodOffer(BaseEntity, TimestampMixin):
    id: str
    restaurant_id: str
    restaurant_name: Optional[str] = None
    restaurant_address: Optional[str] = None
    title: str
    description: Optional[str] = None
    quantity: float
    expiration_time: Optional[UtcDateTime] = None
    food_type: Optional[str] = None
    dietary_info: List[str] = Field(default_factory=list)
    status: OfferStatus
    claimed_by: Optional[str] = None
    claimed_by_name: Optional[str] = None
    claimed_at: Optional[UtcDateTime] = None
    pickup_id: Optional[str] = None
    confirmed_at: Optional[UtcDateTime] = None
    completed_at: Optional[UtcDateTime] = None
    cancelled_at: Optional[UtcDateTime] = None
    pickup: Optional[Pickup] = None

    @classmethod
    def from_row(cls, row: Optional[Dict[str, Any]]):
        if row is None:
            return None
        data = dict(row)
        data["dietary_info"] = load_json(data.get("dietary_info")) or []
        return cls.model_validate(data)


class Participant(BaseEntity):
    """Public view of the restaurant or volunteer side of a pickup"""
    id: str
    name: str
    address: Optional[str] = None
    organization_name: Optional[str] = None


class PickupDetails(Pickup):
    offer: Optional[FoodOffer] = None
    restaurant: Optional[Participant] = None
    volunteer: Optional[Participant] = None
