"""
Pickup models.
A pickup records one volunteer's claim on one food offer.
"""

from enum import Enum
from typing import Optional

from .base import BaseEntity, UtcDateTime


class PickupStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REJECTED = "rejected"


class Pickup(BaseEntity):
    id: str
    food_offer_id: str
    volunteer_id: str
    volunteer_user_id: Optional[str] = None
    volunteer_name: Optional[str] = None
    volunteer_organization: Optional[str] = None
    restaurant_id: str
    status: PickupStatus
    created_at: Optional[UtcDateTime] = None
    confirmed_at: Optional[UtcDateTime] = None
    completed_at: Optional[UtcDateTime] = None
    completed_by: Optional[str] = None
    cancelled_at: Optional[UtcDateTime] = None
    cancelled_by: Optional[str] = None
    cancel_reason: Optional[str] = None
    rejected_at: Optional[UtcDateTime] = None
    rejection_reason: Optional[str] = None
