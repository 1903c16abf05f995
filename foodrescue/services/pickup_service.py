"""
Pickup service.
Pickup-centric views and actions; state changes are delegated to the
offer lifecycle so both entry points share one implementation.
"""

from typing import Optional, Tuple

from ..core.database import db_manager
from ..core.exceptions import PermissionDeniedError, PickupNotFoundError
from ..core.security import require_onboarded
from ..models.offer import FoodOffer, Participant, PickupDetails
from ..models.pickup import Pickup
from ..models.user import User, UserRole
from .message_service import message_service
from .offer_service import offer_service


class PickupService:
    """Pickup service"""

    def __init__(self):
        self.db = db_manager
        self.offers = offer_service

    def get_details(self, user: User, pickup_id: str) -> PickupDetails:
        """Pickup with its offer, restaurant and volunteer attached"""
        with self.db.reading() as conn:
            row = self.db.fetch_one(conn, "SELECT * FROM pickups WHERE id = ?", [pickup_id])
            if row is None:
                raise PickupNotFoundError("Pickup not found")
            if not message_service.is_participant(user, Pickup.from_row(row)):
                raise PermissionDeniedError("You are not part of this pickup")
            details = PickupDetails.model_validate(row)
            details.offer = FoodOffer.from_row(self.db.fetch_one(
                conn, "SELECT * FROM food_offers WHERE id = ?", [details.food_offer_id]
            ))
            restaurant = self.db.fetch_one(
                conn,
                "SELECT uid, name, address, profile_id FROM users WHERE profile_id = ? AND role = ?",
                [details.restaurant_id, UserRole.RESTAURANT.value]
            )
            volunteer = self.db.fetch_one(
                conn,
                "SELECT uid, name, organization_name, profile_id FROM users WHERE profile_id = ? AND role = ?",
                [details.volunteer_id, UserRole.VOLUNTEER.value]
            )

        if restaurant:
            details.restaurant = Participant(
                id=restaurant["profile_id"], name=restaurant["name"], address=restaurant["address"]
            )
        elif details.offer is not None:
            details.restaurant = Participant(
                id=details.restaurant_id,
                name=details.offer.restaurant_name or "",
                address=details.offer.restaurant_address,
            )
        if volunteer:
            org = volunteer["organization_name"]
            details.volunteer = Participant(
                id=volunteer["profile_id"],
                name=f"{volunteer['name']} ({org})" if org else volunteer["name"],
                organization_name=org,
            )
        return details

    def claim(self, user: User, offer_id: str) -> Tuple[FoodOffer, Pickup]:
        return self.offers.claim(user, offer_id)

    def complete(self, user: User, pickup_id: str) -> Tuple[FoodOffer, Pickup]:
        """Restaurant marks a confirmed pickup as done"""
        require_onboarded(user, UserRole.RESTAURANT)
        return self.offers.complete(user, pickup_id=pickup_id)

    def cancel(self, user: User, pickup_id: str, reason: Optional[str] = None) -> Tuple[FoodOffer, Pickup]:
        return self.offers.release(user, pickup_id, reason)


pickup_service = PickupService()
