"""
Food offer service.

Runs the offer/pickup lifecycle. Each action loads the offer inside one
transaction, re-checks role, ownership and status, then writes the offer,
its pickup and a system message together. The status update is guarded on
the status that was read, so a second claim on the same offer fails with a
conflict instead of overwriting the first.
"""

import json
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from ..config.settings import settings
from ..core.database import db_manager, log_action, to_naive_utc, utcnow
from ..core.exceptions import (
    CancellationWindowClosedError,
    ConcurrencyError,
    InvalidTransitionError,
    OfferNotFoundError,
    PermissionDeniedError,
    PickupNotFoundError,
    ValidationError,
)
from ..core.security import require_onboarded
from ..models.base import new_id
from ..models.offer import (
    FoodOffer,
    OfferAction,
    OfferStatus,
    OFFER_TRANSITIONS,
    PICKUP_OUTCOMES,
    next_offer_status,
    reopens,
)
from ..models.pickup import Pickup
from ..models.user import User, UserRole
from ..schemas.offer import FoodOfferCreate
from .message_service import message_service

logger = logging.getLogger(__name__)

# Fields cleared whenever an offer goes back to the open pool
_CLAIM_FIELDS = ("claimed_by", "claimed_by_name", "claimed_at", "pickup_id", "confirmed_at")


def _with_reason(text: str, reason: Optional[str]) -> str:
    return f"{text} Reason: {reason}" if reason else text


class OfferService:
    """Food offer service"""

    def __init__(self):
        self.db = db_manager
        self.messages = message_service

    # Queries

    def list_offers(self, status: Optional[str] = None, restaurant_id: Optional[str] = None,
                    claimed_by: Optional[str] = None, limit: int = 50) -> List[FoodOffer]:
        """Offers newest first, after expiring open offers whose time has passed"""
        self.expire_lapsed()
        clauses, params = [], []
        if status:
            clauses.append("status = ?")
            params.append(OfferStatus(status).value)
        if restaurant_id:
            clauses.append("restaurant_id = ?")
            params.append(restaurant_id)
        if claimed_by:
            clauses.append("claimed_by = ?")
            params.append(claimed_by)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self.db.execute_query(
            f"SELECT * FROM food_offers {where} ORDER BY created_at DESC LIMIT ?",
            params + [limit]
        )
        return [FoodOffer.from_row(r) for r in rows]

    def get_offer(self, offer_id: str) -> FoodOffer:
        """A single offer with its current pickup attached"""
        self.expire_lapsed()
        with self.db.reading() as conn:
            offer = self._load_offer(conn, offer_id)
            pickup = self._current_pickup(conn, offer)
        if pickup is not None:
            offer.pickup = pickup
        return offer

    def expire_lapsed(self, now: Optional[datetime] = None) -> int:
        """Move open offers past their expiration time to expired"""
        now = now or utcnow()
        allowed, target = OFFER_TRANSITIONS[OfferAction.EXPIRE]
        sources = sorted(s.value for s in allowed)
        with self.db.transaction() as conn:
            rows = self.db.fetch_all(
                conn,
                f"""
                SELECT id FROM food_offers
                WHERE status IN ({', '.join('?' for _ in sources)})
                  AND expiration_time IS NOT NULL AND expiration_time <= ?
                """,
                sources + [now]
            )
            for row in rows:
                conn.execute(
                    "UPDATE food_offers SET status = ?, updated_at = ? WHERE id = ?",
                    [target.value, now, row["id"]]
                )
                log_action(conn, None, "offer_expired", {"offer_id": row["id"]})
        if rows:
            logger.info("Expired %d lapsed offers", len(rows))
        return len(rows)

    # Restaurant actions

    def create_offer(self, user: User, req: FoodOfferCreate) -> FoodOffer:
        require_onboarded(user, UserRole.RESTAURANT)
        offer_id = new_id("offer")
        now = utcnow()
        expiration_time = to_naive_utc(req.expiration_time)
        if expiration_time is not None and expiration_time <= now:
            raise ValidationError("Expiration time must be in the future")
        with self.db.transaction() as conn:
            conn.execute(
                """
                INSERT INTO food_offers(
                    id, restaurant_id, restaurant_name, restaurant_address, title, description,
                    quantity, expiration_time, food_type, dietary_info, status, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    offer_id, user.profile_id, user.name, user.address or "", req.title,
                    req.description, req.quantity, expiration_time,
                    req.food_type, json.dumps(list(req.dietary_info)), OfferStatus.OPEN.value, now, now,
                ]
            )
            log_action(conn, user.uid, "offer_created", {"offer_id": offer_id})
        logger.info("Offer %s created by %s", offer_id, user.profile_id)
        return self.get_offer(offer_id)

    def cancel_offer(self, user: User, offer_id: str) -> FoodOffer:
        """Remove an open offer from the marketplace"""
        require_onboarded(user, UserRole.RESTAURANT)
        with self.db.transaction() as conn:
            offer = self._load_offer(conn, offer_id)
            self._require_owner(user, offer, "You can only cancel your own offers")
            self._apply(conn, user, offer, OfferAction.CANCEL, {"cancelled_at": utcnow()})
        return self.get_offer(offer_id)

    def confirm(self, user: User, offer_id: str) -> Tuple[FoodOffer, Pickup]:
        require_onboarded(user, UserRole.RESTAURANT)
        with self.db.transaction() as conn:
            offer = self._load_offer(conn, offer_id)
            self._require_owner(user, offer, "You can only confirm pickups for your own offers")
            now = utcnow()
            pickup = self._apply(
                conn, user, offer, OfferAction.CONFIRM,
                {"confirmed_at": now},
                pickup_fields={"confirmed_at": now},
                note="Restaurant has confirmed the pickup. You can now proceed with the pickup!",
            )
        return self.get_offer(offer_id), pickup

    def reject(self, user: User, offer_id: str, reason: Optional[str] = None) -> Tuple[FoodOffer, Pickup]:
        require_onboarded(user, UserRole.RESTAURANT)
        with self.db.transaction() as conn:
            offer = self._load_offer(conn, offer_id)
            self._require_owner(user, offer, "You can only reject pickups for your own offers")
            pickup = self._apply(
                conn, user, offer, OfferAction.REJECT, {},
                pickup_fields={"rejected_at": utcnow(), "rejection_reason": reason},
                note=_with_reason("Pickup was declined by the restaurant.", reason),
            )
        return self.get_offer(offer_id), pickup

    def release(self, user: User, pickup_id: str, reason: Optional[str] = None) -> Tuple[FoodOffer, Pickup]:
        """Restaurant cancels a claimed or confirmed pickup; the offer reopens"""
        require_onboarded(user, UserRole.RESTAURANT)
        with self.db.transaction() as conn:
            offer = self._offer_for_pickup(conn, pickup_id)
            self._require_owner(user, offer, "You can only cancel pickups for your own offers")
            pickup = self._apply(
                conn, user, offer, OfferAction.RELEASE, {},
                pickup_fields={"cancelled_at": utcnow(), "cancelled_by": user.uid, "cancel_reason": reason},
                note=_with_reason("Pickup was cancelled by the restaurant.", reason),
                pickup_id=pickup_id,
            )
        return self.get_offer(offer.id), pickup

    # Volunteer actions

    def claim(self, user: User, offer_id: str) -> Tuple[FoodOffer, Pickup]:
        """Claim an open offer, creating a pending pickup"""
        require_onboarded(user, UserRole.VOLUNTEER)
        self.expire_lapsed()
        pickup_id = new_id("pickup")
        with self.db.transaction() as conn:
            offer = self._load_offer(conn, offer_id)
            now = utcnow()
            display_name = user.display_name
            conn.execute(
                """
                INSERT INTO pickups(
                    id, food_offer_id, volunteer_id, volunteer_user_id, volunteer_name,
                    volunteer_organization, restaurant_id, status, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    pickup_id, offer.id, user.profile_id, user.uid, user.name,
                    user.organization_name, offer.restaurant_id,
                    PICKUP_OUTCOMES[OfferAction.CLAIM].value, now,
                ]
            )
            pickup = self._apply(
                conn, user, offer, OfferAction.CLAIM,
                {
                    "claimed_by": user.profile_id,
                    "claimed_by_name": display_name,
                    "claimed_at": now,
                    "pickup_id": pickup_id,
                },
                note=f"{display_name} has claimed this food offer. Awaiting restaurant confirmation.",
                pickup_id=pickup_id,
                pickup_outcome=False,
            )
        return self.get_offer(offer_id), pickup

    def withdraw(self, user: User, offer_id: str, reason: Optional[str] = None) -> Tuple[FoodOffer, Pickup]:
        """Volunteer gives a claim back; only allowed outside the cancellation window"""
        require_onboarded(user, UserRole.VOLUNTEER)
        with self.db.transaction() as conn:
            offer = self._load_offer(conn, offer_id)
            next_offer_status(offer.status, OfferAction.WITHDRAW)
            if offer.claimed_by != user.profile_id:
                raise PermissionDeniedError("You can only cancel a pickup you have claimed")
            self._check_cancellation_window(offer)
            pickup = self._apply(
                conn, user, offer, OfferAction.WITHDRAW, {},
                pickup_fields={"cancelled_at": utcnow(), "cancelled_by": user.uid, "cancel_reason": reason},
                note=_with_reason("Volunteer cancelled the pickup.", reason),
            )
        return self.get_offer(offer_id), pickup

    # Either side

    def complete(self, user: User, offer_id: Optional[str] = None,
                 pickup_id: Optional[str] = None) -> Tuple[FoodOffer, Pickup]:
        """Close a confirmed pickup; the owning restaurant or the claiming volunteer may do it"""
        if user.role not in (UserRole.RESTAURANT.value, UserRole.VOLUNTEER.value):
            raise PermissionDeniedError("Only the restaurant or volunteer can complete this pickup")
        with self.db.transaction() as conn:
            if pickup_id is not None:
                offer = self._offer_for_pickup(conn, pickup_id)
            else:
                offer = self._load_offer(conn, offer_id)
            is_owner = user.role == UserRole.RESTAURANT.value and self._owns(user, offer)
            is_claimer = (
                user.role == UserRole.VOLUNTEER.value
                and user.profile_id is not None
                and offer.claimed_by == user.profile_id
            )
            if not (is_owner or is_claimer):
                raise PermissionDeniedError("Only the restaurant or volunteer can complete this pickup")
            now = utcnow()
            pickup = self._apply(
                conn, user, offer, OfferAction.COMPLETE,
                {"completed_at": now},
                pickup_fields={"completed_at": now, "completed_by": user.uid},
                note="Pickup completed successfully! Thank you for helping reduce food waste!",
                pickup_id=pickup_id,
            )
        return self.get_offer(offer.id), pickup

    # Internals

    def _apply(self, conn, user: User, offer: FoodOffer, action: OfferAction,
               offer_fields: Dict[str, Any], pickup_fields: Optional[Dict[str, Any]] = None,
               note: Optional[str] = None, pickup_id: Optional[str] = None,
               pickup_outcome: bool = True) -> Optional[Pickup]:
        """
        Perform one lifecycle transition on the open connection.

        Raises InvalidTransitionError when the offer is not in a source status of
        the action. Returns the affected pickup, if the action involves one.
        """
        target = next_offer_status(offer.status, action)
        now = utcnow()
        fields = dict(offer_fields)
        if reopens(action):
            fields.update({name: None for name in _CLAIM_FIELDS})
        fields.update({"status": target.value, "updated_at": now})

        assignments = ", ".join(f"{name} = ?" for name in fields)
        changed = conn.execute(
            f"UPDATE food_offers SET {assignments} WHERE id = ? AND status = ? RETURNING id",
            list(fields.values()) + [offer.id, offer.status]
        ).fetchall()
        if not changed:
            raise ConcurrencyError("Food offer changed while it was being updated")

        pickup = None
        pickup_id = pickup_id or offer.pickup_id
        if action in PICKUP_OUTCOMES:
            if pickup_id is None:
                raise PickupNotFoundError("Active pickup not found for this offer")
            if pickup_outcome:
                pickup_values = dict(pickup_fields or {})
                pickup_values["status"] = PICKUP_OUTCOMES[action].value
                pickup_assignments = ", ".join(f"{name} = ?" for name in pickup_values)
                conn.execute(
                    f"UPDATE pickups SET {pickup_assignments} WHERE id = ?",
                    list(pickup_values.values()) + [pickup_id]
                )
            if note:
                self.messages.append_system(conn, pickup_id, note)
            pickup = Pickup.from_row(self.db.fetch_one(conn, "SELECT * FROM pickups WHERE id = ?", [pickup_id]))

        log_action(conn, user.uid, f"offer_{action.value}", {
            "offer_id": offer.id,
            "from": offer.status,
            "to": target.value,
            "pickup_id": pickup_id,
        })
        logger.info("Offer %s: %s -> %s (%s by %s)", offer.id, offer.status, target.value, action.value, user.uid)
        return pickup

    def _load_offer(self, conn, offer_id: str) -> FoodOffer:
        offer = FoodOffer.from_row(self.db.fetch_one(conn, "SELECT * FROM food_offers WHERE id = ?", [offer_id]))
        if offer is None:
            raise OfferNotFoundError("Food offer not found")
        return offer

    def _offer_for_pickup(self, conn, pickup_id: str) -> FoodOffer:
        pickup = self.db.fetch_one(conn, "SELECT food_offer_id, status FROM pickups WHERE id = ?", [pickup_id])
        if pickup is None:
            raise PickupNotFoundError("Pickup not found")
        offer = self._load_offer(conn, pickup["food_offer_id"])
        if offer.pickup_id != pickup_id:
            # An old pickup of an offer that has since moved on
            raise InvalidTransitionError(
                f"Pickup is no longer active (status: {pickup['status']})",
                current_status=offer.status,
                action="pickup",
            )
        return offer

    def _current_pickup(self, conn, offer: FoodOffer) -> Optional[Pickup]:
        """The pickup the offer currently points at; reopened offers have none"""
        if not offer.pickup_id:
            return None
        return Pickup.from_row(self.db.fetch_one(conn, "SELECT * FROM pickups WHERE id = ?", [offer.pickup_id]))

    def _check_cancellation_window(self, offer: FoodOffer, now: Optional[datetime] = None):
        if offer.expiration_time is None:
            return
        now = now or utcnow()
        cutoff = timedelta(hours=settings.cancellation_cutoff_hours)
        if offer.expiration_time - now < cutoff:
            raise CancellationWindowClosedError(
                f"You can only cancel at least {settings.cancellation_cutoff_hours} hours before the pickup time"
            )

    @staticmethod
    def _owns(user: User, offer: FoodOffer) -> bool:
        return user.profile_id is not None and offer.restaurant_id == user.profile_id

    def _require_owner(self, user: User, offer: FoodOffer, message: str):
        if not self._owns(user, offer):
            raise PermissionDeniedError(message)


offer_service = OfferService()
