"""
Food offer routes and the lifecycle actions on a single offer.
"""

from typing import Optional

from fastapi import APIRouter, Body, Depends, Query, status

from ...core.security import get_current_user
from ...models.offer import OfferStatus
from ...models.user import User
from ...schemas.common import ReasonRequest
from ...schemas.offer import FoodOfferCreate
from ...services.offer_service import offer_service

router = APIRouter()


@router.get("")
@router.get("/", include_in_schema=False)
def list_offers(
    status_filter: Optional[OfferStatus] = Query(None, alias="status"),
    restaurant_id: Optional[str] = Query(None, alias="restaurantId"),
    claimed_by: Optional[str] = Query(None, alias="claimedBy"),
    limit: int = Query(50, ge=1, le=500),
    user: User = Depends(get_current_user),
):
    offers = offer_service.list_offers(
        status=status_filter.value if status_filter else None,
        restaurant_id=restaurant_id,
        claimed_by=claimed_by,
        limit=limit,
    )
    return {"offers": offers}


@router.get("/{offer_id}")
def get_offer(offer_id: str, user: User = Depends(get_current_user)):
    return {"offer": offer_service.get_offer(offer_id)}


@router.post("", status_code=status.HTTP_201_CREATED)
@router.post("/", status_code=status.HTTP_201_CREATED, include_in_schema=False)
def create_offer(req: FoodOfferCreate, user: User = Depends(get_current_user)):
    offer = offer_service.create_offer(user, req)
    return {"offer": offer, "message": "Food offer created successfully"}


@router.post("/{offer_id}/claim")
def claim_offer(offer_id: str, user: User = Depends(get_current_user)):
    offer, pickup = offer_service.claim(user, offer_id)
    return {
        "message": "Offer claimed successfully! The restaurant will be notified.",
        "offer": offer,
        "pickup": pickup,
    }


@router.post("/{offer_id}/cancel")
def cancel_offer(offer_id: str, user: User = Depends(get_current_user)):
    offer = offer_service.cancel_offer(user, offer_id)
    return {"message": "Offer removed successfully", "offer": offer}


@router.post("/{offer_id}/cancel_pickup")
def cancel_pickup(
    offer_id: str,
    req: Optional[ReasonRequest] = Body(None),
    user: User = Depends(get_current_user),
):
    offer, pickup = offer_service.withdraw(user, offer_id, req.reason if req else None)
    return {
        "message": "Pickup cancelled. Offer is now available again.",
        "offer": offer,
        "pickup": pickup,
    }


@router.post("/{offer_id}/confirm")
def confirm_pickup(offer_id: str, user: User = Depends(get_current_user)):
    offer, pickup = offer_service.confirm(user, offer_id)
    return {"message": "Pickup confirmed successfully", "offer": offer, "pickup": pickup}


@router.post("/{offer_id}/reject")
def reject_pickup(
    offer_id: str,
    req: Optional[ReasonRequest] = Body(None),
    user: User = Depends(get_current_user),
):
    offer, pickup = offer_service.reject(user, offer_id, req.reason if req else None)
    return {
        "message": "Pickup rejected. Offer is now available again.",
        "offer": offer,
        "pickup": pickup,
    }


@router.post("/{offer_id}/complete")
def complete_pickup(offer_id: str, user: User = Depends(get_current_user)):
    offer, pickup = offer_service.complete(user, offer_id=offer_id)
    return {"message": "Pickup completed successfully", "offer": offer, "pickup": pickup}
