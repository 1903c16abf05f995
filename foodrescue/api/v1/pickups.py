"""
Pickup routes.
"""

from typing import Optional

from fastapi import APIRouter, Body, Depends, status

from ...core.security import get_current_user
from ...models.user import User
from ...schemas.common import ReasonRequest
from ...services.pickup_service import pickup_service

router = APIRouter()


@router.post("/claim/{offer_id}", status_code=status.HTTP_201_CREATED)
def claim(offer_id: str, user: User = Depends(get_current_user)):
    offer, pickup = pickup_service.claim(user, offer_id)
    return {
        "message": "Offer claimed successfully! You can now message the restaurant.",
        "pickup": pickup,
        "offer": offer,
    }


@router.get("/{pickup_id}")
def get_pickup(pickup_id: str, user: User = Depends(get_current_user)):
    return {"pickup": pickup_service.get_details(user, pickup_id)}


@router.post("/{pickup_id}/complete")
def complete(pickup_id: str, user: User = Depends(get_current_user)):
    offer, pickup = pickup_service.complete(user, pickup_id)
    return {
        "message": "Pickup completed successfully! Thank you for reducing food waste.",
        "pickup": pickup,
        "offer": offer,
    }


@router.post("/{pickup_id}/cancel")
def cancel(
    pickup_id: str,
    req: Optional[ReasonRequest] = Body(None),
    user: User = Depends(get_current_user),
):
    offer, pickup = pickup_service.cancel(user, pickup_id, req.reason if req else None)
    return {
        "message": "Pickup cancelled. The offer is now available for other volunteers.",
        "pickup": pickup,
        "offer": offer,
    }
