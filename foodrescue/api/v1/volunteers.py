"""
Volunteer availability routes.
"""

from fastapi import APIRouter, Depends

from ...core.security import get_current_user
from ...models.user import User
from ...schemas.volunteer import AvailabilityUpdate
from ...services.volunteer_service import volunteer_service

router = APIRouter()


@router.post("/availability")
def update_availability(req: AvailabilityUpdate, user: User = Depends(get_current_user)):
    volunteer = volunteer_service.update_availability(user, req)
    return {"message": "Availability updated successfully", "volunteer": volunteer}


@router.get("/available-count")
def available_count(user: User = Depends(get_current_user)):
    return {"count": volunteer_service.available_count()}


@router.get("/nearby")
def nearby(user: User = Depends(get_current_user)):
    return {"volunteers": volunteer_service.nearby()}


@router.get("/me")
def my_availability(user: User = Depends(get_current_user)):
    return {"volunteer": volunteer_service.get_own(user)}
