"""
API routes and endpoints.
"""

from fastapi import APIRouter

from .v1 import auth, food_offers, messages, pickups, reports, volunteers

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(food_offers.router, prefix="/food_offers", tags=["food offers"])
api_router.include_router(pickups.router, prefix="/pickups", tags=["pickups"])
api_router.include_router(messages.router, prefix="/messages", tags=["messages"])
api_router.include_router(volunteers.router, prefix="/volunteers", tags=["volunteers"])
api_router.include_router(reports.router, prefix="/reports", tags=["reports"])
