"""
Business logic services.
"""

from .account_service import AccountService, account_service
from .message_service import MessageService, message_service
from .offer_service import OfferService, offer_service
from .pickup_service import PickupService, pickup_service
from .report_service import ReportService, report_service
from .volunteer_service import VolunteerService, volunteer_service

__all__ = [
    "AccountService",
    "MessageService",
    "OfferService",
    "PickupService",
    "ReportService",
    "VolunteerService",
    "account_service",
    "message_service",
    "offer_service",
    "pickup_service",
    "report_service",
    "volunteer_service",
]
