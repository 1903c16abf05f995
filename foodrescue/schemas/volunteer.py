"""
Volunteer request bodies.
"""

from typing import Any, Optional

from pydantic import Field

from .common import RequestModel


class AvailabilityUpdate(RequestModel):
    available: bool
    location: Optional[Any] = Field(None, description="Free-form location, e.g. {lat, lng} or an address")
