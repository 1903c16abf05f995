"""
Volunteer availability models.
"""

from typing import Any, Optional

from .base import BaseEntity, UtcDateTime, load_json


class VolunteerAvailability(BaseEntity):
    id: str
    name: Optional[str] = None
    available: bool = False
    location: Optional[Any] = None
    updated_at: Optional[UtcDateTime] = None

    @classmethod
    def from_row(cls, row):
        if row is None:
            return None
        return cls(
            id=row["volunteer_id"],
            name=row.get("name"),
            available=bool(row.get("available")),
            location=load_json(row.get("location")),
            updated_at=row.get("updated_at"),
        )


class NearbyVolunteer(BaseEntity):
    """Listing entry; the exact location is withheld"""
    id: str
    name: Optional[str] = None
    available: bool
    has_location: bool
