"""
Volunteer service.
Availability flags that restaurants use to see who is around.
"""

import json
import logging
from typing import List

from ..core.database import db_manager, utcnow
from ..core.exceptions import PermissionDeniedError
from ..core.security import require_onboarded
from ..models.user import User, UserRole
from ..models.volunteer import NearbyVolunteer, VolunteerAvailability
from ..schemas.volunteer import AvailabilityUpdate

logger = logging.getLogger(__name__)

NEARBY_LIMIT = 50


class VolunteerService:
    """Volunteer service"""

    def __init__(self):
        self.db = db_manager

    def update_availability(self, user: User, req: AvailabilityUpdate) -> VolunteerAvailability:
        require_onboarded(user, UserRole.VOLUNTEER)
        location = json.dumps(req.location) if req.location is not None else None
        with self.db.transaction() as conn:
            conn.execute(
                """
                INSERT INTO volunteer_availability(volunteer_id, user_uid, name, available, location, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT (volunteer_id) DO UPDATE SET
                    name = excluded.name,
                    available = excluded.available,
                    location = excluded.location,
                    updated_at = excluded.updated_at
                """,
                [user.profile_id, user.uid, user.name, req.available, location, utcnow()]
            )
            row = self.db.fetch_one(
                conn, "SELECT * FROM volunteer_availability WHERE volunteer_id = ?", [user.profile_id]
            )
        logger.info("Volunteer %s availability set to %s", user.profile_id, req.available)
        return VolunteerAvailability.from_row(row)

    def available_count(self) -> int:
        row = self.db.execute_one("SELECT COUNT(*) AS n FROM volunteer_availability WHERE available")
        return int(row["n"]) if row else 0

    def nearby(self) -> List[NearbyVolunteer]:
        """Available volunteers; no geo filtering, at most NEARBY_LIMIT entries"""
        rows = self.db.execute_query(
            "SELECT * FROM volunteer_availability WHERE available ORDER BY updated_at DESC LIMIT ?",
            [NEARBY_LIMIT]
        )
        return [
            NearbyVolunteer(
                id=row["volunteer_id"],
                name=row["name"],
                available=bool(row["available"]),
                has_location=row["location"] is not None,
            )
            for row in rows
        ]

    def get_own(self, user: User) -> VolunteerAvailability:
        """The caller's availability, defaulting to unavailable"""
        if user.role != UserRole.VOLUNTEER.value:
            raise PermissionDeniedError("User is not a volunteer")
        volunteer_id = user.profile_id or user.uid
        row = self.db.execute_one(
            "SELECT * FROM volunteer_availability WHERE volunteer_id = ?", [volunteer_id]
        )
        if row is None:
            return VolunteerAvailability(id=volunteer_id, name=user.name, available=False)
        return VolunteerAvailability.from_row(row)


volunteer_service = VolunteerService()
