"""
Account models.
"""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import Field

from .base import BaseEntity, TimestampMixin, UtcDateTime, load_json


class UserRole(str, Enum):
    MASTER_ADMIN = "master_admin"
    ORG_ADMIN = "org_admin"
    RESTAURANT = "restaurant"
    VOLUNTEER = "volunteer"


ADMIN_ROLES = frozenset({UserRole.MASTER_ADMIN, UserRole.ORG_ADMIN})


class UserStatus(str, Enum):
    PENDING_ONBOARDING = "pending_onboarding"
    ACTIVE = "active"
    SUSPENDED = "suspended"


class User(BaseEntity, TimestampMixin):
    """A platform account. The password hash never leaves the store."""

    uid: str
    email: str
    name: str
    role: UserRole
    status: UserStatus
    profile_id: Optional[str] = None
    organization_id: Optional[str] = None
    organization_name: Optional[str] = None
    address: Optional[str] = None
    onboarding: Optional[Dict[str, Any]] = None
    created_by: Optional[str] = None
    onboarded_at: Optional[UtcDateTime] = None
    suspended_at: Optional[UtcDateTime] = None
    suspended_by: Optional[str] = None

    @classmethod
    def from_row(cls, row):
        if row is None:
            return None
        data = dict(row)
        data.pop("password_hash", None)
        data["onboarding"] = load_json(data.pop("onboarding_json", None))
        return cls.model_validate(data)

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    @property
    def is_suspended(self) -> bool:
        return self.status == UserStatus.SUSPENDED

    @property
    def needs_onboarding(self) -> bool:
        return self.profile_id is None

    @property
    def display_name(self) -> str:
        """Name shown to restaurants, with the organization when there is one"""
        if self.organization_name:
            return f"{self.name} ({self.organization_name})"
        return self.name


class Organization(BaseEntity):
    id: str
    name: str
    admin_id: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[UtcDateTime] = None
    volunteer_count: Optional[int] = Field(None, description="Filled in on admin listings")
