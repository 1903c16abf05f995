"""
Account request bodies.
"""

from typing import Any, Dict, List, Optional

from pydantic import ConfigDict, Field, field_validator

from .common import RequestModel
from ..models.user import UserRole

MIN_PASSWORD_LENGTH = 6
MAX_PASSWORD_LENGTH = 72  # bcrypt input limit


class Credentials(RequestModel):
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=1, max_length=MAX_PASSWORD_LENGTH)

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        value = value.lower()
        if "@" not in value:
            raise ValueError("Invalid email address")
        return value


class LoginRequest(Credentials):
    """Restaurant / volunteer login; the role must match the account"""
    role: str = Field(..., description="restaurant or volunteer")


class NewAccountRequest(Credentials):
    name: str = Field(..., min_length=1, max_length=200)
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH, max_length=MAX_PASSWORD_LENGTH)


class CreateOrgAdminRequest(NewAccountRequest):
    organization_name: str = Field(..., min_length=1, max_length=200)


class CreateRestaurantRequest(NewAccountRequest):
    address: Optional[str] = None


class OnboardingRequest(RequestModel):
    """Onboarding answers. Unknown keys are kept with the profile."""

    model_config = ConfigDict(extra="allow")

    location: Optional[str] = None
    food_types: Optional[List[str]] = None
    waste_frequency: Optional[str] = None
    phone: Optional[str] = None

    @field_validator("food_types", mode="before")
    @classmethod
    def _single_food_type(cls, value):
        if isinstance(value, str):
            return [value] if value else []
        return value

    def missing_fields(self, role: str) -> List[str]:
        required = ["location"]
        if role == UserRole.RESTAURANT:
            required += ["food_types", "waste_frequency"]
        return [name for name in required if not getattr(self, name)]

    def as_profile(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class ChangePasswordRequest(RequestModel):
    current_password: str = Field(..., min_length=1, max_length=MAX_PASSWORD_LENGTH)
    new_password: str = Field(..., min_length=MIN_PASSWORD_LENGTH, max_length=MAX_PASSWORD_LENGTH)


class UserIdRequest(RequestModel):
    user_id: str = Field(..., min_length=1)
