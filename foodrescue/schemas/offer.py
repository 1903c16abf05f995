"""
Food offer request bodies.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import Field, field_validator

from .common import RequestModel


class FoodOfferCreate(RequestModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field("", max_length=2000)
    quantity: float = Field(..., gt=0)
    expiration_time: Optional[datetime] = None
    food_type: Optional[str] = Field(None, max_length=100)
    dietary_info: List[str] = Field(default_factory=list)

    @field_validator("dietary_info", mode="before")
    @classmethod
    def _none_as_empty(cls, value):
        return [] if value is None else value
