"""
Request bodies shared across routers.
"""

from typing import Optional

from pydantic import ConfigDict, Field

from ..models.base import CamelModel


class RequestModel(CamelModel):
    """Base for request bodies: camelCase or snake_case keys, surrounding whitespace trimmed"""

    model_config = ConfigDict(str_strip_whitespace=True)


class ReasonRequest(RequestModel):
    reason: Optional[str] = Field(None, max_length=1000, description="Optional explanation")
