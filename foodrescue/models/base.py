"""
Base data models.
Shared model base classes, wire conventions and row helpers.
"""

import json
import uuid
from datetime import datetime, timezone
from typing import Annotated, Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, PlainSerializer
from pydantic.alias_generators import to_camel


def isoformat_utc(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


# Timestamps are stored as naive UTC and rendered with a trailing Z
UtcDateTime = Annotated[
    datetime, PlainSerializer(isoformat_utc, return_type=str, when_used="json")
]


class CamelModel(BaseModel):
    """Accepts snake_case or camelCase input, emits camelCase"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        use_enum_values=True,
    )


class TimestampMixin(BaseModel):
    created_at: Optional[UtcDateTime] = None
    updated_at: Optional[UtcDateTime] = None


class BaseEntity(CamelModel):
    """Base for stored entities"""

    @classmethod
    def from_row(cls, row: Optional[Dict[str, Any]]):
        if row is None:
            return None
        return cls.model_validate(row)


def load_json(value: Any) -> Any:
    """Decode a JSON column; DuckDB hands JSON back as text"""
    if value is None or not isinstance(value, str):
        return value
    return json.loads(value)


def new_id(prefix: str) -> str:
    """Opaque string id such as offer-3f2a9c1b7d4e"""
    return f"{prefix}-{uuid.uuid4().hex[:12]}"
