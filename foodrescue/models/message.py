"""
Conversation messages attached to a pickup. Messages are append-only.
"""

from enum import Enum
from typing import Optional

from .base import BaseEntity, UtcDateTime


class MessageType(str, Enum):
    TEXT = "text"
    SYSTEM = "system"


SYSTEM_SENDER_ID = "system"


class Message(BaseEntity):
    id: str
    pickup_id: str
    sender_id: str
    sender_role: Optional[str] = None
    sender_name: Optional[str] = None
    type: MessageType
    content: str
    created_at: Optional[UtcDateTime] = None
