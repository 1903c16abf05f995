"""
Message service.
Per-pickup conversations: user text messages and the system notes written
by lifecycle transitions.
"""

import logging
from typing import Any, Dict, Optional

from ..core.database import db_manager, utcnow
from ..core.exceptions import PermissionDeniedError, PickupNotFoundError, ValidationError
from ..models.base import new_id
from ..models.message import Message, MessageType, SYSTEM_SENDER_ID
from ..models.pickup import Pickup
from ..models.user import User, UserRole

logger = logging.getLogger(__name__)


class MessageService:
    """Message service"""

    def __init__(self):
        self.db = db_manager

    def get_conversation(self, user: User, pickup_id: str) -> Dict[str, Any]:
        """Messages oldest first, together with the pickup they belong to"""
        with self.db.reading() as conn:
            pickup = self._participant_pickup(conn, user, pickup_id)
            rows = self.db.fetch_all(
                conn,
                "SELECT * FROM messages WHERE pickup_id = ? ORDER BY created_at, seq",
                [pickup_id]
            )
        return {"messages": [Message.from_row(r) for r in rows], "pickup": pickup}

    def send(self, user: User, pickup_id: str, content: str) -> Message:
        content = (content or "").strip()
        if not content:
            raise ValidationError("content is required")
        with self.db.transaction() as conn:
            self._participant_pickup(conn, user, pickup_id)
            message = self._insert(
                conn, pickup_id,
                sender_id=user.profile_id or user.uid,
                sender_role=user.role,
                sender_name=user.name,
                message_type=MessageType.TEXT,
                content=content,
            )
        logger.debug("Message %s posted to pickup %s", message.id, pickup_id)
        return message

    def append_system(self, conn, pickup_id: str, content: str) -> Message:
        """Write a system note; called inside the transition's transaction"""
        return self._insert(
            conn, pickup_id,
            sender_id=SYSTEM_SENDER_ID,
            sender_role=SYSTEM_SENDER_ID,
            sender_name="System",
            message_type=MessageType.SYSTEM,
            content=content,
        )

    def _insert(self, conn, pickup_id: str, sender_id: str, sender_role: Optional[str],
                sender_name: Optional[str], message_type: MessageType, content: str) -> Message:
        message_id = new_id("msg")
        conn.execute(
            """
            INSERT INTO messages(id, pickup_id, sender_id, sender_role, sender_name, type, content, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [message_id, pickup_id, sender_id, sender_role, sender_name,
             message_type.value, content, utcnow()]
        )
        return Message.from_row(self.db.fetch_one(conn, "SELECT * FROM messages WHERE id = ?", [message_id]))

    def _participant_pickup(self, conn, user: User, pickup_id: str) -> Pickup:
        pickup = Pickup.from_row(self.db.fetch_one(conn, "SELECT * FROM pickups WHERE id = ?", [pickup_id]))
        if pickup is None:
            raise PickupNotFoundError("Pickup not found")
        if not self.is_participant(user, pickup):
            raise PermissionDeniedError("You are not part of this pickup")
        return pickup

    @staticmethod
    def is_participant(user: User, pickup: Pickup) -> bool:
        if user.is_admin:
            return True
        if user.role == UserRole.RESTAURANT.value:
            return user.profile_id is not None and pickup.restaurant_id == user.profile_id
        if user.role == UserRole.VOLUNTEER.value:
            return user.profile_id is not None and pickup.volunteer_id == user.profile_id
        return False


message_service = MessageService()
