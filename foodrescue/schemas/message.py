"""
Message request bodies.
"""

from pydantic import Field

from .common import RequestModel


class MessageContent(RequestModel):
    content: str = Field(..., min_length=1, max_length=2000)


class SendMessageRequest(MessageContent):
    pickup_id: str = Field(..., min_length=1)
