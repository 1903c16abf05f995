"""
Pickup conversation routes.
"""

from fastapi import APIRouter, Depends, status

from ...core.security import get_current_user
from ...models.user import User
from ...schemas.message import MessageContent, SendMessageRequest
from ...services.message_service import message_service

router = APIRouter()


@router.get("/conversation/{pickup_id}")
def get_conversation(pickup_id: str, user: User = Depends(get_current_user)):
    return message_service.get_conversation(user, pickup_id)


@router.post("/send", status_code=status.HTTP_201_CREATED)
def send_message(req: SendMessageRequest, user: User = Depends(get_current_user)):
    return {"message": message_service.send(user, req.pickup_id, req.content)}


# Aliases keyed by pickup id

@router.get("/{pickup_id}")
def get_messages(pickup_id: str, user: User = Depends(get_current_user)):
    return message_service.get_conversation(user, pickup_id)


@router.post("/{pickup_id}", status_code=status.HTTP_201_CREATED)
def post_message(pickup_id: str, req: MessageContent, user: User = Depends(get_current_user)):
    return {"message": message_service.send(user, pickup_id, req.content)}
