from pydantic import BaseModel
from uuid import UUID
from datetime import datetime

from app.schemas.user import UserPublic

class MessageCreate(BaseModel):
    text: str

class MessageResponse(BaseModel):
    id: UUID
    chat_id: UUID
    sender_id: UUID
    sender: UserPublic
    seq: int
    text: str
    created_at: datetime

    model_config = {"from_attributes": True}

class ChatResponse(BaseModel):
    id: UUID
    participants: list[UserPublic]
    messages: list[MessageResponse] = []
    created_at: datetime

    model_config = {"from_attributes": True}

class NewMessageEvent(BaseModel):
    type: str = "new_message"
    chat_id: UUID
    message: MessageResponse
