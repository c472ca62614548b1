from pydantic import BaseModel
from uuid import UUID
from datetime import datetime
from typing import Literal, Optional

from app.schemas.user import UserPublic

class RequestCreate(BaseModel):
    to_user_id: UUID

class RequestDecision(BaseModel):
    decision: Literal["accept", "reject"]

class RequestResponse(BaseModel):
    id: UUID
    from_user_id: UUID
    to_user_id: UUID
    from_user: UserPublic
    to_user: UserPublic
    status: str  # pending/accepted/rejected
    created_at: datetime
    responded_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
