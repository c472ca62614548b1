"""
SkillSwap — ORM model registry.

Importing every model here ensures that Alembic (and any other tool that
inspects ``Base.metadata``) discovers all tables automatically.
"""

from app.models.user import User
from app.models.request import ConnectionRequest, RequestStatus
from app.models.chat import Chat, Message

__all__ = [
    "User",
    "ConnectionRequest",
    "RequestStatus",
    "Chat",
    "Message",
]
