from pydantic import BaseModel, Field
from uuid import UUID
from datetime import datetime
from typing import Optional

class UserPublic(BaseModel):
    """Public projection of a user; never carries the password hash."""
    id: UUID
    name: str
    email: str
    bio: str = ""
    offered_skills: list[str] = []
    desired_skills: list[str] = []
    verified: bool = False
    is_admin: bool = False
    created_at: datetime

    model_config = {"from_attributes": True}

class UserRegister(BaseModel):
    name: str = Field(min_length=1)
    email: str = Field(min_length=3)
    password: str = Field(min_length=1)
    bio: str = ""
    offered_skills: list[str] = []
    desired_skills: list[str] = []

class UserLogin(BaseModel):
    email: str
    password: str

class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    bio: Optional[str] = None
    offered_skills: Optional[list[str]] = None
    desired_skills: Optional[list[str]] = None

class AuthResponse(BaseModel):
    message: str
    token: str
    user: UserPublic

class MatchResponse(BaseModel):
    user: UserPublic
    can_teach_you: list[str]  # their offered skills you want
    wants_from_you: list[str]  # their desired skills you offer
