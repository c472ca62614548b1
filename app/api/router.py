"""
SkillSwap — Main API Router

Aggregates all sub-routers under a single prefix so that ``app.main``
can mount the entire API surface with one ``include_router`` call.
"""

from fastapi import APIRouter

from app.api import auth, chats, matching, requests, users
from app.api.admin import users as admin_users

router = APIRouter()

router.include_router(auth.router, prefix="/auth", tags=["Auth"])
router.include_router(matching.router, prefix="/users", tags=["Matching"])
router.include_router(users.router, prefix="/users", tags=["Users"])
router.include_router(requests.router, prefix="/requests", tags=["Connection Requests"])
router.include_router(chats.router, prefix="/chats", tags=["Chats"])
router.include_router(admin_users.router, prefix="/admin/users", tags=["Admin - Users"])
