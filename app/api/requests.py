"""
SkillSwap — Connection Requests API

Send, list and answer connection requests.  Accepting a request opens the
pair's chat.
"""

from __future__ import annotations

import uuid

import structlog
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import (
    AuthenticatedIdentity,
    commit_changes,
    get_identity,
    get_request_service,
)
from app.database import get_db
from app.models.request import ConnectionRequest
from app.schemas.request import RequestCreate, RequestDecision, RequestResponse
from app.services.request_service import Decision, RequestService

logger = structlog.get_logger("skillswap.api.requests")

router = APIRouter()


# ──────────────────────────────────────────────────────────────────────────────
# POST /send — Send a connection request
# ──────────────────────────────────────────────────────────────────────────────

@router.post(
    "/send",
    response_model=RequestResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Send a connection request",
)
async def send_request(
    payload: RequestCreate,
    identity: AuthenticatedIdentity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
    request_service: RequestService = Depends(get_request_service),
) -> ConnectionRequest:
    """Fails with 409 while a pending or accepted request to the same user
    exists.  A request the other way round does not count."""
    request = await request_service.send(db, identity.actor_id, payload.to_user_id)
    await commit_changes(db, "send_request")
    return request


# ──────────────────────────────────────────────────────────────────────────────
# GET /incoming, GET /sent — Listings, newest first
# ──────────────────────────────────────────────────────────────────────────────

@router.get(
    "/incoming",
    response_model=list[RequestResponse],
    summary="Requests received by the current user",
)
async def list_incoming(
    identity: AuthenticatedIdentity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
    request_service: RequestService = Depends(get_request_service),
) -> list[ConnectionRequest]:
    return await request_service.list_incoming(db, identity.actor_id)


@router.get(
    "/sent",
    response_model=list[RequestResponse],
    summary="Requests sent by the current user",
)
async def list_sent(
    identity: AuthenticatedIdentity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
    request_service: RequestService = Depends(get_request_service),
) -> list[ConnectionRequest]:
    return await request_service.list_sent(db, identity.actor_id)


# ──────────────────────────────────────────────────────────────────────────────
# PUT /{request_id}/accept, /reject, /respond — Answer a request
# ──────────────────────────────────────────────────────────────────────────────

@router.put(
    "/{request_id}/accept",
    response_model=RequestResponse,
    summary="Accept a pending request",
)
async def accept_request(
    request_id: uuid.UUID,
    identity: AuthenticatedIdentity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
    request_service: RequestService = Depends(get_request_service),
) -> ConnectionRequest:
    request = await request_service.respond(db, request_id, identity.actor_id, Decision.ACCEPT)
    await commit_changes(db, "accept_request")
    return request


@router.put(
    "/{request_id}/reject",
    response_model=RequestResponse,
    summary="Reject a pending request",
)
async def reject_request(
    request_id: uuid.UUID,
    identity: AuthenticatedIdentity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
    request_service: RequestService = Depends(get_request_service),
) -> ConnectionRequest:
    request = await request_service.respond(db, request_id, identity.actor_id, Decision.REJECT)
    await commit_changes(db, "reject_request")
    return request


@router.put(
    "/{request_id}/respond",
    response_model=RequestResponse,
    summary="Accept or reject a pending request",
)
async def respond_to_request(
    request_id: uuid.UUID,
    payload: RequestDecision,
    identity: AuthenticatedIdentity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
    request_service: RequestService = Depends(get_request_service),
) -> ConnectionRequest:
    request = await request_service.respond(db, request_id, identity.actor_id, payload.decision)
    await commit_changes(db, "respond_request")
    return request
