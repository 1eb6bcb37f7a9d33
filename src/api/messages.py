"""Conversation and message routes.

Every route consults exactly one decision-engine method before touching
storage; a denied decision becomes the matching 403 envelope via
`require()` and the exception handlers in src.api.errors.
"""
# ruff: noqa: B008  — Depends() in function defaults is standard FastAPI

from __future__ import annotations

import logging
import uuid
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import (
    get_audit_service,
    get_current_actor,
    get_decision_engine,
    get_request_context,
    require,
)
from src.api.queries import (
    create_message,
    delete_message,
    find_or_create_direct_conversation,
    get_actor,
    get_conversation_detail,
    get_conversation_ref,
    get_message_ref,
    mark_message_read,
    update_message_content,
)
from src.authorization.engine import AuthorizationDecisionEngine
from src.db.engine import get_session
from src.schemas.authorization import Actor, RequestContext
from src.schemas.messaging import ConversationCreate, MessageCreate, MessageUpdate
from src.security.audit import AuthorizationAuditService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["messaging"])


def _not_found(what: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{what} not found")


# ── Conversations ────────────────────────────────────────────────────


@router.post("/conversations", status_code=status.HTTP_201_CREATED)
async def start_conversation(
    payload: ConversationCreate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
    engine: AuthorizationDecisionEngine = Depends(get_decision_engine),
    audit: AuthorizationAuditService = Depends(get_audit_service),
    context: RequestContext = Depends(get_request_context),
) -> dict[str, Any]:
    """Open a direct conversation with another user (returns the existing one if any)."""
    if payload.recipient_id == actor.id:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Cannot start a conversation with yourself",
        )
    recipient = await get_actor(db, payload.recipient_id)
    if recipient is None:
        raise _not_found("Recipient")

    decision = await engine.can_create_conversation(actor, recipient, context=context)
    await require(decision, actor, audit, context)

    conversation, created = await find_or_create_direct_conversation(db, actor.id, recipient.id)
    return {
        "success": True,
        "data": conversation.model_dump(mode="json"),
        "message": "Conversation created" if created else "Conversation already exists",
    }


@router.get("/conversations/{conversation_id}")
async def show_conversation(
    conversation_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
    engine: AuthorizationDecisionEngine = Depends(get_decision_engine),
    audit: AuthorizationAuditService = Depends(get_audit_service),
    context: RequestContext = Depends(get_request_context),
) -> dict[str, Any]:
    conversation = await get_conversation_ref(db, conversation_id)
    if conversation is None:
        raise _not_found("Conversation")

    decision = await engine.can_view_conversation(actor, conversation, context=context)
    await require(decision, actor, audit, context)

    detail = await get_conversation_detail(db, conversation_id)
    if detail is None:
        raise _not_found("Conversation")
    return {"success": True, "data": detail.model_dump(mode="json")}


# ── Messages ─────────────────────────────────────────────────────────


@router.post("/messages", status_code=status.HTTP_201_CREATED)
async def send_message(
    payload: MessageCreate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
    engine: AuthorizationDecisionEngine = Depends(get_decision_engine),
    audit: AuthorizationAuditService = Depends(get_audit_service),
    context: RequestContext = Depends(get_request_context),
) -> dict[str, Any]:
    conversation = await get_conversation_ref(db, payload.conversation_id)
    if conversation is None:
        raise _not_found("Conversation")

    decision = await engine.can_send_message(actor, conversation, context=context)
    await require(decision, actor, audit, context)

    message = await create_message(db, actor.id, payload)
    return {
        "success": True,
        "data": message.model_dump(mode="json"),
        "message": "Message sent successfully",
    }


@router.patch("/messages/{message_id}")
async def update_message(
    message_id: uuid.UUID,
    payload: MessageUpdate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
    engine: AuthorizationDecisionEngine = Depends(get_decision_engine),
    audit: AuthorizationAuditService = Depends(get_audit_service),
    context: RequestContext = Depends(get_request_context),
) -> dict[str, Any]:
    message = await get_message_ref(db, message_id)
    if message is None:
        raise _not_found("Message")

    decision = await engine.can_update_message(actor, message, context=context)
    await require(decision, actor, audit, context)

    updated = await update_message_content(db, message_id, payload.content)
    if updated is None:
        raise _not_found("Message")
    return {
        "success": True,
        "data": updated.model_dump(mode="json"),
        "message": "Message updated successfully",
    }


@router.delete("/messages/{message_id}")
async def remove_message(
    message_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
    engine: AuthorizationDecisionEngine = Depends(get_decision_engine),
    audit: AuthorizationAuditService = Depends(get_audit_service),
    context: RequestContext = Depends(get_request_context),
) -> dict[str, Any]:
    message = await get_message_ref(db, message_id)
    if message is None:
        raise _not_found("Message")

    decision = await engine.can_delete_message(actor, message, context=context)
    await require(decision, actor, audit, context)

    await delete_message(db, message_id)
    return {"success": True, "message": "Message deleted successfully"}


@router.post("/messages/{message_id}/read")
async def mark_read(
    message_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
    engine: AuthorizationDecisionEngine = Depends(get_decision_engine),
    audit: AuthorizationAuditService = Depends(get_audit_service),
    context: RequestContext = Depends(get_request_context),
) -> dict[str, Any]:
    message = await get_message_ref(db, message_id)
    if message is None:
        raise _not_found("Message")

    decision = await engine.can_mark_read(actor, message, context=context)
    await require(decision, actor, audit, context)

    await mark_message_read(db, message_id, actor.id)
    return {"success": True, "message": "Message marked as read"}
