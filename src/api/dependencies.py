"""FastAPI dependencies wiring the authorization core into request handling.

Authentication itself happens upstream: the fronting auth proxy puts the
user id in a header (env USER_ID_HEADER). Everything here takes
the actor and request context explicitly from that point on.
"""
# ruff: noqa: B008  — Depends() in function defaults is standard FastAPI

from __future__ import annotations

import logging
import uuid

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.errors import AuthorizationDenied, NotAuthenticated
from src.authorization.engine import AuthorizationDecisionEngine
from src.authorization.gateways import (
    LookupFailed,
    SqlBookingLookup,
    SqlGuardianChildLookup,
    SqlParticipantStore,
    SqlUserLookup,
)
from src.authorization.rules import RelationshipContext
from src.config import settings
from src.db.engine import get_session
from src.schemas.authorization import Actor, Decision, RequestContext
from src.security.audit import AuditStoreError, AuthorizationAuditService, SqlAuditStore

logger = logging.getLogger(__name__)

# The store opens its own session per write, so one service serves all requests.
audit_service = AuthorizationAuditService(SqlAuditStore())


def get_request_context(request: Request) -> RequestContext:
    """Client IP and user agent for audit rows."""
    return RequestContext(
        ip_address=request.client.host if request.client else "0.0.0.0",
        user_agent=request.headers.get("user-agent"),
    )


async def get_current_actor(
    request: Request,
    db: AsyncSession = Depends(get_session),
) -> Actor:
    """Resolve the authenticated user.

    NotAuthenticated (401) for a missing, malformed or unknown id; 503 when the
    user table cannot be read.
    """
    raw = request.headers.get(settings.authorization.user_id_header)
    if not raw:
        raise NotAuthenticated
    try:
        user_id = uuid.UUID(raw)
    except ValueError:
        logger.info("Malformed authenticated user header: %r", raw)
        raise NotAuthenticated from None

    try:
        actor = await SqlUserLookup(db).get_actor(user_id)
    except LookupFailed as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="User lookup unavailable",
        ) from exc
    if actor is None:
        raise NotAuthenticated
    return actor


def get_audit_service() -> AuthorizationAuditService:
    return audit_service


def get_decision_engine(
    db: AsyncSession = Depends(get_session),
    audit: AuthorizationAuditService = Depends(get_audit_service),
) -> AuthorizationDecisionEngine:
    """Engine bound to the request's session for relationship reads."""
    return AuthorizationDecisionEngine(
        participants=SqlParticipantStore(db),
        users=SqlUserLookup(db),
        relationships=RelationshipContext(SqlBookingLookup(db), SqlGuardianChildLookup(db)),
        audit=audit,
    )


async def require(
    decision: Decision,
    actor: Actor,
    audit: AuthorizationAuditService,
    context: RequestContext,
) -> None:
    """Raise AuthorizationDenied for a denied decision.

    Runs the advisory suspicious-pattern check first when enabled; its
    outcome never changes the response.
    """
    if decision:
        return
    if settings.authorization.flag_on_denial:
        try:
            await audit.check_for_suspicious_pattern(actor, context=context)
        except AuditStoreError:
            logger.exception("Suspicious-pattern check failed for user=%s", actor.id)
    raise AuthorizationDenied(decision)
