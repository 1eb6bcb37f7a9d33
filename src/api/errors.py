"""Error envelopes for the messaging API.

Clients branch on `code` and `details.reason`; `message` is for humans only.

    401  {"message": "Unauthenticated."}
    403  AUTHORIZATION_FAILED  participant / ownership failures
    403  ROLE_RESTRICTION      role-pair matrix failures
    503  AUDIT_UNAVAILABLE     the decision could not be recorded (fail closed)
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from src.models.enums import AuthorizationAction
from src.schemas.authorization import Decision
from src.security.audit import AuditStoreError

logger = logging.getLogger(__name__)

ROLE_RESTRICTION_MESSAGE = "You cannot message this user"

# Human text for AUTHORIZATION_FAILED, per action
AUTHORIZATION_FAILED_MESSAGES: dict[AuthorizationAction, str] = {
    AuthorizationAction.VIEW_CONVERSATION: "You are not authorized to view this conversation",
    AuthorizationAction.CREATE_CONVERSATION: "You are not authorized to start this conversation",
    AuthorizationAction.SEND_MESSAGE: "You are not authorized to send messages in this conversation",
    AuthorizationAction.UPDATE_MESSAGE: "You are not authorized to update this message",
    AuthorizationAction.DELETE_MESSAGE: "You are not authorized to delete this message",
    AuthorizationAction.MARK_READ: "You are not authorized to mark this message as read",
}


class NotAuthenticated(Exception):
    """No authenticated user on the request."""


class AuthorizationDenied(Exception):
    """A decision came back denied; rendered as a 403 envelope."""

    def __init__(self, decision: Decision) -> None:
        super().__init__(decision.reason.value if decision.reason else "denied")
        self.decision = decision


def unauthenticated_response() -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={"message": "Unauthenticated."},
    )


def forbidden_response(decision: Decision) -> JSONResponse:
    """Pick the 403 envelope that matches the denial."""
    reason = decision.reason.value if decision.reason else None

    if decision.is_role_restriction:
        body = {
            "success": False,
            "error": "Forbidden",
            "message": ROLE_RESTRICTION_MESSAGE,
            "code": "ROLE_RESTRICTION",
            "details": {
                "reason": reason,
                "your_role": decision.sender_role.value if decision.sender_role else None,
                "recipient_role": decision.recipient_role.value if decision.recipient_role else None,
            },
        }
    else:
        body = {
            "success": False,
            "error": "Forbidden",
            "message": AUTHORIZATION_FAILED_MESSAGES.get(decision.action, "You are not authorized to perform this action"),
            "code": "AUTHORIZATION_FAILED",
            "details": {
                "reason": reason,
                "resource_type": decision.resource_type.value,
                "resource_id": str(decision.resource_id) if decision.resource_id else None,
            },
        }
    return JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content=body)


def audit_unavailable_response() -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "success": False,
            "error": "Service Unavailable",
            "message": "Authorization could not be recorded; please retry",
            "code": "AUDIT_UNAVAILABLE",
        },
    )


async def _not_authenticated_handler(request: Request, exc: NotAuthenticated) -> JSONResponse:
    return unauthenticated_response()


async def _authorization_denied_handler(request: Request, exc: AuthorizationDenied) -> JSONResponse:
    return forbidden_response(exc.decision)


async def _audit_store_error_handler(request: Request, exc: AuditStoreError) -> JSONResponse:
    logger.error("Audit store unavailable on %s %s: %s", request.method, request.url.path, exc)
    return audit_unavailable_response()


def register_exception_handlers(app: FastAPI) -> None:
    """Install the envelope handlers on an application."""
    app.add_exception_handler(NotAuthenticated, _not_authenticated_handler)
    app.add_exception_handler(AuthorizationDenied, _authorization_denied_handler)
    app.add_exception_handler(AuditStoreError, _audit_store_error_handler)
