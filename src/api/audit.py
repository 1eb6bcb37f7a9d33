"""Admin endpoints for reviewing the authorization audit trail.

Read-only: no route edits or removes audit rows.
All routes require HTTP Basic Auth via verify_admin.
"""
# ruff: noqa: B008  — Depends() in function defaults is standard FastAPI

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Query

from src.admin.auth import verify_admin
from src.api.dependencies import get_audit_service
from src.models.enums import AuthorizationAction
from src.schemas.authorization import AuditQuery
from src.security.audit import AuthorizationAuditService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/authorization-audit", tags=["admin"])


@router.get("")
async def list_audit_log(
    user_id: uuid.UUID | None = Query(default=None),
    action: AuthorizationAction | None = Query(default=None),
    granted: bool | None = Query(default=None),
    start: datetime | None = Query(default=None),
    end: datetime | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    admin: str = Depends(verify_admin),
    audit: AuthorizationAuditService = Depends(get_audit_service),
) -> dict[str, Any]:
    """Filtered audit rows, newest first."""
    logger.info("Audit log viewed by admin=%s user_id=%s action=%s", admin, user_id, action)
    records = await audit.get_audit_log(AuditQuery(
        user_id=user_id,
        action=action.value if action else None,
        granted=granted,
        start=start,
        end=end,
        limit=limit,
        offset=offset,
    ))
    return {
        "success": True,
        "data": [record.model_dump(mode="json") for record in records],
        "count": len(records),
    }


@router.get("/suspicious")
async def list_suspicious_activity(
    limit: int = Query(default=50, ge=1, le=500),
    admin: str = Depends(verify_admin),
    audit: AuthorizationAuditService = Depends(get_audit_service),
) -> dict[str, Any]:
    """Rows flagged by anomaly detection, newest first."""
    records = await audit.get_audit_log(AuditQuery(
        action=AuthorizationAction.SUSPICIOUS_ACTIVITY.value,
        limit=limit,
    ))
    return {
        "success": True,
        "data": [record.model_dump(mode="json") for record in records],
        "count": len(records),
    }
