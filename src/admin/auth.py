"""HTTP Basic Auth for admin endpoints (authorization audit review).

Single shared password from ADMIN_WEB_PASSWORD env var.
"""

from __future__ import annotations

import logging
import secrets

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from src.config import settings

logger = logging.getLogger(__name__)

security = HTTPBasic()


async def verify_admin(
    credentials: HTTPBasicCredentials = Depends(security),  # noqa: B008
) -> str:
    """FastAPI dependency — verify HTTP Basic credentials.

    Returns the username on success, raises 401 on failure and 503 when no
    admin password is configured (the audit trail is never left open).
    """
    expected = settings.security.admin_web_password
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="ADMIN_WEB_PASSWORD not configured",
        )

    password_ok = secrets.compare_digest(
        credentials.password.encode("utf-8"),
        expected.encode("utf-8"),
    )
    if not password_ok:
        logger.warning("Rejected admin credentials for username=%s", credentials.username)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Basic"},
        )

    return credentials.username
