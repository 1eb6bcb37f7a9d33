"""Security module — authorization audit trail and anomaly detection."""

from src.security.audit import (
    AuditStoreError,
    AuditWriteError,
    AuthorizationAuditService,
    SqlAuditStore,
)

__all__ = ["AuthorizationAuditService", "SqlAuditStore", "AuditStoreError", "AuditWriteError"]
