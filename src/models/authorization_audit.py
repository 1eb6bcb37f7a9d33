"""AuthorizationAuditLog model — immutable record of every authorization decision.

Every call into the decision engine writes exactly one row here, granted or
denied. This table is append-only: the ORM refuses to flush updates or
deletes of existing rows.
"""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import Boolean, CheckConstraint, Index, String, event
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from src.models.base import AppendOnlyMixin, Base


class ImmutableAuditLogError(RuntimeError):
    """Raised when code tries to modify or remove an audit row."""


class AuthorizationAuditLog(AppendOnlyMixin, Base):
    """One authorization decision."""

    __tablename__ = "authorization_audit_logs"
    __table_args__ = (
        Index("ix_authorization_audit_logs_created_at", "created_at"),
        # Anomaly detection: recent denials per actor
        Index("ix_authz_audit_user_granted_created", "user_id", "granted", "created_at"),
        CheckConstraint("granted OR reason IS NOT NULL", name="ck_authz_audit_denial_has_reason"),
    )

    # Who / what
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)
    action: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    resource_type: Mapped[str] = mapped_column(String(50), nullable=False, comment="Conversation, Message, User, System")
    resource_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))

    # Outcome
    granted: Mapped[bool] = mapped_column(Boolean, nullable=False)
    reason: Mapped[str | None] = mapped_column(String(255), comment="Required when granted is false")

    # Request context
    ip_address: Mapped[str] = mapped_column(String(45), nullable=False, default="0.0.0.0")
    user_agent: Mapped[str | None] = mapped_column(String(512))

    # Arbitrary extra context (roles, override marker, justification, ...)
    metadata_: Mapped[dict[str, Any]] = mapped_column("metadata", JSONB, nullable=False, default=dict)

    def __repr__(self) -> str:
        return f"<AuthorizationAuditLog user={self.user_id} action={self.action} granted={self.granted}>"


@event.listens_for(AuthorizationAuditLog, "before_update")
def _reject_update(mapper: Any, connection: Any, target: AuthorizationAuditLog) -> None:
    raise ImmutableAuditLogError(f"Audit row {target.id} is immutable")


@event.listens_for(AuthorizationAuditLog, "before_delete")
def _reject_delete(mapper: Any, connection: Any, target: AuthorizationAuditLog) -> None:
    raise ImmutableAuditLogError(f"Audit row {target.id} cannot be deleted")
