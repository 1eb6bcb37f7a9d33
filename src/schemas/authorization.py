"""Value types for the messaging authorization core.

Pure data classes — no DB dependencies. The decision engine takes these
instead of ORM rows so it can be driven by fakes in tests; ORM rows convert
via `model_validate(row)` (from_attributes).
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from src.models.enums import (
    ADMIN_ROLES,
    ROLE_RESTRICTION_REASONS,
    AuthorizationAction,
    ConversationType,
    DecisionReason,
    ResourceType,
    UserRole,
)

# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


class Actor(BaseModel):
    """A user as seen by the authorization core: identity and role only."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: uuid.UUID
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES


class ConversationRef(BaseModel):
    """The conversation fields the engine reads. Membership comes from ParticipantStore."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: uuid.UUID
    type: ConversationType = ConversationType.DIRECT


class MessageRef(BaseModel):
    """The message fields the engine reads."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: uuid.UUID
    conversation_id: uuid.UUID
    sender_id: uuid.UUID


class RequestContext(BaseModel):
    """Ambient request data copied onto every audit row."""

    model_config = ConfigDict(frozen=True)

    ip_address: str = "0.0.0.0"
    user_agent: str | None = None


# ---------------------------------------------------------------------------
# Outputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Verdict:
    """Result of the role-pair matrix for one (sender, recipient) pair."""

    allowed: bool
    reason: DecisionReason | None = None

    @classmethod
    def allow(cls) -> Verdict:
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: DecisionReason) -> Verdict:
        return cls(allowed=False, reason=reason)


@dataclass(frozen=True)
class Decision:
    """Outcome of one decision-engine call.

    Truthy when granted, so callers can write ``if await engine.can_x(...)``.
    The extra fields let the HTTP layer pick the right 403 envelope without
    re-running any check.
    """

    granted: bool
    action: AuthorizationAction
    resource_type: ResourceType
    resource_id: uuid.UUID | None
    reason: DecisionReason | None = None
    override: bool = False
    sender_role: UserRole | None = None
    recipient_role: UserRole | None = None

    def __bool__(self) -> bool:
        return self.granted

    @property
    def is_role_restriction(self) -> bool:
        """True when the denial came from the role-pair matrix."""
        return not self.granted and self.reason in ROLE_RESTRICTION_REASONS


# ---------------------------------------------------------------------------
# Audit persistence
# ---------------------------------------------------------------------------


class AuditRecord(BaseModel):
    """A single audit row, ready to append to the store."""

    user_id: uuid.UUID
    action: str
    resource_type: str
    resource_id: uuid.UUID | None = None
    granted: bool
    reason: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    ip_address: str = "0.0.0.0"
    user_agent: str | None = None
    created_at: datetime


@dataclass
class AuditQuery:
    """Filters for reading the audit log back (newest first)."""

    user_id: uuid.UUID | None = None
    action: str | None = None
    granted: bool | None = None
    start: datetime | None = None
    end: datetime | None = None
    limit: int = 100
    offset: int = 0
