"""SQLAlchemy ORM models for the messaging authorization service.

Import all models here so Alembic and Base.metadata.create_all() discover them.
"""

from __future__ import annotations

from src.models.authorization_audit import AuthorizationAuditLog, ImmutableAuditLogError
from src.models.base import Base
from src.models.booking import Booking
from src.models.conversation import Conversation, ConversationParticipant
from src.models.enums import (
    ACTIVE_BOOKING_STATUSES,
    ADMIN_ROLES,
    ROLE_RESTRICTION_REASONS,
    AuthorizationAction,
    BookingStatus,
    ConversationType,
    DecisionReason,
    MessageType,
    ResourceType,
    UserRole,
)
from src.models.guardian import GuardianChild
from src.models.message import Message, MessageRead
from src.models.user import User

__all__ = [
    # Base
    "Base",
    # Models
    "User",
    "Conversation",
    "ConversationParticipant",
    "Message",
    "MessageRead",
    "Booking",
    "GuardianChild",
    "AuthorizationAuditLog",
    "ImmutableAuditLogError",
    # Enums
    "UserRole",
    "ConversationType",
    "MessageType",
    "BookingStatus",
    "AuthorizationAction",
    "ResourceType",
    "DecisionReason",
    # Constants
    "ADMIN_ROLES",
    "ACTIVE_BOOKING_STATUSES",
    "ROLE_RESTRICTION_REASONS",
]
