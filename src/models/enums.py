"""Domain enums used across SQLAlchemy models and Pydantic schemas.

All enums use str mixin for JSON serialization and plain string columns.
"""

from __future__ import annotations

from enum import Enum


class UserRole(str, Enum):
    """Platform role of a user. Fixed for the duration of a decision."""

    STUDENT = "student"
    TEACHER = "teacher"
    GUARDIAN = "guardian"
    ADMIN = "admin"
    SUPER_ADMIN = "super-admin"
    UNASSIGNED = "unassigned"


ADMIN_ROLES: frozenset[UserRole] = frozenset({UserRole.ADMIN, UserRole.SUPER_ADMIN})


class ConversationType(str, Enum):
    """Direct conversations are role-checked; group conversations are not."""

    DIRECT = "direct"
    GROUP = "group"


class MessageType(str, Enum):
    """Kind of message payload."""

    TEXT = "text"
    IMAGE = "image"
    FILE = "file"
    VOICE = "voice"
    SYSTEM = "system"


class BookingStatus(str, Enum):
    """Booking lifecycle states (owned by the booking subsystem)."""

    PENDING = "pending"
    APPROVED = "approved"
    UPCOMING = "upcoming"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REJECTED = "rejected"
    RESCHEDULED = "rescheduled"


# Only these statuses make a student/teacher pair eligible to message
ACTIVE_BOOKING_STATUSES: frozenset[BookingStatus] = frozenset({
    BookingStatus.APPROVED,
    BookingStatus.COMPLETED,
})


class AuthorizationAction(str, Enum):
    """Action tag stored on every authorization audit row."""

    VIEW_CONVERSATION = "view_conversation"
    CREATE_CONVERSATION = "create_conversation"
    SEND_MESSAGE = "send_message"
    UPDATE_MESSAGE = "update_message"
    DELETE_MESSAGE = "delete_message"
    MARK_READ = "mark_read"
    SUSPICIOUS_ACTIVITY = "suspicious_activity"


class ResourceType(str, Enum):
    """Kind of resource an authorization decision was about."""

    CONVERSATION = "Conversation"
    MESSAGE = "Message"
    USER = "User"
    SYSTEM = "System"


class DecisionReason(str, Enum):
    """Stable reason codes clients can branch on."""

    NOT_PARTICIPANT = "not_participant"
    NOT_SENDER = "not_sender"
    NOT_RECIPIENT = "not_recipient"
    NO_ACTIVE_BOOKING = "no_active_booking"
    TEACHER_NOT_TEACHING_CHILD = "teacher_not_teaching_child"
    ROLE_MISMATCH = "role_mismatch"
    ADMIN_OVERRIDE = "admin_override"
    LOOKUP_ERROR = "lookup_error"


# Reasons produced by the role-pair matrix (rendered as ROLE_RESTRICTION)
ROLE_RESTRICTION_REASONS: frozenset[DecisionReason] = frozenset({
    DecisionReason.NO_ACTIVE_BOOKING,
    DecisionReason.TEACHER_NOT_TEACHING_CHILD,
    DecisionReason.ROLE_MISMATCH,
})
