"""Read-only relationship gateways consumed by the authorization core.

Each gateway is a narrow Protocol so the resolver and engine can be driven
by in-memory fakes. The SQLAlchemy implementations share one AsyncSession
(the request's) and never write.

Any database failure surfaces as LookupFailed; the engine turns that into a
`lookup_error` denial instead of letting it skip the audit write.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Collection
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.booking import Booking
from src.models.conversation import ConversationParticipant
from src.models.enums import ACTIVE_BOOKING_STATUSES
from src.models.guardian import GuardianChild
from src.models.message import Message
from src.models.user import User
from src.schemas.authorization import Actor, MessageRef

logger = logging.getLogger(__name__)

_ACTIVE_STATUS_VALUES = [s.value for s in ACTIVE_BOOKING_STATUSES]


class LookupFailed(Exception):
    """A relationship lookup could not be answered."""


# ── Interfaces ───────────────────────────────────────────────────────


class ParticipantStore(Protocol):
    async def is_participant(self, conversation_id: uuid.UUID, user_id: uuid.UUID) -> bool: ...

    async def participant_ids(self, conversation_id: uuid.UUID) -> frozenset[uuid.UUID]: ...


class MessageStore(Protocol):
    async def get_sender(self, message_id: uuid.UUID) -> uuid.UUID | None: ...

    async def get_conversation(self, message_id: uuid.UUID) -> uuid.UUID | None: ...


class BookingLookup(Protocol):
    async def has_active(self, student_id: uuid.UUID, teacher_id: uuid.UUID) -> bool: ...

    async def has_active_any(self, student_ids: Collection[uuid.UUID], teacher_id: uuid.UUID) -> bool: ...


class GuardianChildLookup(Protocol):
    async def is_child_of(self, guardian_id: uuid.UUID, child_id: uuid.UUID) -> bool: ...

    async def child_ids(self, guardian_id: uuid.UUID) -> frozenset[uuid.UUID]: ...


class UserLookup(Protocol):
    async def get_actor(self, user_id: uuid.UUID) -> Actor | None: ...


# ── SQLAlchemy implementations ───────────────────────────────────────


class _SqlGateway:
    """Shared session handling and error translation."""

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def _scalar(self, stmt, what: str):
        try:
            result = await self._db.execute(stmt)
        except SQLAlchemyError as exc:
            logger.exception("Relationship lookup failed: %s", what)
            raise LookupFailed(what) from exc
        return result.scalar_one_or_none()

    async def _scalars(self, stmt, what: str) -> list:
        try:
            result = await self._db.execute(stmt)
        except SQLAlchemyError as exc:
            logger.exception("Relationship lookup failed: %s", what)
            raise LookupFailed(what) from exc
        return list(result.scalars().all())


class SqlParticipantStore(_SqlGateway):
    """Conversation membership from conversation_participants."""

    async def is_participant(self, conversation_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        found = await self._scalar(
            select(ConversationParticipant.id)
            .where(
                ConversationParticipant.conversation_id == conversation_id,
                ConversationParticipant.user_id == user_id,
            )
            .limit(1),
            f"participant conversation={conversation_id} user={user_id}",
        )
        return found is not None

    async def participant_ids(self, conversation_id: uuid.UUID) -> frozenset[uuid.UUID]:
        rows = await self._scalars(
            select(ConversationParticipant.user_id).where(
                ConversationParticipant.conversation_id == conversation_id
            ),
            f"participants conversation={conversation_id}",
        )
        return frozenset(rows)


class SqlMessageStore(_SqlGateway):
    """Sender and conversation of a message."""

    async def get_sender(self, message_id: uuid.UUID) -> uuid.UUID | None:
        return await self._scalar(
            select(Message.sender_id).where(Message.id == message_id),
            f"sender message={message_id}",
        )

    async def get_conversation(self, message_id: uuid.UUID) -> uuid.UUID | None:
        return await self._scalar(
            select(Message.conversation_id).where(Message.id == message_id),
            f"conversation message={message_id}",
        )

    async def load(self, message_id: uuid.UUID) -> MessageRef | None:
        """Build a MessageRef from the two lookups, or None if the message is gone."""
        sender_id = await self.get_sender(message_id)
        if sender_id is None:
            return None
        conversation_id = await self.get_conversation(message_id)
        if conversation_id is None:
            return None
        return MessageRef(id=message_id, conversation_id=conversation_id, sender_id=sender_id)


class SqlBookingLookup(_SqlGateway):
    """Active bookings (approved or completed). Always a fresh read."""

    async def has_active(self, student_id: uuid.UUID, teacher_id: uuid.UUID) -> bool:
        found = await self._scalar(
            select(Booking.id)
            .where(
                Booking.student_id == student_id,
                Booking.teacher_id == teacher_id,
                Booking.status.in_(_ACTIVE_STATUS_VALUES),
            )
            .limit(1),
            f"active booking student={student_id} teacher={teacher_id}",
        )
        return found is not None

    async def has_active_any(self, student_ids: Collection[uuid.UUID], teacher_id: uuid.UUID) -> bool:
        """True if any of the students has an active booking with the teacher (one query)."""
        if not student_ids:
            return False
        found = await self._scalar(
            select(Booking.id)
            .where(
                Booking.student_id.in_(list(student_ids)),
                Booking.teacher_id == teacher_id,
                Booking.status.in_(_ACTIVE_STATUS_VALUES),
            )
            .limit(1),
            f"active booking students={len(student_ids)} teacher={teacher_id}",
        )
        return found is not None


class SqlGuardianChildLookup(_SqlGateway):
    """Guardian → child links from guardian_children."""

    async def is_child_of(self, guardian_id: uuid.UUID, child_id: uuid.UUID) -> bool:
        found = await self._scalar(
            select(GuardianChild.id)
            .where(
                GuardianChild.guardian_id == guardian_id,
                GuardianChild.child_id == child_id,
            )
            .limit(1),
            f"guardian={guardian_id} child={child_id}",
        )
        return found is not None

    async def child_ids(self, guardian_id: uuid.UUID) -> frozenset[uuid.UUID]:
        rows = await self._scalars(
            select(GuardianChild.child_id).where(GuardianChild.guardian_id == guardian_id),
            f"children guardian={guardian_id}",
        )
        return frozenset(rows)


class SqlUserLookup(_SqlGateway):
    """Identity and role of a user, for the counterpart in a direct conversation."""

    async def get_actor(self, user_id: uuid.UUID) -> Actor | None:
        try:
            result = await self._db.execute(select(User.id, User.role).where(User.id == user_id))
        except SQLAlchemyError as exc:
            logger.exception("Relationship lookup failed: user=%s", user_id)
            raise LookupFailed(f"user={user_id}") from exc
        row = result.first()
        if row is None:
            return None
        return Actor(id=row.id, role=row.role)
