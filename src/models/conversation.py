"""Conversation and participant membership models.

Participation is the base gate for every per-conversation operation.
"""

from __future__ import annotations

import uuid

from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models.base import Base, TimestampMixin
from src.models.enums import ConversationType


class Conversation(TimestampMixin, Base):
    """A direct (two-party) or group conversation."""

    __tablename__ = "conversations"

    type: Mapped[str] = mapped_column(String(20), nullable=False, default=ConversationType.DIRECT.value)

    participants: Mapped[list[ConversationParticipant]] = relationship(
        "ConversationParticipant", back_populates="conversation", lazy="selectin"
    )

    @property
    def participant_ids(self) -> frozenset[uuid.UUID]:
        return frozenset(p.user_id for p in self.participants)

    def __repr__(self) -> str:
        return f"<Conversation id={self.id} type={self.type}>"


class ConversationParticipant(TimestampMixin, Base):
    """Membership link between a user and a conversation."""

    __tablename__ = "conversation_participants"
    __table_args__ = (UniqueConstraint("conversation_id", "user_id", name="uq_participant_conversation_user"),)

    conversation_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True
    )

    conversation: Mapped[Conversation] = relationship("Conversation", back_populates="participants")

    def __repr__(self) -> str:
        return f"<ConversationParticipant conversation={self.conversation_id} user={self.user_id}>"
