"""Database queries behind the conversation/message routes.

Kept as plain functions so routes stay thin and tests can patch them.
Authorization never happens here; routes consult the decision engine first.
"""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from src.authorization.gateways import SqlMessageStore, SqlUserLookup
from src.models.conversation import Conversation, ConversationParticipant
from src.models.enums import ConversationType
from src.models.message import Message, MessageRead
from src.schemas.authorization import Actor, ConversationRef, MessageRef
from src.schemas.messaging import ConversationOut, MessageCreate, MessageOut

logger = logging.getLogger(__name__)


async def get_actor(db: AsyncSession, user_id: uuid.UUID) -> Actor | None:
    return await SqlUserLookup(db).get_actor(user_id)


async def get_conversation_ref(db: AsyncSession, conversation_id: uuid.UUID) -> ConversationRef | None:
    conversation = await db.get(Conversation, conversation_id)
    if conversation is None:
        return None
    return ConversationRef.model_validate(conversation)


async def get_conversation_detail(
    db: AsyncSession,
    conversation_id: uuid.UUID,
    limit: int = 50,
) -> ConversationOut | None:
    """Conversation with its participants and most recent messages (oldest first)."""
    conversation = await db.get(Conversation, conversation_id)
    if conversation is None:
        return None

    result = await db.execute(
        select(Message)
        .where(Message.conversation_id == conversation_id)
        .order_by(Message.created_at.desc())
        .limit(limit)
    )
    messages = list(result.scalars().all())
    messages.reverse()

    return ConversationOut(
        id=conversation.id,
        type=conversation.type,
        participant_ids=sorted(conversation.participant_ids, key=str),
        messages=[MessageOut.model_validate(m) for m in messages],
    )


async def find_or_create_direct_conversation(
    db: AsyncSession,
    user_a: uuid.UUID,
    user_b: uuid.UUID,
) -> tuple[ConversationOut, bool]:
    """Return the existing direct conversation between two users, or create one.

    The second element is True when a new conversation was created.
    """
    with_a = select(ConversationParticipant.conversation_id).where(ConversationParticipant.user_id == user_a)
    with_b = select(ConversationParticipant.conversation_id).where(ConversationParticipant.user_id == user_b)
    result = await db.execute(
        select(Conversation.id)
        .where(
            Conversation.type == ConversationType.DIRECT.value,
            Conversation.id.in_(with_a),
            Conversation.id.in_(with_b),
        )
        .limit(1)
    )
    existing_id = result.scalar_one_or_none()
    if existing_id is not None:
        detail = await get_conversation_detail(db, existing_id)
        if detail is not None:
            return detail, False

    conversation = Conversation(type=ConversationType.DIRECT.value)
    db.add(conversation)
    await db.flush()
    db.add_all([
        ConversationParticipant(conversation_id=conversation.id, user_id=user_a),
        ConversationParticipant(conversation_id=conversation.id, user_id=user_b),
    ])
    await db.flush()

    logger.info("Created direct conversation %s between %s and %s", conversation.id, user_a, user_b)
    return ConversationOut(
        id=conversation.id,
        type=ConversationType.DIRECT,
        participant_ids=[user_a, user_b],
    ), True


async def get_message_ref(db: AsyncSession, message_id: uuid.UUID) -> MessageRef | None:
    return await SqlMessageStore(db).load(message_id)


async def create_message(db: AsyncSession, sender_id: uuid.UUID, payload: MessageCreate) -> MessageOut:
    message = Message(
        conversation_id=payload.conversation_id,
        sender_id=sender_id,
        content=payload.content,
        type=payload.type.value,
    )
    db.add(message)
    await db.flush()
    await db.refresh(message)
    return MessageOut.model_validate(message)


async def update_message_content(db: AsyncSession, message_id: uuid.UUID, content: str) -> MessageOut | None:
    message = await db.get(Message, message_id)
    if message is None:
        return None
    message.content = content
    await db.flush()
    await db.refresh(message)
    return MessageOut.model_validate(message)


async def delete_message(db: AsyncSession, message_id: uuid.UUID) -> bool:
    message = await db.get(Message, message_id)
    if message is None:
        return False
    await db.delete(message)
    await db.flush()
    return True


async def mark_message_read(db: AsyncSession, message_id: uuid.UUID, user_id: uuid.UUID) -> None:
    """Idempotent: a second read receipt for the same user is ignored."""
    await db.execute(
        insert(MessageRead)
        .values(message_id=message_id, user_id=user_id)
        .on_conflict_do_nothing(constraint="uq_message_read_user")
    )
