"""Authorization decision engine for conversations and messages.

The single entry point the HTTP layer consults. One method per operation;
each runs its own checks, then writes exactly one audit row through
AuthorizationAuditService before returning. Ordinary denials are return
values, never exceptions.

Failure policy:
- A relationship/membership lookup failure is a denial with reason
  `lookup_error`, audited like any other denial.
- An audit write failure (AuditWriteError) propagates. The caller never
  sees a grant that was not recorded.

Usage:
    engine = AuthorizationDecisionEngine(participants, users, relationships, audit)
    decision = await engine.can_send_message(actor, conversation, context=ctx)
    if not decision:
        ...  # decision.reason, decision.is_role_restriction
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from typing import Any

from src.authorization.gateways import LookupFailed, ParticipantStore, UserLookup
from src.authorization.rules import RelationshipContext, RoleRuleResolver, role_rule_resolver
from src.models.enums import (
    AuthorizationAction,
    ConversationType,
    DecisionReason,
    ResourceType,
)
from src.schemas.authorization import (
    Actor,
    ConversationRef,
    Decision,
    MessageRef,
    RequestContext,
    Verdict,
)
from src.security.audit import AuthorizationAuditService

logger = logging.getLogger(__name__)

ADMIN_DELETE_JUSTIFICATION = "Administrative removal of another user's message"


class AuthorizationDecisionEngine:
    """Decides and audits every conversation/message operation."""

    def __init__(
        self,
        participants: ParticipantStore,
        users: UserLookup,
        relationships: RelationshipContext,
        audit: AuthorizationAuditService,
        resolver: RoleRuleResolver = role_rule_resolver,
    ) -> None:
        self._participants = participants
        self._users = users
        self._relationships = relationships
        self._audit = audit
        self._resolver = resolver

    # ── Helpers ──────────────────────────────────────────────────────

    async def _membership(self, conversation_id: uuid.UUID, actor: Actor) -> DecisionReason | None:
        """None when the actor is a participant, else the denial reason."""
        try:
            member = await self._participants.is_participant(conversation_id, actor.id)
        except LookupFailed:
            return DecisionReason.LOOKUP_ERROR
        return None if member else DecisionReason.NOT_PARTICIPANT

    async def _direct_counterpart(self, conversation_id: uuid.UUID, actor: Actor) -> Actor | None:
        """The other participant of a two-party conversation, or None for any other size."""
        participant_ids = await self._participants.participant_ids(conversation_id)
        if len(participant_ids) != 2:
            return None
        other_id = next(pid for pid in participant_ids if pid != actor.id)
        recipient = await self._users.get_actor(other_id)
        if recipient is None:
            raise LookupFailed(f"user {other_id} not found")
        return recipient

    async def _record(
        self,
        actor: Actor,
        action: AuthorizationAction,
        resource_type: ResourceType,
        resource_id: uuid.UUID | None,
        reason: DecisionReason | None,
        context: RequestContext | None,
        metadata: dict[str, Any] | None = None,
    ) -> Decision:
        """Audit an ordinary grant (reason None) or denial, then build the Decision."""
        granted = reason is None
        await self._audit.log_authorization_attempt(
            actor,
            action,
            resource_type,
            resource_id,
            granted,
            reason,
            context=context,
            metadata=metadata,
        )
        return Decision(
            granted=granted,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            reason=reason,
        )

    async def _role_denial(
        self,
        actor: Actor,
        recipient: Actor,
        verdict: Verdict,
        action: AuthorizationAction,
        resource_type: ResourceType,
        resource_id: uuid.UUID,
        context: RequestContext | None,
    ) -> Decision:
        """Audit a failed role-pair check.

        Matrix failures go through the role-violation path; a lookup failure
        is not a role violation and is logged as an ordinary denial.
        """
        if verdict.reason is DecisionReason.LOOKUP_ERROR:
            await self._audit.log_authorization_attempt(
                actor,
                action,
                resource_type,
                resource_id,
                False,
                verdict.reason,
                context=context,
                metadata={"sender_role": actor.role.value, "recipient_role": recipient.role.value},
            )
        else:
            await self._audit.log_role_violation(
                actor,
                recipient,
                verdict.reason,
                action=action,
                resource_type=resource_type,
                resource_id=resource_id,
                context=context,
            )
        return Decision(
            granted=False,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            reason=verdict.reason,
            sender_role=actor.role,
            recipient_role=recipient.role,
        )

    # ── Conversations ────────────────────────────────────────────────

    async def can_view_conversation(
        self,
        actor: Actor,
        conversation: ConversationRef,
        *,
        context: RequestContext | None = None,
    ) -> Decision:
        """Participants only."""
        reason = await self._membership(conversation.id, actor)
        return await self._record(
            actor,
            AuthorizationAction.VIEW_CONVERSATION,
            ResourceType.CONVERSATION,
            conversation.id,
            reason,
            context,
            {"conversation_type": conversation.type.value},
        )

    async def can_create_conversation(
        self,
        actor: Actor,
        recipient: Actor,
        *,
        context: RequestContext | None = None,
    ) -> Decision:
        """Role-pair matrix between the actor and the intended recipient."""
        verdict = await self._resolver.resolve(actor, recipient, self._relationships)
        if not verdict.allowed:
            return await self._role_denial(
                actor,
                recipient,
                verdict,
                AuthorizationAction.CREATE_CONVERSATION,
                ResourceType.USER,
                recipient.id,
                context,
            )

        decision = await self._record(
            actor,
            AuthorizationAction.CREATE_CONVERSATION,
            ResourceType.USER,
            recipient.id,
            None,
            context,
            {"sender_role": actor.role.value, "recipient_role": recipient.role.value},
        )
        return replace(decision, sender_role=actor.role, recipient_role=recipient.role)

    async def can_send_message(
        self,
        actor: Actor,
        conversation: ConversationRef,
        *,
        context: RequestContext | None = None,
    ) -> Decision:
        """Membership first, then role eligibility for two-party direct conversations.

        Eligibility is re-checked on every send: an existing conversation does
        not keep a student/teacher pair eligible after their booking ends.
        """
        action = AuthorizationAction.SEND_MESSAGE
        metadata = {"conversation_type": conversation.type.value}

        reason = await self._membership(conversation.id, actor)
        if reason is not None:
            return await self._record(actor, action, ResourceType.CONVERSATION, conversation.id, reason, context, metadata)

        if conversation.type is ConversationType.DIRECT:
            try:
                recipient = await self._direct_counterpart(conversation.id, actor)
            except LookupFailed:
                logger.warning("Could not resolve counterpart in conversation %s", conversation.id)
                return await self._record(
                    actor, action, ResourceType.CONVERSATION, conversation.id,
                    DecisionReason.LOOKUP_ERROR, context, metadata,
                )

            if recipient is not None:
                verdict = await self._resolver.resolve(actor, recipient, self._relationships)
                if not verdict.allowed:
                    return await self._role_denial(
                        actor, recipient, verdict, action, ResourceType.CONVERSATION, conversation.id, context,
                    )
                metadata = {**metadata, "sender_role": actor.role.value, "recipient_role": recipient.role.value}

        return await self._record(actor, action, ResourceType.CONVERSATION, conversation.id, None, context, metadata)

    # ── Messages ─────────────────────────────────────────────────────

    async def can_update_message(
        self,
        actor: Actor,
        message: MessageRef,
        *,
        context: RequestContext | None = None,
    ) -> Decision:
        """Only the sender may edit a message."""
        reason = None if actor.id == message.sender_id else DecisionReason.NOT_SENDER
        return await self._record(
            actor,
            AuthorizationAction.UPDATE_MESSAGE,
            ResourceType.MESSAGE,
            message.id,
            reason,
            context,
            {"conversation_id": str(message.conversation_id)},
        )

    async def can_delete_message(
        self,
        actor: Actor,
        message: MessageRef,
        *,
        context: RequestContext | None = None,
    ) -> Decision:
        """The sender, or an admin/super-admin as a logged override."""
        action = AuthorizationAction.DELETE_MESSAGE
        metadata = {"conversation_id": str(message.conversation_id)}

        if actor.id == message.sender_id:
            return await self._record(actor, action, ResourceType.MESSAGE, message.id, None, context, metadata)

        if actor.is_admin:
            await self._audit.log_admin_override(
                actor,
                action,
                ResourceType.MESSAGE,
                message.id,
                ADMIN_DELETE_JUSTIFICATION,
                context=context,
            )
            return Decision(
                granted=True,
                action=action,
                resource_type=ResourceType.MESSAGE,
                resource_id=message.id,
                reason=DecisionReason.ADMIN_OVERRIDE,
                override=True,
            )

        return await self._record(
            actor, action, ResourceType.MESSAGE, message.id, DecisionReason.NOT_SENDER, context, metadata,
        )

    async def can_mark_read(
        self,
        actor: Actor,
        message: MessageRef,
        *,
        context: RequestContext | None = None,
    ) -> Decision:
        """Participants other than the sender, i.e. the message's recipients."""
        reason = await self._membership(message.conversation_id, actor)
        if reason is None and actor.id == message.sender_id:
            reason = DecisionReason.NOT_RECIPIENT
        return await self._record(
            actor,
            AuthorizationAction.MARK_READ,
            ResourceType.MESSAGE,
            message.id,
            reason,
            context,
            {"conversation_id": str(message.conversation_id)},
        )
