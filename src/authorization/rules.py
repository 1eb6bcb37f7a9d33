"""Role-pair messaging rules.

Decides whether a user of one role may message a user of another role,
given the relationship facts between them. Deterministic, no caching: every
call re-reads bookings and guardian links through the context, so a booking
moving from approved to cancelled revokes eligibility on the next call.

Only direct conversations and conversation creation are subject to these
rules. Group conversations are gated by membership alone.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Awaitable, Callable

from src.authorization.gateways import BookingLookup, GuardianChildLookup, LookupFailed
from src.models.enums import DecisionReason, UserRole
from src.schemas.authorization import Actor, Verdict

logger = logging.getLogger(__name__)


class RelationshipContext:
    """Lazy access to the relationship facts a rule may need."""

    def __init__(self, bookings: BookingLookup, guardians: GuardianChildLookup) -> None:
        self._bookings = bookings
        self._guardians = guardians

    async def has_active_booking(self, student_id: uuid.UUID, teacher_id: uuid.UUID) -> bool:
        return await self._bookings.has_active(student_id, teacher_id)

    async def teaches_child_of(self, teacher_id: uuid.UUID, guardian_id: uuid.UUID) -> bool:
        """True if any child of the guardian has an active booking with the teacher.

        Two reads at most: the guardian's children, then one booking query
        over all of them.
        """
        children = await self._guardians.child_ids(guardian_id)
        if not children:
            return False
        return await self._bookings.has_active_any(children, teacher_id)


RuleCheck = Callable[[Actor, Actor, RelationshipContext], Awaitable[bool]]


async def _student_to_teacher(sender: Actor, recipient: Actor, ctx: RelationshipContext) -> bool:
    return await ctx.has_active_booking(sender.id, recipient.id)


async def _teacher_to_student(sender: Actor, recipient: Actor, ctx: RelationshipContext) -> bool:
    return await ctx.has_active_booking(recipient.id, sender.id)


async def _guardian_to_teacher(sender: Actor, recipient: Actor, ctx: RelationshipContext) -> bool:
    return await ctx.teaches_child_of(recipient.id, sender.id)


async def _teacher_to_guardian(sender: Actor, recipient: Actor, ctx: RelationshipContext) -> bool:
    return await ctx.teaches_child_of(sender.id, recipient.id)


# (sender role, recipient role) → (condition, reason when the condition fails).
# Pairs absent from this table are denied with role_mismatch.
ROLE_PAIR_RULES: dict[tuple[UserRole, UserRole], tuple[RuleCheck, DecisionReason]] = {
    (UserRole.STUDENT, UserRole.TEACHER): (_student_to_teacher, DecisionReason.NO_ACTIVE_BOOKING),
    (UserRole.TEACHER, UserRole.STUDENT): (_teacher_to_student, DecisionReason.NO_ACTIVE_BOOKING),
    (UserRole.GUARDIAN, UserRole.TEACHER): (_guardian_to_teacher, DecisionReason.TEACHER_NOT_TEACHING_CHILD),
    (UserRole.TEACHER, UserRole.GUARDIAN): (_teacher_to_guardian, DecisionReason.TEACHER_NOT_TEACHING_CHILD),
}


class RoleRuleResolver:
    """Applies the role-pair matrix. Holds no state between calls."""

    async def resolve(self, sender: Actor, recipient: Actor, ctx: RelationshipContext) -> Verdict:
        if sender.is_admin or recipient.is_admin:
            return Verdict.allow()

        rule = ROLE_PAIR_RULES.get((sender.role, recipient.role))
        if rule is None:
            return Verdict.deny(DecisionReason.ROLE_MISMATCH)

        check, failure_reason = rule
        try:
            allowed = await check(sender, recipient, ctx)
        except LookupFailed:
            logger.warning(
                "Relationship lookup failed for %s→%s (sender=%s recipient=%s)",
                sender.role.value,
                recipient.role.value,
                sender.id,
                recipient.id,
            )
            return Verdict.deny(DecisionReason.LOOKUP_ERROR)

        return Verdict.allow() if allowed else Verdict.deny(failure_reason)


role_rule_resolver = RoleRuleResolver()
