"""Tests for RoleRuleResolver — the role-pair messaging matrix."""

from __future__ import annotations

import uuid

import pytest

from src.authorization.rules import ROLE_PAIR_RULES, RoleRuleResolver
from src.models.enums import BookingStatus, DecisionReason, UserRole
from src.schemas.authorization import Actor, Verdict

# ── Helpers ──────────────────────────────────────────────────────────


def _actor(role: UserRole) -> Actor:
    return Actor(id=uuid.uuid4(), role=role)


resolver = RoleRuleResolver()


# ── Admin bypass ─────────────────────────────────────────────────────


class TestAdminBypass:
    """Admins and super-admins are on the allowed side of every pair."""

    @pytest.mark.asyncio()
    @pytest.mark.parametrize("admin_role", [UserRole.ADMIN, UserRole.SUPER_ADMIN])
    @pytest.mark.parametrize("other_role", list(UserRole))
    async def test_admin_sender_always_allowed(self, relationships, admin_role, other_role):
        verdict = await resolver.resolve(_actor(admin_role), _actor(other_role), relationships)
        assert verdict == Verdict.allow()

    @pytest.mark.asyncio()
    @pytest.mark.parametrize("admin_role", [UserRole.ADMIN, UserRole.SUPER_ADMIN])
    @pytest.mark.parametrize("other_role", list(UserRole))
    async def test_admin_recipient_always_allowed(self, relationships, admin_role, other_role):
        verdict = await resolver.resolve(_actor(other_role), _actor(admin_role), relationships)
        assert verdict.allowed is True

    @pytest.mark.asyncio()
    async def test_admin_never_reads_relationships(self, relationships, bookings):
        await resolver.resolve(_actor(UserRole.ADMIN), _actor(UserRole.STUDENT), relationships)
        assert bookings.calls == 0


# ── Student ↔ teacher ────────────────────────────────────────────────


class TestStudentTeacher:
    """Requires an approved or completed booking between the pair."""

    @pytest.mark.asyncio()
    @pytest.mark.parametrize(("status", "expected"), [
        (BookingStatus.PENDING, False),
        (BookingStatus.APPROVED, True),
        (BookingStatus.UPCOMING, False),
        (BookingStatus.IN_PROGRESS, False),
        (BookingStatus.COMPLETED, True),
        (BookingStatus.CANCELLED, False),
        (BookingStatus.REJECTED, False),
        (BookingStatus.RESCHEDULED, False),
    ])
    async def test_booking_status_gates_both_directions(self, relationships, bookings, status, expected):
        student, teacher = _actor(UserRole.STUDENT), _actor(UserRole.TEACHER)
        bookings.set(student.id, teacher.id, status)

        forward = await resolver.resolve(student, teacher, relationships)
        backward = await resolver.resolve(teacher, student, relationships)

        assert forward.allowed is expected
        assert backward.allowed is expected
        if not expected:
            assert forward.reason == DecisionReason.NO_ACTIVE_BOOKING
            assert backward.reason == DecisionReason.NO_ACTIVE_BOOKING

    @pytest.mark.asyncio()
    async def test_no_booking_denied(self, relationships):
        verdict = await resolver.resolve(_actor(UserRole.STUDENT), _actor(UserRole.TEACHER), relationships)
        assert verdict == Verdict.deny(DecisionReason.NO_ACTIVE_BOOKING)

    @pytest.mark.asyncio()
    async def test_booking_with_other_teacher_does_not_count(self, relationships, bookings):
        student, teacher, other = _actor(UserRole.STUDENT), _actor(UserRole.TEACHER), _actor(UserRole.TEACHER)
        bookings.set(student.id, other.id, BookingStatus.APPROVED)

        verdict = await resolver.resolve(student, teacher, relationships)
        assert verdict.allowed is False

    @pytest.mark.asyncio()
    async def test_status_change_seen_on_next_call(self, relationships, bookings):
        """No caching: cancelling the booking revokes eligibility immediately."""
        student, teacher = _actor(UserRole.STUDENT), _actor(UserRole.TEACHER)
        bookings.set(student.id, teacher.id, BookingStatus.APPROVED)
        assert (await resolver.resolve(student, teacher, relationships)).allowed is True

        bookings.set(student.id, teacher.id, BookingStatus.CANCELLED)
        verdict = await resolver.resolve(student, teacher, relationships)
        assert verdict == Verdict.deny(DecisionReason.NO_ACTIVE_BOOKING)


# ── Guardian ↔ teacher ───────────────────────────────────────────────


class TestGuardianTeacher:
    """Requires a child of the guardian with an active booking to the teacher."""

    @pytest.mark.asyncio()
    async def test_child_with_approved_booking_allows_both_directions(self, relationships, bookings, guardians):
        guardian, child, teacher = _actor(UserRole.GUARDIAN), _actor(UserRole.STUDENT), _actor(UserRole.TEACHER)
        guardians.link(guardian.id, child.id)
        bookings.set(child.id, teacher.id, BookingStatus.APPROVED)

        assert (await resolver.resolve(guardian, teacher, relationships)).allowed is True
        assert (await resolver.resolve(teacher, guardian, relationships)).allowed is True

    @pytest.mark.asyncio()
    async def test_child_with_pending_booking_denied(self, relationships, bookings, guardians):
        guardian, child, teacher = _actor(UserRole.GUARDIAN), _actor(UserRole.STUDENT), _actor(UserRole.TEACHER)
        guardians.link(guardian.id, child.id)
        bookings.set(child.id, teacher.id, BookingStatus.PENDING)

        verdict = await resolver.resolve(guardian, teacher, relationships)
        assert verdict == Verdict.deny(DecisionReason.TEACHER_NOT_TEACHING_CHILD)

    @pytest.mark.asyncio()
    async def test_teacher_of_someone_elses_child_denied(self, relationships, bookings, guardians):
        guardian, teacher = _actor(UserRole.GUARDIAN), _actor(UserRole.TEACHER)
        stranger_child = _actor(UserRole.STUDENT)
        bookings.set(stranger_child.id, teacher.id, BookingStatus.COMPLETED)

        verdict = await resolver.resolve(teacher, guardian, relationships)
        assert verdict == Verdict.deny(DecisionReason.TEACHER_NOT_TEACHING_CHILD)

    @pytest.mark.asyncio()
    async def test_any_child_is_enough(self, relationships, bookings, guardians):
        guardian, teacher = _actor(UserRole.GUARDIAN), _actor(UserRole.TEACHER)
        first, second = _actor(UserRole.STUDENT), _actor(UserRole.STUDENT)
        guardians.link(guardian.id, first.id)
        guardians.link(guardian.id, second.id)
        bookings.set(second.id, teacher.id, BookingStatus.COMPLETED)

        assert (await resolver.resolve(guardian, teacher, relationships)).allowed is True

    @pytest.mark.asyncio()
    async def test_busy_teacher_costs_two_reads(self, relationships, bookings, guardians):
        """Lookups scale with the guardian's children, not the teacher's roster."""
        guardian, teacher, child = _actor(UserRole.GUARDIAN), _actor(UserRole.TEACHER), _actor(UserRole.STUDENT)
        guardians.link(guardian.id, child.id)
        for _ in range(200):
            bookings.set(uuid.uuid4(), teacher.id, BookingStatus.APPROVED)

        verdict = await resolver.resolve(guardian, teacher, relationships)

        assert verdict == Verdict.deny(DecisionReason.TEACHER_NOT_TEACHING_CHILD)
        assert guardians.calls == 1
        assert bookings.calls == 1

    @pytest.mark.asyncio()
    async def test_childless_guardian_skips_booking_read(self, relationships, bookings):
        verdict = await resolver.resolve(_actor(UserRole.TEACHER), _actor(UserRole.GUARDIAN), relationships)
        assert verdict == Verdict.deny(DecisionReason.TEACHER_NOT_TEACHING_CHILD)
        assert bookings.calls == 0


# ── Disallowed pairs ─────────────────────────────────────────────────


class TestDisallowedPairs:
    @pytest.mark.asyncio()
    @pytest.mark.parametrize(("sender_role", "recipient_role"), [
        (UserRole.STUDENT, UserRole.STUDENT),
        (UserRole.STUDENT, UserRole.GUARDIAN),
        (UserRole.TEACHER, UserRole.TEACHER),
        (UserRole.GUARDIAN, UserRole.GUARDIAN),
        (UserRole.GUARDIAN, UserRole.STUDENT),
        (UserRole.UNASSIGNED, UserRole.TEACHER),
        (UserRole.STUDENT, UserRole.UNASSIGNED),
    ])
    async def test_role_mismatch(self, relationships, bookings, sender_role, recipient_role):
        verdict = await resolver.resolve(_actor(sender_role), _actor(recipient_role), relationships)
        assert verdict == Verdict.deny(DecisionReason.ROLE_MISMATCH)
        assert bookings.calls == 0

    def test_only_four_conditional_pairs(self):
        assert set(ROLE_PAIR_RULES) == {
            (UserRole.STUDENT, UserRole.TEACHER),
            (UserRole.TEACHER, UserRole.STUDENT),
            (UserRole.GUARDIAN, UserRole.TEACHER),
            (UserRole.TEACHER, UserRole.GUARDIAN),
        }


# ── Lookup failures ──────────────────────────────────────────────────


class TestLookupFailure:
    @pytest.mark.asyncio()
    async def test_booking_lookup_error_denies(self, relationships, bookings):
        bookings.fail = True
        verdict = await resolver.resolve(_actor(UserRole.STUDENT), _actor(UserRole.TEACHER), relationships)
        assert verdict == Verdict.deny(DecisionReason.LOOKUP_ERROR)

    @pytest.mark.asyncio()
    async def test_guardian_path_lookup_error_denies(self, relationships, bookings, guardians):
        guardian = _actor(UserRole.GUARDIAN)
        guardians.link(guardian.id, uuid.uuid4())
        bookings.fail = True
        verdict = await resolver.resolve(guardian, _actor(UserRole.TEACHER), relationships)
        assert verdict.allowed is False
        assert verdict.reason == DecisionReason.LOOKUP_ERROR

    @pytest.mark.asyncio()
    @pytest.mark.parametrize(("sender_role", "recipient_role"), [
        (UserRole.GUARDIAN, UserRole.TEACHER),
        (UserRole.TEACHER, UserRole.GUARDIAN),
    ])
    async def test_guardian_link_lookup_error_denies(self, relationships, guardians, sender_role, recipient_role):
        guardians.fail = True
        verdict = await resolver.resolve(_actor(sender_role), _actor(recipient_role), relationships)
        assert verdict == Verdict.deny(DecisionReason.LOOKUP_ERROR)
