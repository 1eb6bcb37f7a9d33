"""Shared fixtures — in-memory fakes for the relationship gateways and audit store."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta

import pytest

from src.authorization.engine import AuthorizationDecisionEngine
from src.authorization.gateways import LookupFailed
from src.authorization.rules import RelationshipContext
from src.models.enums import ACTIVE_BOOKING_STATUSES, AuthorizationAction, BookingStatus
from src.schemas.authorization import Actor, AuditQuery, AuditRecord
from src.security.audit import AuditWriteError, AuthorizationAuditService, MonotonicClock


class FakeParticipantStore:
    def __init__(self) -> None:
        self.members: dict[uuid.UUID, set[uuid.UUID]] = {}
        self.fail = False

    def add(self, conversation_id: uuid.UUID, *user_ids: uuid.UUID) -> None:
        self.members.setdefault(conversation_id, set()).update(user_ids)

    async def is_participant(self, conversation_id, user_id) -> bool:
        if self.fail:
            raise LookupFailed("participants down")
        return user_id in self.members.get(conversation_id, set())

    async def participant_ids(self, conversation_id) -> frozenset[uuid.UUID]:
        if self.fail:
            raise LookupFailed("participants down")
        return frozenset(self.members.get(conversation_id, set()))


class FakeBookingLookup:
    def __init__(self) -> None:
        self.bookings: dict[tuple[uuid.UUID, uuid.UUID], BookingStatus] = {}
        self.fail = False
        self.calls = 0

    def set(self, student_id: uuid.UUID, teacher_id: uuid.UUID, status: BookingStatus) -> None:
        self.bookings[(student_id, teacher_id)] = status

    async def has_active(self, student_id, teacher_id) -> bool:
        self.calls += 1
        if self.fail:
            raise LookupFailed("bookings down")
        return self.bookings.get((student_id, teacher_id)) in ACTIVE_BOOKING_STATUSES

    async def has_active_any(self, student_ids, teacher_id) -> bool:
        self.calls += 1
        if self.fail:
            raise LookupFailed("bookings down")
        return any(
            self.bookings.get((student, teacher_id)) in ACTIVE_BOOKING_STATUSES
            for student in student_ids
        )


class FakeGuardianChildLookup:
    def __init__(self) -> None:
        self.links: set[tuple[uuid.UUID, uuid.UUID]] = set()
        self.fail = False
        self.calls = 0

    def link(self, guardian_id: uuid.UUID, child_id: uuid.UUID) -> None:
        self.links.add((guardian_id, child_id))

    async def is_child_of(self, guardian_id, child_id) -> bool:
        self.calls += 1
        if self.fail:
            raise LookupFailed("guardian links down")
        return (guardian_id, child_id) in self.links

    async def child_ids(self, guardian_id) -> frozenset[uuid.UUID]:
        self.calls += 1
        if self.fail:
            raise LookupFailed("guardian links down")
        return frozenset(child for guardian, child in self.links if guardian == guardian_id)


class FakeUserLookup:
    def __init__(self) -> None:
        self.actors: dict[uuid.UUID, Actor] = {}
        self.fail = False

    def add(self, *actors: Actor) -> None:
        for actor in actors:
            self.actors[actor.id] = actor

    async def get_actor(self, user_id) -> Actor | None:
        if self.fail:
            raise LookupFailed("users down")
        return self.actors.get(user_id)


class InMemoryAuditStore:
    def __init__(self) -> None:
        self.records: list[AuditRecord] = []
        self.fail = False

    async def append(self, record: AuditRecord) -> None:
        if self.fail:
            raise AuditWriteError("store down")
        self.records.append(record)

    async def count_denials(self, user_id, since) -> int:
        return sum(
            1 for r in self.records
            if r.user_id == user_id
            and not r.granted
            and r.action != AuthorizationAction.SUSPICIOUS_ACTIVITY.value
            and r.created_at >= since
        )

    async def query(self, query: AuditQuery) -> list[AuditRecord]:
        rows = [
            r for r in self.records
            if (query.user_id is None or r.user_id == query.user_id)
            and (query.action is None or r.action == query.action)
            and (query.granted is None or r.granted == query.granted)
            and (query.start is None or r.created_at >= query.start)
            and (query.end is None or r.created_at <= query.end)
        ]
        rows.sort(key=lambda r: r.created_at, reverse=True)
        return rows[query.offset:query.offset + query.limit]


class ManualClock(MonotonicClock):
    """Clock the test can move forward (or backward) explicitly."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2026, 1, 1, 12, 0, tzinfo=UTC)
        super().__init__(source=lambda: self.current)

    def advance(self, **kwargs) -> None:
        self.current = self.current + timedelta(**kwargs)


@pytest.fixture
def participants() -> FakeParticipantStore:
    return FakeParticipantStore()


@pytest.fixture
def bookings() -> FakeBookingLookup:
    return FakeBookingLookup()


@pytest.fixture
def guardians() -> FakeGuardianChildLookup:
    return FakeGuardianChildLookup()


@pytest.fixture
def users() -> FakeUserLookup:
    return FakeUserLookup()


@pytest.fixture
def relationships(bookings, guardians) -> RelationshipContext:
    return RelationshipContext(bookings, guardians)


@pytest.fixture
def audit_store() -> InMemoryAuditStore:
    return InMemoryAuditStore()


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def audit_service(audit_store, clock) -> AuthorizationAuditService:
    return AuthorizationAuditService(audit_store, threshold=5, window_minutes=10, clock=clock)


@pytest.fixture
def engine(participants, users, relationships, audit_service) -> AuthorizationDecisionEngine:
    return AuthorizationDecisionEngine(participants, users, relationships, audit_service)
