"""Authorization audit trail — every messaging decision, granted or denied.

AuthorizationAuditService is the only writer of authorization_audit_logs.
It offers three entry points (generic attempt, role violation, admin
override) plus advisory anomaly detection over recent denials.

Writes here are NOT best-effort: a failed insert raises AuditWriteError so
the decision engine can fail closed. A decision that cannot be recorded is
never returned as a grant.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any, Protocol

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.config import settings
from src.db.engine import async_session_factory
from src.models.authorization_audit import AuthorizationAuditLog
from src.models.enums import AuthorizationAction, DecisionReason, ResourceType
from src.schemas.authorization import Actor, AuditQuery, AuditRecord, RequestContext

logger = logging.getLogger(__name__)

ROLE_RESTRICTION = "role_restriction"


class AuditStoreError(Exception):
    """The audit store could not be read or written."""


class AuditWriteError(AuditStoreError):
    """An audit row could not be persisted."""


# ── Clock ────────────────────────────────────────────────────────────


class MonotonicClock:
    """UTC timestamps that never go backwards within one process."""

    def __init__(self, source: Callable[[], datetime] | None = None) -> None:
        self._source = source or (lambda: datetime.now(UTC))
        self._last: datetime | None = None
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            current = self._source()
            if self._last is not None and current <= self._last:
                current = self._last + timedelta(microseconds=1)
            self._last = current
            return current


_default_clock = MonotonicClock()


# ── Store ────────────────────────────────────────────────────────────


class AuditStore(Protocol):
    async def append(self, record: AuditRecord) -> None: ...

    async def count_denials(self, user_id: uuid.UUID, since: datetime) -> int: ...

    async def query(self, query: AuditQuery) -> list[AuditRecord]: ...


def _to_record(row: AuthorizationAuditLog) -> AuditRecord:
    return AuditRecord(
        user_id=row.user_id,
        action=row.action,
        resource_type=row.resource_type,
        resource_id=row.resource_id,
        granted=row.granted,
        reason=row.reason,
        metadata=dict(row.metadata_ or {}),
        ip_address=row.ip_address,
        user_agent=row.user_agent,
        created_at=row.created_at,
    )


class SqlAuditStore:
    """PostgreSQL-backed store.

    Each append runs in its own session and commits immediately, so an audit
    row survives even if the surrounding request transaction rolls back.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] = async_session_factory) -> None:
        self._session_factory = session_factory

    async def append(self, record: AuditRecord) -> None:
        try:
            async with self._session_factory() as db:
                db.add(AuthorizationAuditLog(
                    user_id=record.user_id,
                    action=record.action,
                    resource_type=record.resource_type,
                    resource_id=record.resource_id,
                    granted=record.granted,
                    reason=record.reason,
                    metadata_=record.metadata,
                    ip_address=record.ip_address,
                    user_agent=record.user_agent,
                    created_at=record.created_at,
                ))
                await db.commit()
        except SQLAlchemyError as exc:
            logger.exception(
                "Failed to persist authorization audit row: user=%s action=%s",
                record.user_id,
                record.action,
            )
            raise AuditWriteError(f"audit write failed for action {record.action}") from exc

    async def count_denials(self, user_id: uuid.UUID, since: datetime) -> int:
        stmt = select(func.count(AuthorizationAuditLog.id)).where(
            AuthorizationAuditLog.user_id == user_id,
            AuthorizationAuditLog.granted.is_(False),
            AuthorizationAuditLog.action != AuthorizationAction.SUSPICIOUS_ACTIVITY.value,
            AuthorizationAuditLog.created_at >= since,
        )
        try:
            async with self._session_factory() as db:
                result = await db.execute(stmt)
        except SQLAlchemyError as exc:
            logger.exception("Failed to count denials for user=%s", user_id)
            raise AuditStoreError("denial count failed") from exc
        return result.scalar() or 0

    async def query(self, query: AuditQuery) -> list[AuditRecord]:
        stmt = select(AuthorizationAuditLog)
        if query.user_id is not None:
            stmt = stmt.where(AuthorizationAuditLog.user_id == query.user_id)
        if query.action is not None:
            stmt = stmt.where(AuthorizationAuditLog.action == query.action)
        if query.granted is not None:
            stmt = stmt.where(AuthorizationAuditLog.granted.is_(query.granted))
        if query.start is not None:
            stmt = stmt.where(AuthorizationAuditLog.created_at >= query.start)
        if query.end is not None:
            stmt = stmt.where(AuthorizationAuditLog.created_at <= query.end)
        stmt = stmt.order_by(AuthorizationAuditLog.created_at.desc()).offset(query.offset).limit(query.limit)

        try:
            async with self._session_factory() as db:
                result = await db.execute(stmt)
                rows = list(result.scalars().all())
        except SQLAlchemyError as exc:
            logger.exception("Failed to query authorization audit log")
            raise AuditStoreError("audit query failed") from exc
        return [_to_record(row) for row in rows]


# ── Service ──────────────────────────────────────────────────────────


def _tag(value: str | Enum | None) -> str | None:
    if isinstance(value, Enum):
        return value.value
    return value


class AuthorizationAuditService:
    """Writes and reads the authorization audit trail."""

    def __init__(
        self,
        store: AuditStore,
        threshold: int | None = None,
        window_minutes: int | None = None,
        clock: MonotonicClock | None = None,
    ) -> None:
        self._store = store
        self.threshold = threshold if threshold is not None else settings.authorization.suspicious_failure_threshold
        self.window_minutes = (
            window_minutes if window_minutes is not None else settings.authorization.suspicious_window_minutes
        )
        self._clock = clock or _default_clock

    async def _write(
        self,
        actor: Actor,
        action: str | Enum,
        resource_type: str | Enum,
        resource_id: uuid.UUID | None,
        granted: bool,
        reason: str | Enum | None,
        metadata: dict[str, Any],
        context: RequestContext | None,
    ) -> AuditRecord:
        if not granted and reason is None:
            msg = f"Denied {_tag(action)} for user {actor.id} must carry a reason"
            raise ValueError(msg)

        context = context or RequestContext()
        now = self._clock.now()
        record = AuditRecord(
            user_id=actor.id,
            action=_tag(action),
            resource_type=_tag(resource_type),
            resource_id=resource_id,
            granted=granted,
            reason=_tag(reason),
            metadata={**metadata, "timestamp": now.isoformat()},
            ip_address=context.ip_address,
            user_agent=context.user_agent,
            created_at=now,
        )
        await self._store.append(record)
        return record

    async def log_authorization_attempt(
        self,
        actor: Actor,
        action: str | Enum,
        resource_type: str | Enum,
        resource_id: uuid.UUID | None,
        granted: bool,
        reason: str | Enum | None = None,
        *,
        context: RequestContext | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> AuditRecord:
        """Record an ordinary grant or denial. Metadata always carries user_role."""
        record = await self._write(
            actor,
            action,
            resource_type,
            resource_id,
            granted,
            reason,
            {**(metadata or {}), "user_role": actor.role.value},
            context,
        )
        if granted:
            logger.debug("Authorization granted: user=%s action=%s", actor.id, record.action)
        else:
            logger.info(
                "Authorization denied: user=%s action=%s %s=%s reason=%s",
                actor.id,
                record.action,
                record.resource_type,
                resource_id,
                record.reason,
            )
        return record

    async def log_role_violation(
        self,
        sender: Actor,
        recipient: Actor,
        reason: str | Enum,
        *,
        action: str | Enum = AuthorizationAction.CREATE_CONVERSATION,
        resource_type: str | Enum = ResourceType.USER,
        resource_id: uuid.UUID | None = None,
        context: RequestContext | None = None,
    ) -> AuditRecord:
        """Record a denial from the role-pair matrix.

        Defaults to a create_conversation attempt against the recipient user;
        send_message passes its own action and the conversation instead.
        """
        record = await self._write(
            sender,
            action,
            resource_type,
            resource_id if resource_id is not None else recipient.id,
            False,
            reason,
            {
                "user_role": sender.role.value,
                "sender_role": sender.role.value,
                "recipient_role": recipient.role.value,
                "recipient_id": str(recipient.id),
                "violation_type": ROLE_RESTRICTION,
            },
            context,
        )
        logger.info(
            "Role violation: %s %s→%s %s reason=%s",
            record.action,
            sender.role.value,
            recipient.role.value,
            recipient.id,
            record.reason,
        )
        return record

    async def log_admin_override(
        self,
        admin: Actor,
        action: str | Enum,
        resource_type: str | Enum,
        resource_id: uuid.UUID | None,
        justification: str,
        *,
        context: RequestContext | None = None,
    ) -> AuditRecord:
        """Record a grant that bypassed ownership or role rules."""
        record = await self._write(
            admin,
            action,
            resource_type,
            resource_id,
            True,
            DecisionReason.ADMIN_OVERRIDE,
            {
                "user_role": admin.role.value,
                "admin_role": admin.role.value,
                "justification": justification,
                "override": True,
            },
            context,
        )
        logger.info(
            "Admin override: admin=%s action=%s %s=%s justification=%s",
            admin.id,
            record.action,
            record.resource_type,
            resource_id,
            justification,
        )
        return record

    async def flag_suspicious_activity(
        self,
        actor: Actor,
        pattern: str,
        *,
        context: RequestContext | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> AuditRecord:
        """Persist a suspicious_activity row for downstream security review."""
        logger.warning(
            "Suspicious activity detected: user=%s role=%s pattern=%s ip=%s",
            actor.id,
            actor.role.value,
            pattern,
            (context or RequestContext()).ip_address,
        )
        return await self._write(
            actor,
            AuthorizationAction.SUSPICIOUS_ACTIVITY,
            ResourceType.SYSTEM,
            None,
            False,
            pattern,
            {**(metadata or {}), "user_role": actor.role.value, "flagged": True, "pattern": pattern},
            context,
        )

    async def check_for_suspicious_pattern(
        self,
        actor: Actor,
        threshold_count: int | None = None,
        window_minutes: int | None = None,
        *,
        context: RequestContext | None = None,
    ) -> bool:
        """Flag the actor if recent denials reach the threshold.

        Advisory only: the count is a snapshot read and concurrent denials may
        or may not be included. Returns True when a flag row was written.
        """
        threshold = threshold_count if threshold_count is not None else self.threshold
        minutes = window_minutes if window_minutes is not None else self.window_minutes
        since = self._clock.now() - timedelta(minutes=minutes)

        failures = await self._store.count_denials(actor.id, since)
        if failures < threshold:
            return False

        await self.flag_suspicious_activity(
            actor,
            f"Multiple authorization failures: {failures} failures in {minutes} minutes",
            context=context,
            metadata={"failure_count": failures, "window_minutes": minutes, "threshold": threshold},
        )
        return True

    async def get_audit_log(self, query: AuditQuery | None = None) -> list[AuditRecord]:
        """Read audit rows back, newest first."""
        return await self._store.query(query or AuditQuery())

