"""SQLAlchemy declarative base and shared mixins.

Mutable tables get `id`, `created_at`, and `updated_at` via TimestampMixin.
Append-only tables (the authorization audit log) use AppendOnlyMixin, which
has no `updated_at` because rows are never rewritten.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""

    pass


class AppendOnlyMixin:
    """Mixin adding id (UUID) and created_at to insert-only models."""

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=func.gen_random_uuid(),
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )


class TimestampMixin(AppendOnlyMixin):
    """Mixin adding id, created_at, and updated_at to every mutable model.

    Uses server-side defaults so timestamps are set by PostgreSQL.
    """

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
