"""GuardianChild model — links a guardian account to a student account."""

from __future__ import annotations

import uuid

from sqlalchemy import ForeignKey, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from src.models.base import Base, TimestampMixin


class GuardianChild(TimestampMixin, Base):
    """Guardian → child link (owned by the profile subsystem, read-only here)."""

    __tablename__ = "guardian_children"
    __table_args__ = (UniqueConstraint("guardian_id", "child_id", name="uq_guardian_child"),)

    guardian_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True
    )
    child_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True
    )

    def __repr__(self) -> str:
        return f"<GuardianChild guardian={self.guardian_id} child={self.child_id}>"
