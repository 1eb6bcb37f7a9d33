"""Booking model — owned by the booking subsystem, read-only here.

Only the status column matters for messaging eligibility.
"""

from __future__ import annotations

import uuid

from sqlalchemy import ForeignKey, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from src.models.base import Base, TimestampMixin
from src.models.enums import BookingStatus


class Booking(TimestampMixin, Base):
    """A tutoring booking between a student and a teacher."""

    __tablename__ = "bookings"

    student_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True
    )
    teacher_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=BookingStatus.PENDING.value, index=True
    )

    def __repr__(self) -> str:
        return f"<Booking student={self.student_id} teacher={self.teacher_id} status={self.status}>"
