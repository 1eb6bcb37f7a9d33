"""User model — a platform account with a single messaging role."""

from __future__ import annotations

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from src.models.base import Base, TimestampMixin
from src.models.enums import UserRole


class User(TimestampMixin, Base):
    """A teacher, student, guardian, or administrator."""

    __tablename__ = "users"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    role: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=UserRole.UNASSIGNED.value,
        index=True,
        comment="student, teacher, guardian, admin, super-admin, unassigned",
    )

    def __repr__(self) -> str:
        return f"<User id={self.id} role={self.role}>"
