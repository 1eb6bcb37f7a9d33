"""Initial schema — users, conversations, messages, relationships, authorization audit.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from __future__ import annotations

from typing import Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, tuple[str, ...], None] = None
depends_on: Union[str, tuple[str, ...], None] = None


def _id() -> sa.Column:
    return sa.Column("id", postgresql.UUID(as_uuid=True), server_default=sa.text("gen_random_uuid()"), nullable=False)


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False)


def _updated_at() -> sa.Column:
    return sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False)


def upgrade() -> None:
    # ── Standalone tables (no FKs) ─────────────────────────────────────

    op.create_table(
        "users",
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("role", sa.String(20), nullable=False, comment="student, teacher, guardian, admin, super-admin, unassigned"),
        _id(),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_role", "users", ["role"])

    op.create_table(
        "conversations",
        sa.Column("type", sa.String(20), nullable=False),
        _id(),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "authorization_audit_logs",
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("resource_type", sa.String(50), nullable=False, comment="Conversation, Message, User, System"),
        sa.Column("resource_id", postgresql.UUID(as_uuid=True)),
        sa.Column("granted", sa.Boolean(), nullable=False),
        sa.Column("reason", sa.String(255), comment="Required when granted is false"),
        sa.Column("ip_address", sa.String(45), nullable=False),
        sa.Column("user_agent", sa.String(512)),
        sa.Column("metadata", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        _id(),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("granted OR reason IS NOT NULL", name="ck_authz_audit_denial_has_reason"),
    )
    op.create_index("ix_authorization_audit_logs_user_id", "authorization_audit_logs", ["user_id"])
    op.create_index("ix_authorization_audit_logs_action", "authorization_audit_logs", ["action"])
    op.create_index("ix_authorization_audit_logs_created_at", "authorization_audit_logs", ["created_at"])
    op.create_index(
        "ix_authz_audit_user_granted_created",
        "authorization_audit_logs",
        ["user_id", "granted", "created_at"],
    )

    # ── Relationship tables ────────────────────────────────────────────

    op.create_table(
        "conversation_participants",
        sa.Column("conversation_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        _id(),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("conversation_id", "user_id", name="uq_participant_conversation_user"),
    )
    op.create_index("ix_conversation_participants_conversation_id", "conversation_participants", ["conversation_id"])
    op.create_index("ix_conversation_participants_user_id", "conversation_participants", ["user_id"])

    op.create_table(
        "messages",
        sa.Column("conversation_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("sender_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        _id(),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_messages_conversation_id", "messages", ["conversation_id"])
    op.create_index("ix_messages_sender_id", "messages", ["sender_id"])

    op.create_table(
        "message_reads",
        sa.Column("message_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("messages.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("read_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        _id(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("message_id", "user_id", name="uq_message_read_user"),
    )
    op.create_index("ix_message_reads_message_id", "message_reads", ["message_id"])

    op.create_table(
        "bookings",
        sa.Column("student_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("teacher_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        _id(),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_bookings_student_id", "bookings", ["student_id"])
    op.create_index("ix_bookings_teacher_id", "bookings", ["teacher_id"])
    op.create_index("ix_bookings_status", "bookings", ["status"])

    op.create_table(
        "guardian_children",
        sa.Column("guardian_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("child_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        _id(),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("guardian_id", "child_id", name="uq_guardian_child"),
    )
    op.create_index("ix_guardian_children_guardian_id", "guardian_children", ["guardian_id"])
    op.create_index("ix_guardian_children_child_id", "guardian_children", ["child_id"])


def downgrade() -> None:
    op.drop_table("guardian_children")
    op.drop_table("bookings")
    op.drop_table("message_reads")
    op.drop_table("messages")
    op.drop_table("conversation_participants")
    op.drop_table("authorization_audit_logs")
    op.drop_table("conversations")
    op.drop_table("users")
