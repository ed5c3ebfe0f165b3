"""create compliance engine tables

Revision ID: c1a2b3d4e5f6
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "c1a2b3d4e5f6"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


ROLE_VALUES = ("IT", "IP", "IC", "AP")
TIER_VALUES = ("basic", "robust")
WORKFLOW_VALUES = ("pending", "in_progress", "submitted", "approved", "revision_required", "rejected")
COMPLIANCE_VALUES = ("compliant", "non_compliant", "warning", "pending", "not_applicable")
DEADLINE_VALUES = ("warning", "urgent", "overdue")
AUDIT_VALUES = (
    "requirement_status_change",
    "tier_change",
    "role_change",
    "user_deactivation",
    "user_initialization",
    "deadline_escalation",
)
NOTIFICATION_VALUES = (
    "requirement_submitted",
    "requirement_approved",
    "revision_required",
    "requirement_rejected",
    "requirement_updated",
    "tier_advancement_eligible",
    "tier_change",
    "deadline_reminder",
)
DELIVERY_VALUES = ("queued", "sent", "failed", "skipped_no_provider")
CHANNEL_VALUES = ("audit", "notification")
JOB_STATUS_VALUES = ("pending", "failed", "done", "dead_letter")


def _enum(values, name):
    return sa.Enum(*values, name=name, native_enum=False)


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("role", _enum(ROLE_VALUES, "practitioner_role_enum"), nullable=False),
        sa.Column("compliance_tier", _enum(TIER_VALUES, "compliance_tier_enum"), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("is_admin", sa.Boolean(), nullable=False),
        sa.Column("deactivated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deactivation_reason", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_users")),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_role", "users", ["role"], unique=False)
    op.create_index("idx_users_role_tier", "users", ["role", "compliance_tier"], unique=False)
    op.create_index("idx_users_active", "users", ["is_active"], unique=False)

    op.create_table(
        "user_compliance_records",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("requirement_id", sa.String(length=128), nullable=False),
        sa.Column("requirement_name", sa.String(length=255), nullable=False),
        sa.Column("role", _enum(ROLE_VALUES, "practitioner_role_enum"), nullable=False),
        sa.Column("tier", _enum(TIER_VALUES, "compliance_tier_enum"), nullable=False),
        sa.Column("is_mandatory", sa.Boolean(), nullable=False),
        sa.Column("point_value", sa.Integer(), nullable=False),
        sa.Column("workflow_status", _enum(WORKFLOW_VALUES, "requirement_workflow_status_enum"), nullable=False),
        sa.Column("compliance_status", _enum(COMPLIANCE_VALUES, "compliance_status_enum"), nullable=False),
        sa.Column("score", sa.Float(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("submission_data", sa.JSON(), nullable=True),
        sa.Column("due_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_escalation_level", _enum(DEADLINE_VALUES, "deadline_level_enum"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["users.id"],
            name=op.f("fk_user_compliance_records_user_id_users"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_user_compliance_records")),
        sa.UniqueConstraint("user_id", "requirement_id", name="uq_compliance_records_user_requirement"),
    )
    op.create_index("ix_user_compliance_records_user_id", "user_compliance_records", ["user_id"], unique=False)
    op.create_index(
        "ix_user_compliance_records_requirement_id", "user_compliance_records", ["requirement_id"], unique=False
    )
    op.create_index(
        "ix_user_compliance_records_compliance_status", "user_compliance_records", ["compliance_status"], unique=False
    )
    op.create_index(
        "ix_compliance_records_user_status", "user_compliance_records", ["user_id", "compliance_status"], unique=False
    )
    op.create_index(
        "ix_compliance_records_due", "user_compliance_records", ["compliance_status", "due_at"], unique=False
    )

    op.create_table(
        "tier_assignments",
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("tier", _enum(TIER_VALUES, "compliance_tier_enum"), nullable=False),
        sa.Column("completion_percentage", sa.Float(), nullable=False),
        sa.Column("advancement_eligible", sa.Boolean(), nullable=False),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("assigned_by", sa.String(length=64), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["users.id"],
            name=op.f("fk_tier_assignments_user_id_users"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("user_id", name=op.f("pk_tier_assignments")),
    )

    op.create_table(
        "compliance_audit_log",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("audit_type", _enum(AUDIT_VALUES, "audit_type_enum"), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("performed_by", sa.String(length=64), nullable=False),
        sa.Column("old_value", sa.JSON(), nullable=True),
        sa.Column("new_value", sa.JSON(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("correlation_id", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["users.id"],
            name=op.f("fk_compliance_audit_log_user_id_users"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_compliance_audit_log")),
    )
    op.create_index("ix_compliance_audit_log_id", "compliance_audit_log", ["id"], unique=False)
    op.create_index("ix_compliance_audit_log_audit_type", "compliance_audit_log", ["audit_type"], unique=False)
    op.create_index("ix_compliance_audit_log_user_id", "compliance_audit_log", ["user_id"], unique=False)
    op.create_index("ix_compliance_audit_log_correlation_id", "compliance_audit_log", ["correlation_id"], unique=False)
    op.create_index("ix_compliance_audit_log_created_at", "compliance_audit_log", ["created_at"], unique=False)
    op.create_index("ix_compliance_audit_user_type", "compliance_audit_log", ["user_id", "audit_type"], unique=False)
    op.create_index(
        "ix_compliance_audit_user_time_desc",
        "compliance_audit_log",
        ["user_id", sa.text("created_at DESC")],
        unique=False,
    )

    op.create_table(
        "notifications",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("notification_type", _enum(NOTIFICATION_VALUES, "notification_type_enum"), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("correlation_id", sa.String(length=64), nullable=True),
        sa.Column("delivery_status", _enum(DELIVERY_VALUES, "notification_delivery_status_enum"), nullable=False),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["users.id"],
            name=op.f("fk_notifications_user_id_users"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_notifications")),
    )
    op.create_index("ix_notifications_id", "notifications", ["id"], unique=False)
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"], unique=False)
    op.create_index("ix_notifications_notification_type", "notifications", ["notification_type"], unique=False)
    op.create_index("ix_notifications_correlation_id", "notifications", ["correlation_id"], unique=False)
    op.create_index("ix_notifications_delivery_status", "notifications", ["delivery_status"], unique=False)
    op.create_index("ix_notifications_created_at", "notifications", ["created_at"], unique=False)
    op.create_index("ix_notifications_user_created", "notifications", ["user_id", "created_at"], unique=False)
    op.create_index("ix_notifications_user_unread", "notifications", ["user_id", "read_at"], unique=False)

    op.create_table(
        "side_effect_jobs",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("channel", _enum(CHANNEL_VALUES, "side_effect_channel_enum"), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=True),
        sa.Column("payload_json", sa.JSON(), nullable=False),
        sa.Column("correlation_id", sa.String(length=64), nullable=True),
        sa.Column("status", _enum(JOB_STATUS_VALUES, "side_effect_job_status_enum"), nullable=False),
        sa.Column("attempt_count", sa.Integer(), nullable=False),
        sa.Column("next_attempt_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_side_effect_jobs")),
    )
    op.create_index("ix_side_effect_jobs_channel", "side_effect_jobs", ["channel"], unique=False)
    op.create_index("ix_side_effect_jobs_user_id", "side_effect_jobs", ["user_id"], unique=False)
    op.create_index("ix_side_effect_jobs_correlation_id", "side_effect_jobs", ["correlation_id"], unique=False)
    op.create_index("ix_side_effect_jobs_status", "side_effect_jobs", ["status"], unique=False)
    op.create_index("ix_side_effect_jobs_status_next", "side_effect_jobs", ["status", "next_attempt_at"], unique=False)
    op.create_index("ix_side_effect_jobs_created_at", "side_effect_jobs", ["created_at"], unique=False)


def downgrade() -> None:
    op.drop_table("side_effect_jobs")
    op.drop_table("notifications")
    op.drop_table("compliance_audit_log")
    op.drop_table("tier_assignments")
    op.drop_table("user_compliance_records")
    op.drop_table("users")
