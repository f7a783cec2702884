"""init

Revision ID: 0001_init
Revises:
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa

revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
  op.create_table(
    "organizations",
    sa.Column("id", sa.String(length=36), primary_key=True),
    sa.Column("name", sa.String(length=255), nullable=False),
    sa.Column("identity_org_id", sa.String(length=255), nullable=True),
    sa.Column("subscription_status", sa.String(length=16), nullable=False),
    sa.Column("plan", sa.String(length=16), nullable=False),
    sa.Column("trial_start_date", sa.DateTime(timezone=True), nullable=False),
    sa.Column("trial_end_date", sa.DateTime(timezone=True), nullable=False),
    sa.Column("subscription_start_date", sa.DateTime(timezone=True), nullable=True),
    sa.Column("subscription_end_date", sa.DateTime(timezone=True), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    sa.UniqueConstraint("identity_org_id"),
  )

  op.create_table(
    "users",
    sa.Column("id", sa.String(length=36), primary_key=True),
    sa.Column("organization_id", sa.String(length=36), sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False),
    sa.Column("identity_subject", sa.String(length=255), nullable=True),
    sa.Column("name", sa.String(length=255), nullable=False),
    sa.Column("email", sa.String(length=255), nullable=False),
    sa.Column("role", sa.String(length=16), nullable=False),
    sa.Column("tasks_count", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    sa.UniqueConstraint("identity_subject"),
  )
  op.create_index("ix_users_organization_id", "users", ["organization_id"], unique=False)
  op.create_index("ix_users_role", "users", ["role"], unique=False)

  op.create_table(
    "tasks",
    sa.Column("id", sa.String(length=36), primary_key=True),
    sa.Column("organization_id", sa.String(length=36), sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False),
    sa.Column("title", sa.String(length=500), nullable=False),
    sa.Column("description", sa.Text(), nullable=False, server_default=""),
    sa.Column("assignee_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
    sa.Column("status", sa.String(length=16), nullable=False),
    sa.Column("priority", sa.String(length=16), nullable=False),
    sa.Column("due_date", sa.String(length=255), nullable=False, server_default=""),
    sa.Column("created_by_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
  )
  op.create_index("ix_tasks_organization_id", "tasks", ["organization_id"], unique=False)
  op.create_index("ix_tasks_assignee_id", "tasks", ["assignee_id"], unique=False)
  op.create_index("ix_tasks_status", "tasks", ["status"], unique=False)
  op.create_index("ix_tasks_created_by_id", "tasks", ["created_by_id"], unique=False)
  op.create_index("ix_tasks_organization_status", "tasks", ["organization_id", "status"], unique=False)

  op.create_table(
    "task_comments",
    sa.Column("id", sa.String(length=36), primary_key=True),
    sa.Column("task_id", sa.String(length=36), sa.ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False),
    sa.Column("user_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    sa.Column("content", sa.Text(), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
  )
  op.create_index("ix_task_comments_task_id", "task_comments", ["task_id"], unique=False)
  op.create_index("ix_task_comments_user_id", "task_comments", ["user_id"], unique=False)

  op.create_table(
    "performance_metrics",
    sa.Column("id", sa.String(length=36), primary_key=True),
    sa.Column("user_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    sa.Column("organization_id", sa.String(length=36), sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False),
    sa.Column("completion_rate", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("average_time_days", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("tasks_completed", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("tasks_in_progress", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("tasks_overdue", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("last_ai_evaluation", sa.Text(), nullable=True),
    sa.Column("evaluation_date", sa.DateTime(timezone=True), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    sa.UniqueConstraint("user_id", "organization_id", name="ux_performance_metrics_user_org"),
  )
  op.create_index("ix_performance_metrics_user_id", "performance_metrics", ["user_id"], unique=False)
  op.create_index("ix_performance_metrics_organization_id", "performance_metrics", ["organization_id"], unique=False)

  op.create_table(
    "invites",
    sa.Column("id", sa.String(length=36), primary_key=True),
    sa.Column("email", sa.String(length=255), nullable=False),
    sa.Column("role", sa.String(length=16), nullable=False),
    sa.Column("organization_id", sa.String(length=36), sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False),
    sa.Column("invited_by_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=False),
    sa.Column("token", sa.String(length=255), nullable=False),
    sa.Column("used", sa.Boolean(), nullable=False, server_default=sa.false()),
    sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
  )
  op.create_index("ix_invites_organization_id", "invites", ["organization_id"], unique=False)
  op.create_index("ix_invites_token", "invites", ["token"], unique=True)


def downgrade() -> None:
  op.drop_table("invites")
  op.drop_table("performance_metrics")
  op.drop_table("task_comments")
  op.drop_table("tasks")
  op.drop_table("users")
  op.drop_table("organizations")
