from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
  return datetime.now(timezone.utc)


def as_utc(dt: datetime | None) -> datetime | None:
  # Some drivers hand timezone-aware columns back naive; they are stored as UTC.
  if dt is None:
    return None
  if dt.tzinfo is None:
    return dt.replace(tzinfo=timezone.utc)
  return dt.astimezone(timezone.utc)


def _uuid() -> str:
  return str(uuid.uuid4())


class Base(DeclarativeBase):
  pass


class Organization(Base):
  __tablename__ = "organizations"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
  name: Mapped[str] = mapped_column(String(255), nullable=False)
  identity_org_id: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)
  subscription_status: Mapped[str] = mapped_column(String(16), nullable=False, default="TRIAL")
  plan: Mapped[str] = mapped_column(String(16), nullable=False, default="FREE_TRIAL")
  trial_start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
  trial_end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
  subscription_start_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  subscription_end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class User(Base):
  __tablename__ = "users"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
  organization_id: Mapped[str] = mapped_column(
    String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
  )
  identity_subject: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)
  name: Mapped[str] = mapped_column(String(255), nullable=False)
  email: Mapped[str] = mapped_column(String(255), nullable=False)
  role: Mapped[str] = mapped_column(String(16), nullable=False, default="EMPLOYEE", index=True)
  tasks_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class Task(Base):
  __tablename__ = "tasks"
  __table_args__ = (Index("ix_tasks_organization_status", "organization_id", "status"),)

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
  organization_id: Mapped[str] = mapped_column(
    String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
  )
  title: Mapped[str] = mapped_column(String(500), nullable=False)
  description: Mapped[str] = mapped_column(Text, nullable=False, default="")
  assignee_id: Mapped[str | None] = mapped_column(
    String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
  )
  status: Mapped[str] = mapped_column(String(16), nullable=False, default="TO_DO", index=True)
  priority: Mapped[str] = mapped_column(String(16), nullable=False, default="MEDIUM")
  # Free text on purpose ("2025-02-15", "end of Q4", ...).
  due_date: Mapped[str] = mapped_column(String(255), nullable=False, default="")
  created_by_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False, index=True)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class TaskComment(Base):
  __tablename__ = "task_comments"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
  task_id: Mapped[str] = mapped_column(String(36), ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
  user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
  content: Mapped[str] = mapped_column(Text, nullable=False)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class PerformanceMetric(Base):
  __tablename__ = "performance_metrics"
  __table_args__ = (UniqueConstraint("user_id", "organization_id", name="ux_performance_metrics_user_org"),)

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
  user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
  organization_id: Mapped[str] = mapped_column(
    String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
  )
  completion_rate: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  average_time_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  tasks_completed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  tasks_in_progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  tasks_overdue: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  last_ai_evaluation: Mapped[str | None] = mapped_column(Text, nullable=True)
  evaluation_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class Invite(Base):
  __tablename__ = "invites"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
  email: Mapped[str] = mapped_column(String(255), nullable=False)
  role: Mapped[str] = mapped_column(String(16), nullable=False)
  organization_id: Mapped[str] = mapped_column(
    String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
  )
  invited_by_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False)
  token: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
  used: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
  expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
