"""Task mutations: authorize everything, write the task, then refresh aggregates.

Each mutation runs in two steps. The task write is authoritative and commits on
its own once every requested field has passed its permission check. Derived
state (active-task counters, performance numbers) is then recounted from the
task table in a second, guarded transaction; a failure there is logged and left
for the next recount to heal. Emails are handed to the background dispatcher
only after the task write has committed.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from auratask.collaborators import Collaborators
from auratask.errors import NotFound, ValidationError
from auratask.models import Task, TaskComment, User, utcnow
from auratask.notifications.dispatcher import send_emails
from auratask.notifications.service import OutboundEmail
from auratask.notifications.templates import task_assigned_email, task_progress_email
from auratask.performance.service import recompute_metrics
from auratask.permissions import (
  Actor,
  Capability,
  Role,
  TaskRef,
  require_change_status,
  require_comment,
  require_create_task,
  require_delete_task,
  require_edit_task,
  require_reassign,
  require_view_task,
)
from auratask.workload import is_active, recompute_task_count

logger = logging.getLogger(__name__)

TASK_STATUSES = ("TO_DO", "IN_PROGRESS", "DONE", "BLOCKED")
TASK_PRIORITIES = ("LOW", "MEDIUM", "HIGH", "URGENT")
EDITABLE_FIELDS = ("title", "description", "priority", "due_date")
MAX_TITLE_LENGTH = 500
MAX_DUE_DATE_LENGTH = 255


def _clean_title(value: Any) -> str:
  title = str(value or "").strip()
  if not title:
    raise ValidationError("Task title is required")
  if len(title) > MAX_TITLE_LENGTH:
    raise ValidationError(f"Task title must be at most {MAX_TITLE_LENGTH} characters")
  return title


def _clean_choice(value: Any, allowed: tuple[str, ...], label: str) -> str:
  v = str(value or "").strip().upper()
  if v not in allowed:
    raise ValidationError(f"Invalid {label}: {value!r} (expected one of {', '.join(allowed)})")
  return v


def _clean_due_date(value: Any) -> str:
  v = str(value or "").strip()
  if len(v) > MAX_DUE_DATE_LENGTH:
    raise ValidationError(f"Due date must be at most {MAX_DUE_DATE_LENGTH} characters")
  return v


def _normalize(field: str, value: Any) -> Any:
  if field == "title":
    return _clean_title(value)
  if field == "description":
    return str(value or "")
  if field == "priority":
    return _clean_choice(value, TASK_PRIORITIES, "priority")
  if field == "status":
    return _clean_choice(value, TASK_STATUSES, "status")
  if field == "due_date":
    return _clean_due_date(value)
  if field == "assignee_id":
    return str(value) if value else None
  raise ValidationError(f"Unknown task field: {field}")


async def _member(db: AsyncSession, organization_id: str, user_id: str) -> User:
  res = await db.execute(select(User).where(User.id == user_id, User.organization_id == organization_id))
  u = res.scalar_one_or_none()
  if not u:
    raise NotFound("User not found")
  return u


async def _task_in_org(db: AsyncSession, organization_id: str, task_id: str) -> Task:
  res = await db.execute(select(Task).where(Task.id == task_id, Task.organization_id == organization_id))
  t = res.scalar_one_or_none()
  if not t:
    raise NotFound("Task not found")
  return t


async def _role_of(db: AsyncSession, organization_id: str, user_id: str | None) -> Role | None:
  if not user_id:
    return None
  res = await db.execute(select(User.role).where(User.id == user_id, User.organization_id == organization_id))
  role = res.scalar_one_or_none()
  return Role.parse(role) if role else None


async def task_ref(db: AsyncSession, task: Task) -> TaskRef:
  return TaskRef(
    assignee_id=task.assignee_id,
    created_by_id=task.created_by_id,
    assignee_role=await _role_of(db, task.organization_id, task.assignee_id),
  )


def _unique(ids: Iterable[str | None]) -> list[str]:
  out: list[str] = []
  for i in ids:
    if i and i not in out:
      out.append(i)
  return out


async def refresh_derived_state(
  db: AsyncSession,
  organization_id: str,
  *,
  counter_user_ids: Iterable[str | None] = (),
  metric_user_ids: Iterable[str | None] = (),
) -> None:
  """Recount cached counters and performance numbers after a committed task write."""
  counters = _unique(counter_user_ids)
  metrics = _unique(metric_user_ids)
  if not counters and not metrics:
    return
  try:
    for uid in counters:
      await recompute_task_count(db, uid, organization_id)
    for uid in metrics:
      await recompute_metrics(db, uid, organization_id, use_ai=False)
    await db.commit()
  except Exception:
    await db.rollback()
    logger.exception("derived state refresh failed org=%s counters=%s metrics=%s", organization_id, counters, metrics)


def _dispatch(collab: Collaborators | None, emails: list[OutboundEmail]) -> None:
  if collab is None or not emails:
    return
  send_emails(collab.dispatcher, collab.email, emails)


async def create_task(
  db: AsyncSession,
  actor: Actor,
  *,
  title: str,
  description: str = "",
  assignee_id: str | None = None,
  due_date: str = "",
  priority: str | None = None,
  collab: Collaborators | None = None,
) -> Task:
  clean_title = _clean_title(title)
  clean_priority = _clean_choice(priority or "MEDIUM", TASK_PRIORITIES, "priority")
  clean_due = _clean_due_date(due_date)
  assignee: User | None = None
  if assignee_id:
    assignee = await _member(db, actor.organization_id, assignee_id)
  require_create_task(actor, assignee.id if assignee else None, Role.parse(assignee.role) if assignee else None)

  now = utcnow()
  t = Task(
    organization_id=actor.organization_id,
    title=clean_title,
    description=str(description or ""),
    assignee_id=assignee.id if assignee else None,
    status="TO_DO",
    priority=clean_priority,
    due_date=clean_due,
    created_by_id=actor.id,
    created_at=now,
    updated_at=now,
  )
  db.add(t)
  await db.commit()

  emails: list[OutboundEmail] = []
  if assignee:
    emails.append(
      task_assigned_email(
        to_email=assignee.email,
        to_name=assignee.name,
        task_title=t.title,
        assigned_by=actor.name or actor.email,
        due_date=t.due_date,
        priority=t.priority,
      )
    )
  _dispatch(collab, emails)

  if assignee:
    await refresh_derived_state(db, actor.organization_id, counter_user_ids=[assignee.id])
  await db.refresh(t)
  return t


async def update_task(
  db: AsyncSession,
  actor: Actor,
  task_id: str,
  changes: dict[str, Any],
  *,
  collab: Collaborators | None = None,
) -> Task:
  """Apply a partial update; `changes` holds only the fields the caller sent.

  A field is requested when it is present and differs from the stored value.
  Every requested group (status, assignee, descriptive fields) is authorized
  before anything is written, so a rejected field leaves the task untouched.
  """
  t = await _task_in_org(db, actor.organization_id, task_id)
  requested: dict[str, Any] = {}
  for field, value in changes.items():
    v = _normalize(field, value)
    if v != getattr(t, field):
      requested[field] = v

  ref = await task_ref(db, t)
  new_assignee: User | None = None
  if "status" in requested:
    require_change_status(actor, ref)
  if "assignee_id" in requested:
    if requested["assignee_id"] is not None:
      new_assignee = await _member(db, actor.organization_id, requested["assignee_id"])
    require_reassign(actor, requested["assignee_id"], Role.parse(new_assignee.role) if new_assignee else None)
  if any(f in requested for f in EDITABLE_FIELDS):
    require_edit_task(actor, ref)

  if not requested:
    require_view_task(actor, ref)
    return t

  old_status = t.status
  old_assignee_id = t.assignee_id
  for field, value in requested.items():
    setattr(t, field, value)
  t.updated_at = utcnow()

  creator: User | None = None
  current_assignee: User | None = None
  if "status" in requested:
    creator = await db.get(User, t.created_by_id)
    if t.assignee_id:
      current_assignee = new_assignee or await db.get(User, t.assignee_id)
  await db.commit()

  emails: list[OutboundEmail] = []
  if "status" in requested and creator and creator.id != t.assignee_id:
    emails.append(
      task_progress_email(
        to_email=creator.email,
        to_name=creator.name,
        task_title=t.title,
        employee_name=current_assignee.name if current_assignee else "Unassigned",
        employee_email=current_assignee.email if current_assignee else "",
        old_status=old_status,
        new_status=t.status,
      )
    )
  if new_assignee:
    emails.append(
      task_assigned_email(
        to_email=new_assignee.email,
        to_name=new_assignee.name,
        task_title=t.title,
        assigned_by=actor.name or actor.email,
        due_date=t.due_date,
        priority=t.priority,
      )
    )
  _dispatch(collab, emails)

  counters: list[str | None] = []
  metrics: list[str | None] = []
  if "assignee_id" in requested:
    counters += [old_assignee_id, t.assignee_id]
    metrics += [old_assignee_id, t.assignee_id]
  elif "status" in requested and t.assignee_id:
    if is_active(old_status) != is_active(t.status):
      counters.append(t.assignee_id)
    metrics.append(t.assignee_id)
  await refresh_derived_state(db, actor.organization_id, counter_user_ids=counters, metric_user_ids=metrics)
  await db.refresh(t)
  return t


async def delete_task(db: AsyncSession, actor: Actor, task_id: str) -> None:
  t = await _task_in_org(db, actor.organization_id, task_id)
  require_delete_task(actor, await task_ref(db, t))
  assignee_id = t.assignee_id
  await db.delete(t)
  await db.commit()
  if assignee_id:
    await refresh_derived_state(db, actor.organization_id, counter_user_ids=[assignee_id], metric_user_ids=[assignee_id])


async def list_tasks(
  db: AsyncSession,
  actor: Actor,
  *,
  status: str | None = None,
  assignee_id: str | None = None,
) -> list[Task]:
  q = select(Task).where(Task.organization_id == actor.organization_id)
  if actor.can(Capability.VIEW_ALL_TASKS):
    pass
  elif actor.can(Capability.VIEW_TEAM_TASKS):
    assignee = aliased(User)
    q = q.outerjoin(assignee, assignee.id == Task.assignee_id).where(
      or_(
        Task.assignee_id.is_(None),
        Task.assignee_id == actor.id,
        Task.created_by_id == actor.id,
        assignee.role == Role.EMPLOYEE.value,
      )
    )
  else:
    q = q.where(Task.assignee_id == actor.id)
  if status:
    q = q.where(Task.status == _clean_choice(status, TASK_STATUSES, "status"))
  if assignee_id:
    q = q.where(Task.assignee_id == assignee_id)
  res = await db.execute(q.order_by(Task.created_at.desc(), Task.id.asc()))
  return list(res.scalars().all())


async def get_task(db: AsyncSession, actor: Actor, task_id: str) -> Task:
  t = await _task_in_org(db, actor.organization_id, task_id)
  require_view_task(actor, await task_ref(db, t))
  return t


async def add_comment(db: AsyncSession, actor: Actor, task_id: str, content: str) -> tuple[TaskComment, User]:
  t = await _task_in_org(db, actor.organization_id, task_id)
  require_comment(actor, await task_ref(db, t))
  text = str(content or "").strip()
  if not text:
    raise ValidationError("Comment content is required")
  c = TaskComment(task_id=t.id, user_id=actor.id, content=text)
  db.add(c)
  await db.commit()
  author = await _member(db, actor.organization_id, actor.id)
  return c, author


async def list_comments(db: AsyncSession, actor: Actor, task_id: str) -> list[tuple[TaskComment, User]]:
  t = await get_task(db, actor, task_id)
  res = await db.execute(
    select(TaskComment, User)
    .join(User, User.id == TaskComment.user_id)
    .where(TaskComment.task_id == t.id)
    .order_by(TaskComment.created_at.asc(), TaskComment.id.asc())
  )
  return [(c, u) for c, u in res.all()]
