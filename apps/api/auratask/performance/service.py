"""Performance metrics: a fresh full pass over a member's tasks, never a delta.

Metrics are advisory. They are recomputed after task mutations (numbers only)
and on demand by monitoring (numbers plus a narrative from the AI provider,
with a deterministic fallback when the provider is missing or fails).
"""

from __future__ import annotations

import asyncio
import logging
import math
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from auratask.ai.providers import AIProvider
from auratask.config import settings
from auratask.models import PerformanceMetric, Task, User, as_utc, utcnow
from auratask.permissions import Actor, require_monitor_performance

logger = logging.getLogger(__name__)

# Free-text due dates ("end of Q4") are never overdue; only strict ISO dates are checked.
_STRICT_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

RECENT_TASKS_IN_PROMPT = 10


@dataclass(frozen=True)
class MetricNumbers:
  total: int
  completed: int
  in_progress: int
  blocked: int
  overdue: int
  completion_rate: int
  average_time_days: int


def parse_strict_due_date(due_date: str | None) -> datetime | None:
  text = (due_date or "").strip()
  if not _STRICT_DATE.match(text):
    return None
  try:
    return datetime.strptime(text, "%Y-%m-%d").replace(tzinfo=timezone.utc)
  except ValueError:
    return None


def is_overdue(status: str, due_date: str | None, now: datetime) -> bool:
  if status == "DONE":
    return False
  due = parse_strict_due_date(due_date)
  return due is not None and due < now


def _completion_days(created_at: datetime | None, updated_at: datetime | None) -> int | None:
  created, updated = as_utc(created_at), as_utc(updated_at)
  if created is None or updated is None:
    return None
  days = math.ceil((updated - created).total_seconds() / 86400)
  return days if days > 0 else 1


def _round_half_up(x: float) -> int:
  # Halves round up: 12.5 -> 13.
  return math.floor(x + 0.5)


def compute_metric_numbers(tasks: Iterable[Task], now: datetime) -> MetricNumbers:
  total = completed = in_progress = blocked = overdue = 0
  durations: list[int] = []
  for t in tasks:
    total += 1
    if t.status == "DONE":
      completed += 1
      d = _completion_days(t.created_at, t.updated_at)
      if d is not None:
        durations.append(d)
    elif t.status == "IN_PROGRESS":
      in_progress += 1
    elif t.status == "BLOCKED":
      blocked += 1
    if is_overdue(t.status, t.due_date, now):
      overdue += 1
  completion_rate = _round_half_up(100 * completed / total) if total else 0
  average_time_days = _round_half_up(sum(durations) / len(durations)) if durations else 0
  return MetricNumbers(
    total=total,
    completed=completed,
    in_progress=in_progress,
    blocked=blocked,
    overdue=overdue,
    completion_rate=completion_rate,
    average_time_days=average_time_days,
  )


def basic_evaluation(completion_rate: int, average_time_days: int, tasks_completed: int, tasks_overdue: int) -> str:
  if completion_rate >= 90:
    text = f"Excellent performance! {completion_rate}% completion rate demonstrates strong reliability and commitment. "
  elif completion_rate >= 75:
    text = f"Strong performance with a {completion_rate}% completion rate. "
  elif completion_rate >= 60:
    text = f"Good performance with room for improvement. Current completion rate is {completion_rate}%. "
  else:
    text = f"Performance needs attention. Completion rate of {completion_rate}% indicates challenges that should be addressed. "

  if average_time_days <= 5:
    text += f"Tasks are completed efficiently with an average time of {average_time_days} days. "
  elif average_time_days <= 10:
    text += f"Task completion time is reasonable at {average_time_days} days on average. "
  else:
    text += f"Task completion time could be improved (currently {average_time_days} days average). "

  if tasks_overdue > 0:
    text += f"Attention needed: {tasks_overdue} task(s) are currently overdue. "

  text += f"Has successfully completed {tasks_completed} tasks. "

  if completion_rate >= 85 and average_time_days <= 7 and tasks_overdue == 0:
    text += "Recommended for high-priority and complex assignments."
  elif completion_rate >= 70:
    text += "Suitable for standard task assignments."
  else:
    text += "Consider providing additional support and resources."
  return text


def _basic_for(numbers: MetricNumbers) -> str:
  return basic_evaluation(numbers.completion_rate, numbers.average_time_days, numbers.completed, numbers.overdue)


def _recent(tasks: Sequence[Task]) -> list[Task]:
  epoch = datetime.min.replace(tzinfo=timezone.utc)
  ordered = sorted(tasks, key=lambda t: as_utc(t.updated_at) or epoch, reverse=True)
  return ordered[:RECENT_TASKS_IN_PROMPT]


def build_evaluation_prompt(user_name: str, numbers: MetricNumbers, tasks: Sequence[Task]) -> str:
  lines = [
    f"Analyze the following performance data for {user_name} and provide a professional evaluation.",
    "",
    "Performance Metrics:",
    f"- Total Tasks Assigned: {numbers.total}",
    f"- Tasks Completed: {numbers.completed}",
    f"- Tasks In Progress: {numbers.in_progress}",
    f"- Tasks Blocked: {numbers.blocked}",
    f"- Completion Rate: {numbers.completion_rate}%",
    f"- Average Completion Time: {numbers.average_time_days} days",
    f"- Overdue Tasks: {numbers.overdue}",
    "",
    "Recent Task Activity:",
  ]
  for i, t in enumerate(_recent(tasks), start=1):
    lines.append(f"{i}. \"{t.title}\" - Status: {t.status}, Priority: {t.priority or 'MEDIUM'}, Due: {t.due_date or 'n/a'}")
  lines += [
    "",
    "Write 2-3 paragraphs covering overall performance, strengths, areas for improvement, "
    "workload and capacity, and suggestions for task assignment. Be constructive and data-driven.",
  ]
  return "\n".join(lines)


async def generate_narrative(ai: AIProvider | None, *, user_name: str, numbers: MetricNumbers, tasks: Sequence[Task]) -> str:
  """Narrative from the AI provider, or the rule-based text when it is missing or fails."""
  if ai is None:
    return _basic_for(numbers)
  context: dict[str, Any] = {
    "kind": "performance_evaluation",
    "system": "You are Aura, an intelligent Performance Analyst for a task management system.",
    "userName": user_name,
    "totalTasks": numbers.total,
    "completionRate": numbers.completion_rate,
    "averageTimeDays": numbers.average_time_days,
    "tasksOverdue": numbers.overdue,
  }
  try:
    text = await ai.generate(prompt=build_evaluation_prompt(user_name, numbers, tasks), context=context)
  except Exception:
    logger.exception("AI evaluation failed for %s; using basic evaluation", user_name)
    return _basic_for(numbers)
  text = (text or "").strip()
  return text or _basic_for(numbers)


async def load_member_tasks(db: AsyncSession, user_id: str, organization_id: str) -> list[Task]:
  res = await db.execute(select(Task).where(Task.assignee_id == user_id, Task.organization_id == organization_id))
  return list(res.scalars().all())


async def upsert_metric(
  db: AsyncSession,
  *,
  user_id: str,
  organization_id: str,
  numbers: MetricNumbers,
  narrative: str | None,
  now: datetime,
) -> PerformanceMetric:
  """Write the numbers; `narrative` is None for a numbers-only refresh.

  A numbers-only refresh keeps the stored narrative and its evaluation_date, so
  the age of the last generated narrative stays visible to callers deciding
  whether to generate a new one. A new row gets the rule-based text undated.
  """
  res = await db.execute(
    select(PerformanceMetric).where(PerformanceMetric.user_id == user_id, PerformanceMetric.organization_id == organization_id)
  )
  m = res.scalar_one_or_none()
  if not m:
    m = PerformanceMetric(user_id=user_id, organization_id=organization_id)
    db.add(m)
  m.completion_rate = numbers.completion_rate
  m.average_time_days = numbers.average_time_days
  m.tasks_completed = numbers.completed
  m.tasks_in_progress = numbers.in_progress
  m.tasks_overdue = numbers.overdue
  if narrative is not None:
    m.last_ai_evaluation = narrative
    m.evaluation_date = now
  elif m.last_ai_evaluation is None:
    m.last_ai_evaluation = _basic_for(numbers)
  m.updated_at = now
  await db.flush()
  return m


async def recompute_metrics(
  db: AsyncSession,
  user_id: str,
  organization_id: str,
  *,
  use_ai: bool = False,
  ai: AIProvider | None = None,
  user_name: str | None = None,
  now: datetime | None = None,
) -> PerformanceMetric:
  now = now or utcnow()
  tasks = await load_member_tasks(db, user_id, organization_id)
  numbers = compute_metric_numbers(tasks, now)
  if use_ai:
    if user_name is None:
      user = await db.get(User, user_id)
      user_name = user.name if user else "User"
    narrative: str | None = await generate_narrative(ai, user_name=user_name, numbers=numbers, tasks=tasks)
  else:
    narrative = None
  return await upsert_metric(db, user_id=user_id, organization_id=organization_id, numbers=numbers, narrative=narrative, now=now)


def _needs_ai(metric: PerformanceMetric | None, *, force: bool, now: datetime) -> bool:
  if force or metric is None or metric.evaluation_date is None:
    return True
  return now - as_utc(metric.evaluation_date) > timedelta(hours=settings.ai_evaluation_max_age_hours)


async def _org_users(db: AsyncSession, organization_id: str) -> list[User]:
  res = await db.execute(select(User).where(User.organization_id == organization_id).order_by(User.created_at.asc()))
  return list(res.scalars().all())


async def _evaluate_members(
  db: AsyncSession,
  *,
  organization_id: str,
  users: Sequence[User],
  ai: AIProvider | None,
  use_ai_for: dict[str, bool],
  now: datetime,
) -> tuple[int, list[str]]:
  errors: list[str] = []
  # (id, name) are copied out; a rollback below expires the User rows.
  members = [(u.id, u.name) for u in users]
  gathered: list[tuple[str, str, MetricNumbers, list[Task]]] = []
  for user_id, name in members:
    try:
      # A failed statement must not abort the outer transaction for the remaining members.
      async with db.begin_nested():
        tasks = await load_member_tasks(db, user_id, organization_id)
      gathered.append((user_id, name, compute_metric_numbers(tasks, now), tasks))
    except Exception as e:
      errors.append(f"Failed to evaluate {name}: {e}")
      logger.exception("performance stats failed for user %s", user_id)

  sem = asyncio.Semaphore(max(1, settings.monitor_concurrency))

  async def narrate(user_id: str, name: str, numbers: MetricNumbers, tasks: list[Task]) -> str | None:
    if not use_ai_for.get(user_id):
      return None
    async with sem:
      return await generate_narrative(ai, user_name=name, numbers=numbers, tasks=tasks)

  narratives = await asyncio.gather(*(narrate(*g) for g in gathered))

  evaluated = 0
  for (user_id, name, numbers, _), narrative in zip(gathered, narratives):
    try:
      await upsert_metric(db, user_id=user_id, organization_id=organization_id, numbers=numbers, narrative=narrative, now=now)
      await db.commit()
      evaluated += 1
    except Exception as e:
      await db.rollback()
      errors.append(f"Failed to evaluate {name}: {e}")
      logger.exception("performance metric upsert failed for user %s", user_id)
  return evaluated, errors


async def monitor_all_members(db: AsyncSession, actor: Actor, *, ai: AIProvider | None) -> dict[str, Any]:
  require_monitor_performance(actor)
  now = utcnow()
  users = await _org_users(db, actor.organization_id)
  evaluated, errors = await _evaluate_members(
    db,
    organization_id=actor.organization_id,
    users=users,
    ai=ai,
    use_ai_for={u.id: True for u in users},
    now=now,
  )
  return {"success": not errors, "evaluated": evaluated, "errors": errors}


async def fetch_performance_metrics(db: AsyncSession, actor: Actor, *, ai: AIProvider | None, force: bool = False) -> list[PerformanceMetric]:
  require_monitor_performance(actor)
  now = utcnow()
  users = await _org_users(db, actor.organization_id)
  res = await db.execute(select(PerformanceMetric).where(PerformanceMetric.organization_id == actor.organization_id))
  existing = {m.user_id: m for m in res.scalars().all()}
  await _evaluate_members(
    db,
    organization_id=actor.organization_id,
    users=users,
    ai=ai,
    use_ai_for={u.id: _needs_ai(existing.get(u.id), force=force, now=now) for u in users},
    now=now,
  )
  res = await db.execute(
    select(PerformanceMetric)
    .where(PerformanceMetric.organization_id == actor.organization_id)
    .order_by(PerformanceMetric.completion_rate.desc())
  )
  return list(res.scalars().all())
