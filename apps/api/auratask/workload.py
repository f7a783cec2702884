from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from auratask.models import Task, User, utcnow

ACTIVE_STATUSES = frozenset({"TO_DO", "IN_PROGRESS", "BLOCKED"})


def is_active(status: str | None) -> bool:
  return status in ACTIVE_STATUSES


def active_task_count(statuses: Iterable[str]) -> int:
  return sum(1 for s in statuses if is_active(s))


async def recompute_task_count(db: AsyncSession, user_id: str, organization_id: str) -> int:
  """Overwrite the user's cached active-task counter with a full recount.

  Never patched by +1/-1: running this twice, or out of order with another
  mutation, converges on the live count.
  """
  res = await db.execute(
    select(Task.status).where(Task.assignee_id == user_id, Task.organization_id == organization_id)
  )
  count = active_task_count(res.scalars().all())
  await db.execute(
    update(User)
    .where(User.id == user_id, User.organization_id == organization_id)
    .values(tasks_count=count, updated_at=utcnow())
  )
  return count
