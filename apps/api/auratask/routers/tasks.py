from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from auratask.collaborators import Collaborators
from auratask.deps import get_actor, get_collaborators, get_db
from auratask.models import Task, TaskComment, User
from auratask.permissions import Actor
from auratask.schemas import CommentCreateIn, CommentOut, TaskCreateIn, TaskOut, TaskStatus, TaskUpdateIn
from auratask.tasks import service

router = APIRouter(tags=["tasks"])

# camelCase request field -> Task attribute
_UPDATE_FIELDS = [
  ("title", "title"),
  ("description", "description"),
  ("assigneeId", "assignee_id"),
  ("status", "status"),
  ("priority", "priority"),
  ("dueDate", "due_date"),
]


def _task_out(t: Task) -> TaskOut:
  return TaskOut(
    id=t.id,
    organizationId=t.organization_id,
    title=t.title,
    description=t.description,
    assigneeId=t.assignee_id,
    status=t.status,
    priority=t.priority,
    dueDate=t.due_date,
    createdById=t.created_by_id,
    createdAt=t.created_at,
    updatedAt=t.updated_at,
  )


def _comment_out(c: TaskComment, u: User) -> CommentOut:
  return CommentOut(id=c.id, taskId=c.task_id, userId=c.user_id, userName=u.name, content=c.content, createdAt=c.created_at)


@router.get("/tasks", response_model=list[TaskOut])
async def list_tasks(
  status: TaskStatus | None = None,
  assigneeId: str | None = None,
  actor: Actor = Depends(get_actor),
  db: AsyncSession = Depends(get_db),
) -> list[TaskOut]:
  tasks = await service.list_tasks(db, actor, status=status, assignee_id=assigneeId)
  return [_task_out(t) for t in tasks]


@router.post("/tasks", response_model=TaskOut)
async def create_task(
  payload: TaskCreateIn,
  actor: Actor = Depends(get_actor),
  db: AsyncSession = Depends(get_db),
  collab: Collaborators = Depends(get_collaborators),
) -> TaskOut:
  t = await service.create_task(
    db,
    actor,
    title=payload.title,
    description=payload.description,
    assignee_id=payload.assigneeId,
    due_date=payload.dueDate,
    priority=payload.priority,
    collab=collab,
  )
  return _task_out(t)


@router.get("/tasks/{task_id}", response_model=TaskOut)
async def get_task(task_id: str, actor: Actor = Depends(get_actor), db: AsyncSession = Depends(get_db)) -> TaskOut:
  return _task_out(await service.get_task(db, actor, task_id))


@router.patch("/tasks/{task_id}", response_model=TaskOut)
async def update_task(
  task_id: str,
  payload: TaskUpdateIn,
  actor: Actor = Depends(get_actor),
  db: AsyncSession = Depends(get_db),
  collab: Collaborators = Depends(get_collaborators),
) -> TaskOut:
  fields_set = payload.model_fields_set
  changes = {attr: getattr(payload, name) for name, attr in _UPDATE_FIELDS if name in fields_set}
  t = await service.update_task(db, actor, task_id, changes, collab=collab)
  return _task_out(t)


@router.delete("/tasks/{task_id}")
async def delete_task(task_id: str, actor: Actor = Depends(get_actor), db: AsyncSession = Depends(get_db)) -> dict:
  await service.delete_task(db, actor, task_id)
  return {"ok": True}


@router.get("/tasks/{task_id}/comments", response_model=list[CommentOut])
async def list_comments(task_id: str, actor: Actor = Depends(get_actor), db: AsyncSession = Depends(get_db)) -> list[CommentOut]:
  rows = await service.list_comments(db, actor, task_id)
  return [_comment_out(c, u) for c, u in rows]


@router.post("/tasks/{task_id}/comments", response_model=CommentOut)
async def add_comment(
  task_id: str,
  payload: CommentCreateIn,
  actor: Actor = Depends(get_actor),
  db: AsyncSession = Depends(get_db),
) -> CommentOut:
  c, u = await service.add_comment(db, actor, task_id, payload.content)
  return _comment_out(c, u)
