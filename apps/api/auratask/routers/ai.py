from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from auratask.ai.assistant import propose_task
from auratask.collaborators import Collaborators
from auratask.deps import get_actor, get_collaborators, get_db
from auratask.permissions import Actor
from auratask.schemas import TaskAssistantIn, TaskAssistantOut

router = APIRouter(prefix="/ai", tags=["ai"])


@router.post("/task-assistant", response_model=TaskAssistantOut)
async def task_assistant(
  payload: TaskAssistantIn,
  actor: Actor = Depends(get_actor),
  db: AsyncSession = Depends(get_db),
  collab: Collaborators = Depends(get_collaborators),
) -> TaskAssistantOut:
  reply = await propose_task(db, actor, prompt=payload.prompt, ai=collab.ai)
  return TaskAssistantOut(**reply)
