from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from auratask.collaborators import Collaborators
from auratask.deps import get_actor, get_collaborators, get_db
from auratask.models import PerformanceMetric
from auratask.performance import service
from auratask.permissions import Actor
from auratask.schemas import MonitorOut, PerformanceMetricOut

router = APIRouter(tags=["performance"])


def _metric_out(m: PerformanceMetric) -> PerformanceMetricOut:
  return PerformanceMetricOut(
    id=m.id,
    userId=m.user_id,
    organizationId=m.organization_id,
    completionRate=m.completion_rate,
    averageTimeDays=m.average_time_days,
    tasksCompleted=m.tasks_completed,
    tasksInProgress=m.tasks_in_progress,
    tasksOverdue=m.tasks_overdue,
    lastAIEvaluation=m.last_ai_evaluation,
    evaluationDate=m.evaluation_date,
    updatedAt=m.updated_at,
  )


@router.get("/performance", response_model=list[PerformanceMetricOut])
async def list_metrics(
  force: bool = False,
  actor: Actor = Depends(get_actor),
  db: AsyncSession = Depends(get_db),
  collab: Collaborators = Depends(get_collaborators),
) -> list[PerformanceMetricOut]:
  metrics = await service.fetch_performance_metrics(db, actor, ai=collab.ai, force=force)
  return [_metric_out(m) for m in metrics]


@router.post("/performance/monitor", response_model=MonitorOut)
async def monitor(
  actor: Actor = Depends(get_actor),
  db: AsyncSession = Depends(get_db),
  collab: Collaborators = Depends(get_collaborators),
) -> MonitorOut:
  result = await service.monitor_all_members(db, actor, ai=collab.ai)
  return MonitorOut(
    success=result["success"],
    message=f"Performance monitoring completed. Evaluated {result['evaluated']} member(s).",
    evaluated=result["evaluated"],
    errors=result["errors"],
  )
