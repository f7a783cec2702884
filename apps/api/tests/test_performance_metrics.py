from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from sqlalchemy import select, text

from auratask.errors import DependencyFailure, Forbidden
from auratask.models import PerformanceMetric, Task
from auratask.performance import service as perf
from auratask.tasks import service as tasks
from conftest import SessionLocal, Team, actor

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _t(status: str, due: str = "", created: datetime | None = None, updated: datetime | None = None) -> SimpleNamespace:
  return SimpleNamespace(status=status, due_date=due, created_at=created or NOW, updated_at=updated or NOW, title="t", priority="MEDIUM")


def test_strict_date_is_overdue_and_free_text_never_is() -> None:
  assert perf.is_overdue("IN_PROGRESS", "2020-01-01", NOW)
  assert not perf.is_overdue("IN_PROGRESS", "end of Q4", NOW)
  assert not perf.is_overdue("DONE", "2020-01-01", NOW)
  assert not perf.is_overdue("TO_DO", "2999-01-01", NOW)
  assert not perf.is_overdue("TO_DO", "2020-13-45", NOW)
  assert not perf.is_overdue("TO_DO", "2020-01-01 09:00", NOW)


def test_metric_numbers() -> None:
  tasks_ = [
    _t("DONE", created=NOW - timedelta(days=3), updated=NOW),
    _t("DONE", created=NOW - timedelta(hours=2), updated=NOW),  # rounds up to a full day
    _t("DONE", created=NOW - timedelta(days=4, hours=1), updated=NOW),  # ceil -> 5
    _t("IN_PROGRESS", due="2020-01-01"),
    _t("BLOCKED", due="end of Q4"),
  ]
  n = perf.compute_metric_numbers(tasks_, NOW)
  assert n.total == 5
  assert n.completed == 3
  assert n.in_progress == 1
  assert n.blocked == 1
  assert n.overdue == 1
  assert n.completion_rate == 60
  assert n.average_time_days == 3


def test_metric_numbers_without_tasks() -> None:
  n = perf.compute_metric_numbers([], NOW)
  assert n.completion_rate == 0
  assert n.average_time_days == 0


def test_basic_evaluation_tiers() -> None:
  top = perf.basic_evaluation(95, 3, 19, 0)
  assert top.startswith("Excellent performance! 95%")
  assert "efficiently" in top
  assert top.endswith("Recommended for high-priority and complex assignments.")

  mid = perf.basic_evaluation(80, 8, 8, 2)
  assert mid.startswith("Strong performance with a 80%")
  assert "reasonable at 8 days" in mid
  assert "2 task(s) are currently overdue" in mid
  assert mid.endswith("Suitable for standard task assignments.")

  low = perf.basic_evaluation(40, 12, 2, 0)
  assert low.startswith("Performance needs attention.")
  assert "could be improved (currently 12 days average)" in low
  assert "Has successfully completed 2 tasks." in low
  assert low.endswith("Consider providing additional support and resources.")

  assert perf.basic_evaluation(65, 1, 1, 0).startswith("Good performance with room for improvement.")


class _FailingAI:
  async def generate(self, *, prompt: str, context: dict) -> str:
    raise DependencyFailure("gemini", "quota exceeded")


class _RecordingAI:
  def __init__(self) -> None:
    self.prompts: list[str] = []

  async def generate(self, *, prompt: str, context: dict) -> str:
    self.prompts.append(prompt)
    return f"Narrative for {context['userName']}"


@pytest.mark.anyio
async def test_ai_failure_falls_back_to_basic_evaluation(team: Team) -> None:
  async with SessionLocal() as db:
    await tasks.create_task(db, actor(team.owner), title="a", assignee_id=team.bob.id)
  async with SessionLocal() as db:
    m = await perf.recompute_metrics(db, team.bob.id, team.org_id, use_ai=True, ai=_FailingAI())
    await db.commit()
  assert m.last_ai_evaluation == perf.basic_evaluation(0, 0, 0, 0)


@pytest.mark.anyio
async def test_prompt_lists_at_most_ten_recent_tasks(team: Team) -> None:
  async with SessionLocal() as db:
    for i in range(12):
      await tasks.create_task(db, actor(team.owner), title=f"task-{i}", assignee_id=team.bob.id)
  ai = _RecordingAI()
  async with SessionLocal() as db:
    m = await perf.recompute_metrics(db, team.bob.id, team.org_id, use_ai=True, ai=ai)
    await db.commit()
  assert m.last_ai_evaluation == "Narrative for Bob"
  assert len(ai.prompts) == 1
  assert ai.prompts[0].count(" - Status: ") == 10


@pytest.mark.anyio
async def test_single_metric_row_per_member(team: Team) -> None:
  async with SessionLocal() as db:
    await perf.recompute_metrics(db, team.bob.id, team.org_id)
    await perf.recompute_metrics(db, team.bob.id, team.org_id)
    await db.commit()
    res = await db.execute(select(PerformanceMetric).where(PerformanceMetric.user_id == team.bob.id))
    assert len(res.scalars().all()) == 1


@pytest.mark.anyio
async def test_overdue_counts_flow_into_stored_metric(team: Team) -> None:
  async with SessionLocal() as db:
    a = await tasks.create_task(db, actor(team.owner), title="late", assignee_id=team.bob.id, due_date="2020-01-01")
    await tasks.create_task(db, actor(team.owner), title="vague", assignee_id=team.bob.id, due_date="end of Q4")
    await tasks.update_task(db, actor(team.bob), a.id, {"status": "IN_PROGRESS"})
  async with SessionLocal() as db:
    res = await db.execute(select(PerformanceMetric).where(PerformanceMetric.user_id == team.bob.id))
    m = res.scalar_one()
  assert m.tasks_overdue == 1
  assert m.tasks_in_progress == 1


@pytest.mark.anyio
async def test_monitor_isolates_one_failing_member(team: Team, monkeypatch: pytest.MonkeyPatch) -> None:
  async with SessionLocal() as db:
    await tasks.create_task(db, actor(team.owner), title="x", assignee_id=team.bob.id)

  real = perf.load_member_tasks

  async def flaky(db, user_id: str, organization_id: str) -> list[Task]:
    if user_id == team.carol.id:
      raise RuntimeError("disk on fire")
    return await real(db, user_id, organization_id)

  monkeypatch.setattr(perf, "load_member_tasks", flaky)
  async with SessionLocal() as db:
    result = await perf.monitor_all_members(db, actor(team.alice), ai=_RecordingAI())

  assert result["evaluated"] == 5
  assert result["success"] is False
  assert result["errors"] == ["Failed to evaluate Carol: disk on fire"]
  async with SessionLocal() as db:
    res = await db.execute(select(PerformanceMetric.user_id))
    evaluated_ids = set(res.scalars().all())
  assert team.carol.id not in evaluated_ids
  assert {team.owner.id, team.admin.id, team.alice.id, team.dave.id, team.bob.id} <= evaluated_ids


@pytest.mark.anyio
async def test_employee_cannot_monitor(team: Team) -> None:
  async with SessionLocal() as db:
    with pytest.raises(Forbidden):
      await perf.monitor_all_members(db, actor(team.bob), ai=None)
    with pytest.raises(Forbidden):
      await perf.fetch_performance_metrics(db, actor(team.bob), ai=None)


@pytest.mark.anyio
async def test_fetch_uses_ai_only_for_stale_or_missing_metrics(team: Team) -> None:
  async with SessionLocal() as db:
    await perf.recompute_metrics(db, team.bob.id, team.org_id, use_ai=True, ai=_RecordingAI())
    await db.commit()

  ai = _RecordingAI()
  async with SessionLocal() as db:
    metrics = await perf.fetch_performance_metrics(db, actor(team.owner), ai=ai)
  assert len(metrics) == 6
  # Bob's narrative is fresh; the five members without a metric get one.
  assert len(ai.prompts) == 5
  by_user = {m.user_id: m for m in metrics}
  assert by_user[team.bob.id].last_ai_evaluation == "Narrative for Bob"
  assert by_user[team.carol.id].evaluation_date is not None

  forced = _RecordingAI()
  async with SessionLocal() as db:
    await perf.fetch_performance_metrics(db, actor(team.owner), ai=forced, force=True)
  assert len(forced.prompts) == 6


@pytest.mark.anyio
async def test_monitor_continues_after_a_database_error(team: Team, monkeypatch: pytest.MonkeyPatch) -> None:
  async with SessionLocal() as db:
    await tasks.create_task(db, actor(team.owner), title="x", assignee_id=team.bob.id)

  real = perf.load_member_tasks

  async def broken_query(db, user_id: str, organization_id: str) -> list[Task]:
    if user_id == team.alice.id:
      await db.execute(text("SELECT * FROM no_such_table"))
    return await real(db, user_id, organization_id)

  monkeypatch.setattr(perf, "load_member_tasks", broken_query)
  async with SessionLocal() as db:
    result = await perf.monitor_all_members(db, actor(team.owner), ai=None)

  assert result["evaluated"] == 5
  assert len(result["errors"]) == 1
  assert result["errors"][0].startswith("Failed to evaluate Alice:")
  async with SessionLocal() as db:
    res = await db.execute(select(PerformanceMetric))
    by_user = {m.user_id: m for m in res.scalars().all()}
  assert team.alice.id not in by_user
  # Members listed after the failing one are still evaluated from real data.
  assert by_user[team.bob.id].completion_rate == 0
  assert by_user[team.bob.id].last_ai_evaluation == perf.basic_evaluation(0, 0, 0, 0)
  assert team.carol.id in by_user


def test_rates_round_half_up() -> None:
  one_in_eight = [_t("DONE")] + [_t("TO_DO") for _ in range(7)]
  assert perf.compute_metric_numbers(one_in_eight, NOW).completion_rate == 13

  two_and_three = [_t("DONE", created=NOW - timedelta(days=2)), _t("DONE", created=NOW - timedelta(days=3))]
  assert perf.compute_metric_numbers(two_and_three, NOW).average_time_days == 3

  ten_and_eleven = [_t("DONE", created=NOW - timedelta(days=10)), _t("DONE", created=NOW - timedelta(days=11))]
  n = perf.compute_metric_numbers(ten_and_eleven, NOW)
  assert n.average_time_days == 11
  assert "could be improved (currently 11 days average)" in perf.basic_evaluation(n.completion_rate, n.average_time_days, n.completed, n.overdue)
