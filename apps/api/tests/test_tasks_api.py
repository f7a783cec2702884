from __future__ import annotations

import pytest
from httpx import AsyncClient

from auratask.collaborators import Collaborators
from conftest import Team, fetch_user, headers


@pytest.mark.anyio
async def test_missing_identity_headers_is_401(client: AsyncClient, team: Team) -> None:
  res = await client.get("/tasks")
  assert res.status_code == 401
  res2 = await client.get("/tasks", headers={"X-Actor-Id": team.bob.id, "X-Organization-Id": "other-org"})
  assert res2.status_code == 401


@pytest.mark.anyio
async def test_scenario_over_http(client: AsyncClient, team: Team, collab: Collaborators) -> None:
  res = await client.post("/tasks", json={"title": "Audit logs", "assigneeId": team.bob.id}, headers=headers(team.alice))
  assert res.status_code == 200, res.text
  task = res.json()
  assert task["status"] == "TO_DO"
  assert task["priority"] == "MEDIUM"
  assert (await fetch_user(team.bob.id)).tasks_count == 1

  done = await client.patch(f"/tasks/{task['id']}", json={"status": "DONE"}, headers=headers(team.bob))
  assert done.status_code == 200, done.text
  assert done.json()["status"] == "DONE"
  assert (await fetch_user(team.bob.id)).tasks_count == 0

  await collab.dispatcher.drain()
  subjects = [(m.to_email, m.subject) for m in collab.email.outbox]
  assert (team.bob.email, "New Task Assigned: Audit logs") in subjects
  assert any(to == team.alice.email and s.startswith("Task Update: Audit logs") for to, s in subjects)


@pytest.mark.anyio
async def test_employee_title_change_is_403_and_task_unchanged(client: AsyncClient, team: Team) -> None:
  task = (await client.post("/tasks", json={"title": "Audit logs", "assigneeId": team.bob.id}, headers=headers(team.alice))).json()
  res = await client.patch(f"/tasks/{task['id']}", json={"status": "DONE", "title": "Nope"}, headers=headers(team.bob))
  assert res.status_code == 403
  detail = res.json()["detail"]
  assert detail["code"] == "forbidden"
  assert detail["operation"] == "edit task"

  again = await client.get(f"/tasks/{task['id']}", headers=headers(team.bob))
  assert again.status_code == 200
  assert again.json()["title"] == "Audit logs"
  assert again.json()["status"] == "TO_DO"


@pytest.mark.anyio
async def test_manager_assigning_to_manager_is_400(client: AsyncClient, team: Team) -> None:
  res = await client.post("/tasks", json={"title": "Peer", "assigneeId": team.dave.id}, headers=headers(team.alice))
  assert res.status_code == 400
  assert res.json()["detail"]["code"] == "invalid_assignment"


@pytest.mark.anyio
async def test_unknown_task_is_404(client: AsyncClient, team: Team) -> None:
  res = await client.patch("/tasks/does-not-exist", json={"status": "DONE"}, headers=headers(team.owner))
  assert res.status_code == 404
  assert res.json()["detail"]["code"] == "not_found"


@pytest.mark.anyio
async def test_request_validation_is_422(client: AsyncClient, team: Team) -> None:
  res = await client.post("/tasks", json={"title": ""}, headers=headers(team.owner))
  assert res.status_code == 422
  res2 = await client.post("/tasks", json={"title": "ok", "priority": "CRITICAL"}, headers=headers(team.owner))
  assert res2.status_code == 422


@pytest.mark.anyio
async def test_explicit_null_assignee_unassigns(client: AsyncClient, team: Team) -> None:
  task = (await client.post("/tasks", json={"title": "Loose", "assigneeId": team.bob.id}, headers=headers(team.owner))).json()
  res = await client.patch(f"/tasks/{task['id']}", json={"assigneeId": None}, headers=headers(team.owner))
  assert res.status_code == 200, res.text
  assert res.json()["assigneeId"] is None
  assert (await fetch_user(team.bob.id)).tasks_count == 0


@pytest.mark.anyio
async def test_reassign_notifies_new_assignee_only(client: AsyncClient, team: Team, collab: Collaborators) -> None:
  task = (await client.post("/tasks", json={"title": "Rotate keys", "assigneeId": team.carol.id}, headers=headers(team.alice))).json()
  await collab.dispatcher.drain()
  collab.email.outbox.clear()

  res = await client.patch(f"/tasks/{task['id']}", json={"assigneeId": team.bob.id}, headers=headers(team.alice))
  assert res.status_code == 200, res.text
  await collab.dispatcher.drain()
  assert [m.to_email for m in collab.email.outbox] == [team.bob.email]
  assert (await fetch_user(team.carol.id)).tasks_count == 0
  assert (await fetch_user(team.bob.id)).tasks_count == 1


@pytest.mark.anyio
async def test_self_assigned_status_change_sends_no_progress_email(client: AsyncClient, team: Team, collab: Collaborators) -> None:
  task = (await client.post("/tasks", json={"title": "Mine", "assigneeId": team.alice.id}, headers=headers(team.alice))).json()
  await collab.dispatcher.drain()
  collab.email.outbox.clear()
  res = await client.patch(f"/tasks/{task['id']}", json={"status": "IN_PROGRESS"}, headers=headers(team.alice))
  assert res.status_code == 200
  await collab.dispatcher.drain()
  assert collab.email.outbox == []


@pytest.mark.anyio
async def test_email_failure_does_not_fail_mutation(client: AsyncClient, team: Team, collab: Collaborators) -> None:
  class _Down:
    async def send(self, msg):
      raise RuntimeError("smtp relay down")

  collab.email = _Down()
  res = await client.post("/tasks", json={"title": "Still saved", "assigneeId": team.bob.id}, headers=headers(team.owner))
  assert res.status_code == 200, res.text
  await collab.dispatcher.drain()
  listed = await client.get("/tasks", headers=headers(team.bob))
  assert [t["title"] for t in listed.json()] == ["Still saved"]


@pytest.mark.anyio
async def test_list_and_delete_over_http(client: AsyncClient, team: Team) -> None:
  mine = (await client.post("/tasks", json={"title": "Alice made"}, headers=headers(team.alice))).json()
  theirs = (await client.post("/tasks", json={"title": "Owner made", "assigneeId": team.dave.id}, headers=headers(team.owner))).json()

  listed = await client.get("/tasks", headers=headers(team.alice))
  assert listed.status_code == 200
  assert {t["id"] for t in listed.json()} == {mine["id"]}

  forbidden = await client.delete(f"/tasks/{theirs['id']}", headers=headers(team.alice))
  assert forbidden.status_code == 403
  ok = await client.delete(f"/tasks/{mine['id']}", headers=headers(team.alice))
  assert ok.status_code == 200
  assert ok.json() == {"ok": True}

  filtered = await client.get("/tasks", params={"status": "TO_DO"}, headers=headers(team.owner))
  assert [t["id"] for t in filtered.json()] == [theirs["id"]]


@pytest.mark.anyio
async def test_health_and_version(client: AsyncClient) -> None:
  assert (await client.get("/health")).json() == {"ok": True}
  v = (await client.get("/version")).json()
  assert v["version"]
  assert v["buildSha"]
