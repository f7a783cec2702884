from __future__ import annotations

import json

import pytest
from httpx import AsyncClient

from auratask.ai.assistant import extract_json_text, parse_reply, propose_task
from auratask.collaborators import Collaborators
from auratask.errors import DependencyFailure, ValidationError
from auratask.tasks import service
from conftest import SessionLocal, Team, actor, headers


def test_extract_json_from_fences_and_prose() -> None:
  assert extract_json_text('```json\n{"a": 1}\n```') == '{"a": 1}'
  assert extract_json_text('```\n{"a": 2}\n```') == '{"a": 2}'
  assert extract_json_text('Sure! Here you go: {"a": 3} hope that helps') == '{"a": 3}'


def test_non_json_reply_becomes_conversation() -> None:
  out = parse_reply("I could not decide.")
  assert out == {"action": "CONVERSATION", "conversationReply": "I could not decide."}


def test_unknown_action_is_downgraded() -> None:
  out = parse_reply(json.dumps({"action": "DELETE_EVERYTHING", "conversationReply": "ok"}))
  assert out["action"] == "CONVERSATION"


class _ScriptedAI:
  def __init__(self, reply: str) -> None:
    self.reply = reply
    self.contexts: list[dict] = []

  async def generate(self, *, prompt: str, context: dict) -> str:
    self.contexts.append(context)
    return self.reply


@pytest.mark.anyio
async def test_unknown_assignee_goes_to_least_busy(team: Team) -> None:
  async with SessionLocal() as db:
    await service.create_task(db, actor(team.alice), title="busy", assignee_id=team.bob.id)
  ai = _ScriptedAI(
    json.dumps(
      {
        "action": "LOG_TASK",
        "conversationReply": "Drafted.",
        "proposedTask": {"title": "Write docs", "description": "", "assigneeId": "made-up", "dueDate": "by Friday"},
      }
    )
  )
  async with SessionLocal() as db:
    out = await propose_task(db, actor(team.alice), prompt="add docs task", ai=ai)

  # Alice's roster is Alice, Bob (1 task) and Carol; the first zero-load member wins.
  assert out["proposedTask"]["assigneeId"] in {team.alice.id, team.carol.id}
  assert out["proposedTask"]["dueDate"] == "by Friday"
  assert out["proposedTask"]["status"] == "TO_DO"
  assert "lightest workload" in out["conversationReply"]
  assert "Bob (ID:" in ai.contexts[0]["system"]


@pytest.mark.anyio
async def test_prompt_is_required_and_provider_must_exist(team: Team) -> None:
  async with SessionLocal() as db:
    with pytest.raises(ValidationError):
      await propose_task(db, actor(team.owner), prompt="   ", ai=_ScriptedAI("{}"))
    with pytest.raises(DependencyFailure):
      await propose_task(db, actor(team.owner), prompt="hello", ai=None)


@pytest.mark.anyio
async def test_task_assistant_over_http(client: AsyncClient, team: Team, collab: Collaborators) -> None:
  res = await client.post("/ai/task-assistant", json={"prompt": "Create a task to update the docs for Bob by 2026-05-01"}, headers=headers(team.alice))
  assert res.status_code == 200, res.text
  body = res.json()
  assert body["action"] == "LOG_TASK"
  assert body["proposedTask"]["assigneeId"] == team.bob.id
  assert body["proposedTask"]["dueDate"] == "2026-05-01"

  chat = await client.post("/ai/task-assistant", json={"prompt": "how is everyone doing?"}, headers=headers(team.alice))
  assert chat.json()["action"] == "CONVERSATION"
  assert chat.json()["proposedTask"] is None

  collab.ai = None
  down = await client.post("/ai/task-assistant", json={"prompt": "hello"}, headers=headers(team.alice))
  assert down.status_code == 502
  assert down.json()["detail"]["code"] == "dependency_failure"
