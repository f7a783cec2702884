from __future__ import annotations

import json
import logging
import re
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from auratask.ai.providers import AIProvider
from auratask.errors import DependencyFailure, ValidationError
from auratask.models import User
from auratask.organizations import list_members
from auratask.permissions import Actor
from auratask.tasks.service import list_tasks

logger = logging.getLogger(__name__)

ACTIONS = ("LOG_TASK", "CONVERSATION", "EDIT_TASK")
TASKS_IN_CONTEXT = 10

_FENCED_JSON = re.compile(r"```json\s*([\s\S]*?)\s*```")
_FENCED = re.compile(r"```\s*([\s\S]*?)\s*```")

_FALLBACK_REPLY = "I apologize, but I'm having trouble processing that request. Could you please rephrase it?"


def extract_json_text(text: str) -> str:
  s = (text or "").strip()
  if "```json" in s:
    m = _FENCED_JSON.search(s)
    if m:
      s = m.group(1).strip()
  elif "```" in s:
    m = _FENCED.search(s)
    if m:
      s = m.group(1).strip()
  if not s.startswith("{"):
    start, end = s.find("{"), s.rfind("}")
    if start != -1 and end > start:
      s = s[start : end + 1]
  return s


def parse_reply(text: str) -> dict[str, Any]:
  try:
    obj = json.loads(extract_json_text(text))
  except json.JSONDecodeError:
    logger.warning("task assistant reply was not JSON: %.200r", text)
    return {"action": "CONVERSATION", "conversationReply": text or _FALLBACK_REPLY}
  if not isinstance(obj, dict):
    return {"action": "CONVERSATION", "conversationReply": text or _FALLBACK_REPLY}
  action = str(obj.get("action") or "CONVERSATION").upper()
  out: dict[str, Any] = {
    "action": action if action in ACTIONS else "CONVERSATION",
    "conversationReply": str(obj.get("conversationReply") or ""),
  }
  proposed = obj.get("proposedTask")
  if isinstance(proposed, dict):
    out["proposedTask"] = {
      "title": str(proposed.get("title") or ""),
      "description": str(proposed.get("description") or ""),
      "assigneeId": str(proposed.get("assigneeId") or ""),
      "dueDate": str(proposed.get("dueDate") or ""),
      "status": "TO_DO",
    }
  return out


def least_busy(members: list[User]) -> User | None:
  best: User | None = None
  for m in members:
    if best is None or m.tasks_count < best.tasks_count:
      best = m
  return best


def build_system_instruction(members: list[User], tasks: list[Any]) -> str:
  names = {m.id: m.name for m in members}
  lines = [
    "You are Aura, an intelligent and diligent Project Manager Assistant.",
    "Respond ONLY with a valid JSON object, with no text before or after it.",
    "Extract task details (title, description, assignee, dueDate) from the conversation and keep workloads balanced.",
    "If the user does not name an assignee, choose the member with the lowest tasksCount.",
    "",
    "Available members and their current workload:",
  ]
  lines += [f"- {m.name} (ID: {m.id}): {m.tasks_count} active tasks" for m in members]
  lines += ["", "Current tasks (for context):"]
  lines += [f"- \"{t.title}\" ({t.status}) - Assigned to: {names.get(t.assignee_id, 'Unassigned')}" for t in tasks[:TASKS_IN_CONTEXT]]
  if len(tasks) > TASKS_IN_CONTEXT:
    lines.append(f"... and {len(tasks) - TASKS_IN_CONTEXT} more tasks")
  lines += [
    "",
    "Schema:",
    '{"action": "LOG_TASK" | "CONVERSATION" | "EDIT_TASK", "conversationReply": "string",',
    ' "proposedTask": {"title": "string", "description": "string", "assigneeId": "one of the member IDs",',
    '  "dueDate": "free text, e.g. 2025-02-15 or by end of Q4", "status": "TO_DO"}}',
    "Omit proposedTask when the user is just chatting.",
  ]
  return "\n".join(lines)


async def propose_task(db: AsyncSession, actor: Actor, *, prompt: str, ai: AIProvider | None) -> dict[str, Any]:
  """Turn a free-text request into a proposed task; nothing is written."""
  text = str(prompt or "").strip()
  if not text:
    raise ValidationError("Prompt is required")
  if ai is None:
    raise DependencyFailure("ai", "no AI provider is configured")

  members = await list_members(db, actor)
  tasks = await list_tasks(db, actor)
  context: dict[str, Any] = {
    "kind": "task_assistant",
    "json": True,
    "system": build_system_instruction(members, tasks),
    "members": [{"id": m.id, "name": m.name, "role": m.role, "tasksCount": m.tasks_count} for m in members],
  }
  raw = await ai.generate(prompt=text, context=context)
  reply = parse_reply(raw)

  proposed = reply.get("proposedTask")
  if proposed and proposed["assigneeId"] and members:
    if not any(m.id == proposed["assigneeId"] for m in members):
      fallback = least_busy(members)
      proposed["assigneeId"] = fallback.id
      reply["conversationReply"] += f" I've assigned this to {fallback.name} as they have the lightest workload."
  return reply
