from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from auratask.config import settings
from auratask.errors import DependencyFailure


class AIProvider(Protocol):
  async def generate(self, *, prompt: str, context: dict[str, Any]) -> str: ...


_CREATE_VERBS = ("create", "add", "log", "assign", "schedule", "make a task", "new task", "remind")


def _least_busy(members: list[dict[str, Any]]) -> dict[str, Any] | None:
  if not members:
    return None
  return min(members, key=lambda m: int(m.get("tasksCount") or 0))


@dataclass
class LocalDeterministicProvider:
  async def generate(self, *, prompt: str, context: dict[str, Any]) -> str:
    # Deterministic, offline-friendly behavior suitable for tests and demos.
    kind = context.get("kind", "generic")
    if kind == "performance_evaluation":
      name = context.get("userName") or "This member"
      rate = int(context.get("completionRate") or 0)
      avg = int(context.get("averageTimeDays") or 0)
      overdue = int(context.get("tasksOverdue") or 0)
      total = int(context.get("totalTasks") or 0)
      lines = [
        f"{name} has {total} assigned task(s) with a {rate}% completion rate.",
        f"Average completion time is {avg} day(s).",
      ]
      if overdue:
        lines.append(f"{overdue} task(s) are overdue and should be re-planned.")
      else:
        lines.append("No tasks are overdue.")
      return " ".join(lines)
    if kind == "task_assistant":
      text = prompt.strip()
      lowered = text.lower()
      if not any(v in lowered for v in _CREATE_VERBS):
        return json.dumps({"action": "CONVERSATION", "conversationReply": "Tell me what needs doing and I will draft a task."})
      members = list(context.get("members") or [])
      named = next((m for m in members if str(m.get("name") or "").lower() in lowered and m.get("name")), None)
      assignee = named or _least_busy(members)
      title = re.sub(r"^(please\s+)?(create|add|log|make)\s+(a\s+)?(new\s+)?task\s*(to|for|:)?\s*", "", text, flags=re.I)
      title = (title or text)[:120].strip().rstrip(".") or "New task"
      due = re.search(r"\d{4}-\d{2}-\d{2}", text)
      reply = f"I drafted \"{title}\"."
      if assignee and not named:
        reply += f" {assignee['name']} has the lightest workload."
      return json.dumps(
        {
          "action": "LOG_TASK",
          "conversationReply": reply,
          "proposedTask": {
            "title": title[:1].upper() + title[1:],
            "description": text,
            "assigneeId": assignee["id"] if assignee else "",
            "dueDate": due.group(0) if due else "",
            "status": "TO_DO",
          },
        }
      )
    return json.dumps({"echo": prompt, "context": context}, indent=2, default=str)


@dataclass
class GeminiProvider:
  api_key: str
  model: str
  base_url: str
  transport: httpx.AsyncBaseTransport | None = None

  async def generate(self, *, prompt: str, context: dict[str, Any]) -> str:
    body: dict[str, Any] = {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}
    if context.get("system"):
      body["systemInstruction"] = {"parts": [{"text": str(context["system"])}]}
    if context.get("json"):
      body["generationConfig"] = {"responseMimeType": "application/json"}
    try:
      async with httpx.AsyncClient(base_url=self.base_url, timeout=60, transport=self.transport) as client:
        r = await client.post(f"/models/{self.model}:generateContent", params={"key": self.api_key}, json=body)
        r.raise_for_status()
        data = r.json()
    except httpx.HTTPError as e:
      raise DependencyFailure("gemini", str(e) or e.__class__.__name__) from e
    try:
      parts = data["candidates"][0]["content"]["parts"]
    except (KeyError, IndexError, TypeError) as e:
      raise DependencyFailure("gemini", "response carried no candidates") from e
    return "".join(str(p.get("text") or "") for p in parts)


@dataclass
class OpenAICompatibleProvider:
  api_key: str
  base_url: str
  model: str
  transport: httpx.AsyncBaseTransport | None = None

  async def generate(self, *, prompt: str, context: dict[str, Any]) -> str:
    headers = {"Authorization": f"Bearer {self.api_key}"}
    system = str(context.get("system") or "You are Aura, an assistant embedded in a task manager.")
    payload: dict[str, Any] = {
      "model": self.model,
      "messages": [
        {"role": "system", "content": system},
        {"role": "user", "content": prompt},
      ],
      "temperature": 0.3,
    }
    if context.get("json"):
      payload["response_format"] = {"type": "json_object"}
    try:
      async with httpx.AsyncClient(base_url=self.base_url, headers=headers, timeout=60, transport=self.transport) as client:
        r = await client.post("/chat/completions", json=payload)
        r.raise_for_status()
        data = r.json()
    except httpx.HTTPError as e:
      raise DependencyFailure("openai", str(e) or e.__class__.__name__) from e
    try:
      return data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as e:
      raise DependencyFailure("openai", "response carried no choices") from e


def get_ai_provider() -> AIProvider | None:
  name = settings.ai_provider.strip().lower()
  if name == "none":
    return None
  if name == "gemini":
    if not settings.gemini_api_key:
      raise RuntimeError("AI_PROVIDER=gemini requires GEMINI_API_KEY")
    return GeminiProvider(api_key=settings.gemini_api_key, model=settings.gemini_model, base_url=settings.gemini_base_url)
  if name == "openai":
    if not settings.openai_api_key:
      raise RuntimeError("AI_PROVIDER=openai requires OPENAI_API_KEY")
    return OpenAICompatibleProvider(api_key=settings.openai_api_key, base_url=settings.openai_base_url, model=settings.openai_model)
  return LocalDeterministicProvider()
