from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx

from auratask.config import settings
from auratask.errors import DependencyFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OutboundEmail:
  to_email: str
  to_name: str
  subject: str
  html: str
  tags: tuple[str, ...] = ()


class EmailProvider(Protocol):
  async def send(self, msg: OutboundEmail) -> dict[str, Any]: ...


@dataclass
class LocalEmailProvider:
  outbox: list[OutboundEmail] = field(default_factory=list)

  async def send(self, msg: OutboundEmail) -> dict[str, Any]:
    self.outbox.append(msg)
    logger.info("email (local) to=%s subject=%r", msg.to_email, msg.subject)
    return {"provider": "local", "status": "sent", "detail": {"to": msg.to_email, "subject": msg.subject}}


@dataclass
class BrevoEmailProvider:
  api_key: str
  base_url: str
  sender_email: str
  sender_name: str
  transport: httpx.AsyncBaseTransport | None = None

  async def send(self, msg: OutboundEmail) -> dict[str, Any]:
    payload: dict[str, Any] = {
      "sender": {"email": self.sender_email, "name": self.sender_name},
      "to": [{"email": msg.to_email, "name": msg.to_name or msg.to_email}],
      "subject": msg.subject,
      "htmlContent": msg.html,
    }
    if msg.tags:
      payload["tags"] = list(msg.tags)
    headers = {"api-key": self.api_key, "accept": "application/json"}
    try:
      async with httpx.AsyncClient(base_url=self.base_url, headers=headers, timeout=15, transport=self.transport) as client:
        r = await client.post("/smtp/email", json=payload)
        r.raise_for_status()
        data = r.json()
    except httpx.HTTPError as e:
      raise DependencyFailure("brevo", str(e) or e.__class__.__name__) from e
    return {"provider": "brevo", "status": "sent", "detail": data}


def provider_for(provider: str | None = None) -> EmailProvider:
  name = (provider or settings.email_provider).strip().lower()
  if name == "brevo":
    if not settings.brevo_api_key:
      raise RuntimeError("EMAIL_PROVIDER=brevo requires BREVO_API_KEY")
    return BrevoEmailProvider(
      api_key=settings.brevo_api_key,
      base_url=settings.brevo_base_url,
      sender_email=settings.email_sender_email,
      sender_name=settings.email_sender_name,
    )
  return LocalEmailProvider()
