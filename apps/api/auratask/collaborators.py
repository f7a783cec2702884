from __future__ import annotations

from dataclasses import dataclass, field

from auratask.ai.providers import AIProvider, get_ai_provider
from auratask.config import settings
from auratask.notifications.dispatcher import BackgroundDispatcher
from auratask.notifications.service import EmailProvider, provider_for


@dataclass
class Collaborators:
  """External services a mutation may touch after it commits."""

  email: EmailProvider
  ai: AIProvider | None
  dispatcher: BackgroundDispatcher = field(default_factory=lambda: BackgroundDispatcher(settings.background_concurrency))


def build_collaborators() -> Collaborators:
  return Collaborators(email=provider_for(), ai=get_ai_provider())
