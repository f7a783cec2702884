from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
  model_config = SettingsConfigDict(env_file=".env", extra="ignore")

  database_url: str = "postgresql+asyncpg://auratask:auratask@db:5432/auratask"
  app_version: str = "v2026-10-17"
  build_sha: str = "dev"
  app_url: str = "http://localhost:3000"
  log_level: str = "INFO"

  cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"

  # Set by the identity provider's gateway; trusted as-is.
  identity_actor_header: str = "X-Actor-Id"
  identity_org_header: str = "X-Organization-Id"

  # "none" disables the assistant and leaves metrics on the rule-based narrative.
  ai_provider: str = "local"  # none | local | gemini | openai
  gemini_api_key: str | None = None
  gemini_model: str = "gemini-2.0-flash"
  gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
  openai_api_key: str | None = None
  openai_base_url: str = "https://api.openai.com/v1"
  openai_model: str = "gpt-4o-mini"

  email_provider: str = "local"  # local | brevo
  brevo_api_key: str | None = None
  brevo_base_url: str = "https://api.brevo.com/v3"
  email_sender_email: str = "noreply@auratask.com"
  email_sender_name: str = "AuraTask"

  trial_days: int = 20
  invite_ttl_days: int = 7
  ai_evaluation_max_age_hours: int = 24
  background_concurrency: int = 8
  monitor_concurrency: int = 4

  def cors_origin_list(self) -> list[str]:
    return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


settings = Settings()
