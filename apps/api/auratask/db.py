from __future__ import annotations

from typing import Any

from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from auratask.config import settings


def _engine_kwargs(url: str) -> dict[str, Any]:
  if url.startswith("sqlite"):
    # In-memory SQLite must share one connection or every session sees an empty database.
    return {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
  return {"pool_pre_ping": True}


engine = create_async_engine(settings.database_url, **_engine_kwargs(settings.database_url))
SessionLocal = async_sessionmaker(engine, expire_on_commit=False)
