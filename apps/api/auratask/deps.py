from __future__ import annotations

from collections.abc import AsyncIterator

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from auratask.collaborators import Collaborators, build_collaborators
from auratask.config import settings
from auratask.db import SessionLocal
from auratask.models import User
from auratask.permissions import Actor

_collaborators: Collaborators | None = None


async def get_db() -> AsyncIterator[AsyncSession]:
  async with SessionLocal() as session:
    yield session


def get_collaborators() -> Collaborators:
  global _collaborators
  if _collaborators is None:
    _collaborators = build_collaborators()
  return _collaborators


def reset_collaborators(collab: Collaborators | None = None) -> None:
  global _collaborators
  _collaborators = collab


async def get_current_user(request: Request, db: AsyncSession = Depends(get_db)) -> User:
  # The identity provider's gateway authenticates the caller and forwards these headers.
  actor_id = (request.headers.get(settings.identity_actor_header) or "").strip()
  org_id = (request.headers.get(settings.identity_org_header) or "").strip()
  if not actor_id or not org_id:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
  res = await db.execute(select(User).where(User.id == actor_id, User.organization_id == org_id))
  u = res.scalar_one_or_none()
  if not u:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
  return u


async def get_actor(user: User = Depends(get_current_user)) -> Actor:
  return Actor(id=user.id, organization_id=user.organization_id, role=user.role, name=user.name, email=user.email)
