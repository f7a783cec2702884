from __future__ import annotations

import math
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from auratask.config import settings
from auratask.errors import NotFound, ValidationError
from auratask.models import Organization, User, as_utc, utcnow
from auratask.permissions import Actor, Capability, Role


async def sign_up(
  db: AsyncSession,
  *,
  organization_name: str,
  owner_name: str,
  owner_email: str,
  identity_org_id: str | None = None,
  identity_subject: str | None = None,
) -> tuple[Organization, User]:
  """Create an organization on a free trial together with its first member, the OWNER."""
  org_name = str(organization_name or "").strip()
  name = str(owner_name or "").strip()
  email = str(owner_email or "").strip().lower()
  if not org_name:
    raise ValidationError("Organization name is required")
  if not name:
    raise ValidationError("Owner name is required")
  if "@" not in email:
    raise ValidationError("A valid owner email is required")

  if identity_org_id:
    res = await db.execute(select(Organization.id).where(Organization.identity_org_id == identity_org_id))
    if res.scalar_one_or_none():
      raise ValidationError("That identity organization is already registered")
  if identity_subject:
    res = await db.execute(select(User.id).where(User.identity_subject == identity_subject))
    if res.scalar_one_or_none():
      raise ValidationError("That identity is already linked to a member")

  now = utcnow()
  org = Organization(
    name=org_name,
    identity_org_id=identity_org_id or None,
    subscription_status="TRIAL",
    plan="FREE_TRIAL",
    trial_start_date=now,
    trial_end_date=now + timedelta(days=settings.trial_days),
  )
  db.add(org)
  await db.flush()
  owner = User(
    organization_id=org.id,
    identity_subject=identity_subject or None,
    name=name,
    email=email,
    role=Role.OWNER.value,
    tasks_count=0,
  )
  db.add(owner)
  await db.commit()
  return org, owner


def trial_status(org: Organization, now: datetime | None = None) -> dict[str, Any]:
  now = now or utcnow()
  end = as_utc(org.trial_end_date)
  remaining = (end - now).total_seconds() / 86400
  days_remaining = max(0, math.ceil(remaining))
  active = org.subscription_status == "ACTIVE" or (org.subscription_status == "TRIAL" and remaining > 0)
  status = org.subscription_status
  if status == "TRIAL" and remaining <= 0:
    status = "EXPIRED"
  return {"isActive": active, "daysRemaining": days_remaining, "status": status, "trialEndDate": end}


async def get_organization(db: AsyncSession, organization_id: str) -> Organization:
  org = await db.get(Organization, organization_id)
  if not org:
    raise NotFound("Organization not found")
  return org


async def get_member(db: AsyncSession, organization_id: str, user_id: str) -> User:
  res = await db.execute(select(User).where(User.id == user_id, User.organization_id == organization_id))
  u = res.scalar_one_or_none()
  if not u:
    raise NotFound("User not found")
  return u


async def list_members(db: AsyncSession, actor: Actor) -> list[User]:
  q = select(User).where(User.organization_id == actor.organization_id)
  if actor.can(Capability.VIEW_ALL_MEMBERS):
    pass
  elif actor.can(Capability.VIEW_TEAM_MEMBERS):
    q = q.where(or_(User.role == Role.EMPLOYEE.value, User.id == actor.id))
  else:
    q = q.where(User.id == actor.id)
  res = await db.execute(q.order_by(User.name.asc(), User.id.asc()))
  return list(res.scalars().all())


async def update_profile(db: AsyncSession, actor: Actor, *, name: str) -> User:
  clean = str(name or "").strip()
  if not clean:
    raise ValidationError("Name is required")
  if len(clean) > 255:
    raise ValidationError("Name must be at most 255 characters")
  u = await get_member(db, actor.organization_id, actor.id)
  u.name = clean
  u.updated_at = utcnow()
  await db.commit()
  return u
