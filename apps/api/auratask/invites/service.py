from __future__ import annotations

import secrets
from datetime import timedelta

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from auratask.collaborators import Collaborators
from auratask.config import settings
from auratask.errors import NotFound, ValidationError
from auratask.models import Invite, Organization, User, as_utc, utcnow
from auratask.notifications.dispatcher import send_emails
from auratask.notifications.templates import invite_email, welcome_email
from auratask.permissions import Actor, Role, require_invite, require_view_invites


def generate_invite_token() -> str:
  return "inv_" + secrets.token_urlsafe(24)


def invite_link(token: str) -> str:
  return f"{settings.app_url.rstrip('/')}/invite/{token}"


def _clean_email(value: str) -> str:
  email = str(value or "").strip().lower()
  if "@" not in email or email.startswith("@") or email.endswith("@"):
    raise ValidationError("A valid email address is required")
  return email


async def create_invite(
  db: AsyncSession,
  actor: Actor,
  *,
  email: str,
  role: str,
  collab: Collaborators | None = None,
) -> tuple[Invite, str]:
  try:
    target = Role.parse(role)
  except ValueError:
    raise ValidationError(f"Unknown role: {role!r}") from None
  require_invite(actor, target)
  clean_email = _clean_email(email)

  existing = await db.execute(
    select(User.id).where(User.organization_id == actor.organization_id, func.lower(User.email) == clean_email)
  )
  if existing.scalar_one_or_none():
    raise ValidationError("That email already belongs to a member of this organization")

  org = await db.get(Organization, actor.organization_id)
  if not org:
    raise NotFound("Organization not found")

  inv = Invite(
    email=clean_email,
    role=target.value,
    organization_id=actor.organization_id,
    invited_by_id=actor.id,
    token=generate_invite_token(),
    used=False,
    expires_at=utcnow() + timedelta(days=settings.invite_ttl_days),
  )
  db.add(inv)
  await db.commit()

  link = invite_link(inv.token)
  if collab is not None:
    send_emails(
      collab.dispatcher,
      collab.email,
      [
        invite_email(
          to_email=inv.email,
          role=inv.role,
          invite_link=link,
          organization_name=org.name,
          invited_by=actor.name or actor.email,
        )
      ],
    )
  return inv, link


async def list_invites(db: AsyncSession, actor: Actor) -> list[Invite]:
  require_view_invites(actor)
  res = await db.execute(
    select(Invite).where(Invite.organization_id == actor.organization_id).order_by(Invite.created_at.desc())
  )
  return list(res.scalars().all())


async def get_open_invite(db: AsyncSession, token: str) -> Invite | None:
  """The invite for `token` if it is unused and unexpired."""
  res = await db.execute(select(Invite).where(Invite.token == token, Invite.used.is_(False)))
  inv = res.scalar_one_or_none()
  if not inv:
    return None
  if utcnow() > as_utc(inv.expires_at):
    return None
  return inv


async def accept_invite(
  db: AsyncSession,
  token: str,
  *,
  name: str,
  identity_subject: str | None = None,
  collab: Collaborators | None = None,
) -> User:
  inv = await get_open_invite(db, token)
  if not inv:
    raise NotFound("Invalid or expired invite")
  clean_name = str(name or "").strip()
  if not clean_name:
    raise ValidationError("Name is required")

  dup = await db.execute(
    select(User.id).where(User.organization_id == inv.organization_id, func.lower(User.email) == inv.email.lower())
  )
  if dup.scalar_one_or_none():
    raise ValidationError("That email already belongs to a member of this organization")
  if identity_subject:
    taken = await db.execute(select(User.id).where(User.identity_subject == identity_subject))
    if taken.scalar_one_or_none():
      raise ValidationError("That identity is already linked to a member")

  # Conditional flip so two concurrent accepts cannot both consume the token.
  res = await db.execute(update(Invite).where(Invite.id == inv.id, Invite.used.is_(False)).values(used=True))
  if res.rowcount != 1:
    await db.rollback()
    raise NotFound("Invalid or expired invite")

  u = User(
    organization_id=inv.organization_id,
    identity_subject=identity_subject or None,
    name=clean_name,
    email=inv.email,
    role=inv.role,
    tasks_count=0,
  )
  db.add(u)
  org = await db.get(Organization, inv.organization_id)
  await db.commit()

  if collab is not None and org is not None:
    send_emails(
      collab.dispatcher,
      collab.email,
      [welcome_email(to_email=u.email, to_name=u.name, organization_name=org.name, role=u.role)],
    )
  return u
