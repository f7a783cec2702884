from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from auratask.collaborators import Collaborators
from auratask.deps import get_actor, get_collaborators, get_db
from auratask.errors import NotFound
from auratask.invites import service
from auratask.models import Invite
from auratask.permissions import Actor
from auratask.routers.organizations import _user_out
from auratask.schemas import InviteAcceptIn, InviteCreatedOut, InviteCreateIn, InviteOut, UserOut

router = APIRouter(tags=["invites"])


def _invite_out(i: Invite) -> InviteOut:
  return InviteOut(
    id=i.id,
    email=i.email,
    role=i.role,
    organizationId=i.organization_id,
    invitedById=i.invited_by_id,
    used=bool(i.used),
    expiresAt=i.expires_at,
    createdAt=i.created_at,
  )


@router.get("/invites", response_model=list[InviteOut])
async def list_invites(actor: Actor = Depends(get_actor), db: AsyncSession = Depends(get_db)) -> list[InviteOut]:
  return [_invite_out(i) for i in await service.list_invites(db, actor)]


@router.post("/invites", response_model=InviteCreatedOut)
async def create_invite(
  payload: InviteCreateIn,
  actor: Actor = Depends(get_actor),
  db: AsyncSession = Depends(get_db),
  collab: Collaborators = Depends(get_collaborators),
) -> InviteCreatedOut:
  inv, link = await service.create_invite(db, actor, email=payload.email, role=payload.role, collab=collab)
  return InviteCreatedOut(invite=_invite_out(inv), inviteLink=link)


@router.get("/invites/{token}", response_model=InviteOut)
async def get_invite(token: str, db: AsyncSession = Depends(get_db)) -> InviteOut:
  inv = await service.get_open_invite(db, token)
  if not inv:
    raise NotFound("Invalid or expired invite")
  return _invite_out(inv)


@router.post("/invites/{token}/accept", response_model=UserOut)
async def accept_invite(
  token: str,
  payload: InviteAcceptIn,
  db: AsyncSession = Depends(get_db),
  collab: Collaborators = Depends(get_collaborators),
) -> UserOut:
  u = await service.accept_invite(db, token, name=payload.name, identity_subject=payload.identitySubject, collab=collab)
  return _user_out(u)
