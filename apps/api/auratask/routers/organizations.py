from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from auratask import organizations
from auratask.deps import get_actor, get_db
from auratask.models import Organization, User
from auratask.permissions import Actor
from auratask.schemas import OrganizationOut, OrganizationSignUpIn, ProfileUpdateIn, SignUpOut, TrialStatusOut, UserOut

router = APIRouter(tags=["organizations"])


def _org_out(o: Organization) -> OrganizationOut:
  return OrganizationOut(
    id=o.id,
    name=o.name,
    subscriptionStatus=o.subscription_status,
    plan=o.plan,
    trialStartDate=o.trial_start_date,
    trialEndDate=o.trial_end_date,
    createdAt=o.created_at,
  )


def _user_out(u: User) -> UserOut:
  return UserOut(
    id=u.id,
    organizationId=u.organization_id,
    name=u.name,
    email=u.email,
    role=u.role,
    tasksCount=u.tasks_count,
    createdAt=u.created_at,
  )


@router.post("/organizations", response_model=SignUpOut)
async def sign_up(payload: OrganizationSignUpIn, db: AsyncSession = Depends(get_db)) -> SignUpOut:
  org, owner = await organizations.sign_up(
    db,
    organization_name=payload.organizationName,
    owner_name=payload.ownerName,
    owner_email=payload.ownerEmail,
    identity_org_id=payload.identityOrgId,
    identity_subject=payload.identitySubject,
  )
  return SignUpOut(organization=_org_out(org), owner=_user_out(owner))


@router.get("/organizations/me/trial", response_model=TrialStatusOut)
async def trial(actor: Actor = Depends(get_actor), db: AsyncSession = Depends(get_db)) -> TrialStatusOut:
  org = await organizations.get_organization(db, actor.organization_id)
  return TrialStatusOut(**organizations.trial_status(org))


@router.get("/me", response_model=UserOut)
async def me(actor: Actor = Depends(get_actor), db: AsyncSession = Depends(get_db)) -> UserOut:
  return _user_out(await organizations.get_member(db, actor.organization_id, actor.id))


@router.patch("/me", response_model=UserOut)
async def update_me(payload: ProfileUpdateIn, actor: Actor = Depends(get_actor), db: AsyncSession = Depends(get_db)) -> UserOut:
  return _user_out(await organizations.update_profile(db, actor, name=payload.name))


@router.get("/members", response_model=list[UserOut])
async def members(actor: Actor = Depends(get_actor), db: AsyncSession = Depends(get_db)) -> list[UserOut]:
  return [_user_out(u) for u in await organizations.list_members(db, actor)]
